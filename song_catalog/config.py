"""
Configuration settings for the Song Catalog service.

Uses Pydantic Settings to load environment variables for the persistence
backend, the flush scheduler, the HTTP listener and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Persistence backend
    backend: str = Field("lmdb", alias="CATALOG_BACKEND")
    scan_batch_size: int = Field(500, alias="SCAN_BATCH_SIZE", gt=0)

    # LMDB (embedded)
    lmdb_path: str = Field("./song_db", alias="LMDB_PATH")
    lmdb_map_size: int = Field(64 * 1024 * 1024, alias="LMDB_MAP_SIZE")

    # PostgreSQL (relational)
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("song_catalog", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")

    # Flush scheduler
    flush_policy: Literal["buffered", "immediate"] = Field("buffered", alias="FLUSH_POLICY")
    flush_interval_ms: int = Field(200, alias="FLUSH_INTERVAL_MS", ge=0)
    flush_idle_timeout_s: float = Field(5.0, alias="FLUSH_IDLE_TIMEOUT_S", gt=0)

    # HTTP
    http_host: str = Field("0.0.0.0", alias="HTTP_HOST")
    http_port: int = Field(8080, alias="HTTP_PORT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(False, alias="JSON_LOGS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000.0


def build_dsn(settings: Settings | None = None) -> str:
    """Compose a PostgreSQL DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "build_dsn", "get_settings"]
