import asyncio
import csv
from pathlib import Path

import pytest
from typer.testing import CliRunner

from song_catalog import config
from song_catalog.config import Settings, build_dsn
from song_catalog.main import app as cli_app
from song_catalog.persistence import LmdbRecordStore, available_backends, build_store
from scripts import seed_songs

runner = CliRunner()


def test_get_settings_defaults(monkeypatch):
    for name in ("CATALOG_BACKEND", "FLUSH_POLICY", "FLUSH_INTERVAL_MS", "HTTP_PORT", "DB_NAME"):
        monkeypatch.delenv(name, raising=False)
    config.get_settings.cache_clear()
    try:
        settings = config.get_settings()
        assert settings.backend == "lmdb"
        assert settings.flush_policy == "buffered"
        assert settings.flush_interval_ms > 0
        assert settings.flush_idle_timeout_s > 0
        assert settings.http_port == 8080
        assert settings.db_name == "song_catalog"
    finally:
        config.get_settings.cache_clear()


def test_settings_read_environment_aliases(monkeypatch):
    monkeypatch.setenv("CATALOG_BACKEND", "postgres")
    monkeypatch.setenv("FLUSH_INTERVAL_MS", "1500")
    settings = Settings()
    assert settings.backend == "postgres"
    assert settings.flush_interval_seconds == 1.5


def test_build_dsn_uses_settings():
    settings = Settings(db_user="u", db_password="p", db_host="h", db_port=1234, db_name="d")
    assert build_dsn(settings) == "postgresql://u:p@h:1234/d"


def test_available_backends_contains_known_entries():
    names = available_backends()
    assert names == ["lmdb", "postgres"]


def test_build_store_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unknown backend"):
        asyncio.run(build_store(Settings(backend="redis")))


def test_build_store_opens_lmdb(test_settings):
    async def _open_and_close():
        store = await build_store(test_settings)
        try:
            assert isinstance(store, LmdbRecordStore)
            return await store.count()
        finally:
            await store.close()

    assert asyncio.run(_open_and_close()) == 0


def test_cli_backends_lists_registry():
    result = runner.invoke(cli_app, ["backends"])
    assert result.exit_code == 0
    assert "lmdb" in result.output
    assert "postgres" in result.output


def test_cli_info_shows_flush_settings():
    result = runner.invoke(cli_app, ["info"])
    assert result.exit_code == 0
    assert "flush_policy=" in result.output


def test_seed_generation_is_deterministic():
    first = seed_songs._generate_songs(5, seed=123)
    second = seed_songs._generate_songs(5, seed=123)
    assert first == second
    assert len(first) == 5


def test_seed_writes_csv(tmp_path: Path):
    csv_path = tmp_path / "songs.csv"
    seed_songs._write_csv(csv_path, seed_songs._generate_songs(3, seed=1))
    with csv_path.open("r", newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    # header + 3 rows
    assert len(rows) == 4
    assert rows[0] == ["title", "artist", "genre"]


def test_seed_load_assigns_sequential_ids(test_settings):
    songs = seed_songs._generate_songs(4, seed=7)
    assert asyncio.run(seed_songs._load(test_settings, songs)) == 4
