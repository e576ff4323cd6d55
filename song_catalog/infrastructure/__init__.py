"""
Infrastructure package for the Song Catalog service.

Centralizes storage connectivity concerns (async Postgres pool, LMDB
environment). Keep this layer focused on I/O and resource management,
decoupled from the record store and service logic.
"""

from song_catalog.infrastructure.db_factory import (
    build_dsn,
    open_async_pool,
    open_lmdb_environment,
)

__all__ = [
    "build_dsn",
    "open_async_pool",
    "open_lmdb_environment",
]
