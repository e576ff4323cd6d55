"""
Persistence package for the Song Catalog service.

Re-exports the record store interface and the concrete backends, plus a small
registry so the app and the CLI can pick a backend by name.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, List

from song_catalog.config import Settings
from song_catalog.persistence.abstract import AbstractRecordStore, RecordStore
from song_catalog.persistence.lmdb_store import LmdbRecordStore
from song_catalog.persistence.postgres_store import PostgresRecordStore


async def _open_lmdb(settings: Settings) -> RecordStore:
    return LmdbRecordStore.from_settings(settings)


async def _open_postgres(settings: Settings) -> RecordStore:
    return await PostgresRecordStore.from_settings(settings)


def _store_factories() -> Dict[str, Callable[[Settings], Awaitable[RecordStore]]]:
    """Registry of available backends."""
    return {
        "lmdb": _open_lmdb,
        "postgres": _open_postgres,
    }


def available_backends() -> List[str]:
    """List available backend names."""
    return sorted(_store_factories().keys())


async def build_store(settings: Settings) -> RecordStore:
    factories = _store_factories()
    if settings.backend not in factories:
        raise ValueError(
            f"Unknown backend '{settings.backend}'. Available: {', '.join(sorted(factories))}"
        )
    return await factories[settings.backend](settings)


__all__ = [
    # Abstracts
    "AbstractRecordStore",
    "RecordStore",
    # Concrete stores
    "LmdbRecordStore",
    "PostgresRecordStore",
    # Registry
    "available_backends",
    "build_store",
]
