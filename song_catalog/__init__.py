"""
Song Catalog - a small HTTP catalog of songs with write-coalescing persistence.

Songs (title, artist, genre, play count) are stored in one of two backends:

- LMDB, an embedded ordered key-value store synced by an explicit flush
- PostgreSQL, a relational table with per-statement commits

Mutations mark a dirty flag and a background flush scheduler commits them in
batches, while searches and play-count increments stay consistent with
writes that are still pending a flush.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from song_catalog.api import create_app
from song_catalog.config import Settings, get_settings
from song_catalog.core import (
    CatalogService,
    DirtyTracker,
    FlushScheduler,
    FlushStats,
    search_songs,
)
from song_catalog.domain import NewSong, Song
from song_catalog.persistence import (
    AbstractRecordStore,
    LmdbRecordStore,
    PostgresRecordStore,
    RecordStore,
    available_backends,
    build_store,
)
from song_catalog.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Application
    "create_app",
    # Domain
    "NewSong",
    "Song",
    # Core
    "CatalogService",
    "DirtyTracker",
    "FlushScheduler",
    "FlushStats",
    "search_songs",
    # Persistence
    "AbstractRecordStore",
    "LmdbRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "available_backends",
    "build_store",
    # Logging
    "configure_logging",
    "get_logger",
]
