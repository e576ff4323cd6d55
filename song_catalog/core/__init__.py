"""
Core package for the Song Catalog service: the write-coalescing layer.

Exports the dirty tracker, the flush scheduler, the query engine and the
catalog service that ties them to a record store.
"""

from song_catalog.core.dirty import DirtyTracker
from song_catalog.core.locks import KeyedLocks
from song_catalog.core.query import matches, normalize_filters, search_songs
from song_catalog.core.scheduler import FlushScheduler, FlushStats
from song_catalog.core.service import CatalogService, FlushPolicy, parse_song_id

__all__ = [
    "CatalogService",
    "DirtyTracker",
    "FlushPolicy",
    "FlushScheduler",
    "FlushStats",
    "KeyedLocks",
    "matches",
    "normalize_filters",
    "parse_song_id",
    "search_songs",
]
