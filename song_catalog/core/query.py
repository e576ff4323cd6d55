"""
Query engine: case-insensitive substring search over the text fields.

A full scan with a per-record predicate, O(N * F) for N songs and F filters.
Filters on `title`, `artist` and `genre` are combined with logical AND; any
other key is ignored. No filters returns every song. Results keep the store's
iteration order (ascending id).
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from song_catalog.domain.models import SEARCHABLE_FIELDS, Song
from song_catalog.persistence.abstract import RecordStore


def normalize_filters(filters: Optional[Mapping[str, object]]) -> Dict[str, str]:
    """Keep recognized, non-null filters and lower-case their values."""
    if not filters:
        return {}
    return {
        field: str(value).lower()
        for field, value in filters.items()
        if field in SEARCHABLE_FIELDS and value is not None
    }


def matches(song: Song, normalized: Mapping[str, str]) -> bool:
    return all(needle in getattr(song, field).lower() for field, needle in normalized.items())


async def search_songs(
    store: RecordStore,
    filters: Optional[Mapping[str, object]] = None,
    batch_size: Optional[int] = None,
) -> List[Song]:
    normalized = normalize_filters(filters)
    return [song async for song in store.scan(batch_size) if matches(song, normalized)]


__all__ = ["matches", "normalize_filters", "search_songs"]
