"""
Error taxonomy for the Song Catalog service.

Storage backends wrap driver exceptions in `StorageError`; the HTTP layer maps
`SongNotFoundError` to 404, `ValidationError` to 400 and `StorageError` to 503.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all catalog errors."""


class StorageError(CatalogError):
    """The record store could not complete an I/O operation."""


class SongNotFoundError(CatalogError, LookupError):
    def __init__(self, song_id: int) -> None:
        super().__init__(f"Song {song_id} not found")
        self.song_id = song_id


class ValidationError(CatalogError, ValueError):
    """Client input rejected before it reaches the store."""


class InvalidSongIdError(ValidationError):
    def __init__(self, raw: object) -> None:
        super().__init__(f"Invalid song id: {raw!r}")
        self.raw = raw


__all__ = [
    "CatalogError",
    "InvalidSongIdError",
    "SongNotFoundError",
    "StorageError",
    "ValidationError",
]
