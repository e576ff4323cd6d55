"""
Domain package for the Song Catalog service.

Exports the song models and the error taxonomy used across the persistence
layer, the core services and the HTTP surface.
"""

from song_catalog.domain.errors import (
    CatalogError,
    InvalidSongIdError,
    SongNotFoundError,
    StorageError,
    ValidationError,
)
from song_catalog.domain.models import SEARCHABLE_FIELDS, NewSong, Song

__all__ = [
    "CatalogError",
    "InvalidSongIdError",
    "NewSong",
    "SEARCHABLE_FIELDS",
    "Song",
    "SongNotFoundError",
    "StorageError",
    "ValidationError",
]
