"""
Embedded record store backed by LMDB.

Songs live in the `songs` named database, keyed by the id packed as a
big-endian unsigned 64-bit integer so that byte order equals numeric order.
Values are the JSON encoding of the Song model.

The environment is opened with deferred syncing: committed transactions are
visible to readers immediately but only reach stable storage on `flush()`
(`Environment.sync(True)`). That is what makes write coalescing by the flush
scheduler worthwhile for this backend.

All LMDB calls are blocking and run in worker threads via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import struct
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

import lmdb
import pydantic

from song_catalog.config import Settings
from song_catalog.domain.errors import SongNotFoundError, StorageError
from song_catalog.domain.models import NewSong, Song
from song_catalog.infrastructure.db_factory import open_lmdb_environment
from song_catalog.persistence.abstract import AbstractRecordStore
from song_catalog.utils.logging import get_logger

log = get_logger(__name__)

SONGS_DB = b"songs"
_KEY = struct.Struct(">Q")
MAX_KEY = 2**64 - 1


def _encode_key(song_id: int) -> bytes:
    return _KEY.pack(song_id)


def _in_key_range(song_id: int) -> bool:
    return 0 <= song_id <= MAX_KEY


def _decode_song(raw: bytes) -> Song:
    return Song.model_validate_json(raw)


@contextmanager
def _storage_errors(operation: str) -> Generator[None, None, None]:
    """Translate LMDB, OS and record decoding failures into StorageError."""
    try:
        yield
    except (lmdb.Error, OSError, pydantic.ValidationError) as exc:
        raise StorageError(f"lmdb {operation} failed: {exc}") from exc


class LmdbRecordStore(AbstractRecordStore):
    """
    Record store over an LMDB environment.

    Single write transactions make `insert` (count + put) and `put`
    (existence check + overwrite) atomic with respect to readers, so a scan
    never observes a half-written record.
    """

    name: str = "lmdb"
    description: str = "Embedded LMDB store, integer keys, explicit sync on flush."

    def __init__(self, env: lmdb.Environment, scan_batch_size: int = 500) -> None:
        super().__init__(scan_batch_size=scan_batch_size)
        self._env = env
        self._db = env.open_db(SONGS_DB, create=True)
        self._closed = False

    @classmethod
    def open(
        cls,
        path: str | Path,
        map_size: int = 64 * 1024 * 1024,
        scan_batch_size: int = 500,
    ) -> "LmdbRecordStore":
        env = open_lmdb_environment(path, map_size=map_size)
        return cls(env, scan_batch_size=scan_batch_size)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LmdbRecordStore":
        return cls.open(
            settings.lmdb_path,
            map_size=settings.lmdb_map_size,
            scan_batch_size=settings.scan_batch_size,
        )

    # ----- blocking primitives (worker threads) -----

    def _insert_sync(self, new: NewSong) -> Song:
        with _storage_errors("insert"):
            with self._env.begin(write=True, db=self._db) as txn:
                song = Song.from_new(txn.stat(self._db)["entries"] + 1, new)
                stored = txn.put(
                    _encode_key(song.id), song.model_dump_json().encode("utf-8"), overwrite=False
                )
                if not stored:
                    raise StorageError(f"id {song.id} already taken")
        return song

    def _get_sync(self, song_id: int) -> Optional[Song]:
        if not _in_key_range(song_id):
            return None
        with _storage_errors("get"):
            with self._env.begin(db=self._db) as txn:
                raw = txn.get(_encode_key(song_id))
                return _decode_song(raw) if raw is not None else None

    def _put_sync(self, song: Song) -> Song:
        if not _in_key_range(song.id):
            raise SongNotFoundError(song.id)
        key = _encode_key(song.id)
        with _storage_errors("put"):
            with self._env.begin(write=True, db=self._db) as txn:
                if txn.get(key) is None:
                    raise SongNotFoundError(song.id)
                txn.put(key, song.model_dump_json().encode("utf-8"))
        return song

    def _count_sync(self) -> int:
        with _storage_errors("count"):
            with self._env.begin(db=self._db) as txn:
                return txn.stat(self._db)["entries"]

    def _fetch_batch_sync(self, after_id: int, limit: int) -> list[Song]:
        batch: list[Song] = []
        with _storage_errors("scan"):
            with self._env.begin(db=self._db) as txn:
                cursor = txn.cursor()
                if not cursor.set_range(_encode_key(after_id + 1)):
                    return batch
                for _key, value in cursor.iternext(keys=True, values=True):
                    batch.append(_decode_song(value))
                    if len(batch) >= limit:
                        break
        return batch

    def _flush_sync(self) -> None:
        with _storage_errors("sync"):
            self._env.sync(True)

    # ----- async API -----

    async def insert(self, new: NewSong) -> Song:
        return await asyncio.to_thread(self._insert_sync, new)

    async def get(self, song_id: int) -> Optional[Song]:
        return await asyncio.to_thread(self._get_sync, song_id)

    async def put(self, song: Song) -> Song:
        return await asyncio.to_thread(self._put_sync, song)

    async def count(self) -> int:
        return await asyncio.to_thread(self._count_sync)

    async def _fetch_batch(self, after_id: int, limit: int) -> list[Song]:
        return await asyncio.to_thread(self._fetch_batch_sync, after_id, limit)

    async def flush(self) -> None:
        await asyncio.to_thread(self._flush_sync)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Unsynced pages are lost on close.
        with _storage_errors("close"):
            self._env.sync(True)
            self._env.close()
        log.info("LMDB environment closed")


__all__ = ["LmdbRecordStore"]
