"""
Mutation handlers and read helpers for the Song Catalog service.

CatalogService is what the HTTP layer calls. It owns the two write paths:

- `create`: insert under the insert lock (ids are `count + 1`, so two inserts
  must never compute the count concurrently), then commit.
- `play`: read-modify-write of `play_count` under a per-id lock, then commit.

"Commit" depends on the flush policy:

- `buffered`: mark the DirtyTracker; the FlushScheduler makes it durable.
- `immediate`: flush the store before returning. If that flush fails the
  tracker is marked so the scheduler retries, and the request fails.

Each write runs inside `asyncio.shield`, so cancelling the request (for
example on an HTTP timeout) cannot separate a completed store write from its
commit step. A write that raised never reaches the commit step.
A write that fails after its caller was cancelled is logged from a
done-callback.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, List, Literal, Mapping, Optional, TypeVar

from song_catalog.core.dirty import DirtyTracker
from song_catalog.core.locks import KeyedLocks
from song_catalog.core.query import normalize_filters, search_songs
from song_catalog.domain.errors import InvalidSongIdError, SongNotFoundError, StorageError
from song_catalog.domain.models import NewSong, Song
from song_catalog.persistence.abstract import RecordStore
from song_catalog.utils.logging import get_logger

log = get_logger(__name__)

FlushPolicy = Literal["buffered", "immediate"]
T = TypeVar("T")


def parse_song_id(raw: object) -> int:
    """
    Parse a path parameter into a song id.

    Only plain ASCII digit strings (or ints) are accepted; signs, whitespace
    and underscores are rejected.
    """
    if isinstance(raw, bool):
        raise InvalidSongIdError(raw)
    if isinstance(raw, int):
        if raw < 0:
            raise InvalidSongIdError(raw)
        return raw
    if not isinstance(raw, str) or not (raw.isascii() and raw.isdigit()):
        raise InvalidSongIdError(raw)
    return int(raw)


async def _shielded(write: Awaitable[T], operation: str) -> T:
    task = asyncio.ensure_future(write)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        task.add_done_callback(lambda done: _log_detached_failure(done, operation))
        raise


def _log_detached_failure(task: "asyncio.Future[object]", operation: str) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.exception(
            "[WRITE FAILED AFTER CANCEL]", exc_info=exc, extra={"operation": operation}
        )


class CatalogService:
    def __init__(
        self,
        store: RecordStore,
        tracker: DirtyTracker,
        flush_policy: FlushPolicy = "buffered",
    ) -> None:
        if flush_policy not in ("buffered", "immediate"):
            raise ValueError(f"Unknown flush policy '{flush_policy}'")
        self.store = store
        self.tracker = tracker
        self.flush_policy = flush_policy
        self._insert_lock = asyncio.Lock()
        self._key_locks = KeyedLocks()

    async def _commit(self) -> None:
        if self.flush_policy == "buffered":
            self.tracker.mark_dirty()
            return
        try:
            await self.store.flush()
        except StorageError:
            self.tracker.mark_dirty()
            raise

    async def _create(self, new: NewSong) -> Song:
        async with self._insert_lock:
            song = await self.store.insert(new)
        await self._commit()
        return song

    async def _play(self, song_id: int) -> Song:
        async with self._key_locks.hold(song_id):
            current = await self.store.get(song_id)
            if current is None:
                raise SongNotFoundError(song_id)
            updated = await self.store.put(current.played())
        await self._commit()
        return updated

    async def create(self, new: NewSong) -> Song:
        """Store a new song; returns it with its assigned id and play_count 0."""
        song = await _shielded(self._create(new), "create")
        log.info("[SONG CREATED]", extra={"song_id": song.id, "title": song.title})
        return song

    async def play(self, song_id: int) -> Song:
        """Increment the play counter of `song_id` by exactly one."""
        song = await _shielded(self._play(song_id), "play")
        log.info("[SONG PLAYED]", extra={"song_id": song.id, "play_count": song.play_count})
        return song

    async def get(self, song_id: int) -> Optional[Song]:
        return await self.store.get(song_id)

    async def search(self, filters: Optional[Mapping[str, object]] = None) -> List[Song]:
        results = await search_songs(self.store, filters)
        log.debug(
            "[SEARCH]",
            extra={"filters": normalize_filters(filters), "matches": len(results)},
        )
        return results


__all__ = ["CatalogService", "FlushPolicy", "parse_song_id"]
