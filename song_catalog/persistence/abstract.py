"""
Abstract record store interface for the Song Catalog service.

Concrete stores (LMDB, PostgreSQL) implement the RecordStore protocol. Every
operation is a coroutine; blocking backends offload their I/O to worker
threads so request tasks and the flush scheduler never stall the event loop.

Contract summary:

- `insert` assigns `count + 1` as the id and stores `play_count = 0`.
- `put` overwrites an existing id and raises SongNotFoundError otherwise.
- `scan` is lazy, restartable per call and yields songs in id order.
- `flush` forces buffered writes to stable storage; idempotent.
- Backend failures surface as StorageError.
"""

from __future__ import annotations

import abc
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from song_catalog.domain.models import NewSong, Song


@runtime_checkable
class RecordStore(Protocol):
    """
    Common interface all record stores must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier (also the settings value).
    description : str
        A human-friendly summary of the backend.
    """

    name: str
    description: str

    async def insert(self, new: NewSong) -> Song:
        """
        Persist a new song under the next id and return it.

        Parameters
        ----------
        new : NewSong
            Client-chosen text fields.

        Returns
        -------
        Song
            The stored song, with `id = previous count + 1` and `play_count = 0`.
        """
        ...

    async def get(self, song_id: int) -> Optional[Song]:
        """Point lookup; None when the id is unknown."""
        ...

    async def put(self, song: Song) -> Song:
        """Overwrite an existing song; raise SongNotFoundError when absent."""
        ...

    def scan(self, batch_size: Optional[int] = None) -> AsyncIterator[Song]:
        """Iterate over every stored song in id order."""
        ...

    async def count(self) -> int:
        """Number of stored songs."""
        ...

    async def flush(self) -> None:
        """Force pending writes to durable storage."""
        ...

    async def close(self) -> None:
        """Release the underlying environment or pool."""
        ...


class AbstractRecordStore(abc.ABC):
    """
    ABC helper for class-based store implementations.

    Subclasses set `name` and `description` and implement the storage
    primitives. `scan` is provided on top of `_fetch_batch` as keyset
    pagination (`id > last_seen`), so no read transaction or server cursor is
    held open between batches and each call starts from the beginning.
    """

    name: str
    description: str

    def __init__(self, scan_batch_size: int = 500) -> None:
        self.scan_batch_size = scan_batch_size

    @abc.abstractmethod
    async def insert(self, new: NewSong) -> Song:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, song_id: int) -> Optional[Song]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def put(self, song: Song) -> Song:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def count(self) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def flush(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def _fetch_batch(
        self, after_id: int, limit: int
    ) -> list[Song]:  # pragma: no cover - interface only
        """Return up to `limit` songs with id greater than `after_id`, in id order."""
        raise NotImplementedError

    async def scan(self, batch_size: Optional[int] = None) -> AsyncIterator[Song]:
        size = batch_size or self.scan_batch_size
        last_id = 0
        while True:
            batch = await self._fetch_batch(last_id, size)
            if not batch:
                return
            for song in batch:
                yield song
            if len(batch) < size:
                return
            last_id = batch[-1].id

    async def __aenter__(self) -> "AbstractRecordStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


__all__ = ["AbstractRecordStore", "RecordStore"]
