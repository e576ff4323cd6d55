"""
Pytest configuration for the Song Catalog service.

Provides fixtures for:
- Settings pointing at a throwaway LMDB directory
- An LMDB record store per test
- An in-memory record store with failure injection hooks
- PostgreSQL connection management for integration tests
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Generator, Optional

import psycopg
import pytest

from song_catalog.config import Settings, build_dsn
from song_catalog.domain.errors import SongNotFoundError, StorageError
from song_catalog.domain.models import NewSong, Song
from song_catalog.persistence.abstract import AbstractRecordStore
from song_catalog.persistence.lmdb_store import LmdbRecordStore


class InMemoryRecordStore(AbstractRecordStore):
    """
    Dict-backed store used to exercise the core without disk I/O.

    `fail_flushes` makes the next N flushes raise StorageError, `fail_writes`
    makes insert/put raise, and `yield_points` inserts event-loop switches
    inside get/put so concurrent read-modify-write cycles really interleave.
    """

    name = "memory"
    description = "In-memory test store."

    def __init__(self, scan_batch_size: int = 2) -> None:
        super().__init__(scan_batch_size=scan_batch_size)
        self.songs: dict[int, Song] = {}
        self.flushed: dict[int, Song] = {}
        self.flush_calls = 0
        self.fail_flushes = 0
        self.fail_writes = False
        self.yield_points = 0
        self.closed = False

    async def _yield(self) -> None:
        for _ in range(self.yield_points):
            await asyncio.sleep(0)

    async def insert(self, new: NewSong) -> Song:
        if self.fail_writes:
            raise StorageError("insert failed")
        song = Song.from_new(len(self.songs) + 1, new)
        await self._yield()
        self.songs[song.id] = song
        return song

    async def get(self, song_id: int) -> Optional[Song]:
        await self._yield()
        return self.songs.get(song_id)

    async def put(self, song: Song) -> Song:
        await self._yield()
        if self.fail_writes:
            raise StorageError("put failed")
        if song.id not in self.songs:
            raise SongNotFoundError(song.id)
        self.songs[song.id] = song
        return song

    async def count(self) -> int:
        return len(self.songs)

    async def _fetch_batch(self, after_id: int, limit: int) -> list[Song]:
        ids = sorted(i for i in self.songs if i > after_id)[:limit]
        return [self.songs[i] for i in ids]

    async def flush(self) -> None:
        self.flush_calls += 1
        if self.fail_flushes > 0:
            self.fail_flushes -= 1
            raise StorageError("disk full")
        self.flushed = dict(self.songs)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def lmdb_path(tmp_path: Path) -> Path:
    return tmp_path / "song_db"


@pytest.fixture
def lmdb_store(lmdb_path: Path) -> Generator[LmdbRecordStore, None, None]:
    store = LmdbRecordStore.open(lmdb_path, map_size=8 * 1024 * 1024, scan_batch_size=2)
    yield store
    asyncio.run(store.close())


@pytest.fixture
def test_settings(lmdb_path: Path) -> Settings:
    """
    Settings fixture with test-specific overrides: LMDB in a temp directory and
    a short flush interval so scheduler effects are observable quickly.
    """
    return Settings(
        backend="lmdb",
        lmdb_path=str(lmdb_path),
        lmdb_map_size=8 * 1024 * 1024,
        flush_interval_ms=10,
        flush_idle_timeout_s=0.5,
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def pg_settings() -> Settings:
    """
    Postgres settings for integration tests, overridable via environment variables.
    """
    return Settings(
        backend="postgres",
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "song_catalog"),
    )


@pytest.fixture(scope="session")
def test_dsn(pg_settings: Settings) -> str:
    return build_dsn(pg_settings)


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def clean_songs_table(test_dsn: str, db_connection_available: bool) -> Generator[None, None, None]:
    """
    Drop the songs table around each integration test so ids restart at 1.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    def _drop() -> None:
        with psycopg.connect(test_dsn) as conn:
            conn.execute("DROP TABLE IF EXISTS songs;")

    _drop()
    yield
    _drop()
