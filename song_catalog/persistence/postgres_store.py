"""
Relational record store backed by PostgreSQL (psycopg 3 async pool).

Every statement runs in its own short transaction that is committed when the
pooled connection is returned, so writes are durable as soon as the call
returns and `flush()` has nothing to do. All statements are parameterized;
filter values never reach the query text because searching is done by the
query engine over `scan()`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from song_catalog.config import Settings, build_dsn
from song_catalog.domain.errors import SongNotFoundError, StorageError
from song_catalog.domain.models import NewSong, Song
from song_catalog.infrastructure.db_factory import open_async_pool
from song_catalog.persistence.abstract import AbstractRecordStore
from song_catalog.utils.logging import get_logger

log = get_logger(__name__)

_COLUMNS = "id, title, artist, genre, play_count"

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS songs (
    id BIGINT PRIMARY KEY,
    title TEXT NOT NULL,
    artist TEXT NOT NULL,
    genre TEXT NOT NULL,
    play_count BIGINT NOT NULL DEFAULT 0 CHECK (play_count >= 0)
);
"""

INSERT_SQL = (
    "INSERT INTO songs (id, title, artist, genre, play_count) "
    f"SELECT COUNT(*) + 1, %s, %s, %s, 0 FROM songs RETURNING {_COLUMNS};"
)
GET_SQL = f"SELECT {_COLUMNS} FROM songs WHERE id = %s;"
PUT_SQL = (
    "UPDATE songs SET title = %s, artist = %s, genre = %s, play_count = %s "
    f"WHERE id = %s RETURNING {_COLUMNS};"
)
COUNT_SQL = "SELECT COUNT(*) AS n FROM songs;"
BATCH_SQL = f"SELECT {_COLUMNS} FROM songs WHERE id > %s ORDER BY id LIMIT %s;"


@contextmanager
def _storage_errors(operation: str) -> Generator[None, None, None]:
    """Translate driver and pool failures into StorageError."""
    try:
        yield
    except (psycopg.Error, OSError) as exc:
        raise StorageError(f"postgres {operation} failed: {exc}") from exc


class PostgresRecordStore(AbstractRecordStore):
    """
    Record store over a `songs` table.

    The insert computes `COUNT(*) + 1` inside the INSERT statement itself; the
    catalog service additionally serializes inserts so two statements never
    race for the same id within one process.
    """

    name: str = "postgres"
    description: str = "PostgreSQL table via psycopg async pool, autocommitted statements."

    def __init__(self, pool: AsyncConnectionPool, scan_batch_size: int = 500) -> None:
        super().__init__(scan_batch_size=scan_batch_size)
        self._pool = pool

    @classmethod
    async def connect(
        cls,
        dsn: Optional[str] = None,
        min_size: int = 1,
        max_size: int = 10,
        scan_batch_size: int = 500,
    ) -> "PostgresRecordStore":
        pool = await open_async_pool(dsn, min_size=min_size, max_size=max_size)
        store = cls(pool, scan_batch_size=scan_batch_size)
        try:
            await store.ensure_schema()
        except StorageError:
            await pool.close()
            raise
        return store

    @classmethod
    async def from_settings(cls, settings: Settings) -> "PostgresRecordStore":
        return await cls.connect(
            build_dsn(settings),
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            scan_batch_size=settings.scan_batch_size,
        )

    async def ensure_schema(self) -> None:
        with _storage_errors("create table"):
            async with self._pool.connection() as conn:
                await conn.execute(CREATE_TABLE_SQL)

    async def _fetchone(self, operation: str, sql: str, params: tuple) -> Optional[dict]:
        with _storage_errors(operation):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(sql, params)
                    return await cur.fetchone()

    async def insert(self, new: NewSong) -> Song:
        row = await self._fetchone("insert", INSERT_SQL, (new.title, new.artist, new.genre))
        if row is None:
            raise StorageError("insert returned no row")
        return Song.model_validate(row)

    async def get(self, song_id: int) -> Optional[Song]:
        row = await self._fetchone("get", GET_SQL, (song_id,))
        return Song.model_validate(row) if row is not None else None

    async def put(self, song: Song) -> Song:
        row = await self._fetchone(
            "put",
            PUT_SQL,
            (song.title, song.artist, song.genre, song.play_count, song.id),
        )
        if row is None:
            raise SongNotFoundError(song.id)
        return Song.model_validate(row)

    async def count(self) -> int:
        row = await self._fetchone("count", COUNT_SQL, ())
        return int(row["n"]) if row else 0

    async def _fetch_batch(self, after_id: int, limit: int) -> list[Song]:
        with _storage_errors("scan"):
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(BATCH_SQL, (after_id, limit))
                    rows = await cur.fetchall()
        return [Song.model_validate(row) for row in rows]

    async def flush(self) -> None:
        # Statements commit on connection return; nothing is buffered client-side.
        return None

    async def close(self) -> None:
        await self._pool.close()
        log.info("Postgres pool closed")


__all__ = ["PostgresRecordStore", "CREATE_TABLE_SQL"]
