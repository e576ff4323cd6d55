"""
Connection factory utilities for the Song Catalog service.

Provides centralized creation of the two kinds of storage handles the record
stores need:

- an asynchronous psycopg connection pool for the PostgreSQL backend,
- an LMDB environment for the embedded backend, opened with deferred syncing
  so that durability is committed by an explicit flush.

Includes retry logic for transient connection failures using tenacity. Only
startup connectivity is retried; request-time failures propagate immediately.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import lmdb
import psycopg
from psycopg_pool import AsyncConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from song_catalog.config import build_dsn
from song_catalog.utils.logging import get_logger

log = get_logger(__name__)

POOL_OPEN_TIMEOUT_SECONDS = 10.0


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, OSError)),
    reraise=True,
)
async def open_async_pool(
    dsn: Optional[str] = None,
    min_size: int = 1,
    max_size: int = 10,
) -> AsyncConnectionPool:
    """
    Create and open an asynchronous connection pool with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Parameters
    ----------
    dsn : str | None
        Connection string; defaults to the DSN composed from settings.
    min_size : int
        Minimum number of idle connections to keep.
    max_size : int
        Maximum total connections in the pool.

    Returns
    -------
    AsyncConnectionPool
        An opened pool whose minimum connections are established.

    Raises
    ------
    psycopg.OperationalError
        If the pool cannot be filled after all retry attempts.
    """
    pool = AsyncConnectionPool(
        conninfo=dsn or build_dsn(),
        min_size=min_size,
        max_size=max_size,
        open=False,
    )
    try:
        await pool.open(wait=True, timeout=POOL_OPEN_TIMEOUT_SECONDS)
    except Exception:
        await pool.close()
        raise
    log.info("Postgres pool opened", extra={"min_size": min_size, "max_size": max_size})
    return pool


def open_lmdb_environment(
    path: str | Path,
    map_size: int,
    max_dbs: int = 4,
) -> lmdb.Environment:
    """
    Open (creating if needed) an LMDB environment directory.

    `sync=False` and `metasync=False` defer fsync until `Environment.sync(True)`
    is called, which is what the flush scheduler does.
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    env = lmdb.open(
        str(path),
        map_size=map_size,
        max_dbs=max_dbs,
        subdir=True,
        sync=False,
        metasync=False,
        lock=True,
    )
    log.info("LMDB environment opened", extra={"path": str(path), "map_size": map_size})
    return env


__all__ = [
    "build_dsn",
    "open_async_pool",
    "open_lmdb_environment",
]
