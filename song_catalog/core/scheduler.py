"""
Background flush scheduler for the Song Catalog service.

A single long-lived asyncio task that coalesces writes: mutations only mark
the DirtyTracker, and this task periodically commits them with one
`RecordStore.flush()`.

Cycle:
    Idle -> CheckFlag -> (Flush -> Idle) | Idle

- Idle blocks on the tracker's wake signal, bounded by `idle_timeout`, so a
  clean catalog costs no CPU.
- Once woken, the scheduler sleeps `interval` to let a burst of writes
  accumulate, then runs one cycle.
- A failed flush is logged, the flag is re-set and the loop keeps running;
  the next cycle retries. Pending writes are never dropped by a failure.

Usage:
    scheduler = FlushScheduler(store, tracker, interval=0.2)
    scheduler.start()
    ...
    await scheduler.stop()  # cancels the loop and flushes what is pending
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

from song_catalog.core.dirty import DirtyTracker
from song_catalog.persistence.abstract import RecordStore
from song_catalog.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class FlushStats:
    """
    Counters describing the scheduler's activity.
    """

    cycles: int = field(default=0)
    flushes: int = field(default=0)
    failures: int = field(default=0)
    last_duration_seconds: Optional[float] = field(default=None)
    last_error: Optional[str] = field(default=None)


class FlushScheduler:
    def __init__(
        self,
        store: RecordStore,
        tracker: DirtyTracker,
        interval: float = 0.2,
        idle_timeout: float = 5.0,
    ) -> None:
        if interval < 0:
            raise ValueError("interval must be >= 0")
        if idle_timeout <= 0:
            raise ValueError("idle_timeout must be > 0")
        self._store = store
        self._tracker = tracker
        self.interval = interval
        self.idle_timeout = idle_timeout
        self.stats = FlushStats()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> bool:
        """
        Run a single CheckFlag step; flush if the tracker was dirty.

        Returns True when a flush completed successfully.
        """
        self.stats.cycles += 1
        if not self._tracker.take_if_dirty():
            return False

        start = time.perf_counter()
        try:
            await self._store.flush()
        except asyncio.CancelledError:
            self._tracker.mark_dirty()
            raise
        except Exception as exc:  # noqa: BLE001 - a failed cycle must not end the loop
            self._tracker.mark_dirty()
            self.stats.failures += 1
            self.stats.last_error = str(exc)
            log.exception(
                "[FLUSH FAILED] pending writes kept for the next cycle",
                extra={"failures": self.stats.failures},
            )
            return False

        duration = time.perf_counter() - start
        self.stats.flushes += 1
        self.stats.last_duration_seconds = duration
        self.stats.last_error = None
        log.debug(
            "[FLUSH] committed pending writes",
            extra={"flushes": self.stats.flushes, "duration_seconds": round(duration, 6)},
        )
        return True

    async def _run(self) -> None:
        log.info(
            "[SCHEDULER START]",
            extra={"interval_seconds": self.interval, "idle_timeout_seconds": self.idle_timeout},
        )
        while True:
            await self._tracker.wait(self.idle_timeout)
            if self.interval:
                await asyncio.sleep(self.interval)
            await self.run_once()

    def start(self) -> None:
        """Spawn the background task on the running loop."""
        if self.running:
            raise RuntimeError("flush scheduler already running")
        self._task = asyncio.get_running_loop().create_task(self._run(), name="flush-scheduler")

    async def stop(self) -> None:
        """Cancel the loop, then flush anything still pending."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.run_once()
        log.info(
            "[SCHEDULER STOP]",
            extra={"flushes": self.stats.flushes, "failures": self.stats.failures},
        )


__all__ = ["FlushScheduler", "FlushStats"]
