"""
Dirty tracker: the process-wide "unflushed mutations exist" flag.

Mutations call `mark_dirty()` after their store write succeeded; the flush
scheduler calls `take_if_dirty()`, which reads and clears the flag inside one
critical section. A mark that lands after the take is therefore never lost: it
simply leaves the flag set for the next cycle.

The scheduler blocks in `wait()` instead of polling, and `mark_dirty()` wakes
it through `loop.call_soon_threadsafe`, so marking from a worker thread is
safe as well.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Optional, Tuple


class DirtyTracker:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._dirty = False
        self._waiter: Optional[Tuple[asyncio.AbstractEventLoop, asyncio.Event]] = None

    @property
    def is_dirty(self) -> bool:
        with self._lock:
            return self._dirty

    def mark_dirty(self) -> None:
        """Set the flag and wake a waiting scheduler. Idempotent."""
        with self._lock:
            self._dirty = True
            waiter, self._waiter = self._waiter, None
        if waiter is None:
            return
        loop, event = waiter
        try:
            loop.call_soon_threadsafe(event.set)
        except RuntimeError:
            # Waiting loop already closed; the flag itself is still set.
            pass

    def take_if_dirty(self) -> bool:
        """Atomically test and clear the flag; return whether it was set."""
        with self._lock:
            was_dirty, self._dirty = self._dirty, False
        return was_dirty

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the flag is set or `timeout` seconds elapse.

        Returns the flag value at wake-up time without clearing it.
        """
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        with self._lock:
            if self._dirty:
                return True
            self._waiter = (loop, event)
        try:
            await asyncio.wait_for(event.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        finally:
            with self._lock:
                if self._waiter is not None and self._waiter[1] is event:
                    self._waiter = None
        return self.is_dirty


__all__ = ["DirtyTracker"]
