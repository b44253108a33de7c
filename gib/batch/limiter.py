"""Counting admission gate bounding how many jobs of a batch run at once."""

from __future__ import annotations

import asyncio
import logging
from collections import deque

logger = logging.getLogger(__name__)


class ConcurrencyLimiter:
    """FIFO-fair counting semaphore for asyncio tasks.

    ``acquire()`` waits until a permit is free and never times out on its own;
    the caller enforces any deadline. ``release()`` hands the permit directly to
    the longest-waiting acquirer, so a late arrival can never overtake a queued
    task. All state is touched only from the event loop thread, between awaits.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._available = capacity
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._peak = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        """Permits currently held."""
        return self._capacity - self._available

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    @property
    def peak_in_use(self) -> int:
        """Highest number of permits held at the same time since construction."""
        return self._peak

    async def acquire(self) -> None:
        if self._available > 0 and not self.waiting:
            self._take()
            return

        logger.debug("Limiter full (%d/%d in use), queueing acquirer", self.in_use, self._capacity)
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            # Granted just before the cancellation landed: pass the permit on.
            if fut.done() and not fut.cancelled():
                self.release()
            else:
                try:
                    self._waiters.remove(fut)
                except ValueError:
                    pass
            raise

    def release(self) -> None:
        if self._available >= self._capacity:
            raise RuntimeError("ConcurrencyLimiter released more times than acquired")
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                # Permit moves straight to the waiter; the count does not change.
                fut.set_result(None)
                self._track_peak()
                return
        self._available += 1

    def _take(self) -> None:
        self._available -= 1
        self._track_peak()

    def _track_peak(self) -> None:
        self._peak = max(self._peak, self.in_use)

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
