"""FIFO admission gate bounding concurrent model calls."""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import suppress
from typing import Deque


class AdmissionGate:
    """Allow at most ``limit`` holders at once; excess callers queue in arrival order.

    A released slot is handed directly to the oldest waiter, so a newcomer can
    never overtake a queued caller. Waiting suspends on a future and never blocks
    the event loop. A gate is bound to whichever loop its waiters run on.
    """

    def __init__(self, limit: int = 3) -> None:
        if limit < 1:
            raise ValueError("Admission gate limit must be at least 1.")
        self._limit = limit
        self._active = 0
        self._waiters: Deque[asyncio.Future[None]] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        if self._active < self._limit and not self._waiters:
            self._active += 1
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was handed over just before cancellation landed.
                self.release()
            else:
                with suppress(ValueError):
                    self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if self._active <= 0:
            raise RuntimeError("Admission gate released more times than acquired.")
        self._active -= 1

    async def __aenter__(self) -> "AdmissionGate":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()


__all__ = ["AdmissionGate"]
