"""
Serial request queue for upstream endpoints that break under concurrent access.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestQueue:
    """
    Bounded-concurrency gate for one logical upstream resource.

    Callers are admitted in arrival order; with limit=1 each request fully
    settles before the next one starts. One semaphore is kept per running
    event loop so a process-wide instance stays usable across loops.
    """

    def __init__(self, name: str, limit: int = 1):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.name = name
        self.limit = limit
        self._semaphores: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Semaphore]" = (
            weakref.WeakKeyDictionary()
        )
        self._waiting = 0
        self._running = 0

    def _semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        sem = self._semaphores.get(loop)
        if sem is None:
            sem = asyncio.Semaphore(self.limit)
            self._semaphores[loop] = sem
        return sem

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Wait for a slot, then run factory() to completion."""
        sem = self._semaphore()
        self._waiting += 1
        try:
            await sem.acquire()
        finally:
            self._waiting -= 1
        self._running += 1
        try:
            return await factory()
        finally:
            self._running -= 1
            sem.release()

    def size(self) -> int:
        """Requests currently waiting for a slot."""
        return self._waiting

    def in_flight(self) -> int:
        return self._running


# Singleton gate for the live-estimate endpoint
_estimate_queue: Optional[RequestQueue] = None


def get_estimate_queue() -> RequestQueue:
    """Get the process-wide queue guarding the live-estimate endpoint"""
    global _estimate_queue
    if _estimate_queue is None:
        _estimate_queue = RequestQueue("fund-estimate", limit=1)
    return _estimate_queue
