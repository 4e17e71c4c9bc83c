"""Bound on the number of scans processed at the same time."""

import asyncio

from scanbatch.utils.logger import get_logger

logger = get_logger(__name__)


class ScanSlotLimiter:
    """Counting semaphore over whole-scan processing slots.

    Waiters are woken in arrival order.

    Args:
        max_slots: Maximum scans in flight.
    """

    def __init__(self, max_slots: int = 4) -> None:
        if max_slots < 1:
            raise ValueError("Limiter needs at least one slot")
        self.max_slots = max_slots
        self._semaphore = asyncio.Semaphore(max_slots)
        self._active = 0
        self._waiting = 0

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return self._waiting

    async def acquire(self) -> None:
        """Take a slot, waiting in line if all are busy."""
        if self._semaphore.locked():
            logger.info(
                "All %d scan slots busy, queued (waiting: %d)",
                self.max_slots,
                self._waiting + 1,
            )
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1
        self._active += 1

    def release(self) -> None:
        if self._active == 0:
            raise RuntimeError("release() called with no slot held")
        self._active -= 1
        self._semaphore.release()

    async def __aenter__(self) -> "ScanSlotLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
