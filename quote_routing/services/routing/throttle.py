"""Process-wide spacing of outbound requests."""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from quote_routing.utils.logging import get_logger

LOGGER = get_logger(__name__)


class IntervalThrottle:
    """FIFO gate that lets one caller through per ``min_interval`` seconds.

    Each caller takes the next free slot under a lock, moves the slot forward
    by the interval and then sleeps outside the lock until its own slot
    arrives. ``asyncio.Lock`` wakes waiters in arrival order, so slots are
    handed out first come, first served no matter how many callers wait.

    ``clock`` and ``sleep`` are injectable so tests can run against a fake
    monotonic clock instead of real time.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._next_slot: Optional[float] = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Wait for this caller's slot.

        Returns:
            The clock time of the granted slot
        """
        async with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self.min_interval

        delay = slot - self._clock()
        if delay > 0:
            LOGGER.debug(f"Throttling outbound request for {delay:.3f}s")
            await self._sleep(delay)
        return slot
