"""
Counting semaphore for asyncio tasks with precise in-flight tracking.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class InflightSemaphore:
    """A fixed-size asyncio semaphore that records in-flight and peak usage."""

    def __init__(self, permits: int):
        """Initialize the semaphore with the given number of permits.

        Args:
            permits: Maximum number of simultaneously held permits
        """
        if permits < 1:
            raise ValueError(f"permits must be positive, got {permits}")
        self._max_permits = permits
        self._in_flight = 0
        self._peak_in_flight = 0
        self._acquired = 0
        self._released = 0
        self._condition = asyncio.Condition()

        logger.debug(f"Initialized InflightSemaphore with {permits} permits")

    async def acquire(self) -> None:
        """Wait until a permit is free and take it."""
        async with self._condition:
            while self._in_flight >= self._max_permits:
                await self._condition.wait()
            self._in_flight += 1
            self._acquired += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)

    async def release(self) -> None:
        """Release a permit back to the semaphore."""
        async with self._condition:
            if self._in_flight > 0:
                self._in_flight -= 1
                self._released += 1
                self._condition.notify_all()
            else:
                logger.warning("Attempted to release semaphore when in_flight is 0")

    async def wait_idle(self) -> None:
        """Block until every acquired permit has been released."""
        async with self._condition:
            await self._condition.wait_for(lambda: self._in_flight == 0)

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()

    def in_flight(self) -> int:
        return self._in_flight

    def peak_in_flight(self) -> int:
        return self._peak_in_flight

    def available_permits(self) -> int:
        return self._max_permits - self._in_flight

    def max_permits(self) -> int:
        return self._max_permits

    def acquired(self) -> int:
        return self._acquired

    def released(self) -> int:
        return self._released

    def __repr__(self) -> str:
        return (
            f"InflightSemaphore(in_flight={self._in_flight}/{self._max_permits}, "
            f"peak={self._peak_in_flight}, acquired={self._acquired}, released={self._released})"
        )
