"""
Tests for the in-flight tracking asyncio semaphore.
"""

import asyncio
import os
import random
import sys
import unittest

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common import InflightSemaphore


class TestInflightSemaphore(unittest.IsolatedAsyncioTestCase):
    """Test InflightSemaphore basic behavior."""

    async def test_acquire_release_cycles(self):
        sem = InflightSemaphore(3)

        self.assertEqual(sem.available_permits(), 3)
        self.assertEqual(sem.in_flight(), 0)
        self.assertEqual(sem.max_permits(), 3)

        await sem.acquire()
        await sem.acquire()
        self.assertEqual(sem.available_permits(), 1)
        self.assertEqual(sem.in_flight(), 2)

        await sem.release()
        self.assertEqual(sem.in_flight(), 1)
        await sem.release()
        self.assertEqual(sem.in_flight(), 0)
        self.assertEqual(sem.acquired(), 2)
        self.assertEqual(sem.released(), 2)
        self.assertEqual(sem.peak_in_flight(), 2)

    async def test_acquire_blocks_when_exhausted(self):
        sem = InflightSemaphore(1)
        await sem.acquire()

        waiter = asyncio.create_task(sem.acquire())
        await asyncio.sleep(0.01)
        self.assertFalse(waiter.done())

        await sem.release()
        await asyncio.wait_for(waiter, timeout=1)
        self.assertEqual(sem.in_flight(), 1)

    async def test_release_without_acquire_is_ignored(self):
        sem = InflightSemaphore(2)

        await sem.release()

        self.assertEqual(sem.in_flight(), 0)
        self.assertEqual(sem.released(), 0)

    async def test_rejects_non_positive_permits(self):
        with self.assertRaises(ValueError):
            InflightSemaphore(0)

    async def test_concurrent_usage_respects_limit(self):
        sem = InflightSemaphore(5)
        observed = []

        async def worker():
            async with sem:
                observed.append(sem.in_flight())
                await asyncio.sleep(random.uniform(0, 0.002))

        await asyncio.gather(*(worker() for _ in range(200)))
        await sem.wait_idle()

        self.assertLessEqual(max(observed), 5)
        self.assertEqual(sem.peak_in_flight(), max(observed))
        self.assertEqual(sem.acquired(), 200)
        self.assertEqual(sem.released(), 200)
        self.assertEqual(sem.in_flight(), 0)

    async def test_wait_idle(self):
        sem = InflightSemaphore(4)
        for _ in range(4):
            await sem.acquire()

        idle = asyncio.create_task(sem.wait_idle())
        for _ in range(3):
            await sem.release()
        await asyncio.sleep(0.01)
        self.assertFalse(idle.done())

        await sem.release()
        await asyncio.wait_for(idle, timeout=1)


if __name__ == '__main__':
    unittest.main()
