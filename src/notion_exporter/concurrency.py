# ABOUTME: Asyncio concurrency helpers for Notion API calls and exports.
# ABOUTME: Provides RateLimiter, batch-synchronous gathering and a bounded worker pool.

import asyncio
import time
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class RateLimiter:
    """Coroutine-safe rate limiter using simple timing.

    Ensures requests don't exceed a specified rate by suspending callers
    until enough time has passed since the last request.
    """

    def __init__(self, calls_per_second: float = 2.5):
        """Initialize rate limiter.

        Args:
            calls_per_second: Maximum requests per second. Default 2.5 leaves
                headroom below Notion's 3/sec limit.
        """
        self._min_interval = 1.0 / calls_per_second
        self._lock = asyncio.Lock()
        self._last_call = 0.0

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._lock:
            now = time.monotonic()
            wait_time = self._last_call + self._min_interval - now
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self._last_call = time.monotonic()


async def gather_in_batches(
    items: Iterable[T],
    func: Callable[[T], Awaitable[R]],
    batch_size: int = 5,
) -> list[R]:
    """Run func over items in fixed-size batches.

    Every call of a batch runs concurrently and the whole batch finishes
    before the next one starts. Results keep the order of items. Exceptions
    propagate, so func is expected to handle its own failures.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    pending = list(items)
    results: list[R] = []
    for start in range(0, len(pending), batch_size):
        batch = pending[start:start + batch_size]
        results.extend(await asyncio.gather(*(func(item) for item in batch)))
    return results


async def run_with_limit(
    items: Iterable[T],
    func: Callable[[T], Awaitable[R]],
    limit: int = 3,
) -> list[R]:
    """Run func over items with at most `limit` calls in flight.

    A finished call frees its slot for the next item immediately. Results
    keep the order of items.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    semaphore = asyncio.Semaphore(limit)

    async def worker(item: T) -> R:
        async with semaphore:
            return await func(item)

    return list(await asyncio.gather(*(worker(item) for item in items)))
