"""
Concurrency Limiter

Bounds the number of in-flight coroutines. Excess work waits for a slot in
FIFO order and is never rejected.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = int(limit)
        self._semaphore = asyncio.Semaphore(self.limit)
        self._tasks: set[asyncio.Task] = set()
        self.in_flight = 0
        self.peak_in_flight = 0

    @property
    def outstanding(self) -> int:
        """Submitted tasks that have not finished (queued or running)."""
        return len(self._tasks)

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run one awaitable once a slot is free; results and errors pass through."""
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                return await factory()
            finally:
                self.in_flight -= 1

    def submit(self, factory: Callable[[], Awaitable[T]]) -> asyncio.Task:
        task = asyncio.create_task(self.run(factory))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def gather(self, factories: Iterable[Callable[[], Awaitable[Any]]]) -> list[Any]:
        tasks = [self.submit(f) for f in factories]
        return list(await asyncio.gather(*tasks))

    async def wait_for_capacity(self) -> None:
        """Block until fewer than ``limit`` tasks are outstanding."""
        while len(self._tasks) >= self.limit:
            await asyncio.wait(set(self._tasks), return_when=asyncio.FIRST_COMPLETED)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    async def drain(self) -> None:
        """Wait for every submitted task to finish."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))
