"""Shared concurrency primitives for the indexing and query pipelines.

Two patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release, used to bound concurrent embedding calls.

2. **CollectionLockRegistry** -- one ``asyncio.Lock`` per collection id so
   writes to the same collection are serialized while writes to different
   collections (and all reads) proceed in parallel.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with optional semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  When ``None`` all
        awaitables run at once.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input awaitables.
    """
    if semaphore is None:
        return await asyncio.gather(*coros, return_exceptions=return_exceptions)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def shielded(coro: Awaitable[_T]) -> _T:
    """Await *coro* in its own task, shielded from caller cancellation.

    When the caller is cancelled the underlying request keeps running to
    completion and its result (or exception) is discarded.
    """
    task = asyncio.ensure_future(coro)
    task.add_done_callback(_discard_result)
    return await asyncio.shield(task)


def _discard_result(task: asyncio.Future) -> None:
    # Retrieve the exception so an abandoned task never logs
    # "exception was never retrieved".
    if not task.cancelled():
        task.exception()


class CollectionLockRegistry:
    """Lazily created ``asyncio.Lock`` per collection id."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, collection_id: str) -> asyncio.Lock:
        lock = self._locks.get(collection_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[collection_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, collection_id: str) -> AsyncIterator[None]:
        async with self.get(collection_id):
            yield

    def __len__(self) -> int:
        return len(self._locks)
