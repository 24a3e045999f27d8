"""Sliding-window rate limiter keyed by caller identity.

Each identifier gets a window of ``max_requests`` admissions per
``window_seconds``.  Timestamps older than the window are pruned on every
check, so the limit is a true sliding window rather than a fixed bucket.

The caller identity for the current task is carried in the
:data:`current_caller` context variable, set by the engine facade at the
start of each collaborator call and read by the guarded providers.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from contextvars import ContextVar
from typing import Callable

from ragengine.utils.errors import RateLimitError
from ragengine.utils.logging import get_logger

current_caller: ContextVar[str] = ContextVar("current_caller", default="default")

_logger = get_logger(__name__)


class SlidingWindowRateLimiter:
    """Admit at most ``max_requests`` per identifier in any ``window_seconds`` span."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = asyncio.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window

    @property
    def tracked_identifiers(self) -> int:
        """Number of identifiers with requests still inside the window."""
        return len(self._hits)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def try_acquire(self, identifier: str) -> bool:
        """Record a request for *identifier* if the window has room."""
        self._sweep()
        hits = self._prune(identifier)
        if len(hits) >= self._max_requests:
            return False
        hits.append(self._clock())
        self._hits[identifier] = hits
        return True

    async def acquire(self, identifier: str | None = None, wait: bool = True) -> None:
        """Admit one request, waiting for the window to slide if needed.

        Parameters
        ----------
        identifier:
            Caller identity.  Defaults to :data:`current_caller`.
        wait:
            When False, raise instead of sleeping.

        Raises
        ------
        RateLimitError
            If *wait* is False and the window is full.
        """
        key = identifier or current_caller.get()
        while True:
            async with self._lock:
                if self.try_acquire(key):
                    return
                delay = self.retry_after(key)
            if not wait:
                raise RateLimitError(
                    message=f"Rate limit of {self._max_requests} per "
                    f"{self._window:g}s exceeded for '{key}'",
                    retry_after=delay,
                )
            _logger.debug("rate_limit_wait", caller=key, delay=round(delay, 3))
            await asyncio.sleep(delay)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def remaining(self, identifier: str) -> int:
        return max(0, self._max_requests - len(self._prune(identifier)))

    def retry_after(self, identifier: str) -> float:
        """Seconds until the oldest request for *identifier* leaves the window."""
        hits = self._prune(identifier)
        if len(hits) < self._max_requests:
            return 0.0
        return max(0.0, hits[0] + self._window - self._clock())

    def reset(self, identifier: str | None = None) -> None:
        if identifier is None:
            self._hits.clear()
        else:
            self._hits.pop(identifier, None)

    def _prune(self, identifier: str) -> deque[float]:
        """Drop expired timestamps; an identifier left with none is forgotten."""
        hits = self._hits.get(identifier)
        if hits is None:
            return deque()
        cutoff = self._clock() - self._window
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[identifier]
        return hits

    def _sweep(self) -> None:
        """Once per window, forget identifiers whose requests have all expired."""
        now = self._clock()
        if now - self._last_sweep < self._window:
            return
        self._last_sweep = now
        cutoff = now - self._window
        for identifier in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[identifier]
