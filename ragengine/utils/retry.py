"""Retry policy for transient provider failures, built on tenacity.

Only exceptions that expose a truthy ``retryable`` attribute (see
:class:`~ragengine.utils.errors.EmbeddingError`) are re-attempted.  Delays
grow exponentially from ``base_delay`` (base, 2x base, 4x base, ...) up to
``max_delay``, and the last exception is re-raised once ``max_attempts`` is
exhausted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ragengine.utils.logging import get_logger

_T = TypeVar("_T")

_logger = get_logger(__name__)


def is_retryable(exc: BaseException) -> bool:
    return bool(getattr(exc, "retryable", False))


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    _logger.warning(
        "retrying_after_transient_error",
        attempt=retry_state.attempt_number,
        delay=round(retry_state.next_action.sleep, 3) if retry_state.next_action else 0.0,
        error=str(exc),
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings for one class of provider calls."""

    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 8.0

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(max(1, self.max_attempts)),
            wait=wait_exponential(multiplier=self.base_delay, min=0, max=self.max_delay),
            before_sleep=_log_before_sleep,
            reraise=True,
        )

    async def call(self, fn: Callable[[], Awaitable[_T]]) -> _T:
        """Await ``fn()`` under this policy and return its result."""
        async for attempt in self.retrying():
            with attempt:
                return await fn()
        raise AssertionError("unreachable: tenacity re-raises on the final attempt")
