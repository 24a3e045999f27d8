"""Retry and rate-limit decorator around any embedding provider.

Both policies are cross-cutting, so they wrap the call site once here
instead of living in each adapter:

* the sliding-window rate limiter admits the call for the current caller
  (see :data:`~ragengine.utils.rate_limiter.current_caller`), then
* the retry policy re-attempts retryable :class:`EmbeddingError` failures
  with exponential backoff.

Every attempt consumes one rate-limit slot.
"""

from __future__ import annotations

from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.utils.rate_limiter import SlidingWindowRateLimiter
from ragengine.utils.retry import RetryPolicy


class GuardedEmbeddingProvider(IEmbeddingProvider):
    """Wraps *inner* with :class:`RetryPolicy` and an optional rate limiter."""

    def __init__(
        self,
        inner: IEmbeddingProvider,
        retry_policy: RetryPolicy | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
    ) -> None:
        self._inner = inner
        self._retry_policy = retry_policy or RetryPolicy()
        self._rate_limiter = rate_limiter

    @property
    def inner(self) -> IEmbeddingProvider:
        return self._inner

    async def embed(self, text: str) -> list[float]:
        async def _attempt() -> list[float]:
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()
            return await self._inner.embed(text)

        return await self._retry_policy.call(_attempt)

    def get_dimension(self) -> int:
        return self._inner.get_dimension()

    def get_model_name(self) -> str:
        return self._inner.get_model_name()

    def get_provider_name(self) -> str:
        return self._inner.get_provider_name()

    def is_available(self) -> bool:
        return self._inner.is_available()
