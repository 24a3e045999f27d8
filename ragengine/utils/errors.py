"""Custom exception hierarchy for ragengine.

All engine exceptions inherit from :class:`RAGEngineError`, which carries an
optional ``provider_name`` so error handlers can tell which backend
(e.g. "openai", "chroma", "weaviate") caused the failure.

    RAGEngineError  (base)
    +-- ChunkingError            (document produced no usable chunks)
    +-- EmbeddingError           (embedding call failed; may be retryable)
    +-- VectorStoreError         (store unreachable or rejected an operation)
    +-- QueryError               (query could not be run at all)
    +-- LLMError                 (answer synthesis failed)
    +-- RateLimitError           (caller exceeded the sliding window)
    +-- ProviderUnavailableError (backend down / unreachable)
    +-- ConfigurationError       (startup / invalid config)

Chunk-level and variant-level failures are absorbed by the pipelines; only
the errors above that reach a collaborator are part of the public surface.
"""

from __future__ import annotations


class RAGEngineError(Exception):
    """Base exception for all ragengine errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[chroma] Collection query failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Indexing errors
# ---------------------------------------------------------------------------

class ChunkingError(RAGEngineError):
    """Raised when a document yields zero chunks or cannot be converted to text."""

    def __init__(
        self,
        message: str = "Document produced no chunks",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(RAGEngineError):
    """Raised when an embedding provider fails to return a vector.

    ``retryable`` is True for transient failures (network errors, timeouts,
    HTTP 429 and 5xx) and False for permanent ones (other 4xx, malformed
    responses).  The retry policy only re-attempts retryable errors.
    """

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
        retryable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._retryable = retryable
        self._status_code = status_code

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def status_code(self) -> int | None:
        return self._status_code


class VectorStoreError(RAGEngineError):
    """Raised when a vector store operation fails.

    ``written_ids`` lists chunk ids that were committed before the failure
    (e.g. earlier batches of a paginated upsert) so callers can report an
    accurate indexed count.
    """

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
        operation: str = "",
        written_ids: list[str] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._operation = operation
        self._written_ids = list(written_ids or [])

    @property
    def operation(self) -> str:
        return self._operation

    @property
    def written_ids(self) -> list[str]:
        return list(self._written_ids)


# ---------------------------------------------------------------------------
# Query errors
# ---------------------------------------------------------------------------

class QueryError(RAGEngineError):
    """Raised when a query cannot be executed (e.g. empty query text)."""

    def __init__(
        self,
        message: str = "Query failed",
        provider_name: str | None = None,
        sources: list | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._sources = list(sources or [])

    @property
    def sources(self) -> list:
        return list(self._sources)


class LLMError(RAGEngineError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Provider / configuration errors
# ---------------------------------------------------------------------------

class RateLimitError(RAGEngineError):
    """Raised when a caller exceeds its request window."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        retry_after: float = 0.0,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._retry_after = retry_after

    @property
    def retry_after(self) -> float:
        return self._retry_after


class ProviderUnavailableError(RAGEngineError):
    """Raised when an external service is unreachable or not configured."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RAGEngineError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
