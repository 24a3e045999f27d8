"""Abstract base class for text-embedding service providers.

Defines the contract for turning one text into one fixed-dimension vector.
Implementations wrap the OpenAI embeddings API, a generic JSON embedding
endpoint, or a local deterministic hashing embedder.  Retry and rate
limiting are not the provider's concern; they are applied by
:class:`~ragengine.providers.embedding.guarded_provider.GuardedEmbeddingProvider`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (ragengine/providers/embedding/):
#   OpenAIEmbeddingProvider   -- OpenAI-compatible embeddings API
#   HttpEmbeddingProvider     -- POST {model, text} -> {embedding}
#   HashingEmbeddingProvider  -- local feature hashing, no network
#   GuardedEmbeddingProvider  -- retry + rate-limit decorator around any of the above
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by indexing and query pipelines."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*.

        Parameters
        ----------
        text:
            Non-empty text to embed.  Exactly one external call is made.

        Returns
        -------
        list[float]
            A vector of length :meth:`get_dimension`.  Never a zero or
            placeholder vector.

        Raises
        ------
        ragengine.utils.errors.EmbeddingError
            If the call fails.  ``retryable`` tells transient failures
            (network, timeout, 429, 5xx) from permanent ones (other 4xx,
            malformed response).
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the vectors this provider produces."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier sent to the backend."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials, endpoint)."""
