"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Works with OpenAI itself and OpenAI-compatible hosts (TogetherAI, Ollama's
``/v1``) via ``openai_base_url``.  The SDK's built-in retries are disabled so
the engine's own retry policy is the only one in effect.
"""

from __future__ import annotations

import openai

from ragengine.config.settings import Settings
from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.utils.errors import EmbeddingError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "nomic-embed-text": 768,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API."""

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._api_key = settings.openai_api_key
        if client is None:
            client_kwargs: dict = {
                "api_key": self._api_key or "unset",
                "max_retries": 0,
                "timeout": settings.embedding_timeout_seconds,
            }
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        self._model = settings.embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, settings.embedding_dimension)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(input=[text], model=self._model)
        except (openai.APIConnectionError, openai.APITimeoutError) as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} unreachable: {exc}",
                provider_name=self._provider_label,
                retryable=True,
            ) from exc
        except openai.APIStatusError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error {exc.status_code}: {exc.message}",
                provider_name=self._provider_label,
                retryable=exc.status_code == 429 or exc.status_code >= 500,
                status_code=exc.status_code,
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self._provider_label,
            ) from exc

        if not response.data or not response.data[0].embedding:
            raise EmbeddingError(
                message=f"{self._provider_label} returned no embedding",
                provider_name=self._provider_label,
            )

        logger.debug(
            "openai_embedding_complete",
            model=self._model,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return list(response.data[0].embedding)

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
