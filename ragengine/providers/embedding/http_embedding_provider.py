"""Generic JSON embedding endpoint adapter.

Speaks the minimal embedding contract::

    POST {endpoint}  {"model": "...", "text": "..."}
    200              {"embedding": [0.12, -0.03, ...]}

Transport errors, timeouts, HTTP 429 and 5xx are reported as retryable
:class:`EmbeddingError`; other 4xx responses and malformed bodies are not.
"""

from __future__ import annotations

import httpx

from ragengine.config.settings import Settings
from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.utils.errors import EmbeddingError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)


class HttpEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider for any service implementing the ``{model, text}`` contract."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._endpoint = settings.embedding_endpoint
        self._model = settings.embedding_model
        self._dimension = settings.embedding_dimension
        self._timeout = settings.embedding_timeout_seconds
        self._http = http_client
        self._headers = (
            {"Authorization": f"Bearer {settings.embedding_api_key}"}
            if settings.embedding_api_key
            else {}
        )

    async def embed(self, text: str) -> list[float]:
        if not self._endpoint:
            raise EmbeddingError(
                message="No embedding endpoint configured",
                provider_name=self.get_provider_name(),
            )

        try:
            response = await self._http.post(
                self._endpoint,
                json={"model": self._model, "text": text},
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise EmbeddingError(
                message=f"Embedding request timed out: {exc}",
                provider_name=self.get_provider_name(),
                retryable=True,
            ) from exc
        except httpx.TransportError as exc:
            raise EmbeddingError(
                message=f"Embedding endpoint unreachable: {exc}",
                provider_name=self.get_provider_name(),
                retryable=True,
            ) from exc

        status = response.status_code
        if status >= 400:
            raise EmbeddingError(
                message=f"Embedding endpoint returned HTTP {status}: {response.text[:200]}",
                provider_name=self.get_provider_name(),
                retryable=status == 429 or status >= 500,
                status_code=status,
            )

        try:
            vector = response.json()["embedding"]
        except (ValueError, KeyError, TypeError) as exc:
            raise EmbeddingError(
                message="Malformed embedding response (missing 'embedding')",
                provider_name=self.get_provider_name(),
                status_code=status,
            ) from exc

        if (
            not isinstance(vector, list)
            or not vector
            or not all(isinstance(v, (int, float)) for v in vector)
        ):
            raise EmbeddingError(
                message="Malformed embedding response (not a numeric list)",
                provider_name=self.get_provider_name(),
                status_code=status,
            )
        if not any(vector):
            raise EmbeddingError(
                message="Embedding endpoint returned a zero vector",
                provider_name=self.get_provider_name(),
                status_code=status,
            )

        return [float(v) for v in vector]

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return "http_embedding"

    def is_available(self) -> bool:
        return bool(self._endpoint)
