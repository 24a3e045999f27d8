"""Shared httpx plumbing for network-backed vector stores.

The ``httpx.AsyncClient`` is injected (one pooled client for the whole
process, closed by the application lifespan).  Every non-2xx response or
transport failure becomes a :class:`VectorStoreError` tagged with the
operation that failed.
"""

from __future__ import annotations

from typing import Any

import httpx

from ragengine.utils.errors import VectorStoreError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)


class RemoteVectorStoreBase:
    """Base class holding connection details and the request helper."""

    provider_name = "remote"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        batch_size: int = 500,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._batch_size = max(1, batch_size)
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        allow_status: tuple[int, ...] = (),
    ) -> httpx.Response:
        """Send a request and raise :class:`VectorStoreError` on failure.

        Status codes listed in *allow_status* are returned to the caller
        instead of raising (e.g. 404 on an idempotent delete).
        """
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise VectorStoreError(
                message=f"{operation} request to {url} failed: {exc}",
                provider_name=self.provider_name,
                operation=operation,
            ) from exc

        if response.status_code >= 400 and response.status_code not in allow_status:
            logger.warning(
                "vector_store_http_error",
                provider=self.provider_name,
                operation=operation,
                status=response.status_code,
                body=response.text[:300],
            )
            raise VectorStoreError(
                message=f"{operation} failed with HTTP {response.status_code}: "
                f"{response.text[:200]}",
                provider_name=self.provider_name,
                operation=operation,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, operation: str, provider: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise VectorStoreError(
                message=f"{operation} returned a non-JSON body",
                provider_name=provider,
                operation=operation,
            ) from exc
