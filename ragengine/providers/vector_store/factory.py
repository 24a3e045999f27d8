"""Select vector store variants by configured name.

Backends are registered under the names accepted by
``Settings.vector_store_backends``: ``memory``, ``chroma`` and ``weaviate``.
"""

from __future__ import annotations

from typing import Callable

import httpx

from ragengine.config.settings import Settings
from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.providers.vector_store.chroma_rest_provider import ChromaRestVectorStore
from ragengine.providers.vector_store.memory_provider import InMemoryVectorStore
from ragengine.providers.vector_store.weaviate_graphql_provider import WeaviateGraphQLVectorStore
from ragengine.utils.errors import ConfigurationError

_Builder = Callable[[Settings, httpx.AsyncClient], IVectorStoreProvider]


def _memory(settings: Settings, _http: httpx.AsyncClient) -> IVectorStoreProvider:
    return InMemoryVectorStore(persist_path=settings.memory_persist_path or None)


def _chroma(settings: Settings, http: httpx.AsyncClient) -> IVectorStoreProvider:
    return ChromaRestVectorStore(
        http_client=http,
        base_url=settings.chroma_url,
        api_key=settings.chroma_api_key,
        collection_prefix=settings.chroma_collection_prefix,
        timeout=settings.vector_store_timeout_seconds,
        batch_size=settings.vector_store_batch_size,
    )


def _weaviate(settings: Settings, http: httpx.AsyncClient) -> IVectorStoreProvider:
    return WeaviateGraphQLVectorStore(
        http_client=http,
        base_url=settings.weaviate_url,
        api_key=settings.weaviate_api_key,
        class_prefix=settings.weaviate_class_prefix,
        timeout=settings.vector_store_timeout_seconds,
        batch_size=settings.vector_store_batch_size,
    )


VECTOR_STORE_BUILDERS: dict[str, _Builder] = {
    "memory": _memory,
    "chroma": _chroma,
    "weaviate": _weaviate,
}


def create_vector_store(
    backend: str, settings: Settings, http_client: httpx.AsyncClient
) -> IVectorStoreProvider:
    """Build the vector store registered under *backend*.

    Raises
    ------
    ConfigurationError
        If *backend* is not a registered name.
    """
    builder = VECTOR_STORE_BUILDERS.get(backend.strip().lower())
    if builder is None:
        raise ConfigurationError(
            message=f"Unknown vector store backend '{backend}'. "
            f"Expected one of: {', '.join(sorted(VECTOR_STORE_BUILDERS))}"
        )
    return builder(settings, http_client)
