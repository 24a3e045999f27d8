"""Rate-limit and write-serialization decorator around any vector store.

* Searches are admitted by the sliding-window rate limiter for the current
  caller and otherwise run concurrently.
* Writes (add / delete) hold a per-collection ``asyncio.Lock`` so batches
  for one collection never interleave; other collections are unaffected.
"""

from __future__ import annotations

from typing import Any

from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.document import DocumentChunk
from ragengine.models.retrieval import CollectionStats, SearchResult
from ragengine.utils.concurrency import CollectionLockRegistry
from ragengine.utils.rate_limiter import SlidingWindowRateLimiter


class GuardedVectorStore(IVectorStoreProvider):
    """Wraps *inner* with search rate limiting and per-collection write locks."""

    def __init__(
        self,
        inner: IVectorStoreProvider,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        locks: CollectionLockRegistry | None = None,
    ) -> None:
        self._inner = inner
        self._rate_limiter = rate_limiter
        self._locks = locks or CollectionLockRegistry()

    @property
    def inner(self) -> IVectorStoreProvider:
        return self._inner

    async def initialize(self, collection_id: str) -> None:
        async with self._locks.hold(collection_id):
            await self._inner.initialize(collection_id)

    async def add_documents(
        self,
        collection_id: str,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> list[str]:
        async with self._locks.hold(collection_id):
            return await self._inner.add_documents(collection_id, chunks, embeddings)

    async def similarity_search(
        self,
        collection_id: str,
        query_vector: list[float],
        k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()
        return await self._inner.similarity_search(collection_id, query_vector, k, filters)

    async def delete_documents(self, collection_id: str, ids: list[str]) -> None:
        async with self._locks.hold(collection_id):
            await self._inner.delete_documents(collection_id, ids)

    async def delete_by_document(self, collection_id: str, document_id: str) -> int:
        async with self._locks.hold(collection_id):
            return await self._inner.delete_by_document(collection_id, document_id)

    async def get_collection_stats(self, collection_id: str) -> CollectionStats:
        return await self._inner.get_collection_stats(collection_id)

    async def health_check(self) -> bool:
        return await self._inner.health_check()

    def get_provider_name(self) -> str:
        return self._inner.get_provider_name()
