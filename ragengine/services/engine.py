"""Collaborator-facing facade over the indexing and query pipelines.

Upload handling, document CRUD and billing live with the caller.  The
engine exposes the handful of operations they need and scopes each call
to a caller identity, which feeds the rate limiter and the log context.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from ragengine.interfaces.document_repository import IDocumentRepository
from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.document import Document, IndexingOutcome
from ragengine.models.retrieval import CollectionStats, QueryAnswer, QueryOptions, QueryRecord
from ragengine.services.indexing_service import IndexingService
from ragengine.services.query_service import QueryService
from ragengine.utils.errors import VectorStoreError
from ragengine.utils.logging import bind_request_context, clear_request_context, get_logger
from ragengine.utils.rate_limiter import current_caller

logger = get_logger(__name__)

DEFAULT_CALLER = "default"


@contextmanager
def caller_scope(caller_id: str | None, collection_id: str | None = None) -> Iterator[None]:
    """Bind *caller_id* for rate limiting and both ids for logging."""
    token = current_caller.set(caller_id or DEFAULT_CALLER)
    bind_request_context(caller_id=caller_id or DEFAULT_CALLER, collection_id=collection_id)
    try:
        yield
    finally:
        clear_request_context("caller_id", "collection_id")
        current_caller.reset(token)


class RAGEngine:
    """Indexing, querying and housekeeping for collection-scoped documents."""

    def __init__(
        self,
        indexing_service: IndexingService,
        query_service: QueryService,
        vector_stores: list[IVectorStoreProvider],
        repository: IDocumentRepository,
    ) -> None:
        self._indexing = indexing_service
        self._query = query_service
        self._stores = list(vector_stores)
        self._repository = repository

    @property
    def repository(self) -> IDocumentRepository:
        return self._repository

    @property
    def store_names(self) -> list[str]:
        return [store.get_provider_name() for store in self._stores]

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def process_document(
        self,
        document: Document,
        *,
        caller_id: str | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        timeout: float | None = None,
    ) -> IndexingOutcome:
        with caller_scope(caller_id, document.collection_id):
            return await self._indexing.process(
                document,
                chunk_size=chunk_size,
                chunk_overlap=chunk_overlap,
                timeout=timeout,
            )

    async def delete_document(self, collection_id: str, document_id: str) -> int:
        """Purge a document's vectors from every store and its chunk records.

        Returns the number of vectors removed from the first store.
        """
        removed: list[int] = []
        for store in self._stores:
            removed.append(await store.delete_by_document(collection_id, document_id))
        rows = await self._repository.delete_document_chunks(collection_id, document_id)
        logger.info(
            "document_purged",
            collection_id=collection_id,
            document_id=document_id,
            vectors_removed=removed,
            chunk_rows_removed=rows,
        )
        return removed[0] if removed else rows

    async def get_document(self, collection_id: str, document_id: str) -> Document | None:
        return await self._repository.get_document(collection_id, document_id)

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    async def query(
        self,
        text: str,
        collection_id: str,
        options: QueryOptions | None = None,
        *,
        caller_id: str | None = None,
        timeout: float | None = None,
    ) -> QueryAnswer:
        with caller_scope(caller_id, collection_id):
            return await self._query.query(
                text,
                collection_id,
                options,
                timeout=timeout,
                caller_id=caller_id or DEFAULT_CALLER,
            )

    async def list_query_records(self, collection_id: str, limit: int = 50) -> list[QueryRecord]:
        return await self._repository.list_query_records(collection_id, limit=limit)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_collection_stats(self, collection_id: str) -> list[CollectionStats]:
        """Stats for *collection_id* from each store, in configuration order.

        A store that cannot report is logged and contributes an empty entry.
        """
        stats: list[CollectionStats] = []
        for store in self._stores:
            try:
                stats.append(await store.get_collection_stats(collection_id))
            except VectorStoreError as exc:
                logger.warning(
                    "collection_stats_failed",
                    store=store.get_provider_name(),
                    collection_id=collection_id,
                    error=str(exc),
                )
                stats.append(
                    CollectionStats(collection_id=collection_id, provider=store.get_provider_name())
                )
        return stats

    async def health(self) -> dict[str, bool]:
        """Reachability of every configured store."""
        return {store.get_provider_name(): await store.health_check() for store in self._stores}
