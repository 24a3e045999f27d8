"""Abstract base class for vector-store providers.

Defines the contract for storing, searching and managing embedded chunks,
scoped per collection.  Implementations cover an in-process arena, a
Chroma-style REST collection server and a Weaviate-style GraphQL server;
the pipelines depend only on this interface.

**Filter syntax** (``filters`` in :meth:`similarity_search`): a flat
``{metadata_key: value}`` mapping; every pair must match exactly.  For
example ``{"document_id": "doc-1"}`` restricts a search to one document.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ragengine.models.document import DocumentChunk
from ragengine.models.retrieval import CollectionStats, SearchResult


class IVectorStoreProvider(ABC):
    """Contract for collection-scoped vector stores.

    Search for collection A never returns chunks stored under collection B.
    All methods except :meth:`get_provider_name` are async so network-backed
    stores never block the event loop.
    """

    @abstractmethod
    async def initialize(self, collection_id: str) -> None:
        """Create the collection (or schema class) if it does not exist.

        Idempotent.

        Raises
        ------
        ragengine.utils.errors.VectorStoreError
            If the backend is unreachable or rejects the request.
        """

    @abstractmethod
    async def add_documents(
        self,
        collection_id: str,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> list[str]:
        """Upsert *chunks* with their *embeddings* (positionally matched).

        Chunks are keyed by their stable ``chunk_id``, so adding the same
        chunk twice overwrites rather than duplicates.

        Returns
        -------
        list[str]
            The ids written, in input order.

        Raises
        ------
        ragengine.utils.errors.VectorStoreError
            If a write fails.  ``written_ids`` lists the ids committed before
            the failure.
        """

    @abstractmethod
    async def similarity_search(
        self,
        collection_id: str,
        query_vector: list[float],
        k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Return up to *k* results ordered by descending similarity.

        Scores are normalized to "higher is better" in [0, 1].

        Raises
        ------
        ragengine.utils.errors.VectorStoreError
            If the search fails.
        """

    @abstractmethod
    async def delete_documents(self, collection_id: str, ids: list[str]) -> None:
        """Remove vectors by chunk id.  Unknown ids are ignored."""

    @abstractmethod
    async def delete_by_document(self, collection_id: str, document_id: str) -> int:
        """Remove every vector belonging to *document_id*.

        Returns the number of vectors removed when the backend can report
        it, otherwise 0.
        """

    @abstractmethod
    async def get_collection_stats(self, collection_id: str) -> CollectionStats:
        """Return vector count, dimensionality and a storage-size estimate."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` if the backend is reachable.  Never raises."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"memory"`` or ``"chroma"``."""
