"""Abstract base class for the collaborator-owned persistence store.

The engine does not own document CRUD.  It consumes a collection-scoped
store for three things: the processing status of documents, the chunk
records written during indexing (also the corpus for the keyword fallback
search), and the audit trail of answered queries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ragengine.models.document import Document, DocumentChunk
from ragengine.models.retrieval import QueryRecord, SearchResult


class IDocumentRepository(ABC):
    """Contract for document, chunk and query-record persistence.

    All operations are async to support network-backed stores.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables or indexes if they do not exist.  Idempotent."""

    @abstractmethod
    async def save_document(self, document: Document) -> None:
        """Insert or replace the stored state of *document*."""

    @abstractmethod
    async def get_document(self, collection_id: str, document_id: str) -> Document | None:
        """Return the stored document, or ``None`` if unknown."""

    @abstractmethod
    async def save_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]] | None = None,
    ) -> int:
        """Upsert chunk records (with optional embeddings).  Returns rows written."""

    @abstractmethod
    async def delete_document_chunks(self, collection_id: str, document_id: str) -> int:
        """Delete every chunk record of a document.  Returns rows removed."""

    @abstractmethod
    async def find_chunks_containing(
        self,
        collection_id: str,
        terms: list[str],
        limit: int = 20,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Keyword search over stored chunk text.

        Parameters
        ----------
        collection_id:
            Only chunks of this collection are considered.
        terms:
            Lower-case query terms; a chunk matches if it contains any.
        limit:
            Maximum number of results.
        filters:
            Optional exact-match metadata filters, applied before the
            results are truncated to *limit*.

        Returns
        -------
        list[SearchResult]
            Results with ``retrieval_method="keyword"`` and
            ``similarity_score`` equal to the fraction of *terms* present,
            ordered by descending score.
        """

    @abstractmethod
    async def save_query_record(self, record: QueryRecord) -> None:
        """Append an audit record.  Records are never updated."""

    @abstractmethod
    async def list_query_records(self, collection_id: str, limit: int = 50) -> list[QueryRecord]:
        """Return the most recent audit records for a collection, newest first."""
