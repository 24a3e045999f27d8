"""Indexing pipeline: chunk -> embed -> store for one document.

Sequence for :meth:`IndexingService.process`:

  1. Persist the document as ``processing``.
  2. Chunk the text.  Indices are fixed here, before any embedding call, so
     a failed chunk never shifts its neighbours.  Zero chunks is a
     :class:`ChunkingError` and the document ends ``failed``.
  3. Initialize every store for the collection and purge vectors from any
     previous run of this document, so re-indexing is reproducible.
  4. Embed chunks with bounded concurrency.  A chunk whose embedding fails
     is logged and left out; the rest carry on.
  5. Write the surviving chunks with one ``add_documents`` call per store
     and record the chunk rows in the repository.
  6. Persist ``completed`` (at least one chunk indexed) or ``failed``.
     ``chunk_count`` is the number of chunks actually written to every
     configured store, including under partial write failure.

Whatever happens (errors, timeout, caller cancellation) the document is
left in a terminal status.  A run aborted after writing began removes the
vectors it stored, so a failed document never leaves orphans behind.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

from ragengine.interfaces.document_repository import IDocumentRepository
from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.document import Document, DocumentChunk, IndexingOutcome, ProcessingStatus
from ragengine.services.chunker import TextChunker
from ragengine.utils.concurrency import shielded, throttled_gather
from ragengine.utils.errors import ChunkingError, EmbeddingError, RAGEngineError, VectorStoreError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _Progress:
    """Mutable bookkeeping shared between the run and its failure handlers."""

    chunks_created: int = 0
    writing_started: bool = False
    indexed_ids: list[str] = field(default_factory=list)
    failed_indices: list[int] = field(default_factory=list)


class IndexingService:
    """Orchestrates chunking, embedding and vector storage for documents.

    Parameters
    ----------
    chunker:
        Splits document text into chunks.
    embedding_provider:
        Produces one vector per chunk (normally a guarded provider).
    vector_stores:
        Every store the document is written to.  At least one is required.
    repository:
        Optional persistence for document status and chunk records.
    embedding_concurrency:
        Maximum embedding calls in flight for one document.
    """

    def __init__(
        self,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_stores: list[IVectorStoreProvider],
        repository: IDocumentRepository | None = None,
        embedding_concurrency: int = 4,
    ) -> None:
        if not vector_stores:
            raise ValueError("IndexingService needs at least one vector store")
        self._chunker = chunker
        self._embedder = embedding_provider
        self._stores = list(vector_stores)
        self._repository = repository
        self._concurrency = max(1, embedding_concurrency)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process(
        self,
        document: Document,
        *,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        timeout: float | None = None,
    ) -> IndexingOutcome:
        """Index *document* and return the outcome.

        Raises
        ------
        asyncio.CancelledError
            Re-raised after the document has been persisted as ``failed``.
        """
        started = time.perf_counter()
        progress = _Progress()
        working = document.with_status(ProcessingStatus.PROCESSING, chunk_count=0)
        await self._save_document(working)
        logger.info(
            "indexing_started",
            document_id=document.document_id,
            collection_id=document.collection_id,
        )

        try:
            async with asyncio.timeout(timeout):
                final = await self._run(working, progress, chunk_size, chunk_overlap)
        except TimeoutError:
            await self._discard_partial_write(working, progress)
            final = working.with_status(
                ProcessingStatus.FAILED,
                chunk_count=0,
                error_message=f"Processing timed out after {timeout}s",
            )
        except asyncio.CancelledError:
            final = working.with_status(
                ProcessingStatus.FAILED,
                chunk_count=0,
                error_message="Processing was cancelled",
            )
            await asyncio.shield(self._abandon(working, progress, final))
            logger.warning("indexing_cancelled", document_id=document.document_id)
            raise
        except RAGEngineError as exc:
            await self._discard_partial_write(working, progress)
            final = working.with_status(
                ProcessingStatus.FAILED,
                chunk_count=0,
                error_message=str(exc),
            )
        except Exception as exc:
            logger.error(
                "indexing_crashed",
                document_id=document.document_id,
                error=repr(exc),
                exc_info=True,
            )
            await self._discard_partial_write(working, progress)
            final = working.with_status(
                ProcessingStatus.FAILED,
                chunk_count=0,
                error_message=f"Unexpected error: {exc}",
            )

        await self._save_document(final)
        outcome = IndexingOutcome(
            document_id=final.document_id,
            collection_id=final.collection_id,
            status=final.status,
            chunks_created=progress.chunks_created,
            chunks_indexed=final.chunk_count,
            failed_chunk_indices=sorted(progress.failed_indices),
            error=final.error_message,
            elapsed_seconds=round(time.perf_counter() - started, 4),
        )
        log = logger.info if final.status == ProcessingStatus.COMPLETED else logger.warning
        log(
            "indexing_finished",
            document_id=final.document_id,
            status=final.status.value,
            chunks_created=outcome.chunks_created,
            chunks_indexed=outcome.chunks_indexed,
            failed_chunks=len(outcome.failed_chunk_indices),
            error=final.error_message,
        )
        return outcome

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    async def _run(
        self,
        document: Document,
        progress: _Progress,
        chunk_size: int | None,
        chunk_overlap: int | None,
    ) -> Document:
        try:
            chunks = self._chunker.chunk(
                document.content,
                document_id=document.document_id,
                collection_id=document.collection_id,
                chunk_size=chunk_size,
                overlap=chunk_overlap,
                document_name=document.name,
            )
        except ValueError as exc:
            raise ChunkingError(message=str(exc)) from exc
        progress.chunks_created = len(chunks)
        if not chunks:
            raise ChunkingError(message="Document has no text content to index")

        await self._prepare_collection(document)

        embedded_chunks, embeddings = await self._embed_chunks(chunks, progress)
        if not embedded_chunks:
            return document.with_status(
                ProcessingStatus.FAILED,
                chunk_count=0,
                error_message=f"All {len(chunks)} chunks failed to embed",
            )

        progress.writing_started = True
        indexed_ids, write_error = await self._write(document.collection_id, embedded_chunks, embeddings)
        progress.indexed_ids = indexed_ids

        if self._repository is not None and indexed_ids:
            written = set(indexed_ids)
            rows = [
                (chunk, vector)
                for chunk, vector in zip(embedded_chunks, embeddings)
                if chunk.chunk_id in written
            ]
            await self._repository.save_chunks([c for c, _ in rows], [v for _, v in rows])

        if indexed_ids:
            return document.with_status(ProcessingStatus.COMPLETED, chunk_count=len(indexed_ids))
        return document.with_status(
            ProcessingStatus.FAILED,
            chunk_count=0,
            error_message=write_error or "No chunks were written to the vector store",
        )

    async def _prepare_collection(self, document: Document) -> None:
        """Initialize stores and drop vectors left by a previous indexing run."""
        for store in self._stores:
            await store.initialize(document.collection_id)
            removed = await store.delete_by_document(document.collection_id, document.document_id)
            if removed:
                logger.info(
                    "previous_vectors_purged",
                    document_id=document.document_id,
                    store=store.get_provider_name(),
                    removed=removed,
                )
        if self._repository is not None:
            await self._repository.delete_document_chunks(
                document.collection_id, document.document_id
            )

    async def _embed_chunks(
        self, chunks: list[DocumentChunk], progress: _Progress
    ) -> tuple[list[DocumentChunk], list[list[float]]]:
        semaphore = asyncio.Semaphore(self._concurrency)
        results = await throttled_gather(
            [shielded(self._embedder.embed(chunk.text)) for chunk in chunks],
            semaphore=semaphore,
            return_exceptions=True,
        )

        kept_chunks: list[DocumentChunk] = []
        vectors: list[list[float]] = []
        for chunk, result in zip(chunks, results):
            if isinstance(result, EmbeddingError):
                progress.failed_indices.append(chunk.chunk_index)
                logger.warning(
                    "chunk_embedding_failed",
                    chunk_id=chunk.chunk_id,
                    retryable=result.retryable,
                    error=str(result),
                )
            elif isinstance(result, Exception):
                progress.failed_indices.append(chunk.chunk_index)
                logger.error(
                    "chunk_embedding_crashed",
                    chunk_id=chunk.chunk_id,
                    error=repr(result),
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                kept_chunks.append(chunk)
                vectors.append(result)
        return kept_chunks, vectors

    async def _write(
        self,
        collection_id: str,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> tuple[list[str], str | None]:
        """Write to every store; return ids present in all of them plus the last error."""
        present: set[str] | None = None
        last_error: str | None = None
        per_store: list[tuple[IVectorStoreProvider, set[str]]] = []
        for store in self._stores:
            try:
                ids = await store.add_documents(collection_id, chunks, embeddings)
            except VectorStoreError as exc:
                ids = exc.written_ids
                last_error = str(exc)
                logger.error(
                    "vector_store_write_failed",
                    store=store.get_provider_name(),
                    written=len(ids),
                    attempted=len(chunks),
                    error=str(exc),
                )
            per_store.append((store, set(ids)))
            present = set(ids) if present is None else present & set(ids)

        written = present or set()
        # Stores that got further than the others drop the surplus so every
        # store holds exactly the reported chunks.
        for store, ids in per_store:
            surplus = [c.chunk_id for c in chunks if c.chunk_id in ids - written]
            if surplus:
                await store.delete_documents(collection_id, surplus)
                logger.info(
                    "surplus_vectors_removed",
                    store=store.get_provider_name(),
                    removed=len(surplus),
                )
        return [c.chunk_id for c in chunks if c.chunk_id in written], last_error

    async def _discard_partial_write(self, document: Document, progress: _Progress) -> None:
        """Remove whatever an interrupted run managed to store for *document*."""
        if not progress.writing_started:
            return
        for store in self._stores:
            try:
                removed = await store.delete_by_document(document.collection_id, document.document_id)
            except Exception as exc:
                logger.error(
                    "partial_write_cleanup_failed",
                    document_id=document.document_id,
                    store=store.get_provider_name(),
                    error=repr(exc),
                )
                continue
            if removed:
                logger.info(
                    "partial_write_discarded",
                    document_id=document.document_id,
                    store=store.get_provider_name(),
                    removed=removed,
                )
        if self._repository is not None:
            try:
                await self._repository.delete_document_chunks(
                    document.collection_id, document.document_id
                )
            except Exception as exc:
                logger.error(
                    "partial_write_cleanup_failed",
                    document_id=document.document_id,
                    store="repository",
                    error=repr(exc),
                )
        progress.indexed_ids = []

    async def _abandon(self, document: Document, progress: _Progress, final: Document) -> None:
        await self._discard_partial_write(document, progress)
        await self._save_document(final)

    async def _save_document(self, document: Document) -> None:
        if self._repository is None:
            return
        await self._repository.save_document(document)
