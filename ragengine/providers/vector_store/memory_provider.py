"""In-process vector store provider.

State is an arena of records keyed by ``(collection_id, chunk_id)`` with two
secondary indexes: collection -> chunk ids (insertion order) and
(collection, document) -> chunk ids.  Similarity search is a full linear
cosine scan over the collection's vectors with numpy; at document-collection
scale that is fast enough and needs no index maintenance.

Every collection has a fixed dimensionality, set by its first insert.
Optionally the arena is snapshotted to a JSON file after every write and
reloaded on start-up.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.document import DocumentChunk
from ragengine.models.retrieval import CollectionStats, SearchResult
from ragengine.providers.vector_store.metadata import (
    chunk_to_metadata,
    matches_filters,
    result_from_record,
)
from ragengine.utils.errors import VectorStoreError
from ragengine.utils.logging import get_logger
from ragengine.utils.similarity import cosine_similarity_matrix

logger = get_logger(__name__)

_PROVIDER = "memory"


@dataclass
class _Record:
    chunk_id: str
    collection_id: str
    document_id: str
    text: str
    metadata: dict[str, Any]
    vector: np.ndarray


class InMemoryVectorStore(IVectorStoreProvider):
    """Vector store held in process memory, optionally persisted to JSON."""

    def __init__(self, persist_path: str | None = None) -> None:
        self._records: dict[tuple[str, str], _Record] = {}
        self._by_collection: dict[str, dict[str, None]] = {}
        self._by_document: dict[tuple[str, str], set[str]] = {}
        self._dimensions: dict[str, int] = {}
        self._matrix_cache: dict[str, tuple[list[str], np.ndarray]] = {}
        self._persist_path = Path(persist_path) if persist_path else None
        if self._persist_path is not None and self._persist_path.exists():
            self._load_snapshot()

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def initialize(self, collection_id: str) -> None:
        self._by_collection.setdefault(collection_id, {})

    async def add_documents(
        self,
        collection_id: str,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> list[str]:
        if len(chunks) != len(embeddings):
            raise VectorStoreError(
                message=f"Got {len(chunks)} chunks but {len(embeddings)} embeddings",
                provider_name=_PROVIDER,
                operation="add_documents",
            )
        if not chunks:
            return []

        vectors = [np.asarray(e, dtype=np.float64) for e in embeddings]
        expected = self._dimensions.get(collection_id, len(vectors[0]))
        for chunk, vector in zip(chunks, vectors):
            if chunk.collection_id != collection_id:
                raise VectorStoreError(
                    message=f"Chunk {chunk.chunk_id} belongs to collection "
                    f"'{chunk.collection_id}', not '{collection_id}'",
                    provider_name=_PROVIDER,
                    operation="add_documents",
                )
            if vector.ndim != 1 or vector.shape[0] != expected:
                raise VectorStoreError(
                    message=f"Dimension mismatch for {chunk.chunk_id}: "
                    f"collection uses {expected}, got {vector.shape[-1]}",
                    provider_name=_PROVIDER,
                    operation="add_documents",
                )

        self._dimensions[collection_id] = expected
        ids: list[str] = []
        members = self._by_collection.setdefault(collection_id, {})
        for chunk, vector in zip(chunks, vectors):
            self._records[(collection_id, chunk.chunk_id)] = _Record(
                chunk_id=chunk.chunk_id,
                collection_id=collection_id,
                document_id=chunk.document_id,
                text=chunk.text,
                metadata=chunk_to_metadata(chunk),
                vector=vector,
            )
            members[chunk.chunk_id] = None
            self._by_document.setdefault((collection_id, chunk.document_id), set()).add(
                chunk.chunk_id
            )
            ids.append(chunk.chunk_id)

        self._matrix_cache.pop(collection_id, None)
        try:
            self._save_snapshot()
        except VectorStoreError as exc:
            # The records are live in memory and searchable; report them.
            raise VectorStoreError(
                message=exc.message,
                provider_name=_PROVIDER,
                operation="add_documents",
                written_ids=ids,
            ) from exc
        logger.debug("memory_store_added", collection_id=collection_id, count=len(ids))
        return ids

    async def similarity_search(
        self,
        collection_id: str,
        query_vector: list[float],
        k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        ids, matrix = self._collection_matrix(collection_id)
        if not ids or k <= 0:
            return []
        if len(query_vector) != matrix.shape[1]:
            raise VectorStoreError(
                message=f"Query dimension {len(query_vector)} does not match "
                f"collection dimension {matrix.shape[1]}",
                provider_name=_PROVIDER,
                operation="similarity_search",
            )

        scores = cosine_similarity_matrix(query_vector, matrix)
        order = np.argsort(-scores, kind="stable")

        results: list[SearchResult] = []
        for idx in order:
            record = self._records[(collection_id, ids[int(idx)])]
            if not matches_filters(record.metadata, filters):
                continue
            results.append(
                result_from_record(
                    record.chunk_id,
                    record.text,
                    record.metadata,
                    float(scores[int(idx)]),
                    _PROVIDER,
                )
            )
            if len(results) >= k:
                break
        return results

    async def delete_documents(self, collection_id: str, ids: list[str]) -> None:
        removed = 0
        members = self._by_collection.get(collection_id, {})
        for chunk_id in ids:
            record = self._records.pop((collection_id, chunk_id), None)
            if record is None:
                continue
            members.pop(chunk_id, None)
            doc_ids = self._by_document.get((collection_id, record.document_id))
            if doc_ids is not None:
                doc_ids.discard(chunk_id)
                if not doc_ids:
                    del self._by_document[(collection_id, record.document_id)]
            removed += 1

        if removed:
            self._matrix_cache.pop(collection_id, None)
            if not members:
                self._dimensions.pop(collection_id, None)
            self._save_snapshot()

    async def delete_by_document(self, collection_id: str, document_id: str) -> int:
        ids = sorted(self._by_document.get((collection_id, document_id), set()))
        await self.delete_documents(collection_id, ids)
        return len(ids)

    async def get_collection_stats(self, collection_id: str) -> CollectionStats:
        ids = list(self._by_collection.get(collection_id, {}))
        dimensions = self._dimensions.get(collection_id, 0)
        text_bytes = sum(
            len(self._records[(collection_id, chunk_id)].text.encode("utf-8")) for chunk_id in ids
        )
        return CollectionStats(
            collection_id=collection_id,
            vector_count=len(ids),
            dimensions=dimensions,
            storage_bytes=len(ids) * dimensions * 4 + text_bytes,
            provider=_PROVIDER,
        )

    async def health_check(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return _PROVIDER

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collection_matrix(self, collection_id: str) -> tuple[list[str], np.ndarray]:
        cached = self._matrix_cache.get(collection_id)
        if cached is not None:
            return cached
        ids = list(self._by_collection.get(collection_id, {}))
        if ids:
            matrix = np.vstack([self._records[(collection_id, i)].vector for i in ids])
        else:
            matrix = np.zeros((0, 0), dtype=np.float64)
        self._matrix_cache[collection_id] = (ids, matrix)
        return ids, matrix

    def _save_snapshot(self) -> None:
        if self._persist_path is None:
            return
        payload = {
            "dimensions": self._dimensions,
            "records": [
                {
                    "chunk_id": r.chunk_id,
                    "collection_id": r.collection_id,
                    "document_id": r.document_id,
                    "text": r.text,
                    "metadata": r.metadata,
                    "vector": r.vector.tolist(),
                }
                for r in self._records.values()
            ],
        }
        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._persist_path.with_suffix(self._persist_path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(payload), encoding="utf-8")
            os.replace(tmp_path, self._persist_path)
        except OSError as exc:
            raise VectorStoreError(
                message=f"Failed to write snapshot {self._persist_path}: {exc}",
                provider_name=_PROVIDER,
                operation="persist",
            ) from exc

    def _load_snapshot(self) -> None:
        assert self._persist_path is not None
        try:
            payload = json.loads(self._persist_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise VectorStoreError(
                message=f"Failed to read snapshot {self._persist_path}: {exc}",
                provider_name=_PROVIDER,
                operation="load",
            ) from exc

        self._dimensions = {k: int(v) for k, v in payload.get("dimensions", {}).items()}
        for item in payload.get("records", []):
            record = _Record(
                chunk_id=item["chunk_id"],
                collection_id=item["collection_id"],
                document_id=item["document_id"],
                text=item["text"],
                metadata=item.get("metadata", {}),
                vector=np.asarray(item["vector"], dtype=np.float64),
            )
            key = (record.collection_id, record.chunk_id)
            self._records[key] = record
            self._by_collection.setdefault(record.collection_id, {})[record.chunk_id] = None
            self._by_document.setdefault((record.collection_id, record.document_id), set()).add(
                record.chunk_id
            )
        logger.info(
            "memory_store_loaded",
            path=str(self._persist_path),
            records=len(self._records),
        )
