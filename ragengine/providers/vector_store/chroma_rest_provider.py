"""Chroma-style REST collection vector store provider.

Talks to a Chroma server over its v1 HTTP API with httpx; no ``chromadb``
client library is needed.  Each engine collection maps to one server
collection named ``{prefix}{collection_id}`` created with cosine distance,
so similarity is ``1 - distance`` clamped into [0, 1].

Endpoints used::

    GET  /api/v1/heartbeat
    POST /api/v1/collections                      {name, metadata, get_or_create}
    POST /api/v1/collections/{name}/upsert        {ids, embeddings, metadatas, documents}
    POST /api/v1/collections/{name}/query         {query_embeddings, n_results, where?, include}
    POST /api/v1/collections/{name}/delete        {ids} | {where}
    POST /api/v1/collections/{name}/get           {limit, include}
    GET  /api/v1/collections/{name}/count

Writes go through ``upsert`` rather than ``add``.  The body is the same, but
``add`` silently keeps the old record when an id already exists, while
re-indexing a document must replace its chunks.
"""

from __future__ import annotations

import re
from typing import Any

import httpx

from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.document import DocumentChunk
from ragengine.models.retrieval import CollectionStats, SearchResult
from ragengine.providers.vector_store.metadata import (
    chunk_to_metadata,
    keep_collection,
    result_from_record,
)
from ragengine.providers.vector_store.remote_base import RemoteVectorStoreBase
from ragengine.utils.errors import VectorStoreError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)

_API = "/api/v1"
_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def build_where(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate flat equality filters into a Chroma ``where`` clause."""
    if not filters:
        return None
    clauses = [{key: {"$eq": value}} for key, value in filters.items()]
    return clauses[0] if len(clauses) == 1 else {"$and": clauses}


class ChromaRestVectorStore(RemoteVectorStoreBase, IVectorStoreProvider):
    """Vector store backed by a Chroma server's REST API."""

    provider_name = "chroma"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str = "",
        collection_prefix: str = "rag_",
        timeout: float = 30.0,
        batch_size: int = 500,
    ) -> None:
        super().__init__(http_client, base_url, api_key, timeout, batch_size)
        self._prefix = collection_prefix
        self._initialized: set[str] = set()

    def collection_name(self, collection_id: str) -> str:
        name = _INVALID_NAME_CHARS.sub("_", f"{self._prefix}{collection_id}")
        # Chroma requires 3-63 characters.
        return name[:63].ljust(3, "_")

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def initialize(self, collection_id: str) -> None:
        if collection_id in self._initialized:
            return
        await self._request("GET", f"{_API}/heartbeat", "heartbeat")
        await self._request(
            "POST",
            f"{_API}/collections",
            "create_collection",
            json={
                "name": self.collection_name(collection_id),
                "metadata": {"hnsw:space": "cosine", "collection_id": collection_id},
                "get_or_create": True,
            },
            allow_status=(409,),
        )
        self._initialized.add(collection_id)
        logger.info(
            "chroma_collection_ready",
            collection_id=collection_id,
            name=self.collection_name(collection_id),
        )

    async def add_documents(
        self,
        collection_id: str,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> list[str]:
        if len(chunks) != len(embeddings):
            raise VectorStoreError(
                message=f"Got {len(chunks)} chunks but {len(embeddings)} embeddings",
                provider_name=self.provider_name,
                operation="add_documents",
            )
        name = self.collection_name(collection_id)
        written: list[str] = []
        for start in range(0, len(chunks), self._batch_size):
            batch = chunks[start : start + self._batch_size]
            batch_embeddings = embeddings[start : start + self._batch_size]
            payload = {
                "ids": [c.chunk_id for c in batch],
                "embeddings": batch_embeddings,
                "metadatas": [chunk_to_metadata(c) for c in batch],
                "documents": [c.text for c in batch],
            }
            try:
                await self._request(
                    "POST", f"{_API}/collections/{name}/upsert", "add_documents", json=payload
                )
            except VectorStoreError as exc:
                raise VectorStoreError(
                    message=exc.message,
                    provider_name=self.provider_name,
                    operation="add_documents",
                    written_ids=written,
                ) from exc
            written.extend(payload["ids"])
            logger.debug(
                "chroma_batch_upserted",
                collection_id=collection_id,
                batch_start=start,
                batch_size=len(batch),
            )
        return written

    async def similarity_search(
        self,
        collection_id: str,
        query_vector: list[float],
        k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        name = self.collection_name(collection_id)
        body: dict[str, Any] = {
            "query_embeddings": [query_vector],
            "n_results": k,
            "include": ["documents", "metadatas", "distances"],
        }
        where = build_where(filters)
        if where is not None:
            body["where"] = where

        response = await self._request(
            "POST", f"{_API}/collections/{name}/query", "similarity_search", json=body,
            allow_status=(404,),
        )
        if response.status_code == 404:
            return []
        data = self._json(response, "similarity_search", self.provider_name)

        ids = (data.get("ids") or [[]])[0] or []
        documents = (data.get("documents") or [[]])[0] or []
        metadatas = (data.get("metadatas") or [[]])[0] or []
        distances = (data.get("distances") or [[]])[0] or []

        results: list[SearchResult] = []
        for i, chunk_id in enumerate(ids):
            distance = distances[i] if i < len(distances) and distances[i] is not None else 1.0
            results.append(
                result_from_record(
                    chunk_id,
                    documents[i] if i < len(documents) else "",
                    metadatas[i] if i < len(metadatas) else {},
                    1.0 - float(distance),
                    self.provider_name,
                )
            )
        results = keep_collection(results, collection_id)
        results.sort(key=lambda r: r.similarity_score, reverse=True)
        return results[:k]

    async def delete_documents(self, collection_id: str, ids: list[str]) -> None:
        if not ids:
            return
        name = self.collection_name(collection_id)
        await self._request(
            "POST",
            f"{_API}/collections/{name}/delete",
            "delete_documents",
            json={"ids": ids},
            allow_status=(404,),
        )

    async def delete_by_document(self, collection_id: str, document_id: str) -> int:
        name = self.collection_name(collection_id)
        response = await self._request(
            "POST",
            f"{_API}/collections/{name}/delete",
            "delete_by_document",
            json={"where": {"document_id": {"$eq": document_id}}},
            allow_status=(404,),
        )
        if response.status_code == 404 or not response.content:
            return 0
        data = self._json(response, "delete_by_document", self.provider_name)
        return len(data) if isinstance(data, list) else 0

    async def get_collection_stats(self, collection_id: str) -> CollectionStats:
        name = self.collection_name(collection_id)
        response = await self._request(
            "GET", f"{_API}/collections/{name}/count", "get_collection_stats",
            allow_status=(404,),
        )
        if response.status_code == 404:
            return CollectionStats(collection_id=collection_id, provider=self.provider_name)
        count = int(self._json(response, "get_collection_stats", self.provider_name) or 0)

        dimensions = 0
        if count:
            sample = await self._request(
                "POST",
                f"{_API}/collections/{name}/get",
                "get_collection_stats",
                json={"limit": 1, "include": ["embeddings"]},
            )
            embeddings = self._json(sample, "get_collection_stats", self.provider_name).get(
                "embeddings"
            )
            if embeddings:
                dimensions = len(embeddings[0])

        return CollectionStats(
            collection_id=collection_id,
            vector_count=count,
            dimensions=dimensions,
            storage_bytes=count * dimensions * 4,
            provider=self.provider_name,
        )

    async def health_check(self) -> bool:
        try:
            await self._request("GET", f"{_API}/heartbeat", "heartbeat")
        except VectorStoreError as exc:
            logger.warning("chroma_health_check_failed", error=str(exc))
            return False
        return True

    def get_provider_name(self) -> str:
        return self.provider_name
