"""Weaviate-style GraphQL vector store provider.

Each engine collection maps to one Weaviate class (``{prefix}{Collection}``)
created with ``vectorizer: none`` and cosine distance; vectors are always
supplied by the engine.  Object ids are UUIDv5 values derived from the
collection and chunk id, so re-adding a chunk replaces the same object.

Endpoints used::

    GET    /v1/meta                          health / reachability
    GET    /v1/schema/{class}                existence check
    POST   /v1/schema                        class creation
    POST   /v1/batch/objects                 upsert objects with vectors
    DELETE /v1/batch/objects                 delete by where filter
    DELETE /v1/objects/{class}/{uuid}        delete one object
    POST   /v1/graphql                       Get (nearVector) and Aggregate

Arbitrary chunk metadata is stored as a JSON string in the ``metadata``
property; equality filters on the top-level properties (``document_id``,
``chunk_index``, ``collection_id``) run server-side, the rest are applied to
the decoded metadata after retrieval.
"""

from __future__ import annotations

import json
import re
import uuid
from typing import Any

import httpx

from ragengine.interfaces.vector_store_provider import IVectorStoreProvider
from ragengine.models.document import DocumentChunk
from ragengine.models.retrieval import CollectionStats, SearchResult
from ragengine.providers.vector_store.metadata import (
    chunk_to_metadata,
    keep_collection,
    matches_filters,
    result_from_record,
)
from ragengine.providers.vector_store.remote_base import RemoteVectorStoreBase
from ragengine.utils.errors import VectorStoreError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)

# metadata key -> Weaviate property for filters that run server-side.
_PROPERTY_FILTERS: dict[str, str] = {
    "document_id": "documentId",
    "collection_id": "collectionId",
    "chunk_index": "chunkIndex",
}

_PROPERTIES = [
    {"name": "content", "dataType": ["text"]},
    {"name": "chunkId", "dataType": ["text"]},
    {"name": "documentId", "dataType": ["text"]},
    {"name": "collectionId", "dataType": ["text"]},
    {"name": "chunkIndex", "dataType": ["int"]},
    {"name": "metadata", "dataType": ["text"]},
]

_RETURN_FIELDS = "content chunkId documentId collectionId metadata _additional { id distance }"


class GraphQLEnum(str):
    """A string rendered without quotes in a GraphQL literal (e.g. ``Equal``)."""


def to_graphql(value: Any) -> str:
    """Render a Python value as a GraphQL input literal."""
    if isinstance(value, GraphQLEnum):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, dict):
        return "{" + ", ".join(f"{key}: {to_graphql(item)}" for key, item in value.items()) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_graphql(item) for item in value) + "]"
    raise TypeError(f"Cannot render {type(value).__name__} as GraphQL")


def _operand(prop: str, value: Any) -> dict[str, Any]:
    if isinstance(value, bool):
        key = "valueBoolean"
    elif isinstance(value, int):
        key = "valueInt"
    elif isinstance(value, float):
        key = "valueNumber"
    else:
        key = "valueText"
        value = str(value)
    return {"path": [prop], "operator": GraphQLEnum("Equal"), key: value}


def build_where(collection_id: str, filters: dict[str, Any] | None) -> dict[str, Any]:
    """Build a ``where`` filter: collection scope plus server-side equality filters."""
    operands = [_operand("collectionId", collection_id)]
    for key, value in (filters or {}).items():
        prop = _PROPERTY_FILTERS.get(key)
        if prop and prop != "collectionId":
            operands.append(_operand(prop, value))
    if len(operands) == 1:
        return operands[0]
    return {"operator": GraphQLEnum("And"), "operands": operands}


class WeaviateGraphQLVectorStore(RemoteVectorStoreBase, IVectorStoreProvider):
    """Vector store backed by a Weaviate server's REST + GraphQL APIs."""

    provider_name = "weaviate"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str = "",
        class_prefix: str = "Rag",
        timeout: float = 30.0,
        batch_size: int = 500,
    ) -> None:
        super().__init__(http_client, base_url, api_key, timeout, batch_size)
        self._prefix = class_prefix
        self._initialized: set[str] = set()

    def class_name(self, collection_id: str) -> str:
        """Map a collection id to a valid Weaviate class name (``^[A-Z][A-Za-z0-9]*$``)."""
        parts = [p for p in re.split(r"[^A-Za-z0-9]+", f"{self._prefix} {collection_id}") if p]
        name = "".join(p[:1].upper() + p[1:] for p in parts)
        if not name or not name[0].isalpha():
            name = f"C{name}"
        return name[0].upper() + name[1:]

    @staticmethod
    def object_id(collection_id: str, chunk_id: str) -> str:
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{collection_id}:{chunk_id}"))

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def initialize(self, collection_id: str) -> None:
        if collection_id in self._initialized:
            return
        cls = self.class_name(collection_id)
        await self._request("GET", "/v1/meta", "meta")
        existing = await self._request(
            "GET", f"/v1/schema/{cls}", "get_schema", allow_status=(404,)
        )
        if existing.status_code == 404:
            await self._request(
                "POST",
                "/v1/schema",
                "create_schema",
                json={
                    "class": cls,
                    "description": f"Chunks of collection {collection_id}",
                    "vectorizer": "none",
                    "vectorIndexConfig": {"distance": "cosine"},
                    "properties": _PROPERTIES,
                },
                allow_status=(422,),  # created concurrently by another worker
            )
            logger.info("weaviate_class_created", collection_id=collection_id, class_name=cls)
        self._initialized.add(collection_id)

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
        cls = self.class_name(collection_id)
        written: list[str] = []
        for start in range(0, len(chunks), self._batch_size):
            batch = chunks[start : start + self._batch_size]
            objects = [
                {
                    "class": cls,
                    "id": self.object_id(collection_id, chunk.chunk_id),
                    "vector": embedding,
                    "properties": {
                        "content": chunk.text,
                        "chunkId": chunk.chunk_id,
                        "documentId": chunk.document_id,
                        "collectionId": collection_id,
                        "chunkIndex": chunk.chunk_index,
                        "metadata": json.dumps(chunk_to_metadata(chunk)),
                    },
                }
                for chunk, embedding in zip(batch, embeddings[start : start + self._batch_size])
            ]
            try:
                response = await self._request(
                    "POST", "/v1/batch/objects", "add_documents", json={"objects": objects}
                )
            except VectorStoreError as exc:
                raise VectorStoreError(
                    message=exc.message,
                    provider_name=self.provider_name,
                    operation="add_documents",
                    written_ids=written,
                ) from exc

            failed = self._batch_failures(response)
            for index, chunk in enumerate(batch):
                if index not in failed:
                    written.append(chunk.chunk_id)
            if failed:
                raise VectorStoreError(
                    message=f"{len(failed)} of {len(batch)} objects rejected: "
                    f"{next(iter(failed.values()))}",
                    provider_name=self.provider_name,
                    operation="add_documents",
                    written_ids=written,
                )
        return written

    async def similarity_search(
        self,
        collection_id: str,
        query_vector: list[float],
        k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        cls = self.class_name(collection_id)
        client_filters = {
            key: value for key, value in (filters or {}).items() if key not in _PROPERTY_FILTERS
        }
        limit = k * 4 if client_filters else k
        args = {
            "nearVector": {"vector": list(query_vector)},
            "limit": limit,
            "where": build_where(collection_id, filters),
        }
        arg_text = ", ".join(f"{key}: {to_graphql(value)}" for key, value in args.items())
        query = f"{{ Get {{ {cls}({arg_text}) {{ {_RETURN_FIELDS} }} }} }}"

        data = await self._graphql(query, "similarity_search", missing_class_ok=True)
        if data is None:
            return []
        objects = (data.get("Get") or {}).get(cls) or []

        results: list[SearchResult] = []
        for obj in objects:
            metadata = self._decode_metadata(obj.get("metadata"))
            metadata.setdefault("collection_id", obj.get("collectionId", ""))
            metadata.setdefault("document_id", obj.get("documentId", ""))
            if not matches_filters(metadata, client_filters):
                continue
            additional = obj.get("_additional") or {}
            distance = additional.get("distance")
            results.append(
                result_from_record(
                    obj.get("chunkId") or additional.get("id", ""),
                    obj.get("content", ""),
                    metadata,
                    1.0 - float(distance if distance is not None else 1.0),
                    self.provider_name,
                )
            )
        results = keep_collection(results, collection_id)
        results.sort(key=lambda r: r.similarity_score, reverse=True)
        return results[:k]

    async def delete_documents(self, collection_id: str, ids: list[str]) -> None:
        cls = self.class_name(collection_id)
        for chunk_id in ids:
            await self._request(
                "DELETE",
                f"/v1/objects/{cls}/{self.object_id(collection_id, chunk_id)}",
                "delete_documents",
                allow_status=(404,),
            )

    async def delete_by_document(self, collection_id: str, document_id: str) -> int:
        cls = self.class_name(collection_id)
        response = await self._request(
            "DELETE",
            "/v1/batch/objects",
            "delete_by_document",
            json={
                "match": {
                    "class": cls,
                    "where": {
                        "path": ["documentId"],
                        "operator": "Equal",
                        "valueText": document_id,
                    },
                },
                "output": "minimal",
            },
            allow_status=(404, 422),
        )
        if response.status_code >= 400 or not response.content:
            return 0
        data = self._json(response, "delete_by_document", self.provider_name)
        return int(((data or {}).get("results") or {}).get("successful", 0))

    async def get_collection_stats(self, collection_id: str) -> CollectionStats:
        cls = self.class_name(collection_id)
        data = await self._graphql(
            f"{{ Aggregate {{ {cls} {{ meta {{ count }} }} }} }}",
            "get_collection_stats",
            missing_class_ok=True,
        )
        if data is None:
            return CollectionStats(collection_id=collection_id, provider=self.provider_name)
        rows = (data.get("Aggregate") or {}).get(cls) or []
        count = int(((rows[0] if rows else {}).get("meta") or {}).get("count") or 0)

        dimensions = 0
        if count:
            sample = await self._graphql(
                f"{{ Get {{ {cls}(limit: 1) {{ _additional {{ vector }} }} }} }}",
                "get_collection_stats",
            )
            objects = ((sample or {}).get("Get") or {}).get(cls) or []
            vector = ((objects[0] if objects else {}).get("_additional") or {}).get("vector")
            dimensions = len(vector or [])

        return CollectionStats(
            collection_id=collection_id,
            vector_count=count,
            dimensions=dimensions,
            storage_bytes=count * dimensions * 4,
            provider=self.provider_name,
        )

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/v1/meta", "meta")
        except VectorStoreError as exc:
            logger.warning("weaviate_health_check_failed", error=str(exc))
            return False
        return True

    def get_provider_name(self) -> str:
        return self.provider_name

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _graphql(
        self, query: str, operation: str, missing_class_ok: bool = False
    ) -> dict[str, Any] | None:
        """POST a GraphQL query; return ``data`` or ``None`` for an unknown class."""
        response = await self._request("POST", "/v1/graphql", operation, json={"query": query})
        payload = self._json(response, operation, self.provider_name) or {}
        errors = payload.get("errors")
        if errors:
            message = "; ".join(str(e.get("message", e)) for e in errors)
            if missing_class_ok and "Cannot query field" in message:
                return None
            raise VectorStoreError(
                message=f"GraphQL error: {message}",
                provider_name=self.provider_name,
                operation=operation,
            )
        return payload.get("data") or {}

    @staticmethod
    def _batch_failures(response: httpx.Response) -> dict[int, str]:
        """Map batch positions to error messages for rejected objects."""
        try:
            items = response.json()
        except ValueError:
            return {}
        failures: dict[int, str] = {}
        if not isinstance(items, list):
            return failures
        for index, item in enumerate(items):
            errors = ((item or {}).get("result") or {}).get("errors")
            if errors:
                detail = errors.get("error") if isinstance(errors, dict) else errors
                failures[index] = json.dumps(detail)[:200]
        return failures

    @staticmethod
    def _decode_metadata(raw: Any) -> dict[str, Any]:
        if isinstance(raw, dict):
            return dict(raw)
        if isinstance(raw, str) and raw:
            try:
                decoded = json.loads(raw)
            except ValueError:
                return {}
            return decoded if isinstance(decoded, dict) else {}
        return {}
