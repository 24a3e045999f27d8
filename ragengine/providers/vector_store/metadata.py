"""Chunk <-> backend record conversion shared by every vector store.

Remote backends only accept flat scalar metadata, so lists are joined with
commas and ``None`` values are dropped.  The ``collection_id`` is always
written into metadata so results can be re-checked for collection isolation
on the way back out.
"""

from __future__ import annotations

from typing import Any

from ragengine.models.document import DocumentChunk
from ragengine.models.retrieval import SearchResult
from ragengine.utils.similarity import clamp_unit


def chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int | float | bool]:
    """Flatten a chunk into scalar metadata (no ``None``, no lists)."""
    raw: dict[str, Any] = {
        "chunk_id": chunk.chunk_id,
        "document_id": chunk.document_id,
        "collection_id": chunk.collection_id,
        "chunk_index": chunk.chunk_index,
        "document_name": chunk.document_name,
        "page_number": chunk.page_number,
        "section": chunk.section,
        "keywords": ",".join(chunk.keywords) if chunk.keywords else None,
        "word_count": chunk.word_count,
        "char_count": chunk.char_count,
        "token_count": chunk.token_count,
    }
    return {key: value for key, value in raw.items() if value is not None and value != ""}


def result_from_record(
    chunk_id: str,
    text: str,
    metadata: dict[str, Any] | None,
    similarity: float,
    store_name: str,
) -> SearchResult:
    """Build a :class:`SearchResult` from a backend record, clamping the score."""
    meta = dict(metadata or {})
    return SearchResult(
        chunk_id=str(meta.get("chunk_id") or chunk_id),
        document_id=str(meta.get("document_id", "")),
        collection_id=str(meta.get("collection_id", "")),
        text=text or "",
        metadata=meta,
        similarity_score=clamp_unit(similarity),
        store_name=store_name,
        retrieval_method="vector",
    )


def matches_filters(metadata: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    """Return ``True`` if every ``key: value`` in *filters* equals the metadata value."""
    if not filters:
        return True
    return all(metadata.get(key) == value for key, value in filters.items())


def keep_collection(results: list[SearchResult], collection_id: str) -> list[SearchResult]:
    """Drop any result whose metadata names a different collection."""
    return [r for r in results if r.collection_id == collection_id]
