"""Pydantic v2 data models for documents, chunks, search results and answers."""

from ragengine.models.document import (
    Document,
    DocumentChunk,
    IndexingOutcome,
    ProcessingStatus,
)
from ragengine.models.retrieval import (
    AnswerStatus,
    CollectionStats,
    LLMCompletion,
    QueryAnswer,
    QueryOptions,
    QueryRecord,
    SearchResult,
)

__all__ = [
    "AnswerStatus",
    "CollectionStats",
    "Document",
    "DocumentChunk",
    "IndexingOutcome",
    "LLMCompletion",
    "ProcessingStatus",
    "QueryAnswer",
    "QueryOptions",
    "QueryRecord",
    "SearchResult",
]
