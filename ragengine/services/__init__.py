"""Pipelines and the engine facade."""

from ragengine.services.chunker import TextChunker
from ragengine.services.engine import RAGEngine, caller_scope
from ragengine.services.indexing_service import IndexingService
from ragengine.services.query_service import QueryService

__all__ = [
    "IndexingService",
    "QueryService",
    "RAGEngine",
    "TextChunker",
    "caller_scope",
]
