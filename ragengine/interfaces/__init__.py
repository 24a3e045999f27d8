"""Abstract provider contracts.  Services depend on these, never on concrete adapters."""

from ragengine.interfaces.document_repository import IDocumentRepository
from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.interfaces.llm_provider import ILLMProvider
from ragengine.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDocumentRepository",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
