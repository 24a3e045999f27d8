"""Vector store implementations.

    InMemoryVectorStore         -- in-process arena with numpy cosine scan.
    ChromaRestVectorStore       -- Chroma server over its REST collection API.
    WeaviateGraphQLVectorStore  -- Weaviate server over REST + GraphQL.
    GuardedVectorStore          -- search rate limiting + per-collection write locks.
"""

from ragengine.providers.vector_store.chroma_rest_provider import ChromaRestVectorStore
from ragengine.providers.vector_store.factory import VECTOR_STORE_BUILDERS, create_vector_store
from ragengine.providers.vector_store.guarded_provider import GuardedVectorStore
from ragengine.providers.vector_store.memory_provider import InMemoryVectorStore
from ragengine.providers.vector_store.weaviate_graphql_provider import WeaviateGraphQLVectorStore

__all__ = [
    "ChromaRestVectorStore",
    "GuardedVectorStore",
    "InMemoryVectorStore",
    "VECTOR_STORE_BUILDERS",
    "WeaviateGraphQLVectorStore",
    "create_vector_store",
]
