"""Embedding provider implementations.

    OpenAIEmbeddingProvider   -- OpenAI-compatible embeddings API (needs a key).
    HttpEmbeddingProvider     -- any endpoint speaking {model, text} -> {embedding}.
    HashingEmbeddingProvider  -- local feature hashing; offline default and tests.
    GuardedEmbeddingProvider  -- retry/backoff + rate limiting around any of them.
"""

from ragengine.providers.embedding.guarded_provider import GuardedEmbeddingProvider
from ragengine.providers.embedding.hashing_embedding_provider import HashingEmbeddingProvider
from ragengine.providers.embedding.http_embedding_provider import HttpEmbeddingProvider
from ragengine.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = [
    "GuardedEmbeddingProvider",
    "HashingEmbeddingProvider",
    "HttpEmbeddingProvider",
    "OpenAIEmbeddingProvider",
]
