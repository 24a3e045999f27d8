"""Local deterministic embedding provider using feature hashing.

Each non-stopword token is hashed (BLAKE2b) to a bucket and a sign, term
frequencies are damped with ``1 + log(tf)``, and the result is
L2-normalized.  No network access and no model download, so it is the
default for offline use and for tests.  Texts sharing vocabulary score a
high cosine similarity; unrelated texts score near zero.
"""

from __future__ import annotations

import hashlib
import math
from collections import Counter

import numpy as np

from ragengine.interfaces.embedding_provider import IEmbeddingProvider
from ragengine.utils.errors import EmbeddingError
from ragengine.utils.text import STOPWORDS, tokenize


class HashingEmbeddingProvider(IEmbeddingProvider):
    """Feature-hashing embedder with a fixed dimension."""

    def __init__(self, dimension: int = 384) -> None:
        if dimension < 8:
            raise ValueError("dimension must be at least 8")
        self._dimension = dimension

    async def embed(self, text: str) -> list[float]:
        tokens = [t.strip("'_-") for t in tokenize(text)]
        features = [t for t in tokens if t and t not in STOPWORDS] or [t for t in tokens if t]
        if not features:
            raise EmbeddingError(
                message="Text has no embeddable tokens",
                provider_name=self.get_provider_name(),
            )

        vector = np.zeros(self._dimension, dtype=np.float64)
        for token, count in Counter(features).items():
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "little") % self._dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign * (1.0 + math.log(count))

        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            # Only possible when hashed signs cancel exactly.
            vector[0] = 1.0
            norm = 1.0
        return (vector / norm).tolist()

    def get_dimension(self) -> int:
        return self._dimension

    def get_model_name(self) -> str:
        return f"feature-hashing-{self._dimension}"

    def get_provider_name(self) -> str:
        return "hashing_embedding"

    def is_available(self) -> bool:
        return True
