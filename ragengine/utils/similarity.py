"""Vector similarity helpers backed by numpy."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``.

    A zero-magnitude vector has no direction, so its similarity to anything
    is 0.0.  Vectors of different length raise ``ValueError``.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape[0]} != {vb.shape[0]}")
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def cosine_similarity_matrix(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against every row of *matrix*.

    Rows with zero magnitude score 0.0.
    """
    q = np.asarray(query, dtype=np.float64)
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    if matrix.shape[1] != q.shape[0]:
        raise ValueError(f"Dimension mismatch: {q.shape[0]} != {matrix.shape[1]}")
    q_norm = float(np.linalg.norm(q))
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    dots = matrix @ q
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    nonzero = denom > 0
    scores[nonzero] = dots[nonzero] / denom[nonzero]
    return scores


def clamp_unit(value: float) -> float:
    """Clamp *value* into [0.0, 1.0]."""
    return max(0.0, min(1.0, float(value)))
