"""
Cosine similarity ranking of stored chunks against a query vector.

The ranker is total: zero vectors and mismatched lengths score 0.0
instead of raising, so a corrupt row can never break retrieval.
"""

from dataclasses import dataclass
from typing import Any, Protocol, Sequence

import numpy as np
from numpy.typing import NDArray


class RankableChunk(Protocol):
    chunk_index: int
    vector: Sequence[float]


@dataclass(frozen=True)
class ScoredChunk:
    """A chunk paired with its similarity to the query."""

    chunk: Any
    score: float


def cosine_similarity(
    a: Sequence[float] | NDArray[Any],
    b: Sequence[float] | NDArray[Any],
) -> float:
    """
    Cosine of the angle between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector is zero, empty,
        non-finite, or the lengths differ
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.ndim != 1 or va.shape != vb.shape or va.size == 0:
        return 0.0

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    if not np.isfinite(score):
        return 0.0
    return score


def rank(
    query_vector: Sequence[float] | NDArray[Any],
    chunks: Sequence[RankableChunk],
) -> list[ScoredChunk]:
    """
    Order chunks by descending cosine similarity to the query.

    Ties are broken by ascending chunk_index. The input sequence is not modified.

    Args:
        query_vector: Embedded query
        chunks: Objects exposing ``chunk_index`` and ``vector``

    Returns:
        ScoredChunk list, best match first
    """
    scored = [
        ScoredChunk(chunk=chunk, score=cosine_similarity(query_vector, chunk.vector))
        for chunk in chunks
    ]
    scored.sort(key=lambda item: (-item.score, item.chunk.chunk_index))
    return scored
