"""Unit tests for retrieval.ranker module."""

import numpy as np
import pytest

from newsrag.retrieval.ranker import ScoredChunk, cosine_similarity, rank
from newsrag.store import StoredChunk


def chunk(index: int, vector: list[float]) -> StoredChunk:
    return StoredChunk(chunk_index=index, chunk_text=f"chunk {index}", vector=vector)


@pytest.mark.unit
class TestCosineSimilarity:
    """Tests for cosine_similarity."""

    def test_identical(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 1.0], [5.0, 5.0]) == pytest.approx(1.0)

    def test_zero_vector_scores_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
        assert cosine_similarity([1.0, 0.0], [0.0, 0.0]) == 0.0

    def test_length_mismatch_scores_zero(self):
        assert cosine_similarity([1.0, 0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_empty_scores_zero(self):
        assert cosine_similarity([], []) == 0.0

    def test_accepts_numpy(self):
        a = np.array([1.0, 0.0], dtype=np.float32)
        assert cosine_similarity(a, [0.7071, 0.7071]) == pytest.approx(0.7071, abs=1e-4)


@pytest.mark.unit
class TestRank:
    """Tests for rank."""

    def test_orders_by_similarity(self):
        """[1,0] is closest to itself, then the diagonal, then [0,1]."""
        chunks = [chunk(0, [1.0, 0.0]), chunk(1, [0.0, 1.0]), chunk(2, [0.7071, 0.7071])]

        ranked = rank([1.0, 0.0], chunks)

        assert [r.chunk.chunk_index for r in ranked] == [0, 2, 1]
        assert ranked[0].score == pytest.approx(1.0)
        assert ranked[1].score == pytest.approx(0.7071, abs=1e-4)
        assert ranked[2].score == pytest.approx(0.0)

    def test_ties_broken_by_chunk_index(self):
        chunks = [chunk(3, [1.0, 0.0]), chunk(1, [2.0, 0.0]), chunk(2, [1.0, 0.0])]

        ranked = rank([1.0, 0.0], chunks)

        assert [r.chunk.chunk_index for r in ranked] == [1, 2, 3]

    def test_negative_scores_rank_last(self):
        chunks = [chunk(0, [-1.0, 0.0]), chunk(1, [0.0, 1.0]), chunk(2, [1.0, 0.1])]

        ranked = rank([1.0, 0.0], chunks)

        assert [r.chunk.chunk_index for r in ranked] == [2, 1, 0]
        assert ranked[-1].score < 0

    def test_corrupt_vectors_do_not_raise(self):
        chunks = [chunk(0, []), chunk(1, [1.0, 0.0, 0.0]), chunk(2, [1.0, 0.0])]

        ranked = rank([1.0, 0.0], chunks)

        assert ranked[0].chunk.chunk_index == 2
        assert [r.score for r in ranked[1:]] == [0.0, 0.0]

    def test_input_not_mutated(self):
        chunks = [chunk(0, [0.0, 1.0]), chunk(1, [1.0, 0.0])]
        original = list(chunks)

        rank([1.0, 0.0], chunks)

        assert chunks == original

    def test_empty(self):
        assert rank([1.0, 0.0], []) == []

    def test_returns_scored_chunks(self):
        stored = chunk(0, [1.0])

        ranked = rank([1.0], [stored])

        assert isinstance(ranked[0], ScoredChunk)
        assert ranked[0].chunk is stored
        assert ranked[0].score == pytest.approx(1.0)
