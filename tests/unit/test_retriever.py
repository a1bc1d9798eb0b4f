"""Unit tests for retrieval.retriever module."""

import logging
import math

import pytest

from newsrag.exceptions import EmbeddingUnavailable, InvalidInput, NotFound
from newsrag.retrieval.retriever import ChunkRetriever
from newsrag.store import ChunkRow

# Angle (degrees) of each chunk's vector from the x axis, by chunk_index
ANGLES = [50, 10, 80, 30, 0, 70, 20, 90, 40, 60]


@pytest.fixture
def ten_chunk_article(store):
    """An article with ten chunks whose vectors fan out from [1, 0]."""
    article = store.add_article("Ten paragraph article")
    rows = [
        ChunkRow(
            article_id=article.id,
            chunk_index=i,
            chunk_text=f"paragraph {i}",
            vector_embedding=[math.cos(math.radians(a)), math.sin(math.radians(a))],
        )
        for i, a in enumerate(ANGLES)
    ]
    store.insert_chunks(rows)
    store.update_article_chunk_count(article.id, len(rows))
    return article


@pytest.fixture
def query_embedder(fixed_embedder_factory):
    """Every query embeds to [1, 0]."""
    return fixed_embedder_factory({}, [1.0, 0.0])


@pytest.mark.unit
class TestChunkRetriever:
    """Tests for ChunkRetriever."""

    def test_returns_top_limit(self, store, ten_chunk_article, query_embedder):
        """Ten chunks and limit=3 give exactly the three most similar, best first."""
        retriever = ChunkRetriever(store, query_embedder, default_limit=5)

        texts = retriever.find_relevant_chunks(ten_chunk_article.id, "what happened?", limit=3)

        assert texts == ["paragraph 4", "paragraph 1", "paragraph 6"]

    def test_scores_descending(self, store, ten_chunk_article, query_embedder):
        retriever = ChunkRetriever(store, query_embedder, default_limit=10)

        results = retriever.search(ten_chunk_article.id, "what happened?")

        scores = [r.score for r in results]
        assert len(results) == 10
        assert scores == sorted(scores, reverse=True)
        assert scores[0] == pytest.approx(1.0)

    def test_default_limit(self, store, ten_chunk_article, query_embedder):
        retriever = ChunkRetriever(store, query_embedder, default_limit=4)

        assert len(retriever.find_relevant_chunks(ten_chunk_article.id, "question")) == 4

    def test_limit_larger_than_chunk_count(self, store, ten_chunk_article, query_embedder):
        retriever = ChunkRetriever(store, query_embedder)

        assert len(retriever.find_relevant_chunks(ten_chunk_article.id, "question", limit=50)) == 10

    def test_zero_limit_returns_nothing(self, store, ten_chunk_article, query_embedder):
        retriever = ChunkRetriever(store, query_embedder)

        assert retriever.find_relevant_chunks(ten_chunk_article.id, "question", limit=0) == []
        assert retriever.find_relevant_chunks(ten_chunk_article.id, "question", limit=-1) == []
        assert query_embedder.calls == []

    def test_unchunked_article_returns_nothing(self, store, query_embedder):
        """An article that was never chunked gives no context and no embedding call."""
        article = store.add_article("Not chunked yet")
        retriever = ChunkRetriever(store, query_embedder)

        assert retriever.find_relevant_chunks(article.id, "question") == []
        assert query_embedder.calls == []

    def test_missing_article(self, store, query_embedder):
        with pytest.raises(NotFound):
            ChunkRetriever(store, query_embedder).find_relevant_chunks("ghost", "question")

    def test_empty_article_id(self, store, query_embedder):
        with pytest.raises(InvalidInput):
            ChunkRetriever(store, query_embedder).find_relevant_chunks("", "question")

    def test_blank_query(self, store, ten_chunk_article, query_embedder):
        with pytest.raises(InvalidInput):
            ChunkRetriever(store, query_embedder).find_relevant_chunks(ten_chunk_article.id, "   ")

    def test_embedding_failure_raises(self, store, ten_chunk_article, embedder_factory):
        retriever = ChunkRetriever(store, embedder_factory(fail_first=1), degrade_on_error=False)

        with pytest.raises(EmbeddingUnavailable):
            retriever.find_relevant_chunks(ten_chunk_article.id, "question")

    def test_embedding_failure_degrades(self, store, ten_chunk_article, embedder_factory, caplog):
        retriever = ChunkRetriever(store, embedder_factory(fail_first=1), degrade_on_error=True)

        with caplog.at_level(logging.WARNING, logger="newsrag.retrieval.retriever"):
            result = retriever.find_relevant_chunks(ten_chunk_article.id, "question")

        assert result == []
        assert "without context" in caplog.text

    def test_query_embedded_once(self, store, ten_chunk_article, query_embedder):
        ChunkRetriever(store, query_embedder).search(ten_chunk_article.id, "who won?", limit=3)

        assert query_embedder.calls == ["who won?"]

    def test_topic_ranking(self, store, article, keyword_embedder, paragraphs):
        """The chunk about the asked topic comes first."""
        from newsrag.retrieval.synchronizer import ChunkSynchronizer

        ChunkSynchronizer(store, keyword_embedder, chunk_size=600, overlap=60).ensure_chunks(article)
        retriever = ChunkRetriever(store, keyword_embedder)

        results = retriever.search(article.id, "What did the bank say about inflation?", limit=1)

        assert results[0].chunk.chunk_index == 1
        assert results[0].chunk.chunk_text.endswith(paragraphs[1])
