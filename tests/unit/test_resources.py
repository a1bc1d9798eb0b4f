"""Unit tests for resources module (cached singletons)."""

import pytest

from newsrag.config import get_settings
from newsrag.resources import (
    clear_resource_cache,
    get_embedder,
    get_retriever,
    get_store,
    get_synchronizer,
    initialize_resources,
)
from newsrag.retrieval.embeddings import FallbackEmbedder, HashEmbedder
from newsrag.retrieval.retriever import ChunkRetriever
from newsrag.retrieval.synchronizer import ChunkSynchronizer
from newsrag.store import ChunkStore


@pytest.fixture
def hash_settings(monkeypatch):
    """Point the cached resources at an in-memory store and the hash embedder."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("EMBEDDING_BACKEND", "hash")
    monkeypatch.setenv("EMBEDDING_DIMENSION", "16")
    monkeypatch.setenv("CHUNK_SIZE", "300")
    monkeypatch.setenv("RETRIEVAL_LIMIT", "2")
    get_settings.cache_clear()
    clear_resource_cache()
    yield get_settings()
    clear_resource_cache()
    get_settings.cache_clear()


@pytest.mark.unit
class TestResourceCaching:
    """Tests for lru_cache based resource management."""

    def test_store_cached(self, hash_settings):
        store = get_store()

        assert isinstance(store, ChunkStore)
        assert get_store() is store

    def test_embedder_from_settings(self, hash_settings):
        embedder = get_embedder()

        assert isinstance(embedder, HashEmbedder)
        assert embedder.dimension == 16
        assert get_embedder() is embedder

    def test_best_effort_policy_wraps_provider(self, hash_settings, monkeypatch):
        monkeypatch.setenv("EMBEDDING_BACKEND", "huggingface")
        monkeypatch.setenv("EMBEDDING_FAILURE_POLICY", "best-effort-fallback")
        get_settings.cache_clear()
        clear_resource_cache()

        assert isinstance(get_embedder(), FallbackEmbedder)

    def test_synchronizer_shares_store_and_embedder(self, hash_settings):
        sync = get_synchronizer()

        assert isinstance(sync, ChunkSynchronizer)
        assert sync.store is get_store()
        assert sync.embedder is get_embedder()
        assert sync.chunk_size == 300

    def test_retriever_uses_settings(self, hash_settings):
        retriever = get_retriever()

        assert isinstance(retriever, ChunkRetriever)
        assert retriever.store is get_store()
        assert retriever.default_limit == 2

    def test_clear_resource_cache(self, hash_settings):
        store = get_store()
        retriever = get_retriever()

        clear_resource_cache()

        assert get_store() is not store
        assert get_retriever() is not retriever

    def test_initialize_resources(self, hash_settings):
        status = initialize_resources()

        assert status == {"store": True, "embedder": True}

    def test_initialize_resources_failure(self, hash_settings, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "definitely not a url")
        get_settings.cache_clear()
        clear_resource_cache()

        with pytest.raises(RuntimeError, match="article store"):
            initialize_resources()

    def test_end_to_end_through_resources(self, hash_settings):
        article = get_store().add_article("word " * 200)

        result = get_synchronizer().ensure_chunks(article.id)
        texts = get_retriever().find_relevant_chunks(article.id, "word")

        assert result.created > 1
        assert len(texts) == 2
