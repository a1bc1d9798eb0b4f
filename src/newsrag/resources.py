"""
Process-wide wiring of the store, embedder and pipeline components.

Library classes take their dependencies as constructor arguments; this
module is where the CLI and the API server build them once from settings.
Uses the @lru_cache pattern (same as config.get_settings) so each resource
is created once per process and can be reset in tests.

Usage:
    # In API handlers or CLI commands
    retriever = get_retriever()

    # In API startup (explicit initialization)
    status = initialize_resources()

    # In tests (reset cache)
    clear_resource_cache()
"""

import logging
from functools import lru_cache

from newsrag.config import get_settings
from newsrag.retrieval.embeddings import Embedder, build_embedder
from newsrag.retrieval.retriever import ChunkRetriever
from newsrag.retrieval.synchronizer import ChunkSynchronizer
from newsrag.store.store import ChunkStore, create_store

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_store() -> ChunkStore:
    """Get or create the article/chunk store for settings.database_url."""
    config = get_settings()
    logger.info("Opening article store at %s", config.database_url)
    return create_store(config.database_url)


@lru_cache(maxsize=1)
def get_embedder() -> Embedder:
    """Get or create the configured embedder."""
    config = get_settings()
    logger.info(
        "Initializing %s embedder for model %s (failure policy: %s)",
        config.embedding_backend,
        config.embedding_model,
        config.embedding_failure_policy,
    )
    return build_embedder(config)


@lru_cache(maxsize=1)
def get_synchronizer() -> ChunkSynchronizer:
    """Get or create the chunk synchronizer wired to the shared store and embedder."""
    config = get_settings()
    return ChunkSynchronizer(
        store=get_store(),
        embedder=get_embedder(),
        chunk_size=config.chunk_size,
        overlap=config.chunk_overlap,
        max_concurrency=config.embedding_max_concurrency,
        retry_attempts=config.embedding_retry_attempts,
    )


@lru_cache(maxsize=1)
def get_retriever() -> ChunkRetriever:
    """Get or create the retrieval façade."""
    config = get_settings()
    return ChunkRetriever(
        store=get_store(),
        embedder=get_embedder(),
        default_limit=config.retrieval_limit,
        degrade_on_error=config.retrieval_degrade_on_error,
    )


def initialize_resources() -> dict[str, bool]:
    """
    Eagerly create all resources.

    Called at API server startup; the CLI lets resources load lazily.

    Returns:
        dict: "store" (database reachable) and "embedder" (embedder created)

    Raises:
        RuntimeError: If a resource cannot be created
    """
    status = {}

    try:
        status["store"] = get_store().ping()
    except Exception as e:
        raise RuntimeError(f"Failed to open article store: {e}") from e

    try:
        status["embedder"] = get_embedder() is not None
    except Exception as e:
        raise RuntimeError(f"Failed to initialize embedder: {e}") from e

    return status


def clear_resource_cache() -> None:
    """
    Clear all cached resources.

    Used in tests to reset state between test cases.
    """
    get_retriever.cache_clear()
    get_synchronizer.cache_clear()
    get_embedder.cache_clear()
    get_store.cache_clear()
    logger.debug("Resource cache cleared")
