"""
Retrieval components for the article chat assistant.

Components:
    - splitter: Split article text into overlapping chunks
    - embeddings: Map text to unit vectors (HuggingFace API, local model, hash fallback)
    - synchronizer: Create and persist an article's embedded chunks idempotently
    - ranker: Cosine similarity ranking
    - retriever: Article id + question -> most relevant chunk texts
"""

from newsrag.retrieval.embeddings import (
    Embedder,
    FallbackEmbedder,
    HashEmbedder,
    HuggingFaceEmbedder,
    LocalEmbedder,
    build_embedder,
)
from newsrag.retrieval.ranker import ScoredChunk, cosine_similarity, rank
from newsrag.retrieval.retriever import ChunkRetriever
from newsrag.retrieval.splitter import split_text
from newsrag.retrieval.synchronizer import BulkChunkReport, ChunkResult, ChunkSynchronizer

__all__ = [
    "BulkChunkReport",
    "ChunkResult",
    "ChunkRetriever",
    "ChunkSynchronizer",
    "Embedder",
    "FallbackEmbedder",
    "HashEmbedder",
    "HuggingFaceEmbedder",
    "LocalEmbedder",
    "ScoredChunk",
    "build_embedder",
    "cosine_similarity",
    "rank",
    "split_text",
]
