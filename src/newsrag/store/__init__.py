"""
Relational storage for articles and embedded chunks.

Components:
    - models: SQLAlchemy ORM tables (Article, ArticleChunk)
    - store: ChunkStore, the narrow persistence boundary used by the pipeline
"""

from newsrag.store.models import Article, ArticleChunk, Base
from newsrag.store.store import (
    ArticleRecord,
    ChunkRow,
    ChunkStore,
    InsertReport,
    StoredChunk,
    create_store,
)

__all__ = [
    "Article",
    "ArticleChunk",
    "ArticleRecord",
    "Base",
    "ChunkRow",
    "ChunkStore",
    "InsertReport",
    "StoredChunk",
    "create_store",
]
