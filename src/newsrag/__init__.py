"""
newsrag: retrieval-augmented chat context for a personalized news reader

This package splits aggregated news articles into overlapping chunks,
embeds them, and retrieves the chunks most relevant to a reader's
question so the chat assistant can ground its answer in the article.

Key Components:
    - retrieval: Text splitting, embeddings, chunk synchronization, ranking
    - store: SQLAlchemy persistence for articles and chunks
    - api: FastAPI REST endpoints
    - cli: Typer command-line interface
    - tracing: Arize Phoenix observability integration

Example:
    >>> from newsrag.resources import get_retriever, get_synchronizer
    >>> get_synchronizer().ensure_chunks(article_id)
    >>> get_retriever().find_relevant_chunks(article_id, "What did the central bank decide?")
"""

__version__ = "0.1.0"

from newsrag.config import settings

__all__ = [
    "__version__",
    "settings",
]
