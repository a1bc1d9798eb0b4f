"""
Retrieval façade: article id + question -> most relevant chunk texts.

This is the only entry point the chat assistant calls. It embeds the
question, loads the article's chunks and ranks them by cosine similarity.
"""

import logging
from typing import Optional

from newsrag.exceptions import EmbeddingUnavailable, InvalidInput, NotFound
from newsrag.retrieval.embeddings import Embedder
from newsrag.retrieval.ranker import ScoredChunk, rank
from newsrag.store.store import ChunkStore
from newsrag.tracing import add_span_attributes, traced

logger = logging.getLogger(__name__)


class ChunkRetriever:
    """
    Find the chunks of one article that best match a free-text query.

    With ``degrade_on_error`` set, a query that cannot be embedded yields no
    chunks (and a warning) instead of EmbeddingUnavailable, so a chat answer
    can still be produced without extra context.

    Example:
        >>> retriever = ChunkRetriever(store, embedder)
        >>> retriever.find_relevant_chunks(article_id, "Who won the election?", limit=3)
        ['...', '...', '...']
    """

    def __init__(
        self,
        store: ChunkStore,
        embedder: Embedder,
        default_limit: Optional[int] = None,
        degrade_on_error: Optional[bool] = None,
    ) -> None:
        from newsrag.config import settings

        self.store = store
        self.embedder = embedder
        self.default_limit = (
            settings.retrieval_limit if default_limit is None else default_limit
        )
        self.degrade_on_error = (
            settings.retrieval_degrade_on_error
            if degrade_on_error is None
            else degrade_on_error
        )

    @traced("search_chunks")
    def search(
        self,
        article_id: str,
        query: str,
        limit: Optional[int] = None,
    ) -> list[ScoredChunk]:
        """
        Rank an article's chunks against a query.

        Args:
            article_id: Article to search
            query: Free-text question
            limit: Maximum number of results (default_limit when None)

        Returns:
            Up to ``limit`` ScoredChunk objects, best first

        Raises:
            InvalidInput: Empty article id or blank query
            NotFound: Article does not exist
            EmbeddingUnavailable: Query could not be embedded (unless degrading)
        """
        limit = self.default_limit if limit is None else limit
        if not article_id:
            raise InvalidInput("article id must not be empty")
        if limit <= 0:
            return []
        if not query or not query.strip():
            raise InvalidInput("query must not be empty")

        if self.store.get_article(article_id) is None:
            raise NotFound(f"Article {article_id} does not exist")

        chunks = self.store.load_chunks(article_id)
        if not chunks:
            logger.debug("Article %s has no chunks; nothing to retrieve", article_id)
            return []

        try:
            query_vector = self.embedder.embed(query)
        except EmbeddingUnavailable as e:
            if not self.degrade_on_error:
                raise
            logger.warning(
                "Query embedding failed for article %s; answering without context: %s",
                article_id,
                e,
            )
            return []

        results = rank(query_vector, chunks)[:limit]
        add_span_attributes(
            article_id=article_id,
            chunks_considered=len(chunks),
            chunks_returned=len(results),
        )
        return results

    def find_relevant_chunks(
        self,
        article_id: str,
        query: str,
        limit: Optional[int] = None,
    ) -> list[str]:
        """
        Return the texts of the chunks most similar to the query.

        Args:
            article_id: Article to search
            query: Free-text question
            limit: Maximum number of chunk texts (default_limit when None)

        Returns:
            Chunk texts in descending similarity order, at most ``limit`` long
        """
        return [scored.chunk.chunk_text for scored in self.search(article_id, query, limit)]
