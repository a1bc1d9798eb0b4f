"""
Error taxonomy for the chunking, embedding and retrieval pipeline.

    - InvalidInput: bad parameters, rejected before any I/O
    - EmbeddingUnavailable: the embedding provider failed or answered garbage
    - PersistenceFailure: the store rejected a write
    - NotFound: the article does not exist
"""


class NewsRagError(Exception):
    """Base class for all newsrag errors."""


class InvalidInput(NewsRagError, ValueError):
    """Malformed parameters (negative chunk size, empty article id, ...)."""


class EmbeddingUnavailable(NewsRagError):
    """The embedding provider could not be reached or returned an unusable response."""


class PersistenceFailure(NewsRagError):
    """
    The store rejected a write.

    When raised after a row-by-row insert fallback, ``inserted`` holds the
    number of rows that made it and ``errors`` the per-row messages.
    """

    def __init__(
        self,
        message: str,
        inserted: int = 0,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.inserted = inserted
        self.errors = list(errors or [])


class NotFound(NewsRagError, LookupError):
    """The requested article does not exist."""


class ChunkingCancelled(NewsRagError):
    """A chunking run was cancelled before all chunks were embedded."""
