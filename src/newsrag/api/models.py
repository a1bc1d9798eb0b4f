"""
Pydantic models for API request and response schemas.

These models provide automatic validation and OpenAPI documentation.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ChunkRequest(BaseModel):
    """Request schema for POST /articles/{article_id}/chunks."""

    force: bool = Field(
        default=False,
        description="Replace existing chunks instead of skipping the article",
    )
    chunk_size: Optional[int] = Field(
        default=None,
        gt=0,
        description="Chunk size in characters (default from settings)",
    )
    overlap: Optional[int] = Field(
        default=None,
        ge=0,
        description="Overlap in characters (default from settings)",
    )


class ChunkResponse(BaseModel):
    """Outcome of chunking one article."""

    article_id: str
    created: int = Field(description="Chunks persisted by this call")
    skipped_existing: bool = Field(
        description="True when the article was already chunked and left alone",
    )
    errors: list[str] = Field(
        default_factory=list,
        description="Per-row insert failures, if any",
    )


class RebuildRequest(BaseModel):
    """Request schema for POST /chunks/rebuild."""

    force: bool = Field(
        default=False,
        description="Re-chunk articles that already have chunks",
    )
    only_unchunked: bool = Field(
        default=False,
        description="Restrict the run to articles with chunk_count == 0",
    )


class ArticleOutcomeSchema(BaseModel):
    article_id: str
    ok: bool
    created: int = 0
    skipped_existing: bool = False
    error: Optional[str] = None


class RebuildResponse(BaseModel):
    """Per-article results of a bulk chunking run."""

    succeeded: int
    skipped: int
    failed: int
    chunks_created: int
    cancelled: bool = False
    outcomes: list[ArticleOutcomeSchema] = Field(default_factory=list)


class RelevantChunksRequest(BaseModel):
    """Request schema for POST /articles/{article_id}/relevant-chunks."""

    query: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Reader question about the article",
        examples=["What did the central bank decide about interest rates?"],
    )
    limit: Optional[int] = Field(
        default=None,
        ge=0,
        le=100,
        description="Maximum number of chunks (default from settings)",
    )


class ScoredChunkSchema(BaseModel):
    chunk_index: int
    chunk_text: str
    score: float = Field(description="Cosine similarity to the query")


class RelevantChunksResponse(BaseModel):
    """Chunks of the article ordered by similarity to the query."""

    article_id: str
    chunks: list[ScoredChunkSchema] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response schema for the /health endpoint."""

    status: str = Field(
        description="Health status",
        examples=["healthy", "degraded"],
    )
    version: str = Field(
        description="API version",
    )
    database: bool = Field(
        description="Whether the article store answers",
    )
    embedding_backend: str = Field(
        description="Configured embedding backend",
    )


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    error: str = Field(
        description="Error code",
        examples=["invalid_input", "not_found", "embedding_unavailable", "persistence_failure"],
    )
    message: str = Field(
        description="Human-readable error message",
    )
