"""
FastAPI application for the newsrag REST API.

Run with:
    uvicorn newsrag.api.main:app --reload

Or use the CLI:
    newsrag serve
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from newsrag import __version__
from newsrag.api.models import (
    ArticleOutcomeSchema,
    ChunkRequest,
    ChunkResponse,
    ErrorResponse,
    HealthResponse,
    RebuildRequest,
    RebuildResponse,
    RelevantChunksRequest,
    RelevantChunksResponse,
    ScoredChunkSchema,
)
from newsrag.config import settings
from newsrag.exceptions import (
    EmbeddingUnavailable,
    InvalidInput,
    NewsRagError,
    NotFound,
    PersistenceFailure,
)
from newsrag.logging_setup import configure_logging
from newsrag.resources import get_retriever, get_store, get_synchronizer, initialize_resources
from newsrag.retrieval.retriever import ChunkRetriever
from newsrag.retrieval.synchronizer import ChunkSynchronizer
from newsrag.store.store import ChunkStore
from newsrag.tracing import setup_tracing

logger = logging.getLogger(__name__)

# Exception class -> (HTTP status, error code); first match wins.
ERROR_STATUS: list[tuple[type[NewsRagError], int, str]] = [
    (InvalidInput, status.HTTP_400_BAD_REQUEST, "invalid_input"),
    (NotFound, status.HTTP_404_NOT_FOUND, "not_found"),
    (EmbeddingUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE, "embedding_unavailable"),
    (PersistenceFailure, status.HTTP_500_INTERNAL_SERVER_ERROR, "persistence_failure"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Configure logging
        - Open the article store and create the embedder (cached)
        - Register tracing if enabled
    """
    configure_logging()
    logger.info("Initializing newsrag resources...")

    try:
        resource_status = initialize_resources()
        logger.info("Resource initialization status: %s", resource_status)
    except Exception as e:
        logger.error("Failed to initialize resources: %s", e)
        raise RuntimeError(f"Startup failed: {e}") from e

    setup_tracing()

    yield

    logger.info("Shutting down newsrag...")


async def newsrag_error_handler(request: Request, exc: NewsRagError) -> JSONResponse:
    """Translate pipeline errors into JSON error responses."""
    for error_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, code = status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"

    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    body = ErrorResponse(error=code, message=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    404: {"model": ErrorResponse, "description": "Article not found"},
    503: {"model": ErrorResponse, "description": "Embedding provider unavailable"},
    500: {"model": ErrorResponse, "description": "Persistence failure"},
}


@router.get("/health", response_model=HealthResponse, tags=["System"])
def health_check(store: ChunkStore = Depends(get_store)) -> HealthResponse:
    """
    Health check endpoint for liveness/readiness probes.

    Returns:
        Health status and database reachability
    """
    database_ok = store.ping()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        version=__version__,
        database=database_ok,
        embedding_backend=settings.embedding_backend,
    )


@router.post(
    "/articles/{article_id}/chunks",
    response_model=ChunkResponse,
    responses=ERROR_RESPONSES,
    tags=["Chunks"],
)
def ensure_article_chunks(
    article_id: str,
    request: ChunkRequest | None = None,
    synchronizer: ChunkSynchronizer = Depends(get_synchronizer),
) -> ChunkResponse:
    """
    Split, embed and store an article's chunks unless they already exist.

    Set ``force`` to replace an existing chunk set.
    """
    request = request or ChunkRequest()
    result = synchronizer.ensure_chunks(
        article_id,
        force=request.force,
        chunk_size=request.chunk_size,
        overlap=request.overlap,
    )
    return ChunkResponse(
        article_id=article_id,
        created=result.created,
        skipped_existing=result.skipped_existing,
        errors=result.errors,
    )


@router.post(
    "/chunks/rebuild",
    response_model=RebuildResponse,
    responses=ERROR_RESPONSES,
    tags=["Chunks"],
)
def rebuild_chunks(
    request: RebuildRequest | None = None,
    store: ChunkStore = Depends(get_store),
    synchronizer: ChunkSynchronizer = Depends(get_synchronizer),
) -> RebuildResponse:
    """
    Chunk every article (or only unchunked ones) and report per-article results.
    """
    request = request or RebuildRequest()
    article_ids = store.list_article_ids(only_unchunked=request.only_unchunked)
    report = synchronizer.ensure_chunks_bulk(article_ids, force=request.force)
    return RebuildResponse(
        succeeded=report.succeeded,
        skipped=report.skipped,
        failed=report.failed,
        chunks_created=report.chunks_created,
        cancelled=report.cancelled,
        outcomes=[
            ArticleOutcomeSchema(
                article_id=o.article_id,
                ok=o.ok,
                created=o.created,
                skipped_existing=o.skipped_existing,
                error=o.error,
            )
            for o in report.outcomes
        ],
    )


@router.post(
    "/articles/{article_id}/relevant-chunks",
    response_model=RelevantChunksResponse,
    responses=ERROR_RESPONSES,
    tags=["Retrieval"],
)
def relevant_chunks(
    article_id: str,
    request: RelevantChunksRequest,
    retriever: ChunkRetriever = Depends(get_retriever),
) -> RelevantChunksResponse:
    """
    Return the article's chunks most similar to the reader's question.

    An article that was never chunked yields an empty list.
    """
    results = retriever.search(article_id, request.query, request.limit)
    return RelevantChunksResponse(
        article_id=article_id,
        chunks=[
            ScoredChunkSchema(
                chunk_index=scored.chunk.chunk_index,
                chunk_text=scored.chunk.chunk_text,
                score=scored.score,
            )
            for scored in results
        ],
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="newsrag",
        description="Chunking, embedding and retrieval for the news chat assistant",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(NewsRagError, newsrag_error_handler)
    app.include_router(router)

    return app


# Create app instance
app = create_app()
