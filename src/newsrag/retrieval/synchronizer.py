"""
Chunk synchronization: make sure an article has its embedded chunk set.

ensure_chunks is idempotent. An article that already has chunks is left
alone unless forced, in which case its chunk set is replaced as a whole.
Nothing is written until every chunk has been embedded, so a failed or
cancelled run leaves the store exactly as it found it.
"""

import logging
import threading
import weakref
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from newsrag.exceptions import (
    ChunkingCancelled,
    EmbeddingUnavailable,
    InvalidInput,
    NewsRagError,
    NotFound,
    PersistenceFailure,
)
from newsrag.retrieval.embeddings import Embedder
from newsrag.retrieval.splitter import split_text, validate_chunking
from newsrag.store.store import ArticleRecord, ChunkRow, ChunkStore
from newsrag.tracing import traced

logger = logging.getLogger(__name__)

ArticleRef = Union[ArticleRecord, str]


@dataclass
class ChunkResult:
    """Outcome of ensure_chunks for one article."""

    created: int
    """Number of chunks persisted by this call."""

    skipped_existing: bool
    """True when the article already had chunks and nothing was done."""

    errors: list[str] = field(default_factory=list)
    """Per-row insert failures; non-empty only for a partial insert."""


@dataclass
class ArticleOutcome:
    """Per-article line of a bulk chunking report."""

    article_id: str
    ok: bool
    created: int = 0
    skipped_existing: bool = False
    error: Optional[str] = None


@dataclass
class BulkChunkReport:
    """Outcome of ensure_chunks_bulk."""

    outcomes: list[ArticleOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok and not o.skipped_existing)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.ok and o.skipped_existing)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def chunks_created(self) -> int:
        return sum(o.created for o in self.outcomes)


class KeyedLocks:
    """
    One lock per key, created on first use.

    Entries are held weakly: once no caller references a key's lock it is
    dropped, so the registry only holds locks that are in use.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def __call__(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


class ChunkSynchronizer:
    """
    Split, embed and persist article chunks.

    Calls for the same article are serialized by a per-article lock; the
    store's (article_id, chunk_index) unique constraint backs this up across
    processes.

    Example:
        >>> sync = ChunkSynchronizer(store, HashEmbedder())
        >>> sync.ensure_chunks(article)
        ChunkResult(created=4, skipped_existing=False, errors=[])
        >>> sync.ensure_chunks(article)
        ChunkResult(created=0, skipped_existing=True, errors=[])
    """

    def __init__(
        self,
        store: ChunkStore,
        embedder: Embedder,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        retry_wait: float = 1.0,
    ) -> None:
        """
        Initialize the synchronizer.

        Args:
            store: Article/chunk persistence
            embedder: Embedding provider (already wrapped in a fallback if desired)
            chunk_size: Default chunk size (default from settings)
            overlap: Default overlap (default from settings)
            max_concurrency: Concurrent embedding calls per article (default from settings)
            retry_attempts: Attempts per embedding call (default from settings)
            retry_wait: Base of the exponential backoff between attempts, in seconds
        """
        from newsrag.config import settings

        self.store = store
        self.embedder = embedder
        self.chunk_size = settings.chunk_size if chunk_size is None else chunk_size
        self.overlap = settings.chunk_overlap if overlap is None else overlap
        self.max_concurrency = (
            settings.embedding_max_concurrency if max_concurrency is None else max_concurrency
        )
        self.retry_attempts = (
            settings.embedding_retry_attempts if retry_attempts is None else retry_attempts
        )
        self.retry_wait = retry_wait
        self._locks = KeyedLocks()

        validate_chunking(self.chunk_size, self.overlap)
        if self.max_concurrency < 1:
            raise InvalidInput(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        if self.retry_attempts < 1:
            raise InvalidInput(f"retry_attempts must be at least 1, got {self.retry_attempts}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @traced("ensure_chunks")
    def ensure_chunks(
        self,
        article: ArticleRef,
        force: bool = False,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ChunkResult:
        """
        Create the article's chunks unless they already exist.

        Args:
            article: ArticleRecord or article id
            force: Replace an existing chunk set
            chunk_size: Override of the default chunk size
            overlap: Override of the default overlap
            cancel_event: Set it to stop before the next embedding call

        Returns:
            ChunkResult with the number created and whether the call was a no-op

        Raises:
            InvalidInput: Bad chunking parameters or empty article id
            NotFound: Article id does not exist
            EmbeddingUnavailable: An embedding failed (nothing persisted)
            ChunkingCancelled: cancel_event was set (nothing persisted)
            PersistenceFailure: No chunk could be stored
        """
        size = self.chunk_size if chunk_size is None else chunk_size
        lap = self.overlap if overlap is None else overlap
        validate_chunking(size, lap)
        record = self._resolve(article)

        with self._locks(record.id):
            return self._synchronize(record, force, size, lap, cancel_event)

    def ensure_chunks_bulk(
        self,
        articles: Iterable[ArticleRef],
        force: bool = False,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BulkChunkReport:
        """
        Run ensure_chunks over many articles, recording each outcome.

        One article failing never stops the others. Cancellation stops the run
        and marks the report as cancelled.
        """
        report = BulkChunkReport()
        for article in articles:
            article_id = article.id if isinstance(article, ArticleRecord) else str(article)
            try:
                result = self.ensure_chunks(
                    article,
                    force=force,
                    chunk_size=chunk_size,
                    overlap=overlap,
                    cancel_event=cancel_event,
                )
            except ChunkingCancelled as e:
                report.outcomes.append(ArticleOutcome(article_id=article_id, ok=False, error=str(e)))
                report.cancelled = True
                break
            except (NewsRagError, SQLAlchemyError) as e:
                logger.error("Chunking failed for article %s: %s", article_id, e)
                report.outcomes.append(ArticleOutcome(article_id=article_id, ok=False, error=str(e)))
                continue

            report.outcomes.append(
                ArticleOutcome(
                    article_id=article_id,
                    ok=True,
                    created=result.created,
                    skipped_existing=result.skipped_existing,
                    error="; ".join(result.errors) or None,
                )
            )

        logger.info(
            "Bulk chunking finished: %d chunked, %d skipped, %d failed, %d chunks created",
            report.succeeded,
            report.skipped,
            report.failed,
            report.chunks_created,
        )
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, article: ArticleRef) -> ArticleRecord:
        if isinstance(article, ArticleRecord):
            return article
        if not article:
            raise InvalidInput("article id must not be empty")
        record = self.store.get_article(article)
        if record is None:
            raise NotFound(f"Article {article} does not exist")
        return record

    def _synchronize(
        self,
        record: ArticleRecord,
        force: bool,
        chunk_size: int,
        overlap: int,
        cancel_event: Optional[threading.Event],
    ) -> ChunkResult:
        existing = self.store.count_chunks(record.id)
        if existing > 0 and not force:
            logger.debug("Article %s already has %d chunks; skipping", record.id, existing)
            return ChunkResult(created=0, skipped_existing=True)

        texts = split_text(record.content, chunk_size=chunk_size, overlap=overlap)
        if not texts:
            if existing > 0:
                self.store.replace_chunks(record.id, [])
                logger.info("Article %s has no content left; removed %d chunks", record.id, existing)
            return ChunkResult(created=0, skipped_existing=False)

        vectors = self._embed_all(texts, cancel_event)
        rows = [
            ChunkRow(
                article_id=record.id,
                chunk_index=index,
                chunk_text=chunk_text,
                vector_embedding=vector,
            )
            for index, (chunk_text, vector) in enumerate(zip(texts, vectors))
        ]

        if existing > 0:
            logger.info("Replacing %d existing chunks of article %s", existing, record.id)
            report = self.store.replace_chunks(record.id, rows)
        else:
            report = self.store.insert_chunks(rows)
            self.store.update_article_chunk_count(record.id, report.inserted)

        if report.inserted == 0:
            raise PersistenceFailure(
                f"No chunks could be stored for article {record.id}",
                inserted=0,
                errors=report.errors,
            )

        logger.info(
            "Created %d/%d chunks for article %s", report.inserted, len(rows), record.id
        )
        return ChunkResult(created=report.inserted, skipped_existing=False, errors=report.errors)

    def _embed_one(self, text: str) -> list[float]:
        if self.retry_attempts <= 1:
            vector = self.embedder.embed(text)
        else:
            retrying = Retrying(
                retry=retry_if_exception_type(EmbeddingUnavailable),
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=self.retry_wait, max=10),
                reraise=True,
            )
            vector = retrying(self.embedder.embed, text)

        values = [float(x) for x in vector]
        if len(values) != self.embedder.dimension:
            raise EmbeddingUnavailable(
                f"Embedding must have dimension {self.embedder.dimension}, got {len(values)}"
            )
        return values

    def _embed_all(
        self,
        texts: list[str],
        cancel_event: Optional[threading.Event],
    ) -> list[list[float]]:
        total = len(texts)

        def embed_at(position: int) -> list[float]:
            if cancel_event is not None and cancel_event.is_set():
                raise ChunkingCancelled(
                    f"Chunking cancelled after {position} of {total} embeddings"
                )
            return self._embed_one(texts[position])

        if self.max_concurrency == 1 or total == 1:
            return [embed_at(position) for position in range(total)]

        with ThreadPoolExecutor(max_workers=self.max_concurrency) as pool:
            futures = [pool.submit(embed_at, position) for position in range(total)]
            try:
                return [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
