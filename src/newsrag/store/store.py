"""
Article and chunk persistence on top of SQLAlchemy.

ChunkStore is the only component that talks to the database. It exposes
the narrow boundary the chunking pipeline needs (count, delete, batch insert,
atomic replace, chunk-count update, load) and hands plain dataclasses back
to callers so no ORM session ever leaks across an embedding call.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, delete, event, func, select, text, update
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from newsrag.exceptions import InvalidInput, PersistenceFailure
from newsrag.store.models import Article, ArticleChunk, Base

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArticleRecord:
    """The slice of an article the chunking pipeline reads."""

    id: str
    content: str
    chunk_count: int = 0
    title: str = ""


@dataclass(frozen=True)
class ChunkRow:
    """A chunk ready to be inserted."""

    article_id: str
    chunk_index: int
    chunk_text: str
    vector_embedding: list[float]


@dataclass(frozen=True)
class StoredChunk:
    """A persisted chunk as loaded for ranking."""

    chunk_index: int
    chunk_text: str
    vector: list[float]


@dataclass
class InsertReport:
    """Outcome of insert_chunks."""

    inserted: int
    errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors


def _to_record(article: Article) -> ArticleRecord:
    return ArticleRecord(
        id=article.id,
        content=article.content or "",
        chunk_count=article.chunk_count,
        title=article.title or "",
    )


class ChunkStore:
    """
    SQLAlchemy-backed store for articles and chunks.

    Every public method runs in its own short transaction.

    Example:
        >>> store = create_store("sqlite://")
        >>> article = store.add_article("Some long text ...", title="Headline")
        >>> store.count_chunks(article.id)
        0
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )

    def create_tables(self) -> None:
        """Create tables if missing. Idempotent."""
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Commits on success, rolls back and re-raises on error, always closes.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """Check that the database answers."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def get_article(self, article_id: str) -> Optional[ArticleRecord]:
        with self.session_scope() as session:
            article = session.get(Article, article_id)
            return _to_record(article) if article is not None else None

    def add_article(
        self,
        content: str,
        article_id: Optional[str] = None,
        title: str = "",
        link: Optional[str] = None,
    ) -> ArticleRecord:
        """
        Persist a new article.

        Raises:
            PersistenceFailure: If the id or link already exists
        """
        article = Article(content=content, title=title, link=link)
        if article_id:
            article.id = article_id
        try:
            with self.session_scope() as session:
                session.add(article)
                session.flush()
                return _to_record(article)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not save article: {e}") from e

    def delete_article(self, article_id: str) -> bool:
        """Delete an article and, by cascade, its chunks."""
        with self.session_scope() as session:
            article = session.get(Article, article_id)
            if article is None:
                return False
            session.delete(article)
            return True

    def list_article_ids(self, only_unchunked: bool = False) -> list[str]:
        stmt = select(Article.id).order_by(Article.created_at, Article.id)
        if only_unchunked:
            stmt = stmt.where(Article.chunk_count == 0)
        with self.session_scope() as session:
            return list(session.scalars(stmt))

    def update_article_chunk_count(self, article_id: str, count: int) -> bool:
        """
        Write the denormalized chunk count.

        Returns:
            False if the article vanished in the meantime
        """
        with self.session_scope() as session:
            result = session.execute(
                update(Article).where(Article.id == article_id).values(chunk_count=count)
            )
            updated = result.rowcount > 0
        if not updated:
            logger.warning("Article %s disappeared before its chunk count was updated", article_id)
        return updated

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def count_chunks(self, article_id: str) -> int:
        stmt = select(func.count()).select_from(ArticleChunk).where(
            ArticleChunk.article_id == article_id
        )
        with self.session_scope() as session:
            return int(session.scalar(stmt) or 0)

    def delete_chunks(self, article_id: str) -> int:
        """Remove every chunk of an article; returns the number deleted."""
        with self.session_scope() as session:
            result = session.execute(
                delete(ArticleChunk).where(ArticleChunk.article_id == article_id)
            )
            return int(result.rowcount or 0)

    def load_chunks(self, article_id: str) -> list[StoredChunk]:
        """Load an article's chunks ordered by chunk_index."""
        stmt = (
            select(ArticleChunk)
            .where(ArticleChunk.article_id == article_id)
            .order_by(ArticleChunk.chunk_index)
        )
        with self.session_scope() as session:
            return [
                StoredChunk(
                    chunk_index=row.chunk_index,
                    chunk_text=row.chunk_text,
                    vector=list(row.vector_embedding or []),
                )
                for row in session.scalars(stmt)
            ]

    def insert_chunks(self, rows: list[ChunkRow]) -> InsertReport:
        """
        Insert chunk rows in one batch, falling back to one-by-one inserts.

        A uniqueness violation on the batch means another writer already
        chunked the article; it is raised instead of being retried row by row
        so that two chunk sets are never interleaved.

        Returns:
            InsertReport with the number of rows persisted and per-row errors

        Raises:
            PersistenceFailure: On a (article_id, chunk_index) conflict or a
                missing article
        """
        if not rows:
            return InsertReport(inserted=0)

        try:
            with self.session_scope() as session:
                session.add_all([self._to_orm(row) for row in rows])
            return InsertReport(inserted=len(rows))
        except IntegrityError as e:
            raise PersistenceFailure(
                f"Chunks for article {rows[0].article_id} conflict with existing rows "
                f"or the article no longer exists: {e.orig}"
            ) from e
        except SQLAlchemyError as e:
            logger.warning(
                "Batch insert of %d chunks failed (%s); inserting one by one",
                len(rows),
                e,
            )

        return self._insert_one_by_one(rows)

    def replace_chunks(self, article_id: str, rows: list[ChunkRow]) -> InsertReport:
        """
        Swap an article's chunk set and chunk count in a single transaction.

        If the batch is rejected for a conflict the transaction rolls back and
        the previous chunks and count stay as they were. Any other database
        error falls back to delete, one-by-one insert and a count of what
        actually landed.

        Returns:
            InsertReport with the number of rows persisted and per-row errors

        Raises:
            PersistenceFailure: On a (article_id, chunk_index) conflict or a
                missing article; nothing is changed
        """
        try:
            with self.session_scope() as session:
                session.execute(delete(ArticleChunk).where(ArticleChunk.article_id == article_id))
                session.add_all([self._to_orm(row) for row in rows])
                session.flush()
                session.execute(
                    update(Article).where(Article.id == article_id).values(chunk_count=len(rows))
                )
            return InsertReport(inserted=len(rows))
        except IntegrityError as e:
            raise PersistenceFailure(
                f"Replacement chunks for article {article_id} conflict with existing rows "
                f"or the article no longer exists: {e.orig}"
            ) from e
        except SQLAlchemyError as e:
            logger.warning(
                "Replacing the %d chunks of article %s failed (%s); retrying row by row",
                len(rows),
                article_id,
                e,
            )

        self.delete_chunks(article_id)
        report = self._insert_one_by_one(rows)
        self.update_article_chunk_count(article_id, self.count_chunks(article_id))
        return report

    def _insert_one_by_one(self, rows: list[ChunkRow]) -> InsertReport:
        report = InsertReport(inserted=0)
        for row in rows:
            try:
                with self.session_scope() as session:
                    session.add(self._to_orm(row))
                report.inserted += 1
            except SQLAlchemyError as e:
                message = f"chunk {row.chunk_index}: {e}"
                logger.error("Failed to insert chunk for article %s: %s", row.article_id, message)
                report.errors.append(message)
        return report

    @staticmethod
    def _to_orm(row: ChunkRow) -> ArticleChunk:
        return ArticleChunk(
            article_id=row.article_id,
            chunk_index=row.chunk_index,
            chunk_text=row.chunk_text,
            vector_embedding=list(row.vector_embedding),
        )


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(database_url: str) -> Engine:
    """
    Build an engine, with SQLite specifics handled.

    In-memory SQLite databases share a single connection so every session
    sees the same data; file databases get their parent directory created.
    """
    try:
        url = make_url(database_url)
    except ArgumentError as e:
        raise InvalidInput(f"Invalid database URL: {database_url!r}") from e

    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if not url.database or url.database == ":memory:":
        kwargs["poolclass"] = StaticPool
    else:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_store(database_url: str) -> ChunkStore:
    """Create a ChunkStore and make sure its tables exist."""
    store = ChunkStore(create_engine_for_url(database_url))
    store.create_tables()
    return store
