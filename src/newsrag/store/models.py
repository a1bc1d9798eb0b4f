"""
SQLAlchemy ORM models for articles and their embedded chunks.

An Article owns zero or more ArticleChunk rows. Chunks are deleted with
their article (ON DELETE CASCADE plus ORM delete-orphan), and the pair
(article_id, chunk_index) is unique so that two writers racing on the
same article fail instead of producing duplicate chunk sets.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_article_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    """Declarative base for all newsrag tables."""


class TimestampMixin:
    """created_at / updated_at columns maintained in UTC."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )


class Article(Base, TimestampMixin):
    """
    A news article as persisted by the ingestion jobs.

    Attributes:
        id: Opaque identifier
        title: Headline
        link: Canonical source URL (unique when present)
        content: Full article text
        chunk_count: Denormalized number of chunks; 0 means not chunked yet
    """

    __tablename__ = "articles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_article_id)
    title: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    link: Mapped[Optional[str]] = mapped_column(String(1024), unique=True, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    chunk_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    chunks: Mapped[list["ArticleChunk"]] = relationship(
        back_populates="article",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ArticleChunk.chunk_index",
    )


class ArticleChunk(Base):
    """
    One embedded chunk of an article.

    vector_embedding is stored as a JSON array so the schema works on
    SQLite and PostgreSQL alike; ranking happens in Python.
    """

    __tablename__ = "article_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    chunk_text: Mapped[str] = mapped_column(Text, nullable=False)
    vector_embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    article: Mapped[Article] = relationship(back_populates="chunks")

    __table_args__ = (
        UniqueConstraint("article_id", "chunk_index", name="uq_article_chunk_index"),
    )
