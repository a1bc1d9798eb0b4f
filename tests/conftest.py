"""
Pytest configuration and shared fixtures.

Provides common fixtures for:
    - Configuration with test values
    - In-memory article/chunk stores
    - Deterministic fake embedders
    - Sample news article text
"""

import threading
import time
from typing import Callable, Optional

import numpy as np
import pytest
from numpy.typing import NDArray

from newsrag.exceptions import EmbeddingUnavailable
from newsrag.retrieval.embeddings import normalize_vector


# =============================================================================
# Fake Embedders
# =============================================================================

class KeywordEmbedder:
    """
    Deterministic stand-in for a semantic model.

    Each dimension counts one topic keyword, so texts about the same topic
    point in the same direction. Records every call and can be told to fail.
    """

    KEYWORDS = ("election", "inflation", "football", "climate")

    def __init__(
        self,
        fail_first: int = 0,
        fail_after: Optional[int] = None,
        fail_on: Optional[str] = None,
        delay: float = 0.0,
        on_call: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.dimension = len(self.KEYWORDS)
        self.calls: list[str] = []
        self.fail_first = fail_first
        self.fail_after = fail_after
        self.fail_on = fail_on
        self.delay = delay
        self.on_call = on_call
        self._lock = threading.Lock()

    def embed(self, text: str) -> NDArray[np.float32]:
        with self._lock:
            self.calls.append(text)
            call_number = len(self.calls)
        if self.on_call is not None:
            self.on_call(call_number)
        if self.delay:
            time.sleep(self.delay)
        if call_number <= self.fail_first:
            raise EmbeddingUnavailable("provider warming up")
        if self.fail_after is not None and call_number > self.fail_after:
            raise EmbeddingUnavailable("provider went away")
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingUnavailable("provider rejected input")

        lowered = text.lower()
        counts = np.array([lowered.count(k) for k in self.KEYWORDS], dtype=np.float32)
        return normalize_vector(counts)

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]:
        if not texts:
            return np.empty((0, self.dimension), dtype=np.float32)
        return np.vstack([self.embed(t) for t in texts])


class FixedEmbedder:
    """Returns a preset vector per text (or a default) without normalizing."""

    def __init__(self, vectors: dict[str, list[float]], default: list[float]) -> None:
        self.vectors = vectors
        self.default = default
        self.dimension = len(default)
        self.calls: list[str] = []

    def embed(self, text: str) -> NDArray[np.float32]:
        self.calls.append(text)
        return np.asarray(self.vectors.get(text, self.default), dtype=np.float32)

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]:
        return np.vstack([self.embed(t) for t in texts])


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    """Provide a well-behaved keyword embedder."""
    return KeywordEmbedder()


@pytest.fixture
def embedder_factory():
    """Provide the KeywordEmbedder class for tests that need failure modes."""
    return KeywordEmbedder


@pytest.fixture
def fixed_embedder_factory():
    """Provide the FixedEmbedder class."""
    return FixedEmbedder


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def mock_settings(monkeypatch):
    """Provide test settings without requiring .env file."""
    for key, value in {
        "HF_API_KEY": "test-api-key",
        "EMBEDDING_MODEL": "sentence-transformers/all-MiniLM-L6-v2",
        "EMBEDDING_BACKEND": "hash",
        "CHUNK_SIZE": "600",
        "CHUNK_OVERLAP": "60",
        "DATABASE_URL": "sqlite://",
        "ENABLE_TRACING": "false",
    }.items():
        monkeypatch.setenv(key, value)

    from newsrag.config import Settings

    return Settings(_env_file=None)


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def store():
    """Provide an empty in-memory store."""
    from newsrag.store import create_store

    store = create_store("sqlite://")
    yield store
    store.engine.dispose()


@pytest.fixture
def file_store(tmp_path):
    """Provide a store backed by a SQLite file (safe across threads)."""
    from newsrag.store import create_store

    store = create_store(f"sqlite:///{tmp_path / 'news.db'}")
    yield store
    store.engine.dispose()


# =============================================================================
# Sample Data Fixtures
# =============================================================================

ELECTION_PARAGRAPH = (
    "Voters in the northern district turned out in record numbers for the election on Sunday. "
    "Officials said the election ran smoothly despite long queues at several polling stations. "
    "The incumbent mayor conceded shortly after midnight, and her challenger promised a review "
    "of the city budget within his first hundred days. Turnout in the election reached "
    "sixty-eight percent, the highest level in two decades, according to the electoral commission."
)

INFLATION_PARAGRAPH = (
    "Meanwhile the central bank left interest rates unchanged as inflation cooled for a third "
    "consecutive month. Core inflation fell to 2.4 percent, helped by lower energy prices and "
    "weaker demand for imported goods. Analysts warned that services inflation remains sticky "
    "and that wage growth could push prices up again in the spring. The governor said the bank "
    "would keep a close eye on inflation expectations before considering any cut."
)

FOOTBALL_PARAGRAPH = (
    "On Saturday the local football club secured promotion with a two-nil win over its closest "
    "rival. The football ground was sold out for the first time this season, and supporters "
    "celebrated in the streets long after the final whistle. The manager credited the youth "
    "academy for the turnaround and said the football club would invest the extra broadcasting "
    "revenue in a new training centre on the edge of town."
)


@pytest.fixture
def news_article_text() -> str:
    """Provide a three-topic article whose paragraphs exceed 400 characters each."""
    return "\n\n".join([ELECTION_PARAGRAPH, INFLATION_PARAGRAPH, FOOTBALL_PARAGRAPH])


@pytest.fixture
def paragraphs() -> list[str]:
    """Provide the three sample paragraphs separately."""
    return [ELECTION_PARAGRAPH, INFLATION_PARAGRAPH, FOOTBALL_PARAGRAPH]


@pytest.fixture
def article(store, news_article_text):
    """Provide a stored, not yet chunked article."""
    return store.add_article(news_article_text, title="Weekend round-up", link="https://news.example/round-up")


def short_paragraphs(count: int) -> str:
    """Build text that splits into exactly ``count`` chunks at chunk_size=100, overlap=0."""
    return "\n\n".join(
        f"Story part {i}: " + " ".join(["lorem ipsum"] * 6) for i in range(count)
    )


@pytest.fixture
def paragraph_text_factory():
    """Provide short_paragraphs for forced re-chunk scenarios."""
    return short_paragraphs
