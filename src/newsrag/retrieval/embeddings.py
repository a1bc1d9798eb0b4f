"""
Embedding generation for article chunks and chat queries.

Providers:
    - HuggingFaceEmbedder: HuggingFace Inference API (feature-extraction pipeline)
    - LocalEmbedder: in-process sentence-transformers model
    - HashEmbedder: deterministic, non-semantic fallback vectors

Every provider returns L2-normalized float32 vectors of a fixed dimension,
so cosine similarity reduces to a dot product. Providers never retry;
retry and fallback policy belong to the caller (see FallbackEmbedder and
ChunkSynchronizer).
"""

import logging
import math
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

import httpx
import numpy as np
from numpy.typing import NDArray

from newsrag.exceptions import EmbeddingUnavailable, InvalidInput

if TYPE_CHECKING:
    from newsrag.config import Settings

logger = logging.getLogger(__name__)

HF_FEATURE_EXTRACTION_URL = "https://api-inference.huggingface.co/pipeline/feature-extraction"


@runtime_checkable
class Embedder(Protocol):
    """Anything that maps text to a fixed-length unit vector."""

    dimension: int

    def embed(self, text: str) -> NDArray[np.float32]: ...

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]: ...


def normalize_vector(vector: NDArray[Any]) -> NDArray[np.float32]:
    """
    Scale a vector to unit length.

    A zero vector is returned unchanged (as zeros) rather than divided by zero.
    """
    vector = np.asarray(vector, dtype=np.float32)
    norm = float(np.linalg.norm(vector))
    if norm == 0.0 or not math.isfinite(norm):
        return np.zeros_like(vector)
    return (vector / norm).astype(np.float32)


def coerce_embedding(payload: Any, dimension: int) -> NDArray[np.float32]:
    """
    Flatten a provider response into a single 1-D vector.

    Accepted shapes:
        - [f, f, ...]                       flat vector
        - [[f, ...]]                        batch of one
        - [[f, ...], [f, ...], ...]         token embeddings (mean pooled)
        - [[[f, ...], ...]]                 batch of one token matrix (mean pooled)
        - {"embedding": ...}, {"embeddings": ...}, {"data": [{"embedding": ...}]}

    Args:
        payload: Decoded JSON response
        dimension: Expected vector dimension

    Returns:
        Raw (unnormalized) vector of shape (dimension,)

    Raises:
        EmbeddingUnavailable: If the payload cannot be turned into a vector
    """
    if isinstance(payload, dict):
        if "embedding" in payload:
            return coerce_embedding(payload["embedding"], dimension)
        if "embeddings" in payload:
            return coerce_embedding(payload["embeddings"], dimension)
        data = payload.get("data")
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return coerce_embedding(data[0].get("embedding"), dimension)
        error = payload.get("error")
        raise EmbeddingUnavailable(
            f"Embedding provider returned an unusable object: {error or sorted(payload)}"
        )

    try:
        array = np.asarray(payload, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise EmbeddingUnavailable(f"Malformed embedding response: {e}") from e

    if array.ndim == 3 and array.shape[0] == 1:
        array = array[0]
    if array.ndim == 2:
        array = array[0] if array.shape[0] == 1 else array.mean(axis=0)
    if array.ndim != 1 or array.size == 0:
        raise EmbeddingUnavailable(
            f"Unexpected embedding shape {array.shape} from provider"
        )
    if array.shape[0] != dimension:
        raise EmbeddingUnavailable(
            f"Embedding must have dimension {dimension}, got {array.shape[0]}"
        )
    if not np.all(np.isfinite(array)):
        raise EmbeddingUnavailable("Embedding contains non-finite values")
    return array


def truncate_input(text: str, max_chars: int) -> str:
    """Cut text to the model's character budget, logging when it happens."""
    if len(text) <= max_chars:
        return text
    logger.info(
        "Truncating embedding input from %d to %d characters", len(text), max_chars
    )
    return text[:max_chars]


def _positive_or_default(name: str, value: Optional[int], default: int) -> int:
    """Use value unless it is None; either way it must be at least 1."""
    chosen = default if value is None else value
    if chosen < 1:
        raise InvalidInput(f"{name} must be at least 1, got {chosen}")
    return chosen


def _stack(vectors: list[NDArray[np.float32]], dimension: int) -> NDArray[np.float32]:
    if not vectors:
        return np.empty((0, dimension), dtype=np.float32)
    return np.vstack(vectors).astype(np.float32)


class HuggingFaceEmbedder:
    """
    Generate embeddings using the HuggingFace Inference API.

    One request per text. Transport, HTTP and decoding errors are all
    reported as EmbeddingUnavailable.

    Example:
        >>> embedder = HuggingFaceEmbedder(api_key="hf_...")
        >>> embedder.embed("Markets rallied on Friday").shape
        (384,)
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        dimension: Optional[int] = None,
        max_chars: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the embedder.

        Args:
            model: HuggingFace model ID (default from settings)
            api_key: HuggingFace API key (default from settings)
            dimension: Expected vector dimension (default from settings)
            max_chars: Input character budget (default from settings)
            timeout: Request timeout in seconds (default from settings)
        """
        from newsrag.config import settings

        self.model = model or settings.embedding_model
        self.api_key = api_key if api_key is not None else settings.hf_api_key_value
        self.dimension = _positive_or_default("dimension", dimension, settings.embedding_dimension)
        self.max_chars = _positive_or_default("max_chars", max_chars, settings.embedding_max_chars)
        self.timeout = settings.embedding_timeout if timeout is None else timeout
        self.base_url = HF_FEATURE_EXTRACTION_URL

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.model}"

    def _request(self, text: str) -> tuple[dict[str, str], dict[str, Any]]:
        if not self.api_key:
            raise EmbeddingUnavailable("No HuggingFace API key configured")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"inputs": truncate_input(text, self.max_chars)}
        return headers, payload

    def _parse(self, response: httpx.Response) -> NDArray[np.float32]:
        try:
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise EmbeddingUnavailable(
                f"Embedding provider returned HTTP {e.response.status_code}"
            ) from e
        except ValueError as e:
            raise EmbeddingUnavailable("Embedding provider returned invalid JSON") from e
        return normalize_vector(coerce_embedding(body, self.dimension))

    def embed(self, text: str) -> NDArray[np.float32]:
        """
        Embed a single text.

        Args:
            text: Text to embed (truncated to max_chars)

        Returns:
            Unit vector of shape (dimension,)

        Raises:
            EmbeddingUnavailable: On missing credentials, network or HTTP errors,
                or a response that is not a vector of the expected dimension
        """
        headers, payload = self._request(text)
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise EmbeddingUnavailable(f"Embedding provider unreachable: {e}") from e
        return self._parse(response)

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]:
        """
        Embed texts one request at a time, preserving order.

        Returns:
            Array of shape (len(texts), dimension)
        """
        return _stack([self.embed(text) for text in texts], self.dimension)


class LocalEmbedder:
    """
    Generate embeddings with a local sentence-transformers model.

    Requires the ``local`` extra (sentence-transformers).
    """

    def __init__(
        self,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        max_chars: Optional[int] = None,
    ) -> None:
        from sentence_transformers import SentenceTransformer

        from newsrag.config import settings

        self.model_name = model or settings.embedding_model
        self.dimension = _positive_or_default("dimension", dimension, settings.embedding_dimension)
        self.max_chars = _positive_or_default("max_chars", max_chars, settings.embedding_max_chars)
        self.model = SentenceTransformer(self.model_name)

    def embed(self, text: str) -> NDArray[np.float32]:
        try:
            raw = self.model.encode(
                truncate_input(text, self.max_chars),
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingUnavailable(f"Local embedding model failed: {e}") from e
        return normalize_vector(coerce_embedding(raw, self.dimension))

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]:
        return _stack([self.embed(text) for text in texts], self.dimension)


class HashEmbedder:
    """
    Deterministic character-code embedding.

    Accumulates ``ord(c) / 255`` into slot ``i % dimension`` and normalizes.
    Works offline and never fails, but carries no semantic meaning: retrieval
    quality with these vectors is close to arbitrary.
    """

    def __init__(self, dimension: Optional[int] = None) -> None:
        from newsrag.config import settings

        self.dimension = _positive_or_default("dimension", dimension, settings.embedding_dimension)

    def embed(self, text: str) -> NDArray[np.float32]:
        vector = np.zeros(self.dimension, dtype=np.float64)
        if text:
            codes = np.fromiter((ord(c) for c in text), dtype=np.float64, count=len(text))
            slots = np.arange(len(text)) % self.dimension
            np.add.at(vector, slots, codes / 255.0)
        return normalize_vector(vector)

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]:
        return _stack([self.embed(text) for text in texts], self.dimension)


class FallbackEmbedder:
    """
    Best-effort embedding policy.

    Delegates to ``primary`` and substitutes the ``fallback`` vector when the
    primary provider raises EmbeddingUnavailable. Callers get lower quality
    vectors instead of an error.
    """

    def __init__(self, primary: Embedder, fallback: Embedder) -> None:
        if primary.dimension != fallback.dimension:
            raise InvalidInput(
                f"Fallback dimension {fallback.dimension} does not match "
                f"primary dimension {primary.dimension}"
            )
        self.primary = primary
        self.fallback = fallback
        self.dimension = primary.dimension

    def embed(self, text: str) -> NDArray[np.float32]:
        try:
            return self.primary.embed(text)
        except EmbeddingUnavailable as e:
            logger.warning("Embedding provider unavailable, using fallback vector: %s", e)
            return self.fallback.embed(text)

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]:
        return _stack([self.embed(text) for text in texts], self.dimension)


def build_embedder(config: "Settings") -> Embedder:
    """
    Create the embedder described by the configuration.

    Args:
        config: Application settings

    Returns:
        Embedder honoring embedding_backend and embedding_failure_policy
    """
    primary: Embedder
    if config.embedding_backend == "hash":
        return HashEmbedder(dimension=config.embedding_dimension)
    if config.embedding_backend == "local":
        primary = LocalEmbedder(
            model=config.embedding_model,
            dimension=config.embedding_dimension,
            max_chars=config.embedding_max_chars,
        )
    else:
        primary = HuggingFaceEmbedder(
            model=config.embedding_model,
            api_key=config.hf_api_key_value or "",
            dimension=config.embedding_dimension,
            max_chars=config.embedding_max_chars,
            timeout=config.embedding_timeout,
        )

    if config.best_effort_embeddings:
        return FallbackEmbedder(primary, HashEmbedder(dimension=config.embedding_dimension))
    return primary
