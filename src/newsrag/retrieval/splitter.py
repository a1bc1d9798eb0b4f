"""
Article text splitting with boundary-aware segmentation and overlap.

Splits long article content into ordered chunks:
    - Natural boundaries first (paragraphs, lines, sentences, words)
    - Hard character cuts only when a segment has no whitespace at all
    - The tail of each chunk is prepended to the next one for local context
"""

import logging
import re

from langchain_text_splitters import RecursiveCharacterTextSplitter

from newsrag.exceptions import InvalidInput

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1200
DEFAULT_OVERLAP = 150

# Highest priority first; "" is the hard-cut fallback.
SEPARATORS = [
    "\n\n",  # Paragraph breaks
    "\n",  # Line breaks
    ". ",  # Sentence endings
    "! ",
    "? ",
    " ",  # Words
    "",  # Character-level fallback
]

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace to a single space and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def effective_overlap(chunk_size: int, overlap: int) -> int:
    """
    Clamp overlap to at most half the chunk size.

    Args:
        chunk_size: Target chunk size in characters
        overlap: Requested overlap in characters

    Returns:
        The overlap actually applied
    """
    limit = chunk_size // 2
    if overlap > limit:
        logger.warning(
            "Chunk overlap %d is too large for chunk_size %d; clamping to %d",
            overlap,
            chunk_size,
            limit,
        )
        return limit
    return overlap


def segment_text(content: str, chunk_size: int) -> list[str]:
    """
    Split content into whitespace-normalized pieces of at most chunk_size characters.

    No overlap is applied. Pieces are in reading order and never empty.
    """
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=0,
        length_function=len,
        keep_separator="end",
        strip_whitespace=True,
        is_separator_regex=False,
        separators=SEPARATORS,
    )
    pieces = (normalize_whitespace(piece) for piece in splitter.split_text(content))
    return [piece for piece in pieces if piece]


def validate_chunking(chunk_size: int, overlap: int) -> None:
    """Raise InvalidInput unless chunk_size > 0 and overlap >= 0."""
    if chunk_size <= 0:
        raise InvalidInput(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise InvalidInput(f"overlap must be non-negative, got {overlap}")


def split_text(
    content: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[str]:
    """
    Split article content into overlapping chunks.

    Args:
        content: Full article text (may be empty)
        chunk_size: Maximum size of a chunk before overlap, in characters
        overlap: Characters of the previous chunk prepended to each later chunk

    Returns:
        Ordered list of non-empty chunk texts; empty when content is blank

    Raises:
        InvalidInput: If chunk_size <= 0 or overlap < 0
    """
    validate_chunking(chunk_size, overlap)

    if not content or not content.strip():
        return []

    cleaned = normalize_whitespace(content)
    if len(cleaned) <= chunk_size:
        return [cleaned]

    overlap = effective_overlap(chunk_size, overlap)
    pieces = segment_text(content, chunk_size)

    if overlap == 0 or len(pieces) < 2:
        return pieces

    chunks = [pieces[0]]
    for previous, piece in zip(pieces, pieces[1:]):
        tail = previous[-overlap:]
        chunks.append(f"{tail} {piece}".strip())
    return chunks
