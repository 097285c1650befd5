"""Character-window text chunking with soft boundary snapping.

Splits uploaded text into overlapping windows of ``chunk_size`` characters.
When a window ends before the end of the text, its end is pulled back to
the nearest natural boundary found near the tail of the window, preferring
a paragraph break, then a sentence end, then a word gap.  Consecutive
chunks share up to ``chunk_overlap`` characters of context.

:class:`TextChunker` wraps :func:`split_text` and turns the pieces into
:class:`~vectorhub.models.documents.VectorDocument` objects ready for
embedding and storage.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog

from vectorhub.models.documents import VectorDocument
from vectorhub.utils.errors import InvalidRequestError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200

# Boundary snapping never looks further back than this many characters.
_MAX_LOOKBACK = 100

# Separators in priority order.
_SEPARATORS = ("\n\n", ". ", " ")


def split_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """Split *text* into overlapping, whitespace-trimmed chunks.

    Parameters
    ----------
    text:
        The text to split.  Empty input yields an empty list.
    chunk_size:
        Maximum characters per window.  Must be positive.
    chunk_overlap:
        Characters shared between consecutive windows.  Must be
        non-negative.  Values ``>= chunk_size`` are accepted; the window
        then simply advances without overlap.

    Returns
    -------
    list[str]
        Non-empty chunks in document order, each at most ``chunk_size``
        characters long.

    Raises
    ------
    InvalidRequestError
        If ``chunk_size <= 0`` or ``chunk_overlap < 0``.
    """
    if chunk_size <= 0:
        raise InvalidRequestError(
            message=f"chunk_size must be positive, got {chunk_size}",
            details={"chunkSize": ["must be greater than 0"]},
        )
    if chunk_overlap < 0:
        raise InvalidRequestError(
            message=f"chunk_overlap must not be negative, got {chunk_overlap}",
            details={"chunkOverlap": ["must be 0 or greater"]},
        )
    if not text:
        return []

    chunks: list[str] = []
    text_length = len(text)
    lookback = min(chunk_overlap, _MAX_LOOKBACK)
    start = 0

    while start < text_length:
        end = start + chunk_size

        if end < text_length:
            end = _snap_to_boundary(text, start, end, chunk_size, lookback)

        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)

        if end >= text_length:
            break

        next_start = end - chunk_overlap
        # Overlap >= window length would otherwise rewind to (or before)
        # the current start forever.
        if next_start <= start:
            next_start = end
        start = next_start

    return chunks


def _snap_to_boundary(text: str, start: int, end: int, chunk_size: int, lookback: int) -> int:
    """Return the window end pulled back to a separator in the window tail."""
    if lookback <= 0:
        return end

    window = text[start:end]
    for separator in _SEPARATORS:
        index = window.rfind(separator)
        if index > chunk_size - lookback:
            return start + index + 1
    return end


# ---------------------------------------------------------------------------
# Document-level chunker
# ---------------------------------------------------------------------------


class TextChunker:
    """Turns one text into a list of :class:`VectorDocument` chunks.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1000).
    chunk_overlap:
        Characters of overlap between consecutive chunks (default 200).
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap

    def chunk(self, text: str, metadata: dict[str, Any] | None = None) -> list[VectorDocument]:
        """Split *text* and attach ``metadata`` plus chunk position to each piece.

        Every chunk gets a fresh UUID and the metadata keys ``chunk_index``
        and ``total_chunks`` on top of the caller-supplied metadata.
        """
        pieces = split_text(text, self._chunk_size, self._chunk_overlap)
        base_metadata = dict(metadata or {})

        documents = [
            VectorDocument(
                id=str(uuid.uuid4()),
                content=piece,
                metadata={
                    **base_metadata,
                    "chunk_index": index,
                    "total_chunks": len(pieces),
                },
            )
            for index, piece in enumerate(pieces)
        ]

        logger.info(
            "chunking_complete",
            source=base_metadata.get("source") or base_metadata.get("title"),
            chunks=len(documents),
            total_chars=len(text),
            chunk_size=self._chunk_size,
            chunk_overlap=self._chunk_overlap,
        )
        return documents
