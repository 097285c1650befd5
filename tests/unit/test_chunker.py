"""Unit tests for the text chunker."""

from __future__ import annotations

import pytest

from vectorhub.services.chunker import TextChunker, split_text
from vectorhub.utils.errors import InvalidRequestError


# ======================================================================
# split_text
# ======================================================================


class TestSplitText:
    def test_empty_text_returns_empty_list(self) -> None:
        assert split_text("", 100, 10) == []

    def test_whitespace_only_text_returns_empty_list(self) -> None:
        assert split_text("     ", 10, 2) == []

    def test_short_text_is_single_chunk(self) -> None:
        assert split_text("  hello world  ", 100, 10) == ["hello world"]

    def test_long_text_produces_multiple_chunks(self) -> None:
        text = "word " * 40
        chunks = split_text(text, 50, 10)
        assert len(chunks) > 1
        assert all(len(c) <= 50 for c in chunks)
        assert all(c for c in chunks)

    def test_consecutive_chunks_share_overlap(self) -> None:
        chunks = split_text("abcdefghijklmnopqrst", 10, 3)
        assert chunks == ["abcdefghij", "hijklmnopq", "opqrst"]
        assert chunks[0][-3:] == chunks[1][:3]

    def test_zero_overlap_cuts_exact_windows(self) -> None:
        assert split_text("abcdefghij", 4, 0) == ["abcd", "efgh", "ij"]

    def test_snaps_to_sentence_boundary(self) -> None:
        text = "First sentence. Second sentence is here."
        chunks = split_text(text, 20, 10)
        assert chunks[0] == "First sentence."

    def test_prefers_paragraph_break(self) -> None:
        text = "Alpha beta gamma.\n\nDelta epsilon zeta eta theta"
        chunks = split_text(text, 24, 10)
        assert chunks[0] == "Alpha beta gamma."

    def test_overlap_not_smaller_than_size_still_terminates(self) -> None:
        text = "abcdefghij" * 10
        chunks = split_text(text, 10, 20)
        assert len(chunks) == 10
        assert "".join(chunks) == text

    def test_overlap_equal_to_size_advances(self) -> None:
        chunks = split_text("x" * 35, 10, 10)
        assert chunks == ["x" * 10, "x" * 10, "x" * 10, "x" * 5]

    def test_non_positive_chunk_size_raises(self) -> None:
        with pytest.raises(InvalidRequestError) as exc_info:
            split_text("some text", 0, 0)
        assert "chunkSize" in exc_info.value.details

    def test_negative_overlap_raises(self) -> None:
        with pytest.raises(InvalidRequestError) as exc_info:
            split_text("some text", 10, -1)
        assert "chunkOverlap" in exc_info.value.details


# ======================================================================
# TextChunker
# ======================================================================


class TestTextChunker:
    def test_chunk_attaches_position_metadata(self) -> None:
        chunker = TextChunker(chunk_size=10, chunk_overlap=0)
        docs = chunker.chunk("abcdefghijklmnopqrstuvwxy", {"source": "notes.txt"})

        assert len(docs) == 3
        for index, doc in enumerate(docs):
            assert doc.metadata["chunk_index"] == index
            assert doc.metadata["total_chunks"] == 3
            assert doc.metadata["source"] == "notes.txt"

    def test_chunk_ids_are_unique(self) -> None:
        docs = TextChunker(chunk_size=5, chunk_overlap=0).chunk("a" * 30)
        ids = [d.id for d in docs]
        assert len(set(ids)) == len(ids)

    def test_chunk_does_not_mutate_caller_metadata(self) -> None:
        metadata = {"title": "Guide"}
        TextChunker(chunk_size=5, chunk_overlap=0).chunk("a" * 12, metadata)
        assert metadata == {"title": "Guide"}

    def test_chunk_empty_text(self) -> None:
        assert TextChunker().chunk("") == []

    def test_invalid_size_propagates(self) -> None:
        with pytest.raises(InvalidRequestError):
            TextChunker(chunk_size=-5).chunk("text")
