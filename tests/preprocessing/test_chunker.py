"""
Tests for MarkdownChunker.

Tests:
- Overlap derived from chunk size
- Line-range metadata
- Empty / whitespace / null-byte handling
- CJK punctuation separators
"""
import pytest

from vaultrag.preprocessing import MarkdownChunker, TextChunk, chunk_text, SEPARATORS


# ============================================================================
# Configuration
# ============================================================================

class TestChunkerConfiguration:
    """Tests for splitter setup."""

    def test_overlap_is_fifteen_percent_rounded_down(self):
        assert MarkdownChunker(chunk_size=1000).chunk_overlap == 150
        assert MarkdownChunker(chunk_size=10).chunk_overlap == 1
        assert MarkdownChunker(chunk_size=6).chunk_overlap == 0

    def test_separators_are_coarse_to_fine(self):
        assert SEPARATORS[0] == "\n\n"
        assert SEPARATORS[1] == "\n"
        assert SEPARATORS[-1] == ""
        assert "。" in SEPARATORS
        assert "，" in SEPARATORS

    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValueError):
            MarkdownChunker(chunk_size=0)


# ============================================================================
# Line Ranges
# ============================================================================

class TestLineRanges:
    """Tests for startLine / endLine metadata."""

    def test_single_chunk_covers_all_lines(self):
        chunks = MarkdownChunker(chunk_size=1000).split("hello\nworld")

        assert len(chunks) == 1
        assert chunks[0].content == "hello\nworld"
        assert chunks[0].start_line == 1
        assert chunks[0].end_line == 2
        assert chunks[0].metadata == {"startLine": 1, "endLine": 2}

    def test_line_ranges_point_at_chunk_text(self):
        lines = [f"line {i}" for i in range(1, 41)]
        text = "\n".join(lines)

        chunks = MarkdownChunker(chunk_size=50).split(text)

        assert len(chunks) > 1
        for chunk in chunks:
            assert "\n".join(lines[chunk.start_line - 1:chunk.end_line]) == chunk.content
        assert chunks[0].start_line == 1
        assert chunks[-1].end_line == 40

    def test_chunks_cover_document_without_gaps(self):
        text = "\n".join(f"sentence number {i} in the note" for i in range(1, 31))

        chunks = MarkdownChunker(chunk_size=80).split(text)

        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_line <= previous.end_line + 1
            assert current.start_line >= previous.start_line

    def test_ranges_are_one_based_inclusive(self):
        text = "\n\n\nfirst real line\nsecond real line"

        chunks = MarkdownChunker(chunk_size=1000).split(text)

        assert len(chunks) == 1
        assert chunks[0].start_line == 4
        assert chunks[0].end_line == 5


# ============================================================================
# Edge Cases
# ============================================================================

class TestChunkerEdgeCases:
    """Tests for degenerate input."""

    def test_empty_text(self):
        assert MarkdownChunker().split("") == []

    def test_whitespace_only_text(self):
        assert MarkdownChunker().split("  \n\n\t  \n") == []

    def test_null_bytes_are_removed(self):
        chunks = MarkdownChunker().split("ab\x00cd")

        assert [c.content for c in chunks] == ["abcd"]

    def test_only_null_bytes(self):
        assert MarkdownChunker().split("\x00\x00") == []

    def test_cjk_text_respects_chunk_size(self):
        sentence = "向量数据库支持相似度检索。"
        text = sentence * 12

        chunks = MarkdownChunker(chunk_size=30).split(text)

        assert len(chunks) > 1
        assert all(len(c.content) <= 30 for c in chunks)
        assert all(c.start_line == 1 and c.end_line == 1 for c in chunks)

    def test_chunk_text_convenience(self):
        chunks = chunk_text("A short note.", chunk_size=100)

        assert chunks == [TextChunk(content="A short note.", start_line=1, end_line=1)]
