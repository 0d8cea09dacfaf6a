"""
Markdown Chunker
Splits a document into overlapping windows and records the line span of each.
"""
from dataclasses import dataclass
from typing import Dict, List
import math

from langchain_text_splitters import RecursiveCharacterTextSplitter

from vaultrag.preprocessing.sanitize import strip_null_bytes

# Coarse to fine. Covers latin and CJK punctuation before the per-character fallback.
SEPARATORS: List[str] = [
    "\n\n",
    "\n",
    ".",
    ",",
    " ",
    "​",  # zero-width space
    "，",  # fullwidth comma
    "、",  # ideographic comma
    "．",  # fullwidth full stop
    "。",  # ideographic full stop
    "",
]

OVERLAP_RATIO = 0.15


@dataclass
class TextChunk:
    content: str
    start_line: int
    end_line: int

    @property
    def metadata(self) -> Dict[str, int]:
        return {"startLine": self.start_line, "endLine": self.end_line}


class MarkdownChunker:
    def __init__(self, chunk_size: int = 1000):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.chunk_overlap = math.floor(chunk_size * OVERLAP_RATIO)
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            separators=SEPARATORS,
            length_function=len,
            add_start_index=True,
        )

    def split(self, text: str) -> List[TextChunk]:
        """
        Split text into chunks with 1-based inclusive line ranges.

        Chunks that are empty or whitespace-only after null-byte removal
        are dropped.
        """
        text = strip_null_bytes(text)
        if not text.strip():
            return []

        chunks: List[TextChunk] = []
        search_from = 0
        for doc in self._splitter.create_documents([text]):
            content = doc.page_content
            if not content.strip():
                continue

            start = doc.metadata.get("start_index", -1)
            if start is None or start < 0:
                start = text.find(content, search_from)
                if start < 0:
                    start = text.find(content)
            if start < 0:
                start = search_from
            search_from = start + 1

            start_line = text.count("\n", 0, start) + 1
            end_line = start_line + content.count("\n")
            chunks.append(TextChunk(content=content, start_line=start_line, end_line=end_line))
        return chunks


def chunk_text(text: str, chunk_size: int = 1000) -> List[TextChunk]:
    """Convenience wrapper around MarkdownChunker."""
    return MarkdownChunker(chunk_size=chunk_size).split(text)
