"""
vaultrag Preprocessing Module

Text sanitization and chunking for the indexing pipeline.
"""

from vaultrag.preprocessing.chunker import (
    MarkdownChunker,
    TextChunk,
    chunk_text,
    SEPARATORS,
)
from vaultrag.preprocessing.sanitize import (
    strip_null_bytes,
    strip_markdown,
    embedding_text,
)

__all__ = [
    # Chunking
    "MarkdownChunker",
    "TextChunk",
    "chunk_text",
    "SEPARATORS",

    # Sanitization
    "strip_null_bytes",
    "strip_markdown",
    "embedding_text",
]
