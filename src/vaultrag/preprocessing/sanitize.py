"""
Text sanitization for ingestion and embedding input.

Null bytes are removed once when a document is read (PostgreSQL rejects them
in text columns). Markdown syntax is removed only from the text handed to the
embedding provider; the stored chunk keeps its raw markdown.
"""
import re

# Ordered: block constructs first, then inline ones.
_MARKDOWN_PATTERNS = [
    (re.compile(r"^```[^\n]*$", re.MULTILINE), ""),             # code fences
    (re.compile(r"^\s{0,3}#{1,6}\s+", re.MULTILINE), ""),         # headings
    (re.compile(r"^\s{0,3}>\s?", re.MULTILINE), ""),              # blockquotes
    (re.compile(r"^\s*[-*+]\s+\[[ xX]\]\s+", re.MULTILINE), ""),  # task items
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),              # bullets
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),              # numbered lists
    (re.compile(r"^\s*([-*_]\s*){3,}$", re.MULTILINE), ""),       # horizontal rules
    (re.compile(r"<[^>\n]+>"), ""),                               # html tags
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),               # images
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),                # links
    (re.compile(r"!?\[\[([^\]|]+)\|([^\]]+)\]\]"), r"\2"),        # aliased wikilinks
    (re.compile(r"!?\[\[([^\]]+)\]\]"), r"\1"),                   # wikilinks
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),                     # bold
    (re.compile(r"\*(\S.*?)\*"), r"\1"),                          # italics
    (re.compile(r"(?<!\w)_(\S.*?)_(?!\w)"), r"\1"),
    (re.compile(r"~~(.+?)~~"), r"\1"),                            # strikethrough
    (re.compile(r"==(.+?)=="), r"\1"),                            # highlights
    (re.compile(r"`([^`]+)`"), r"\1"),                            # inline code
]


def strip_null_bytes(text: str) -> str:
    return text.replace("\x00", "")


def strip_markdown(text: str) -> str:
    """Reduce markdown to plain text suitable for embedding."""
    for pattern, replacement in _MARKDOWN_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def embedding_text(content: str) -> str:
    """Text sent to the provider for a chunk. Empty when nothing embeddable is left."""
    return strip_null_bytes(strip_markdown(content)).strip()
