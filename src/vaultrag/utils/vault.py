"""
Document stores.

The indexer only needs to list documents with their modification times, read
them, check they still exist and look up their tags. VaultDocumentStore does
this for a directory of markdown notes.
"""
import re
from pathlib import Path
from typing import Any, List, Set

import yaml

from vaultrag.core.exceptions import DocumentReadError
from vaultrag.core.logging import get_logger
from vaultrag.schema.retrieval import DocumentInfo

logger = get_logger(__name__)

_FRONTMATTER = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)
_INLINE_TAG = re.compile(r"(?<![\w#&/])#((?:(?!\d)\w)[\w/-]*)")
_CODE_SPAN = re.compile(r"```.*?```|`[^`\n]*`", re.DOTALL)


def normalize_tag(tag: str) -> str:
    return tag.strip().lstrip("#").lower()


class DocumentStore:
    """Protocol for the host document store."""

    def list_documents(self) -> List[DocumentInfo]:
        raise NotImplementedError

    def read(self, path: str) -> str:
        raise NotImplementedError

    def exists(self, path: str) -> bool:
        raise NotImplementedError

    def tags(self, path: str) -> Set[str]:
        raise NotImplementedError

    def documents_with_tag(self, tag: str) -> List[str]:
        """Paths of documents declaring `tag` (leading # optional)."""
        wanted = normalize_tag(tag)
        matches = []
        for doc in self.list_documents():
            try:
                if wanted in self.tags(doc.path):
                    matches.append(doc.path)
            except DocumentReadError as e:
                logger.warning("tag_lookup_failed", path=doc.path, error=str(e))
        return matches


def parse_frontmatter(text: str) -> dict:
    match = _FRONTMATTER.match(text)
    if not match:
        return {}
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}
    return data if isinstance(data, dict) else {}


def _frontmatter_tags(value: Any) -> Set[str]:
    if value is None:
        return set()
    if isinstance(value, str):
        items = re.split(r"[,\s]+", value)
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v is not None]
    else:
        items = [str(value)]
    return {normalize_tag(item) for item in items if normalize_tag(item)}


def extract_tags(text: str) -> Set[str]:
    """Tags from YAML front matter (`tags:` / `tag:`) plus inline `#tag` tokens."""
    frontmatter = parse_frontmatter(text)
    tags = _frontmatter_tags(frontmatter.get("tags")) | _frontmatter_tags(frontmatter.get("tag"))

    body = _FRONTMATTER.sub("", text, count=1)
    body = _CODE_SPAN.sub(" ", body)
    tags.update(normalize_tag(m.group(1)) for m in _INLINE_TAG.finditer(body))
    return tags


class VaultDocumentStore(DocumentStore):
    """Markdown notes under a directory. Paths are vault-relative, `/`-separated."""

    def __init__(self, vault_path: str, extensions: tuple = (".md",)):
        self.vault_path = Path(vault_path)
        self.extensions = tuple(ext.lower() for ext in extensions)

    def _resolve(self, path: str) -> Path:
        return self.vault_path / path

    def list_documents(self) -> List[DocumentInfo]:
        documents = []
        for file in self.vault_path.rglob("*"):
            if not file.is_file() or file.suffix.lower() not in self.extensions:
                continue
            try:
                mtime = file.stat().st_mtime_ns // 1_000_000
            except OSError as e:
                logger.warning("document_stat_failed", path=str(file), error=str(e))
                continue
            rel = file.relative_to(self.vault_path).as_posix()
            documents.append(DocumentInfo(path=rel, mtime=mtime))
        documents.sort(key=lambda d: d.path)
        return documents

    def read(self, path: str) -> str:
        try:
            return self._resolve(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentReadError(path, str(e)) from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def tags(self, path: str) -> Set[str]:
        return extract_tags(self.read(path))
