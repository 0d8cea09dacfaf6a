"""
Scope resolution.

Turns logical scope items (folders, tags, files) into a ScopeSet against the
current document metadata. Nothing is cached: tags can change between calls.
"""
from typing import Iterable, Optional, Set

from vaultrag.core.logging import get_logger
from vaultrag.schema.retrieval import ROOT_FOLDER, ScopeItem, ScopeSet
from vaultrag.utils.vault import DocumentStore

logger = get_logger(__name__)


def normalize_folder(folder: str) -> str:
    folder = folder.strip().replace("\\", "/")
    if folder in ("", ROOT_FOLDER):
        return ROOT_FOLDER
    return folder.strip("/")


class ScopeResolver:
    def __init__(self, documents: DocumentStore):
        self.documents = documents

    def resolve(self, items: Optional[Iterable[ScopeItem]]) -> ScopeSet:
        scope = ScopeSet()
        for item in items or []:
            if item.type == "folder":
                scope.folders.add(normalize_folder(item.content))
            elif item.type == "tag":
                scope.files.update(self.documents.documents_with_tag(item.content))
            elif item.type == "file":
                scope.files.add(item.content)

        logger.debug("scope_resolved", files=len(scope.files), folders=len(scope.folders))
        return scope

    def expand(self, scope: ScopeSet) -> Set[str]:
        """Current document paths covered by `scope` (every document when it is empty)."""
        return {doc.path for doc in self.documents.list_documents() if scope.matches(doc.path)}
