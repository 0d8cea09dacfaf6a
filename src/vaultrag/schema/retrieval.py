"""
Value objects passed between the indexer, the stores and callers.
"""
from typing import Any, Dict, Iterable, List, Literal, Optional, Set

from pydantic import BaseModel, Field

ROOT_FOLDER = "/"


class ScopeItem(BaseModel):
    """One entry of a logical scope (a saved workspace, a CLI flag...)."""
    type: Literal["folder", "tag", "file"]
    content: str


class ScopeSet(BaseModel):
    """
    Concrete restriction of indexing or querying.

    `files` match by exact path, `folders` by `folder/` prefix. The root
    folder matches every document. Both empty means the entire corpus.
    """
    files: Set[str] = Field(default_factory=set)
    folders: Set[str] = Field(default_factory=set)

    def is_empty(self) -> bool:
        return not self.files and not self.folders

    def covers_everything(self) -> bool:
        return self.is_empty() or ROOT_FOLDER in self.folders

    def matches(self, path: str) -> bool:
        if self.covers_everything():
            return True
        if path in self.files:
            return True
        return any(path.startswith(folder.rstrip("/") + "/") for folder in self.folders)

    def filter(self, paths: Iterable[str]) -> List[str]:
        return [p for p in paths if self.matches(p)]


class ChunkRecord(BaseModel):
    """A chunk ready to be persisted. `id` is assigned by the store."""
    id: Optional[int] = None
    path: str
    mtime: int
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class QueryResult(BaseModel):
    """A stored chunk without its vector, plus the score of the channel that found it."""
    id: int
    path: str
    mtime: int
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    similarity: Optional[float] = None
    rank: Optional[float] = None
    rrf_score: Optional[float] = None

    @property
    def start_line(self) -> Optional[int]:
        return self.metadata.get("startLine")

    @property
    def end_line(self) -> Optional[int]:
        return self.metadata.get("endLine")


class IndexProgress(BaseModel):
    completed_chunks: int
    total_chunks: int
    total_files: int


class IndexingResult(BaseModel):
    """Outcome of one reindex run."""
    status: Literal["completed", "aborted", "noop"]
    files_indexed: int = 0
    chunks_total: int = 0
    chunks_inserted: int = 0
    skipped_files: List[str] = Field(default_factory=list)


class IndexStatistics(BaseModel):
    total_files: int = 0
    total_chunks: int = 0


class DocumentInfo(BaseModel):
    """What the document store reports about one document."""
    path: str
    mtime: int
