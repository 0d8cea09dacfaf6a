from .base import VectorRecordBase
from .vectors import (
    Embedding1536, Embedding1024, Embedding768, Embedding512, Embedding384,
    VECTOR_TABLES, SUPPORTED_DIMENSIONS, get_vector_table
)
from .retrieval import (
    ScopeItem, ScopeSet, ChunkRecord, QueryResult, IndexProgress,
    IndexingResult, IndexStatistics, DocumentInfo, ROOT_FOLDER
)

__all__ = [
    "VectorRecordBase",
    "Embedding1536", "Embedding1024", "Embedding768", "Embedding512", "Embedding384",
    "VECTOR_TABLES", "SUPPORTED_DIMENSIONS", "get_vector_table",
    "ScopeItem", "ScopeSet", "ChunkRecord", "QueryResult", "IndexProgress",
    "IndexingResult", "IndexStatistics", "DocumentInfo", "ROOT_FOLDER",
]
