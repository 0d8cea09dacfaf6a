"""
Core Indexing Pipeline

Components:
- embedders.py: provider calls with retry (batch or bounded per-item)
- pipeline.py: batch → embed → persist loop with progress and cancellation
- store.py: dimension-routed chunk storage (PostgreSQL + pgvector)
- memory_store.py: in-process store with the same semantics
"""

from .embedders import RetryPolicy, Embedder, BatchEmbedder, ItemEmbedder, make_embedder
from .pipeline import EmbeddingPipeline, DocumentChunk, EmbeddedBatch, PipelineStats
from .store import IndexStore, PgVectorIndexStore
from .memory_store import InMemoryIndexStore

__all__ = [
    "RetryPolicy",
    "Embedder",
    "BatchEmbedder",
    "ItemEmbedder",
    "make_embedder",
    "EmbeddingPipeline",
    "DocumentChunk",
    "EmbeddedBatch",
    "PipelineStats",
    "IndexStore",
    "PgVectorIndexStore",
    "InMemoryIndexStore",
]
