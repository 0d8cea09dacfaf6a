"""
Embedding pipeline.

Coordinates: batch → sanitize → embed → persist

Batches are processed strictly one after another: batch N is in the store
before batch N+1 is embedded, so memory stays bounded by one batch and an
aborted run keeps everything persisted so far.
"""
import asyncio
import gc
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from vaultrag.core.cancellation import CancellationToken, ProgressCallback, ProgressCounter
from vaultrag.core.indexing.embedders import Embedder
from vaultrag.core.indexing.store import IndexStore
from vaultrag.core.logging import get_logger
from vaultrag.preprocessing.sanitize import embedding_text
from vaultrag.schema.retrieval import ChunkRecord

logger = get_logger(__name__)

GC_EVERY_N_BATCHES = 10
GC_PAUSE_SECONDS = 0.1


# ============================================================================
# DATA
# ============================================================================

@dataclass
class DocumentChunk:
    """A chunk waiting to be embedded. `content` is the raw chunk text."""
    path: str
    mtime: int
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineStats:
    """Running totals of one pipeline run, kept current even if the run aborts."""
    batches: int = 0
    inserted: int = 0
    skipped: int = 0


@dataclass
class EmbeddedBatch:
    index: int
    records: List[ChunkRecord]
    size: int  # chunks consumed, including ones skipped as empty

    @property
    def skipped(self) -> int:
        return self.size - len(self.records)


# ============================================================================
# PIPELINE
# ============================================================================

class EmbeddingPipeline:
    def __init__(
        self,
        embedder: Embedder,
        store: IndexStore,
        batch_size: int = 32,
        gc_every: int = GC_EVERY_N_BATCHES,
        gc_pause: float = GC_PAUSE_SECONDS,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size
        self.gc_every = gc_every
        self.gc_pause = gc_pause

    async def iter_batches(
        self,
        chunks: List[DocumentChunk],
        cancel: Optional[CancellationToken] = None,
    ) -> AsyncIterator[EmbeddedBatch]:
        """Embed chunks batch by batch, yielding records ready for the store."""
        for index, start in enumerate(range(0, len(chunks), self.batch_size)):
            if cancel:
                cancel.raise_if_cancelled()

            batch = chunks[start:start + self.batch_size]
            embeddable = []
            for chunk in batch:
                text = embedding_text(chunk.content)
                if text:
                    embeddable.append((chunk, text))
                else:
                    logger.debug("chunk_skipped_empty", path=chunk.path)

            vectors = await self.embedder.embed([text for _, text in embeddable], cancel)
            records = [
                ChunkRecord(
                    path=chunk.path,
                    mtime=chunk.mtime,
                    content=chunk.content,
                    embedding=vector,
                    metadata=chunk.metadata,
                )
                for (chunk, _), vector in zip(embeddable, vectors)
            ]
            yield EmbeddedBatch(index=index, records=records, size=len(batch))

    async def run(
        self,
        chunks: List[DocumentChunk],
        total_files: int,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
        stats: Optional[PipelineStats] = None,
    ) -> int:
        """
        Embed and persist all chunks. Returns the number of records inserted.

        Raises OperationAborted when `cancel` fires; batches persisted before
        that point stay in the store and are counted in `stats`.
        """
        stats = stats if stats is not None else PipelineStats()
        counter = ProgressCounter(len(chunks), total_files, progress)
        await counter.report()

        try:
            async for batch in self.iter_batches(chunks, cancel):
                if batch.records:
                    stats.inserted += await self.store.insert(batch.records)
                stats.batches += 1
                stats.skipped += batch.skipped
                await counter.advance(batch.size)
                logger.debug(
                    "batch_persisted",
                    batch=batch.index,
                    chunks=len(batch.records),
                    skipped=batch.skipped,
                    completed=counter.completed_chunks,
                    total=counter.total_chunks,
                )

                if self.gc_every and stats.batches % self.gc_every == 0:
                    gc.collect()
                    await asyncio.sleep(self.gc_pause)
        finally:
            gc.collect()

        logger.info("embedding_pipeline_complete", batches=stats.batches, chunks_inserted=stats.inserted)
        return stats.inserted
