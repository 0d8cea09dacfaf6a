"""
Incremental Indexer
Keeps the chunk index in step with the document store.

Strategy:
- Full reindex: clear the table (or the scope's paths) and index everything
- Incremental: drop records of deleted documents, then index only documents
  modified after the newest mtime already in the table (the watermark)

Known limitation: a document whose content changes while its mtime stays
older than the watermark (e.g. restored from a backup) is not picked up.
Run a full reindex to recover from that.
"""
from typing import List, Optional, Sequence, Tuple

from wcmatch import glob

from vaultrag.config import settings
from vaultrag.core.cancellation import CancellationToken, ProgressCallback
from vaultrag.core.exceptions import DocumentReadError, OperationAborted
from vaultrag.core.indexing.embedders import Embedder
from vaultrag.core.indexing.pipeline import DocumentChunk, EmbeddingPipeline, PipelineStats
from vaultrag.core.indexing.store import IndexStore
from vaultrag.core.logging import get_logger
from vaultrag.preprocessing.chunker import MarkdownChunker
from vaultrag.preprocessing.sanitize import strip_null_bytes
from vaultrag.rag.scope import ScopeResolver
from vaultrag.schema.retrieval import DocumentInfo, IndexingResult, ScopeSet
from vaultrag.utils.vault import DocumentStore

logger = get_logger(__name__)


def _match_any(path: str, globs: Sequence[str]) -> bool:
    return any(glob.globmatch(path, pattern, flags=glob.GLOBSTAR) for pattern in globs)


def filter_documents(
    documents: Sequence[DocumentInfo],
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
) -> List[DocumentInfo]:
    """Drop excluded paths first, then keep included ones (all when no include patterns)."""
    kept = [doc for doc in documents if not _match_any(doc.path, exclude_patterns)]
    if include_patterns:
        kept = [doc for doc in kept if _match_any(doc.path, include_patterns)]
    return kept


class IncrementalIndexer:
    def __init__(
        self,
        documents: DocumentStore,
        store: IndexStore,
        embedder: Embedder,
        chunker: Optional[MarkdownChunker] = None,
        resolver: Optional[ScopeResolver] = None,
        batch_size: Optional[int] = None,
        include_patterns: Optional[List[str]] = None,
        exclude_patterns: Optional[List[str]] = None,
    ):
        self.documents = documents
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or MarkdownChunker(chunk_size=settings.chunk_size)
        self.resolver = resolver or ScopeResolver(documents)
        self.batch_size = batch_size or settings.batch_size
        self.include_patterns = settings.include_patterns if include_patterns is None else include_patterns
        self.exclude_patterns = settings.exclude_patterns if exclude_patterns is None else exclude_patterns

        logger.info(
            "incremental_indexer_initialized",
            table=store.table_name,
            batch_size=self.batch_size,
            chunk_size=self.chunker.chunk_size,
            include_patterns=len(self.include_patterns),
            exclude_patterns=len(self.exclude_patterns),
        )

    def _pipeline(self) -> EmbeddingPipeline:
        return EmbeddingPipeline(self.embedder, self.store, batch_size=self.batch_size)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self, scope: Optional[ScopeSet] = None) -> List[DocumentInfo]:
        documents = self.documents.list_documents()
        if scope is not None:
            documents = [doc for doc in documents if scope.matches(doc.path)]
        return filter_documents(documents, self.include_patterns, self.exclude_patterns)

    async def remove_deleted_documents(self) -> List[str]:
        """Delete records whose source document no longer exists."""
        indexed = await self.store.indexed_paths()
        tombstones = [path for path in indexed if not self.documents.exists(path)]
        if tombstones:
            await self.store.delete_by_paths(tombstones)
            logger.info("tombstones_removed", count=len(tombstones))
        return tombstones

    async def clear_scope(self, scope: Optional[ScopeSet] = None) -> None:
        """Delete every record under `scope`, including those of documents deleted since indexing."""
        if scope is None or scope.covers_everything():
            await self.store.clear_all()
            return
        indexed = scope.filter(await self.store.indexed_paths())
        paths = self.resolver.expand(scope).union(indexed)
        await self.store.delete_by_paths(sorted(paths))
        logger.info("scope_cleared", paths=len(paths))

    async def select_candidates(
        self,
        scope: Optional[ScopeSet],
        reindex_all: bool,
    ) -> List[DocumentInfo]:
        discovered = self.discover(scope)

        if reindex_all:
            await self.clear_scope(scope)
            return discovered

        await self.remove_deleted_documents()
        watermark = await self.store.max_mtime()
        logger.info("index_watermark", watermark=watermark, discovered=len(discovered))
        if watermark is None:
            return discovered
        return [doc for doc in discovered if doc.mtime > watermark]

    # ------------------------------------------------------------------
    # Chunking
    # ------------------------------------------------------------------

    def chunk_documents(self, candidates: Sequence[DocumentInfo]) -> Tuple[List[DocumentChunk], List[str]]:
        chunks: List[DocumentChunk] = []
        skipped: List[str] = []
        for doc in candidates:
            try:
                text = strip_null_bytes(self.documents.read(doc.path))
            except DocumentReadError as e:
                logger.debug("document_read_failed", path=doc.path, error=str(e))
                skipped.append(doc.path)
                continue

            for chunk in self.chunker.split(text):
                chunks.append(DocumentChunk(
                    path=doc.path,
                    mtime=doc.mtime,
                    content=chunk.content,
                    metadata=chunk.metadata,
                ))

        if skipped:
            logger.warning("documents_skipped", count=len(skipped), paths=skipped)
        return chunks, skipped

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def reindex(
        self,
        scope: Optional[ScopeSet] = None,
        reindex_all: bool = False,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> IndexingResult:
        """
        Bring the index up to date.

        Configuration and provider errors propagate. Cancellation returns an
        `aborted` result; batches persisted before it stay in the store.
        """
        result = IndexingResult(status="completed")
        stats = PipelineStats()
        try:
            candidates = await self.select_candidates(scope, reindex_all)
            if not candidates:
                logger.info("reindex_noop", reindex_all=reindex_all)
                result.status = "noop"
                return result

            if cancel:
                cancel.raise_if_cancelled()
            if not reindex_all:
                await self.store.delete_by_paths([doc.path for doc in candidates])

            chunks, skipped = self.chunk_documents(candidates)
            result.skipped_files = skipped
            result.files_indexed = len(candidates) - len(skipped)
            result.chunks_total = len(chunks)

            await self._pipeline().run(
                chunks,
                total_files=len(candidates),
                progress=progress,
                cancel=cancel,
                stats=stats,
            )
        except OperationAborted:
            result.status = "aborted"
            logger.warning("reindex_aborted", chunks_inserted=stats.inserted)
        finally:
            result.chunks_inserted = stats.inserted

        logger.info(
            "reindex_complete",
            status=result.status,
            files=result.files_indexed,
            chunks=result.chunks_inserted,
            skipped=len(result.skipped_files),
        )
        return result

    async def update_file(
        self,
        path: str,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> IndexingResult:
        """Replace one document's records with a fresh chunking of its current content."""
        await self.store.delete_by_path(path)
        if not self.documents.exists(path):
            logger.info("update_file_missing", path=path)
            return IndexingResult(status="noop")

        info = next((doc for doc in self.documents.list_documents() if doc.path == path), None)
        if info is None:
            return IndexingResult(status="noop")

        result = IndexingResult(status="completed")
        stats = PipelineStats()
        try:
            chunks, skipped = self.chunk_documents([info])
            result.skipped_files = skipped
            result.files_indexed = 1 - len(skipped)
            result.chunks_total = len(chunks)
            await self._pipeline().run(chunks, total_files=1, progress=progress, cancel=cancel, stats=stats)
        except OperationAborted:
            result.status = "aborted"
        finally:
            result.chunks_inserted = stats.inserted
        logger.info("file_reindexed", path=path, status=result.status, chunks=result.chunks_inserted)
        return result

    async def delete_file(self, path: str) -> None:
        await self.store.delete_by_path(path)
        logger.info("file_index_deleted", path=path)
