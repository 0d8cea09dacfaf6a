"""
RAG Engine
Caller-facing entry point: wires the provider, document store, index store,
indexer and query engine together.
"""
from typing import Iterable, List, Optional, Union

from vaultrag.config import Settings, settings as default_settings
from vaultrag.core.cancellation import CancellationToken, ProgressCallback
from vaultrag.core.exceptions import ConfigurationError
from vaultrag.core.indexing.embedders import RetryPolicy, make_embedder
from vaultrag.core.indexing.store import IndexStore, PgVectorIndexStore
from vaultrag.core.logging import get_logger
from vaultrag.preprocessing.chunker import MarkdownChunker
from vaultrag.rag.query_engine import QueryEngine
from vaultrag.rag.scope import ScopeResolver
from vaultrag.schema.retrieval import (
    IndexingResult,
    IndexStatistics,
    QueryResult,
    ScopeItem,
    ScopeSet,
)
from vaultrag.utils.embeddings import EmbeddingProvider, get_embedding_provider
from vaultrag.utils.indexer import IncrementalIndexer
from vaultrag.utils.vault import DocumentStore, VaultDocumentStore

logger = get_logger(__name__)

Scope = Union[ScopeSet, Iterable[ScopeItem], None]


class RAGEngine:
    """
    Usage:
        engine = RAGEngine()
        await engine.initialize()
        await engine.reindex()
        results = await engine.hybrid_query("where did the fox go?")
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        documents: Optional[DocumentStore] = None,
        store: Optional[IndexStore] = None,
        config: Optional[Settings] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        self.config = config or default_settings
        self.provider = provider or get_embedding_provider(self.config)
        self.documents = documents or VaultDocumentStore(self.config.vault_path)
        self.resolver = ScopeResolver(self.documents)
        self.retry = retry or RetryPolicy(
            attempts=self.config.retry_attempts,
            starting_delay=self.config.retry_starting_delay,
            time_multiple=self.config.retry_time_multiple,
        )
        self.store = store
        self.indexer: Optional[IncrementalIndexer] = None
        self.query_engine: Optional[QueryEngine] = None

    async def initialize(self) -> None:
        """Learn the embedding width, bind the matching table and prepare the store."""
        dimension = await self.provider.initialize_dimension()
        if self.store is None:
            self.store = PgVectorIndexStore(dimension)
        elif self.store.dimension != dimension:
            raise ConfigurationError(
                f"Store is bound to dimension {self.store.dimension}, provider produces {dimension}"
            )
        if not self.store.initialized:
            await self.store.initialize()

        embedder = make_embedder(
            self.provider,
            retry=self.retry,
            concurrency=self.config.embedding_concurrency,
        )
        self.indexer = IncrementalIndexer(
            documents=self.documents,
            store=self.store,
            embedder=embedder,
            chunker=MarkdownChunker(chunk_size=self.config.chunk_size),
            resolver=self.resolver,
            batch_size=self.config.batch_size,
            include_patterns=self.config.include_patterns,
            exclude_patterns=self.config.exclude_patterns,
        )
        self.query_engine = QueryEngine(
            self.provider,
            self.store,
            min_similarity=self.config.min_similarity,
            limit=self.config.search_limit,
            language=self.config.fts_language,
        )
        logger.info(
            "rag_engine_initialized",
            provider=self.provider.name,
            model=self.provider.model,
            dimension=dimension,
            table=self.store.table_name,
        )

    async def _ready(self):
        if self.indexer is None or self.query_engine is None:
            await self.initialize()

    def resolve_scope(self, scope: Scope) -> Optional[ScopeSet]:
        if scope is None:
            return None
        if isinstance(scope, ScopeSet):
            resolved = scope
        else:
            resolved = self.resolver.resolve(scope)
        return None if resolved.is_empty() else resolved

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def similarity_query(self, text: str, scope: Scope = None, limit: Optional[int] = None) -> List[QueryResult]:
        await self._ready()
        return await self.query_engine.similarity_query(text, scope=self.resolve_scope(scope), limit=limit)

    async def fulltext_query(
        self,
        text: str,
        scope: Scope = None,
        limit: Optional[int] = None,
        language: Optional[str] = None,
    ) -> List[QueryResult]:
        await self._ready()
        return await self.query_engine.fulltext_query(
            text, scope=self.resolve_scope(scope), limit=limit, language=language
        )

    async def hybrid_query(
        self,
        text: str,
        scope: Scope = None,
        limit: Optional[int] = None,
        language: Optional[str] = None,
    ) -> List[QueryResult]:
        await self._ready()
        return await self.query_engine.hybrid_query(
            text, scope=self.resolve_scope(scope), limit=limit, language=language
        )

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def reindex(
        self,
        scope: Scope = None,
        reindex_all: bool = False,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> IndexingResult:
        await self._ready()
        return await self.indexer.reindex(
            scope=self.resolve_scope(scope),
            reindex_all=reindex_all,
            progress=progress,
            cancel=cancel,
        )

    async def update_file_index(self, path: str, cancel: Optional[CancellationToken] = None) -> IndexingResult:
        await self._ready()
        return await self.indexer.update_file(path, cancel=cancel)

    async def delete_file_index(self, path: str) -> None:
        await self._ready()
        await self.indexer.delete_file(path)

    async def clear_index(self, scope: Scope = None) -> None:
        await self._ready()
        await self.indexer.clear_scope(self.resolve_scope(scope))

    async def get_statistics(self, scope: Scope = None) -> IndexStatistics:
        await self._ready()
        return await self.store.statistics(self.resolve_scope(scope))
