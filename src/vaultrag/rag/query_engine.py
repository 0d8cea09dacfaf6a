"""
Query Engine
Vector, full-text and hybrid search over the chunk index.
"""
import asyncio
from typing import List, Optional

from vaultrag.config import settings
from vaultrag.core.indexing.store import IndexStore
from vaultrag.core.logging import get_logger
from vaultrag.rag.fusion import RRF_K, fuse_results
from vaultrag.schema.retrieval import QueryResult, ScopeSet
from vaultrag.utils.embeddings import EmbeddingProvider

logger = get_logger(__name__)


class QueryEngine:
    """
    Read-only search over an IndexStore.

    Queries may run while a reindex is writing to the same table and will
    see whatever has been committed so far.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        store: IndexStore,
        min_similarity: Optional[float] = None,
        limit: Optional[int] = None,
        language: Optional[str] = None,
        rrf_k: int = RRF_K,
    ):
        self.provider = provider
        self.store = store
        self.min_similarity = settings.min_similarity if min_similarity is None else min_similarity
        self.limit = limit or settings.search_limit
        self.language = language or settings.fts_language
        self.rrf_k = rrf_k

    async def similarity_query(
        self,
        text: str,
        scope: Optional[ScopeSet] = None,
        limit: Optional[int] = None,
    ) -> List[QueryResult]:
        query_vector = await self.provider.get_embedding(text)
        results = await self.store.similarity_search(
            query_vector,
            min_similarity=self.min_similarity,
            limit=limit or self.limit,
            scope=scope,
        )
        logger.debug("similarity_query_complete", results=len(results))
        return results

    async def fulltext_query(
        self,
        text: str,
        scope: Optional[ScopeSet] = None,
        limit: Optional[int] = None,
        language: Optional[str] = None,
    ) -> List[QueryResult]:
        results = await self.store.fulltext_search(
            text,
            limit=limit or self.limit,
            scope=scope,
            language=language or self.language,
        )
        logger.debug("fulltext_query_complete", results=len(results))
        return results

    async def hybrid_query(
        self,
        text: str,
        scope: Optional[ScopeSet] = None,
        limit: Optional[int] = None,
        language: Optional[str] = None,
    ) -> List[QueryResult]:
        """
        Run both channels concurrently and fuse them.

        Each channel is limited on its own, so up to twice `limit` results
        can come back.
        """
        vector_results, lexical_results = await asyncio.gather(
            self.similarity_query(text, scope=scope, limit=limit),
            self.fulltext_query(text, scope=scope, limit=limit, language=language),
        )
        results = fuse_results(vector_results, lexical_results, k=self.rrf_k)

        logger.info(
            "hybrid_query_complete",
            vector_hits=len(vector_results),
            lexical_hits=len(lexical_results),
            results=len(results),
        )
        return results
