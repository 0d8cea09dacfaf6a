"""
Chunk index storage.

An IndexStore is bound to one embedding dimension and therefore to exactly
one chunk table. Every operation refuses to run before `initialize()`.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, literal_column, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel.ext.asyncio.session import AsyncSession

from vaultrag.core.exceptions import DatabaseNotInitializedError
from vaultrag.core.logging import get_logger
from vaultrag.preprocessing.sanitize import strip_null_bytes
from vaultrag.rag.lexical import build_lexical_query
from vaultrag.schema.retrieval import ChunkRecord, IndexStatistics, QueryResult, ScopeSet
from vaultrag.schema.vectors import get_vector_table
from vaultrag.utils.db import get_engine, init_db, regconfig_literal

logger = get_logger(__name__)

DEFAULT_LANGUAGE = "english"


class IndexStore(ABC):
    """Dimension-routed chunk storage."""

    def __init__(self, dimension: int):
        # Raises UnknownDimensionError for widths without a table
        self.table = get_vector_table(dimension)
        self.dimension = dimension
        self._initialized = False

    @property
    def table_name(self) -> str:
        return self.table.__tablename__

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _ensure_initialized(self):
        if not self._initialized:
            raise DatabaseNotInitializedError()

    @abstractmethod
    async def initialize(self) -> None: ...

    @abstractmethod
    async def insert(self, records: Sequence[ChunkRecord]) -> int: ...

    @abstractmethod
    async def delete_by_path(self, path: str) -> None: ...

    @abstractmethod
    async def delete_by_paths(self, paths: Sequence[str]) -> None: ...

    @abstractmethod
    async def clear_all(self) -> None: ...

    @abstractmethod
    async def max_mtime(self) -> Optional[int]: ...

    @abstractmethod
    async def indexed_paths(self) -> List[str]: ...

    @abstractmethod
    async def similarity_search(
        self,
        query_vector: List[float],
        min_similarity: float = 0.0,
        limit: int = 10,
        scope: Optional[ScopeSet] = None,
    ) -> List[QueryResult]: ...

    @abstractmethod
    async def fulltext_search(
        self,
        query_text: str,
        limit: int = 10,
        scope: Optional[ScopeSet] = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> List[QueryResult]: ...

    @abstractmethod
    async def statistics(self, scope: Optional[ScopeSet] = None) -> IndexStatistics: ...


class PgVectorIndexStore(IndexStore):
    """
    PostgreSQL + pgvector storage.

    Similarity is `1 - cosine_distance`, ordered by distance so the HNSW
    index serves the scan. Lexical rank is `ts_rank_cd` over
    `to_tsvector(language, content)`, matching the GIN expression index.
    """

    def __init__(self, dimension: int, engine: Optional[AsyncEngine] = None, create_schema: bool = True):
        super().__init__(dimension)
        self._engine = engine
        self.create_schema = create_schema

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def _session(self) -> AsyncSession:
        return AsyncSession(self.engine, expire_on_commit=False)

    async def initialize(self) -> None:
        if self.create_schema:
            await init_db(self.engine)
        self._initialized = True
        logger.info("index_store_initialized", table=self.table_name, dimension=self.dimension)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, records: Sequence[ChunkRecord]) -> int:
        self._ensure_initialized()
        if not records:
            return 0

        rows = [
            self.table(
                path=record.path,
                mtime=record.mtime,
                content=strip_null_bytes(record.content),
                embedding=record.embedding,
                metadata_=record.metadata,
            )
            for record in records
        ]
        async with self._session() as session:
            session.add_all(rows)
            await session.commit()

        logger.debug("chunks_inserted", table=self.table_name, count=len(rows))
        return len(rows)

    async def delete_by_path(self, path: str) -> None:
        await self.delete_by_paths([path])

    async def delete_by_paths(self, paths: Sequence[str]) -> None:
        self._ensure_initialized()
        if not paths:
            return
        async with self._session() as session:
            await session.execute(delete(self.table).where(self.table.path.in_(list(paths))))
            await session.commit()
        logger.debug("chunks_deleted", table=self.table_name, paths=len(paths))

    async def clear_all(self) -> None:
        self._ensure_initialized()
        async with self._session() as session:
            await session.execute(delete(self.table))
            await session.commit()
        logger.info("index_cleared", table=self.table_name)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def max_mtime(self) -> Optional[int]:
        self._ensure_initialized()
        async with self._session() as session:
            result = await session.execute(select(func.max(self.table.mtime)))
            value = result.scalar_one_or_none()
        return int(value) if value is not None else None

    async def indexed_paths(self) -> List[str]:
        self._ensure_initialized()
        async with self._session() as session:
            result = await session.execute(select(self.table.path).distinct())
            return list(result.scalars().all())

    def scope_condition(self, scope: Optional[ScopeSet]):
        """WHERE clause restricting rows to a scope, None for no restriction."""
        if scope is None or scope.covers_everything():
            return None
        conditions = []
        if scope.files:
            conditions.append(self.table.path.in_(sorted(scope.files)))
        for folder in sorted(scope.folders):
            conditions.append(self.table.path.startswith(folder.rstrip("/") + "/", autoescape=True))
        return or_(*conditions)

    def _result_columns(self) -> List[Any]:
        return [
            self.table.id.label("id"),
            self.table.path.label("path"),
            self.table.mtime.label("mtime"),
            self.table.content.label("content"),
            self.table.metadata_.label("metadata"),
        ]

    def similarity_statement(
        self,
        query_vector: List[float],
        min_similarity: float = 0.0,
        limit: int = 10,
        scope: Optional[ScopeSet] = None,
    ):
        distance = self.table.embedding.cosine_distance(query_vector)
        similarity = (1 - distance).label("similarity")
        stmt = (
            select(*self._result_columns(), similarity)
            .where((1 - distance) > max(min_similarity, 0.0))
            .order_by(distance)
            .limit(limit)
        )
        condition = self.scope_condition(scope)
        if condition is not None:
            stmt = stmt.where(condition)
        return stmt

    def fulltext_statement(
        self,
        query_text: str,
        limit: int = 10,
        scope: Optional[ScopeSet] = None,
        language: str = DEFAULT_LANGUAGE,
    ):
        regconfig = literal_column(regconfig_literal(language))
        lexical = build_lexical_query(query_text)
        if lexical.tokens:
            tsquery = func.to_tsquery(regconfig, lexical.text)
        else:
            tsquery = func.plainto_tsquery(regconfig, lexical.raw)
        tsvector = func.to_tsvector(regconfig, self.table.content)
        rank = func.ts_rank_cd(tsvector, tsquery).label("rank")

        stmt = (
            select(*self._result_columns(), rank)
            .where(tsvector.op("@@")(tsquery))
            .order_by(rank.desc())
            .limit(limit)
        )
        condition = self.scope_condition(scope)
        if condition is not None:
            stmt = stmt.where(condition)
        return stmt

    async def similarity_search(
        self,
        query_vector: List[float],
        min_similarity: float = 0.0,
        limit: int = 10,
        scope: Optional[ScopeSet] = None,
    ) -> List[QueryResult]:
        self._ensure_initialized()
        stmt = self.similarity_statement(query_vector, min_similarity, limit, scope)
        async with self._session() as session:
            rows = (await session.execute(stmt)).mappings().all()
        return [
            _to_result(row, similarity=min(float(row["similarity"]), 1.0))
            for row in rows
        ]

    async def fulltext_search(
        self,
        query_text: str,
        limit: int = 10,
        scope: Optional[ScopeSet] = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> List[QueryResult]:
        self._ensure_initialized()
        stmt = self.fulltext_statement(query_text, limit, scope, language)
        async with self._session() as session:
            rows = (await session.execute(stmt)).mappings().all()
        return [_to_result(row, rank=float(row["rank"])) for row in rows]

    async def statistics(self, scope: Optional[ScopeSet] = None) -> IndexStatistics:
        self._ensure_initialized()
        stmt = select(
            func.count(func.distinct(self.table.path)),
            func.count(self.table.id),
        )
        condition = self.scope_condition(scope)
        if condition is not None:
            stmt = stmt.where(condition)
        async with self._session() as session:
            files, chunks = (await session.execute(stmt)).one()
        return IndexStatistics(total_files=files or 0, total_chunks=chunks or 0)


def _to_result(row: Dict[str, Any], **scores: float) -> QueryResult:
    return QueryResult(
        id=row["id"],
        path=row["path"],
        mtime=row["mtime"],
        content=row["content"],
        metadata=row["metadata"] or {},
        **scores,
    )
