"""
In-process IndexStore backed by numpy.

Mirrors PgVectorIndexStore's semantics (dimension routing, scope filtering,
similarity bounds, lexical OR-matching) without a database. Used by the test
suite and for quick local runs.
"""
import math
from collections import Counter
from typing import Dict, List, Optional, Sequence

import numpy as np

from vaultrag.core.indexing.store import DEFAULT_LANGUAGE, IndexStore
from vaultrag.core.logging import get_logger
from vaultrag.preprocessing.sanitize import strip_null_bytes
from vaultrag.rag.lexical import build_lexical_query, tokenize
from vaultrag.schema.retrieval import ChunkRecord, IndexStatistics, QueryResult, ScopeSet

logger = get_logger(__name__)


class InMemoryIndexStore(IndexStore):
    def __init__(self, dimension: int):
        super().__init__(dimension)
        self._rows: Dict[int, ChunkRecord] = {}
        self._next_id = 1

    async def initialize(self) -> None:
        self._initialized = True
        logger.info("index_store_initialized", table=self.table_name, dimension=self.dimension, backend="memory")

    def records(self) -> List[ChunkRecord]:
        return list(self._rows.values())

    async def insert(self, records: Sequence[ChunkRecord]) -> int:
        self._ensure_initialized()
        for record in records:
            if len(record.embedding) != self.dimension:
                raise ValueError(
                    f"Expected {self.dimension}-dimensional embedding, got {len(record.embedding)}"
                )
            row = record.model_copy(update={
                "id": self._next_id,
                "content": strip_null_bytes(record.content),
                "metadata": dict(record.metadata),
            })
            self._rows[row.id] = row
            self._next_id += 1
        return len(records)

    async def delete_by_path(self, path: str) -> None:
        await self.delete_by_paths([path])

    async def delete_by_paths(self, paths: Sequence[str]) -> None:
        self._ensure_initialized()
        doomed = set(paths)
        self._rows = {rid: row for rid, row in self._rows.items() if row.path not in doomed}

    async def clear_all(self) -> None:
        self._ensure_initialized()
        self._rows = {}

    async def max_mtime(self) -> Optional[int]:
        self._ensure_initialized()
        if not self._rows:
            return None
        return max(row.mtime for row in self._rows.values())

    async def indexed_paths(self) -> List[str]:
        self._ensure_initialized()
        return sorted({row.path for row in self._rows.values()})

    def _in_scope(self, scope: Optional[ScopeSet]) -> List[ChunkRecord]:
        rows = list(self._rows.values())
        if scope is None:
            return rows
        return [row for row in rows if scope.matches(row.path)]

    async def similarity_search(
        self,
        query_vector: List[float],
        min_similarity: float = 0.0,
        limit: int = 10,
        scope: Optional[ScopeSet] = None,
    ) -> List[QueryResult]:
        self._ensure_initialized()
        rows = self._in_scope(scope)
        if not rows:
            return []

        query = np.asarray(query_vector, dtype=float)
        matrix = np.asarray([row.embedding for row in rows], dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(norms > 0, matrix @ query / norms, 0.0)

        threshold = max(min_similarity, 0.0)
        order = np.argsort(-similarities, kind="stable")
        results: List[QueryResult] = []
        for idx in order:
            similarity = float(similarities[idx])
            if similarity <= threshold:
                break
            results.append(_to_result(rows[idx], similarity=min(similarity, 1.0)))
            if len(results) >= limit:
                break
        return results

    async def fulltext_search(
        self,
        query_text: str,
        limit: int = 10,
        scope: Optional[ScopeSet] = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> List[QueryResult]:
        self._ensure_initialized()
        lexical = build_lexical_query(query_text)
        terms = lexical.tokens or [lexical.raw.strip().lower()]
        terms = [t for t in terms if t]
        if not terms:
            return []

        scored = []
        for row in self._in_scope(scope):
            content = row.content.lower()
            counts = Counter(tokenize(content))
            hits = sum(counts[t] if t in counts else content.count(t) for t in terms)
            if hits:
                length = max(sum(counts.values()), 1)
                scored.append((hits / math.sqrt(length), row))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [_to_result(row, rank=rank) for rank, row in scored[:limit]]

    async def statistics(self, scope: Optional[ScopeSet] = None) -> IndexStatistics:
        self._ensure_initialized()
        rows = self._in_scope(scope)
        return IndexStatistics(
            total_files=len({row.path for row in rows}),
            total_chunks=len(rows),
        )


def _to_result(row: ChunkRecord, **scores: float) -> QueryResult:
    return QueryResult(
        id=row.id,
        path=row.path,
        mtime=row.mtime,
        content=row.content,
        metadata=dict(row.metadata),
        **scores,
    )
