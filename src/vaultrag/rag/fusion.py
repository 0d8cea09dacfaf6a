"""
Reciprocal Rank Fusion (RRF) of the vector and lexical result lists.

Each list is ranked 1..N on its own and contributes ``1 / (k + rank)`` to a
chunk's score; a chunk found by both channels sums its two contributions.
Only rank order is used, so cosine similarity and ts_rank never have to be
put on a common scale. Fused scores are divided by the maximum so the top
result always scores 1.0.
"""
from typing import Dict, List, Sequence, Tuple

from vaultrag.schema.retrieval import QueryResult

RRF_K = 60


def _key(result: QueryResult) -> Tuple[str, int]:
    return (result.path, result.id)


def reciprocal_rank_fusion(
    runs: Sequence[Sequence[QueryResult]],
    k: int = RRF_K,
) -> List[QueryResult]:
    """
    Fuse ranked lists of QueryResults.

    Returns results sorted by normalized ``rrf_score`` (descending), with the
    same value copied into ``similarity``. The first occurrence of a chunk
    supplies its fields. Ties keep first-seen order, but callers should not
    rely on any particular tie order.
    """
    docs: Dict[Tuple[str, int], QueryResult] = {}
    scores: Dict[Tuple[str, int], float] = {}

    for run in runs:
        for rank, result in enumerate(run, start=1):
            key = _key(result)
            if key not in docs:
                docs[key] = result
                scores[key] = 0.0
            scores[key] += 1.0 / (k + rank)

    if not scores:
        return []

    max_score = max(scores.values())
    ordered = sorted(scores, key=lambda key: scores[key], reverse=True)

    fused = []
    for key in ordered:
        score = scores[key] / max_score if max_score > 0 else 0.0
        fused.append(docs[key].model_copy(update={"rrf_score": score, "similarity": score}))
    return fused


def positional_similarity(results: Sequence[QueryResult]) -> List[QueryResult]:
    """Map a lexical ranking onto (0, 1] by position: first → 1.0, last → 1/n."""
    n = len(results)
    return [
        result.model_copy(update={"similarity": 1 - (i - 1) / n})
        for i, result in enumerate(results, start=1)
    ]


def fuse_results(
    vector_results: Sequence[QueryResult],
    lexical_results: Sequence[QueryResult],
    k: int = RRF_K,
) -> List[QueryResult]:
    """
    Hybrid fusion policy:
    - no lexical hits: vector results unchanged
    - no vector hits: lexical results with positional pseudo-similarity
    - otherwise RRF
    """
    if not lexical_results:
        return list(vector_results)
    if not vector_results:
        return positional_similarity(lexical_results)
    return reciprocal_rank_fusion([vector_results, lexical_results], k=k)
