"""
Tests for Reciprocal Rank Fusion and the hybrid fusion policy.
"""
import pytest

from vaultrag.rag.fusion import (
    RRF_K,
    fuse_results,
    positional_similarity,
    reciprocal_rank_fusion,
)
from vaultrag.schema import QueryResult


# ============================================================================
# Fixtures
# ============================================================================

def hit(id: int, path: str = "note.md", **scores) -> QueryResult:
    return QueryResult(id=id, path=path, mtime=1, content=f"chunk {id}", metadata={}, **scores)


@pytest.fixture
def vector_hits():
    return [hit(1, similarity=0.9), hit(2, similarity=0.5)]


@pytest.fixture
def lexical_hits():
    return [hit(2, rank=1.0), hit(3, rank=0.5)]


# ============================================================================
# RRF
# ============================================================================

class TestReciprocalRankFusion:

    def test_worked_example(self, vector_hits, lexical_hits):
        fused = reciprocal_rank_fusion([vector_hits, lexical_hits], k=60)
        by_id = {r.id: r for r in fused}
        top = 1 / 61 + 1 / 62

        assert [r.id for r in fused] == [2, 1, 3]
        assert by_id[2].rrf_score == pytest.approx(1.0)
        assert by_id[1].rrf_score == pytest.approx((1 / 61) / top)
        assert by_id[3].rrf_score == pytest.approx((1 / 62) / top)

    def test_rrf_score_surfaced_as_similarity(self, vector_hits, lexical_hits):
        for result in reciprocal_rank_fusion([vector_hits, lexical_hits]):
            assert result.similarity == result.rrf_score

    def test_default_constant(self):
        assert RRF_K == 60

    def test_top_result_normalized_to_one(self):
        runs = [[hit(i) for i in range(5)], [hit(i) for i in (4, 2, 7)]]

        fused = reciprocal_rank_fusion(runs)

        assert fused[0].rrf_score == pytest.approx(1.0)
        assert all(0 < r.rrf_score <= 1.0 for r in fused)

    def test_monotonic_when_outranked_in_both_lists(self):
        vector = [hit(1), hit(5), hit(2), hit(6)]
        lexical = [hit(7), hit(1), hit(8), hit(2)]

        scores = {r.id: r.rrf_score for r in reciprocal_rank_fusion([vector, lexical])}

        assert scores[1] >= scores[2]

    def test_key_includes_path(self):
        vector = [hit(1, path="a.md")]
        lexical = [hit(1, path="b.md")]

        fused = reciprocal_rank_fusion([vector, lexical])

        assert len(fused) == 2

    def test_scores_sorted_descending(self, vector_hits, lexical_hits):
        fused = reciprocal_rank_fusion([vector_hits, lexical_hits])
        scores = [r.rrf_score for r in fused]

        assert scores == sorted(scores, reverse=True)

    def test_empty_runs(self):
        assert reciprocal_rank_fusion([[], []]) == []


# ============================================================================
# Fusion Policy
# ============================================================================

class TestFuseResults:

    def test_no_lexical_hits_returns_vector_results(self, vector_hits):
        assert fuse_results(vector_hits, []) == vector_hits

    def test_no_vector_hits_uses_positional_similarity(self, lexical_hits):
        fused = fuse_results([], lexical_hits)

        assert [r.id for r in fused] == [2, 3]
        assert [r.similarity for r in fused] == [1.0, 0.5]

    def test_positional_similarity_in_unit_interval(self):
        results = positional_similarity([hit(i) for i in range(1, 5)])

        assert [r.similarity for r in results] == [1.0, 0.75, 0.5, 0.25]

    def test_both_channels_fused(self, vector_hits, lexical_hits):
        fused = fuse_results(vector_hits, lexical_hits)

        assert [r.id for r in fused][0] == 2
        assert all(r.rrf_score is not None for r in fused)

    def test_both_empty(self):
        assert fuse_results([], []) == []
