"""
Tests for result ranking.

Run with: pytest tests/test_ranking.py -v
"""

import pytest

from core.context import MatchResult, MatchStage, ProductRecord
from core.ranking import ResultRanker, rank


def _result(pid, score, stage=MatchStage.FUZZY_NAME, position=None):
    return MatchResult(
        product=ProductRecord(pid, f"Product {pid}"),
        score=score,
        matched_field="name",
        stage=stage,
        position=pid if position is None else position,
    )


class TestResultRanker:
    """Tests for ResultRanker.rank()."""

    def test_sorted_by_score(self):
        ranked = rank([_result(1, 0.3), _result(2, 0.1), _result(3, 0.2)])
        assert [r.product.id for r in ranked] == [2, 3, 1]

    def test_ties_keep_catalog_order(self):
        results = [_result(3, 0.2), _result(1, 0.2), _result(2, 0.2)]
        ranked = rank(results)
        assert [r.product.id for r in ranked] == [1, 2, 3]

    def test_equal_scores_zero(self):
        results = [
            _result(i, 0.0, MatchStage.PASS_THROUGH) for i in range(5)
        ]
        assert [r.product.id for r in rank(results)] == [0, 1, 2, 3, 4]

    def test_fuzzy_results_capped(self):
        results = [_result(i, 0.1 + i / 100) for i in range(12)]
        ranked = ResultRanker(max_fuzzy_results=4).rank(results)
        assert [r.product.id for r in ranked] == [0, 1, 2, 3]

    def test_edit_distance_results_capped(self):
        results = [_result(i, 0.2, MatchStage.EDIT_DISTANCE) for i in range(6)]
        assert len(rank(results, max_fuzzy_results=2)) == 2

    @pytest.mark.parametrize("stage", [
        MatchStage.EXACT,
        MatchStage.WHOLE_WORD,
        MatchStage.NAME_SUBSTRING,
        MatchStage.DESCRIPTION_SUBSTRING,
        MatchStage.PASS_THROUGH,
    ])
    def test_non_fuzzy_results_never_capped(self, stage):
        results = [_result(i, 0.0, stage) for i in range(25)]
        assert len(ResultRanker(max_fuzzy_results=3).rank(results)) == 25

    def test_input_not_mutated(self):
        results = [_result(2, 0.5), _result(1, 0.1)]
        rank(results)
        assert [r.product.id for r in results] == [2, 1]

    def test_empty(self):
        assert rank([]) == []


class TestMatchQuality:
    """Tests for ResultRanker.match_quality()."""

    @pytest.mark.parametrize("score,label", [
        (0.0, "exact"),
        (0.1, "strong"),
        (0.2, "strong"),
        (0.3, "fair"),
        (0.45, "fair"),
        (0.6, "weak"),
        (1.0, "weak"),
    ])
    def test_bands(self, score, label):
        assert ResultRanker().match_quality(score) == label


class TestMatchStage:
    """Tests for MatchStage.is_fuzzy."""

    def test_is_fuzzy(self):
        assert MatchStage.FUZZY_NAME.is_fuzzy
        assert MatchStage.FUZZY_ALL_FIELDS.is_fuzzy
        assert MatchStage.EDIT_DISTANCE.is_fuzzy
        assert not MatchStage.EXACT.is_fuzzy
        assert not MatchStage.NONE.is_fuzzy
