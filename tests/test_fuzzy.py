"""
Tests for field-weighted fuzzy matching and edit distance.

Run with: pytest tests/test_fuzzy.py -v
"""

import pytest

from core.context import ProductRecord
from core.fuzzy import (
    WeightedFieldMatcher,
    edit_distance_score,
    field_score,
    levenshtein_distance,
    max_allowed_distance,
    normalize_text,
    split_words,
)


class TestTextHelpers:
    """Tests for normalization helpers."""

    def test_normalize_text(self):
        assert normalize_text("  Fresh   CARROTS ") == "fresh carrots"
        assert normalize_text(None) == ""
        assert normalize_text("") == ""

    def test_split_words(self):
        assert split_words("vine-ripened tomatoes, fresh") == ["vine", "ripened", "tomatoes", "fresh"]


class TestFieldScore:
    """Tests for per-field scoring (0 = perfect)."""

    def test_substring_is_perfect(self):
        assert field_score("carrot", "fresh carrots") == 0.0

    def test_empty_field_is_no_match(self):
        assert field_score("carrot", "") == 1.0

    def test_typo_scores_close(self):
        assert field_score("carot", "fresh carrots") < 0.3

    def test_unrelated_scores_far(self):
        assert field_score("carot", "organic tomatoes") > 0.45

    def test_score_in_range(self):
        score = field_score("pantri", "honey jar")
        assert 0.0 <= score <= 1.0

    def test_short_tail_of_field_is_not_a_match(self):
        # "ots" at the end of "carrots" shares three letters with "tomatos"
        assert field_score("tomatos", "fresh carrots") > 0.45
        assert field_score("tomatos", "organic tomatoes") == pytest.approx(1 / 8)

    def test_short_query_against_long_description(self):
        assert field_score("hay", "crunchy orange carrots, harvested weekly") > 0.6

    def test_multi_word_query_matches_word_run(self):
        assert field_score("fresh carots", "fresh carrots today") == pytest.approx(1 / 13)


class TestWeightedFieldMatcher:
    """Tests for WeightedFieldMatcher."""

    @pytest.fixture
    def pantry_catalog(self):
        return [
            ProductRecord(1, "Honey Jar", categories={"Pantry"}, price=300),
            ProductRecord(2, "Goat Cheese", categories={"Dairy"}, price=400),
        ]

    def test_weights_are_normalized(self):
        matcher = WeightedFieldMatcher()
        assert sum(matcher.norm_weights.values()) == pytest.approx(1.0)
        assert matcher.norm_weights["name"] > matcher.norm_weights["description"]
        assert matcher.norm_weights["description"] > matcher.norm_weights["category"]

    def test_name_only_fields(self):
        matcher = WeightedFieldMatcher(fields=("name",))
        assert matcher.norm_weights == {"name": 1.0}

    def test_zero_weights_rejected(self):
        with pytest.raises(ValueError):
            WeightedFieldMatcher({"name": 0.0})

    def test_perfect_name_hit_scores_zero(self):
        matcher = WeightedFieldMatcher(fields=("name",))
        score, field = matcher.score("carrots", ProductRecord(2, "Fresh Carrots"))
        assert score == 0.0
        assert field == "name"

    def test_category_pulls_product_in(self, pantry_catalog):
        matcher = WeightedFieldMatcher()
        hits = matcher.search("pantry", enumerate(pantry_catalog), threshold=0.6, limit=10)

        assert [h.product.id for h in hits] == [1]
        assert hits[0].matched_field == "category"

    def test_search_orders_by_score_then_position(self):
        catalog = [
            ProductRecord(1, "Carrot Cake"),
            ProductRecord(2, "Fresh Carrots"),
            ProductRecord(3, "Carrot Cake"),
        ]
        matcher = WeightedFieldMatcher(fields=("name",))
        hits = matcher.search("carot", enumerate(catalog), threshold=0.45, limit=10)

        positions = [h.position for h in hits]
        scores = [h.score for h in hits]
        assert scores == sorted(scores)
        assert positions.index(0) < positions.index(2)

    def test_search_respects_limit(self):
        catalog = [ProductRecord(i, f"Fresh Carrots {i}") for i in range(5)]
        matcher = WeightedFieldMatcher(fields=("name",))
        hits = matcher.search("carot", enumerate(catalog), threshold=0.45, limit=2)

        assert [h.product.id for h in hits] == [0, 1]

    def test_search_without_limit(self):
        catalog = [ProductRecord(i, f"Fresh Carrots {i}") for i in range(12)]
        matcher = WeightedFieldMatcher(fields=("name",))
        hits = matcher.search("carot", enumerate(catalog), threshold=0.45)

        assert len(hits) == 12


class TestEditDistance:
    """Tests for the edit-distance fallback."""

    def test_levenshtein_distance(self):
        assert levenshtein_distance("carot", "carrots") == 2
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3

    def test_levenshtein_distance_cutoff(self):
        assert levenshtein_distance("kitten", "sitting", score_cutoff=1) == 2
        assert levenshtein_distance("carot", "carrots", score_cutoff=2) == 2

    def test_max_allowed_distance(self):
        assert max_allowed_distance("carot", "carrots", 0.34) == 2
        assert max_allowed_distance("ab", "ab", 0.34) == 0

    def test_matches_a_word_of_the_name(self):
        score = edit_distance_score("carot", "fresh carrots", 0.34)
        # distance 2 over max length 7
        assert score == pytest.approx(2 / 7)

    def test_whole_name_too_far(self):
        assert edit_distance_score("carot", "organic tomatoes", 0.34) is None

    def test_identical_is_zero(self):
        assert edit_distance_score("hay", "alfalfa hay", 0.34) == 0.0

    def test_short_strings_need_exact(self):
        # floor(0.34 * 3) == 1 allows one edit, floor(0.34 * 2) == 0 allows none
        assert edit_distance_score("hey", "hay", 0.34) == pytest.approx(1 / 3)
        assert edit_distance_score("ax", "ay", 0.34) is None

    def test_empty_inputs(self):
        assert edit_distance_score("", "fresh carrots") is None
        assert edit_distance_score("carot", "") is None
