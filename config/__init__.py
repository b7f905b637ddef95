"""Configuration for the farm shop engine."""

from config.weights import (
    FIELD_WEIGHTS,
    NAME_MATCH_SCORE,
    DESCRIPTION_MATCH_SCORE,
    NAME_FUZZY_THRESHOLD,
    ALL_FIELDS_FUZZY_THRESHOLD,
    EDIT_DISTANCE_RATIO,
    MAX_FUZZY_RESULTS,
    MIN_FUZZY_QUERY_LENGTH,
    DEFAULT_RECOMMENDATION_COUNT,
    ALL_CATEGORIES,
)

__all__ = [
    "FIELD_WEIGHTS",
    "NAME_MATCH_SCORE",
    "DESCRIPTION_MATCH_SCORE",
    "NAME_FUZZY_THRESHOLD",
    "ALL_FIELDS_FUZZY_THRESHOLD",
    "EDIT_DISTANCE_RATIO",
    "MAX_FUZZY_RESULTS",
    "MIN_FUZZY_QUERY_LENGTH",
    "DEFAULT_RECOMMENDATION_COUNT",
    "ALL_CATEGORIES",
]
