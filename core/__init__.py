"""Core search and recommendation logic for the farm shop."""

from core.context import (
    ProductRecord,
    CartLine,
    MatchStage,
    MatchResult,
    SearchResult,
    FilterCriteria,
    RecommendationSource,
    RecommendationTrace,
)
from core.product_validator import CatalogError
from core.filters import CatalogFilter, apply_filters, list_categories
from core.search import SearchStrategy, SearchConfig
from core.ranking import ResultRanker, rank
from core.recommend import (
    RecommendationEngine,
    RecommendationError,
    ShufflePolicy,
    build_co_occurrence,
    make_rng,
)

__all__ = [
    "ProductRecord",
    "CartLine",
    "MatchStage",
    "MatchResult",
    "SearchResult",
    "FilterCriteria",
    "RecommendationSource",
    "RecommendationTrace",
    "CatalogError",
    "CatalogFilter",
    "apply_filters",
    "list_categories",
    "SearchStrategy",
    "SearchConfig",
    "ResultRanker",
    "rank",
    "RecommendationEngine",
    "RecommendationError",
    "ShufflePolicy",
    "build_co_occurrence",
    "make_rng",
]
