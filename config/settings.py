"""
Engine configuration for the farm shop.

One explicit structure enumerating every recognized option and its
default. Unknown keys are rejected instead of silently ignored.

Usage:
    config = EngineConfig.from_dict({"threshold": 0.4, "k": 4})
    strategy = SearchStrategy(config.search_config())
    criteria = config.filter_criteria()
"""

from dataclasses import dataclass, fields
from typing import Any, Optional, Union

from core.context import FilterCriteria
from core.recommend import ShufflePolicy
from core.search import SearchConfig
from config.weights import (
    ALL_FIELDS_FUZZY_THRESHOLD,
    DEFAULT_RECOMMENDATION_COUNT,
    MAX_FUZZY_RESULTS,
    NAME_FUZZY_THRESHOLD,
)


class ConfigError(ValueError):
    """Raised for unknown or out-of-range configuration values."""


@dataclass
class EngineConfig:
    """
    Every option the engine recognizes.

    Attributes:
        threshold: Name-only fuzzy acceptance score (0 = perfect)
        score_cutoff: All-fields fuzzy acceptance score
        prefer_name_matches: Keep description substring hits in a later stage
        category: Default category filter
        min_price: Default lower bound on effective price
        max_price: Default upper bound on effective price
        on_sale: Default sale-status filter
        max_fuzzy_results: Cap on fuzzy/edit-distance results
        k: Number of recommendations
        shuffle_policy: "per_call" or "per_session" randomness for the
            random recommendation passes
        seed: Optional base seed for the random source
    """
    threshold: float = NAME_FUZZY_THRESHOLD
    score_cutoff: float = ALL_FIELDS_FUZZY_THRESHOLD
    prefer_name_matches: bool = True
    category: Optional[Union[set, frozenset, str]] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    on_sale: Optional[bool] = None
    max_fuzzy_results: int = MAX_FUZZY_RESULTS
    k: int = DEFAULT_RECOMMENDATION_COUNT
    shuffle_policy: ShufflePolicy = ShufflePolicy.PER_CALL
    seed: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.shuffle_policy, str):
            try:
                self.shuffle_policy = ShufflePolicy(self.shuffle_policy)
            except ValueError:
                raise ConfigError(f"Unknown shuffle_policy: {self.shuffle_policy!r}") from None
        if isinstance(self.category, (list, tuple)):
            self.category = set(self.category)
        self.validate()

    @classmethod
    def from_dict(cls, options: Optional[dict[str, Any]] = None) -> "EngineConfig":
        """
        Build a config from a plain dict.

        Raises:
            ConfigError: If a key is not a recognized option
        """
        options = dict(options or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration option(s): {', '.join(unknown)}")
        return cls(**options)

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: If a value is out of range
        """
        for name in ("threshold", "score_cutoff"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1], got {value}")

        if isinstance(self.max_fuzzy_results, bool) or not isinstance(self.max_fuzzy_results, int) \
                or self.max_fuzzy_results < 1:
            raise ConfigError(f"max_fuzzy_results must be a positive integer, got {self.max_fuzzy_results!r}")

        if isinstance(self.k, bool) or not isinstance(self.k, int) or self.k < 1:
            raise ConfigError(f"k must be a positive integer, got {self.k!r}")

    def search_config(self) -> SearchConfig:
        """Matching options as a SearchConfig."""
        return SearchConfig(
            threshold=self.threshold,
            score_cutoff=self.score_cutoff,
            prefer_name_matches=self.prefer_name_matches,
            max_fuzzy_results=self.max_fuzzy_results,
        )

    def filter_criteria(self) -> FilterCriteria:
        """Default filter options as FilterCriteria."""
        return FilterCriteria(
            category=self.category,
            min_price=self.min_price,
            max_price=self.max_price,
            on_sale=self.on_sale,
        )
