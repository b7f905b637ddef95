"""
Core data models for the farm shop engine.

Defines all data structures used throughout the application.
These are pure Python dataclasses with no external dependencies.
Every object here is built fresh per call from caller snapshots.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Mapping, Optional, Sequence, Tuple, Union
from enum import Enum


ProductId = Hashable


@dataclass(frozen=True)
class ProductRecord:
    """
    A sellable product as supplied by the catalog provider.

    Attributes:
        id: Unique, stable product identifier
        name: Display name (non-empty for matchable records)
        description: Free-text description (may be empty)
        categories: Category/tag names the product belongs to
        price: Regular price (non-negative)
        on_sale: Whether the product is currently on sale
        sale_price: Sale price, only meaningful when on_sale
        image: Optional image URL, carried through untouched
    """
    id: ProductId
    name: str
    description: str = ""
    categories: frozenset = field(default_factory=frozenset)
    price: float = 0.0
    on_sale: bool = False
    sale_price: Optional[float] = None
    image: Optional[str] = None

    def __post_init__(self):
        # Accept a single category string or any iterable of names
        cats = self.categories
        if isinstance(cats, str):
            cats = frozenset([cats]) if cats else frozenset()
        elif not isinstance(cats, frozenset):
            cats = frozenset(c for c in cats if c)
        object.__setattr__(self, "categories", cats)

    @property
    def effective_price(self) -> float:
        """Sale price when on sale and present, regular price otherwise."""
        if self.on_sale and self.sale_price is not None:
            return self.sale_price
        return self.price

    @property
    def category_text(self) -> str:
        """Categories joined in sorted order, for text matching."""
        return " ".join(sorted(self.categories))


Catalog = Sequence[ProductRecord]


@dataclass(frozen=True)
class CartLine:
    """
    One line of the shopping cart.

    Quantity > 0 is the cart owner's responsibility and is not enforced.
    """
    product_id: ProductId
    quantity: int = 1


CartSnapshot = Sequence[Union[CartLine, Tuple[ProductId, int]]]

CoOccurrenceTable = Mapping[ProductId, Sequence[Tuple[ProductId, float]]]


class MatchStage(Enum):
    """
    Stages of the match pipeline, in the order they are attempted.

    PASS_THROUGH is used for empty queries, NONE when nothing matched.
    """
    PASS_THROUGH = "pass_through"
    EXACT = "exact"
    WHOLE_WORD = "whole_word"
    NAME_SUBSTRING = "name_substring"
    DESCRIPTION_SUBSTRING = "description_substring"
    FUZZY_NAME = "fuzzy_name"
    FUZZY_ALL_FIELDS = "fuzzy_all_fields"
    EDIT_DISTANCE = "edit_distance"
    NONE = "none"

    @property
    def is_fuzzy(self) -> bool:
        """True for the approximate stages whose output gets capped."""
        return self in (
            MatchStage.FUZZY_NAME,
            MatchStage.FUZZY_ALL_FIELDS,
            MatchStage.EDIT_DISTANCE,
        )


@dataclass
class MatchResult:
    """
    A single product accepted by the match pipeline.

    Attributes:
        product: The matched product
        score: Match score in [0, 1], 0 = perfect
        matched_field: Field that produced the match ("name", "description", ...)
        stage: Pipeline stage that accepted the product
        position: Index of the product in the searched catalog
    """
    product: ProductRecord
    score: float
    matched_field: str
    stage: MatchStage
    position: int = 0

    def __str__(self) -> str:
        return f"MatchResult({self.product.id}, score={self.score:.3f}, {self.stage.value})"


@dataclass
class SearchResult:
    """
    Search result with matches and metadata.

    Attributes:
        matches: Ranked match results
        stage: Which pipeline stage produced the matches
        query: Normalized query (trimmed, lower-cased)
        total_count: Accepted matches before any truncation
        filters_used: Filter criteria that were active
    """
    matches: list[MatchResult]
    stage: MatchStage
    query: str = ""
    total_count: int = 0
    filters_used: dict = field(default_factory=dict)

    def items(self) -> list[tuple[ProductRecord, float]]:
        """Return (product, score) pairs in ranked order."""
        return [(m.product, m.score) for m in self.matches]

    def products(self) -> list[ProductRecord]:
        """Return just the products in ranked order."""
        return [m.product for m in self.matches]

    def is_empty(self) -> bool:
        return not self.matches


@dataclass
class FilterCriteria:
    """
    Catalog filter criteria. Absent (None) criteria are no-ops.

    Attributes:
        category: Category names to keep (case-insensitive, "All" disables)
        min_price: Inclusive lower bound on effective price
        max_price: Inclusive upper bound on effective price
        on_sale: Keep only sale (True) or only non-sale (False) items
    """
    category: Optional[Union[set[str], frozenset, str]] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    on_sale: Optional[bool] = None

    def is_empty(self) -> bool:
        """Check if no criterion is set."""
        return (
            self.category is None
            and self.min_price is None
            and self.max_price is None
            and self.on_sale is None
        )

    def to_dict(self) -> dict[str, Any]:
        """Active criteria as a plain dict (for logging)."""
        filter_dict = {}
        if self.category is not None:
            if isinstance(self.category, str):
                filter_dict['category'] = [self.category]
            else:
                filter_dict['category'] = sorted(self.category)
        if self.min_price is not None:
            filter_dict['min_price'] = self.min_price
        if self.max_price is not None:
            filter_dict['max_price'] = self.max_price
        if self.on_sale is not None:
            filter_dict['on_sale'] = self.on_sale
        return filter_dict


class RecommendationSource(Enum):
    """Which pass of the recommendation engine chose a product."""
    NEW_VISITOR = "new_visitor"
    CO_PURCHASE = "co_purchase"
    CATEGORY = "category"
    RANDOM = "random"


@dataclass
class RecommendationTrace:
    """
    Recommendations together with the pass that produced each one.

    Attributes:
        products: Recommended products, at most k
        sources: Product id -> RecommendationSource
    """
    products: list[ProductRecord]
    sources: dict = field(default_factory=dict)

    def source_of(self, product_id: ProductId) -> Optional[RecommendationSource]:
        return self.sources.get(product_id)

    def count_by_source(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for product in self.products:
            source = self.sources.get(product.id)
            if source is not None:
                counts[source.value] = counts.get(source.value, 0) + 1
        return counts
