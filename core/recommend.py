"""
Recommendation engine for the farm shop.

"Customers also bought" suggestions built from a co-purchase table:
1. New visitor (empty cart): random picks from the catalog
2. Co-purchase: candidates ranked by summed co-occurrence frequency
3. Category affinity: catalog items sharing a category with the cart
4. Random fill: remaining eligible items, shuffled
5. Integrity pass: dedupe, drop ids missing from the live catalog, cap at k

Randomness always comes from an injected random.Random so results are
reproducible under test.
"""

import hashlib
import numbers
import random
from collections.abc import Mapping
from enum import Enum
from typing import Iterable, Optional

from core.context import (
    CartLine,
    ProductRecord,
    RecommendationSource,
    RecommendationTrace,
)
from core.product_validator import ensure_catalog
from core.structured_logging import get_logger
from config.weights import DEFAULT_RECOMMENDATION_COUNT

# Module-level logger
_logger = get_logger("core.recommend")


class RecommendationError(ValueError):
    """Raised when recommend() is called with an invalid k."""


class ShufflePolicy(Enum):
    """How the random source is chosen when the caller does not inject one."""
    PER_CALL = "per_call"        # Fresh randomness on every call
    PER_SESSION = "per_session"  # Stable for a browsing session


def session_seed(session_id) -> int:
    """Stable 64-bit seed for a session id (same across processes)."""
    digest = hashlib.sha256(str(session_id).encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def make_rng(
    policy=ShufflePolicy.PER_CALL,
    seed: Optional[int] = None,
    session_id: Optional[str] = None,
) -> random.Random:
    """
    Build the random source for a recommendation call.

    Args:
        policy: ShufflePolicy or its string value
        seed: Optional base seed (mixed into the session seed)
        session_id: Session identifier, used by PER_SESSION

    Returns:
        A random.Random instance
    """
    policy = ShufflePolicy(policy)

    if policy is ShufflePolicy.PER_SESSION:
        if session_id is None:
            _logger.warning(
                "Per-session shuffling requested without a session id, using per-call randomness",
                extra={"event": "rng_no_session", "shuffle_policy": policy.value}
            )
            return random.Random(seed)
        return random.Random(session_seed(session_id) ^ (seed or 0))

    return random.Random(seed)


def validate_k(k) -> int:
    """
    Check the requested recommendation count.

    Raises:
        RecommendationError: If k is not a positive integer
    """
    if isinstance(k, bool) or not isinstance(k, numbers.Integral):
        raise RecommendationError(f"k must be a positive integer, got {k!r}")
    if k <= 0:
        raise RecommendationError(f"k must be a positive integer, got {k}")
    return int(k)


def cart_product_ids(cart) -> list:
    """
    Distinct product ids of a cart, in cart order.

    Accepts CartLine objects or (product_id, quantity) pairs.
    """
    if cart is None:
        return []

    ids = []
    seen = set()
    for line in cart:
        if isinstance(line, CartLine):
            product_id = line.product_id
        elif isinstance(line, (tuple, list)) and line:
            product_id = line[0]
        else:
            raise TypeError(
                f"cart lines must be CartLine or (product_id, quantity), got {type(line).__name__}"
            )
        if product_id not in seen:
            seen.add(product_id)
            ids.append(product_id)
    return ids


def _table_entries(entries) -> Iterable[tuple]:
    if not entries:
        return []
    if isinstance(entries, Mapping):
        return entries.items()
    return entries


class RecommendationEngine:
    """
    Produces a bounded list of suggested products for a cart.

    Example:
        >>> engine = RecommendationEngine()
        >>> picks = engine.recommend(cart, catalog, table, k=3, rng=random.Random(7))
        >>> [p.id for p in picks]
        [2, 3, 4]
    """

    def __init__(self, k: int = DEFAULT_RECOMMENDATION_COUNT):
        """
        Args:
            k: Default number of recommendations
        """
        self.k = validate_k(k)

    def recommend(
        self,
        cart,
        catalog,
        co_occurrence=None,
        k: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> list[ProductRecord]:
        """
        Recommend up to k products for a cart.

        Args:
            cart: CartSnapshot (CartLine or (product_id, quantity) items)
            catalog: Ordered sequence of ProductRecord
            co_occurrence: product_id -> [(other_id, frequency), ...]
            k: Number of recommendations (engine default if None)
            rng: Random source for the random passes

        Returns:
            At most k distinct products, none of them in the cart
        """
        return self.recommend_with_trace(cart, catalog, co_occurrence, k, rng).products

    def recommend_with_trace(
        self,
        cart,
        catalog,
        co_occurrence=None,
        k: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> RecommendationTrace:
        """Same as recommend(), also reporting which pass chose each product."""
        k = self.k if k is None else validate_k(k)
        ensure_catalog(catalog)
        rng = rng if rng is not None else random.Random()
        co_occurrence = co_occurrence or {}

        if not catalog:
            return RecommendationTrace(products=[])

        by_id = {}
        for product in catalog:
            by_id.setdefault(product.id, product)

        cart_ids = cart_product_ids(cart)
        cart_set = set(cart_ids)

        chosen: list[ProductRecord] = []
        sources: dict = {}

        def add(product: ProductRecord, source: RecommendationSource) -> None:
            if product.id in sources or product.id in cart_set:
                return
            chosen.append(product)
            sources[product.id] = source

        if not cart_ids:
            pool = list(catalog)
            rng.shuffle(pool)
            for product in pool:
                if len(chosen) >= k:
                    break
                add(product, RecommendationSource.NEW_VISITOR)
        else:
            self._co_purchase_pass(cart_ids, cart_set, co_occurrence, by_id, k, chosen, add)

            if len(chosen) < k:
                self._category_pass(cart_ids, catalog, by_id, k, chosen, add)

            if len(chosen) < k:
                self._random_pass(catalog, cart_set, sources, k, chosen, rng, add)

        products = self._integrity_pass(chosen, by_id, cart_set, k)

        _logger.debug(
            f"Recommended {len(products)} products",
            extra={
                "event": "recommend_passes",
                "cart_size": len(cart_ids),
                "k": k,
                "product_ids": [p.id for p in products],
            }
        )

        return RecommendationTrace(
            products=products,
            sources={p.id: sources[p.id] for p in products},
        )

    # === Passes ===

    def _co_purchase_pass(self, cart_ids, cart_set, co_occurrence, by_id, k, chosen, add) -> None:
        """Rank candidates by summed co-occurrence frequency."""
        frequencies: dict = {}
        for product_id in cart_ids:
            for other_id, frequency in _table_entries(co_occurrence.get(product_id)):
                if other_id in cart_set:
                    continue
                try:
                    if frequency is None or frequency <= 0:
                        continue
                except TypeError:
                    continue
                frequencies[other_id] = frequencies.get(other_id, 0) + frequency

        # Stable sort keeps first-seen order among equal frequencies
        ranked = sorted(frequencies.items(), key=lambda kv: kv[1], reverse=True)

        for other_id, frequency in ranked:
            if len(chosen) >= k:
                break
            product = by_id.get(other_id)
            if product is None:
                _logger.debug(
                    f"Skipping co-purchase candidate {other_id!r}: not in catalog",
                    extra={"event": "recommend_stale_candidate"}
                )
                continue
            add(product, RecommendationSource.CO_PURCHASE)

    def _category_pass(self, cart_ids, catalog, by_id, k, chosen, add) -> None:
        """Fill with catalog items sharing a category with the cart."""
        cart_categories = set()
        for product_id in cart_ids:
            product = by_id.get(product_id)
            if product is not None:
                cart_categories.update(c.lower() for c in product.categories)

        if not cart_categories:
            return

        for product in catalog:
            if len(chosen) >= k:
                break
            if any(c.lower() in cart_categories for c in product.categories):
                add(product, RecommendationSource.CATEGORY)

    def _random_pass(self, catalog, cart_set, sources, k, chosen, rng, add) -> None:
        """Fill with shuffled remaining eligible items."""
        remaining = [
            p for p in catalog
            if p.id not in cart_set and p.id not in sources
        ]
        rng.shuffle(remaining)
        for product in remaining:
            if len(chosen) >= k:
                break
            add(product, RecommendationSource.RANDOM)

    def _integrity_pass(self, chosen, by_id, cart_set, k) -> list[ProductRecord]:
        """Dedupe, drop ids not in the live catalog or in the cart, cap at k."""
        seen = set()
        products = []
        for product in chosen:
            if product.id in seen or product.id in cart_set or product.id not in by_id:
                continue
            seen.add(product.id)
            products.append(product)
        return products[:k]


def recommend(
    cart,
    catalog,
    co_occurrence=None,
    k: int = DEFAULT_RECOMMENDATION_COUNT,
    rng: Optional[random.Random] = None,
) -> list[ProductRecord]:
    """Recommend up to k products with a default RecommendationEngine."""
    return RecommendationEngine().recommend(cart, catalog, co_occurrence, k, rng)


def build_co_occurrence(purchase_histories) -> dict:
    """
    Derive a co-purchase table from past baskets.

    Every ordered pair of distinct products bought together in one basket
    adds 1 to that pair's frequency.

    Args:
        purchase_histories: Iterable of baskets, each an iterable of product
            ids or a mapping with an "items" key

    Returns:
        product_id -> [(other_id, frequency), ...] sorted by frequency
        descending, ties in first-appearance order

    Example:
        >>> build_co_occurrence([[1, 2], [1, 3], [1, 2, 3]])
        {1: [(2, 2), (3, 2)], 2: [(1, 2), (3, 1)], 3: [(1, 2), (2, 1)]}
    """
    counts: dict = {}

    for basket in purchase_histories:
        if isinstance(basket, Mapping):
            basket = basket.get("items", [])

        items = []
        for product_id in basket:
            if product_id not in items:
                items.append(product_id)

        for product_id in items:
            row = counts.setdefault(product_id, {})
            for other_id in items:
                if other_id != product_id:
                    row[other_id] = row.get(other_id, 0) + 1

    return {
        product_id: sorted(row.items(), key=lambda kv: kv[1], reverse=True)
        for product_id, row in counts.items()
    }
