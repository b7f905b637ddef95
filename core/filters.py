"""
Catalog filtering for the farm shop engine.

Narrows a catalog snapshot by:
- Category (case-insensitive, "All" disables the filter)
- Price range (inclusive, against the effective price)
- Sale status

Pure functions: the input catalog is never mutated and the output keeps
catalog order. Malformed criteria (inverted price range, unknown category)
give an empty result instead of an error.
"""

from typing import Iterable, Optional

from core.context import FilterCriteria, ProductRecord
from core.product_validator import ensure_catalog
from core.structured_logging import Timer, get_logger, log_filters
from config.weights import ALL_CATEGORIES

# Module-level logger
_logger = get_logger("core.filters")


def normalize_categories(category) -> Optional[frozenset]:
    """
    Normalize a category criterion to a lower-cased frozenset.

    Args:
        category: None, a single name, or an iterable of names

    Returns:
        None when the category filter is disabled (absent or "All"),
        otherwise the set of lower-cased names
    """
    if category is None:
        return None

    if isinstance(category, str):
        names = [category]
    else:
        names = list(category)

    normalized = frozenset(str(n).strip().lower() for n in names if n is not None)

    if ALL_CATEGORIES.lower() in normalized:
        return None

    return normalized


def _matches_category(product: ProductRecord, wanted: frozenset) -> bool:
    return any(c.lower() in wanted for c in product.categories)


def _within_price(product: ProductRecord, min_price, max_price) -> bool:
    try:
        price = product.effective_price
        if min_price is not None and price < min_price:
            return False
        if max_price is not None and price > max_price:
            return False
    except TypeError:
        # Missing or non-numeric price never satisfies a price bound
        return False
    return True


class CatalogFilter:
    """
    Applies FilterCriteria to a catalog snapshot.

    Example:
        >>> catalog_filter = CatalogFilter()
        >>> criteria = FilterCriteria(category={"Vegetables"}, max_price=200)
        >>> cheap_veg = catalog_filter.apply(catalog, criteria)
    """

    def apply(
        self,
        catalog,
        criteria: Optional[FilterCriteria] = None,
        session_id: Optional[str] = None,
    ) -> list[ProductRecord]:
        """
        Filter a catalog.

        Args:
            catalog: Ordered sequence of ProductRecord
            criteria: Filter criteria (None or all-absent = no filtering)
            session_id: Session identifier for the filter log

        Returns:
            Order-preserving subset of the catalog as a new list

        Raises:
            CatalogError: If catalog is not a sequence of ProductRecord
        """
        ensure_catalog(catalog)

        if criteria is None or criteria.is_empty():
            return list(catalog)

        min_price = criteria.min_price
        max_price = criteria.max_price

        if min_price is not None and max_price is not None and min_price > max_price:
            _logger.debug(
                "Inverted price range, no products can match",
                extra={"event": "filters_inverted_range", "filters": criteria.to_dict()}
            )
            return []

        wanted = normalize_categories(criteria.category)

        with Timer() as timer:
            filtered = []
            for product in catalog:
                if wanted is not None and not _matches_category(product, wanted):
                    continue
                if not _within_price(product, min_price, max_price):
                    continue
                if criteria.on_sale is not None and bool(product.on_sale) != criteria.on_sale:
                    continue
                filtered.append(product)

        log_filters(
            session_id=session_id,
            filters=criteria.to_dict(),
            catalog_size=len(catalog),
            products_found=len(filtered),
            filter_time_ms=timer.elapsed_ms,
        )

        return filtered


def apply_filters(catalog, criteria: Optional[FilterCriteria] = None) -> list[ProductRecord]:
    """Filter a catalog with the default CatalogFilter."""
    return CatalogFilter().apply(catalog, criteria)


def list_categories(catalog: Iterable[ProductRecord]) -> list[str]:
    """
    Distinct categories in first-appearance order.

    Categories of a single record are visited in sorted order so the
    result does not depend on set iteration order.
    """
    seen = set()
    categories = []
    for product in catalog:
        for category in sorted(product.categories):
            if category not in seen:
                seen.add(category)
                categories.append(category)
    return categories
