"""
Product validation utilities for the farm shop engine.

Two kinds of checks live here:
- Caller-contract checks that fail fast (catalog is not a sequence of
  ProductRecord). These are programming errors, not "no results".
- Matchability checks. Records with an empty name or a negative price
  should have been dropped by the catalog provider; if they slip through
  they are silently skipped by the match stages.
"""

from typing import Sequence

from core.context import ProductRecord


class CatalogError(TypeError):
    """Raised when the catalog argument violates the caller contract."""


def ensure_catalog(catalog, argument: str = "catalog") -> Sequence[ProductRecord]:
    """
    Check that catalog is a list or tuple of ProductRecord.

    Strings, mappings, generators and None are rejected: a generator would
    be consumed by the first pass, and the rest are caller mistakes.

    Args:
        catalog: Value supplied by the caller
        argument: Argument name for the error message

    Returns:
        The catalog unchanged

    Raises:
        CatalogError: If catalog is not a valid sequence of records
    """
    if not isinstance(catalog, (list, tuple)):
        raise CatalogError(
            f"{argument} must be a list or tuple of ProductRecord, "
            f"got {type(catalog).__name__}"
        )

    for idx, record in enumerate(catalog):
        if not isinstance(record, ProductRecord):
            raise CatalogError(
                f"{argument}[{idx}] must be a ProductRecord, got {type(record).__name__}"
            )

    return catalog


def is_matchable(product: ProductRecord) -> bool:
    """
    Check if a record can take part in text matching.

    Args:
        product: Record to check

    Returns:
        False for records with a blank name or a negative price
    """
    if not isinstance(product.name, str) or not product.name.strip():
        return False

    try:
        if product.price is None or product.price < 0:
            return False
    except TypeError:
        # Non-numeric price
        return False

    return True
