"""
Spreadsheet loader for farm shop catalogs and co-purchase data.

Loads a product sheet (.csv or .xlsx) into ProductRecord objects and an
order/pair sheet into a co-purchase table. This is the catalog provider
side of the engine: rows the engine must never see (no id, blank name,
missing or negative price, duplicate id) are dropped here and counted.

Architecture: read every cell as text, normalize column names through
COLUMN_ALIASES, then parse each field with a small helper.
"""

import re
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd

from core.context import ProductRecord
from core.recommend import build_co_occurrence
from core.structured_logging import get_logger, log_error, timed

_logger = get_logger("catalog_loader")


# =============================================================================
# COLUMN NORMALIZATION MAPPINGS
# =============================================================================
# Maps sheet column names (lower-cased, spaces -> underscores) to the
# field names used by ProductRecord

COLUMN_ALIASES = {
    # Identification
    'product_id': 'id',
    'product_number': 'id',
    'sku': 'id',
    'product_name': 'name',
    'title': 'name',

    # Text
    'details': 'description',
    'desc': 'description',

    # Categories
    'categories': 'category',
    'tags': 'category',

    # Pricing
    'regular_price': 'price',
    'sale': 'on_sale',
    'is_on_sale': 'on_sale',
    'discount_price': 'sale_price',

    # Media
    'image_url': 'image',
    'img': 'image',
}

# Co-purchase and order sheets keep product_id as the key column
PAIR_COLUMN_ALIASES = {
    'product': 'product_id',
    'sku': 'product_id',
    'other_product_id': 'other_id',
    'other': 'other_id',
    'count': 'frequency',
    'times_bought_together': 'frequency',
    'order': 'order_id',
    'basket_id': 'order_id',
    'user_id': 'order_id',
}

REQUIRED_CATALOG_COLUMNS = ('id', 'name', 'price')
REQUIRED_PAIR_COLUMNS = ('product_id', 'other_id', 'frequency')
REQUIRED_ORDER_COLUMNS = ('order_id', 'product_id')

TRUE_VALUES = {'1', 'true', 'yes', 'y', 't', 'on sale', 'sale'}

_CATEGORY_SPLIT = re.compile(r'[|,;]')
_PRICE_JUNK = re.compile(r'[^0-9.\-]')


class CatalogLoadError(Exception):
    """Raised when a sheet cannot be read or lacks required columns."""


# =============================================================================
# PARSING HELPERS
# =============================================================================

def normalize_column(name: Any, aliases: Optional[dict] = None) -> str:
    """Lower-case, underscore, then apply the alias table (COLUMN_ALIASES by default)."""
    key = re.sub(r'\s+', '_', str(name).strip().lower())
    if aliases is None:
        aliases = COLUMN_ALIASES
    return aliases.get(key, key)


def parse_id(value: Any) -> Optional[Any]:
    """
    Parse a product id.

    Integer-looking ids become int so they line up with cart ids.

    Examples:
    - "12" -> 12
    - "12.0" -> 12
    - "VEG-01" -> "VEG-01"
    - "" -> None
    """
    text = str(value).strip() if value is not None else ''
    if not text:
        return None
    if re.fullmatch(r'-?\d+', text):
        return int(text)
    if re.fullmatch(r'-?\d+\.0+', text):
        return int(float(text))
    return text


def parse_price(value: Any) -> Optional[float]:
    """
    Parse a price, ignoring currency labels and thousands separators.

    Examples:
    - "250" -> 250.0
    - "NPR 1,250.50" -> 1250.5
    - "" -> None
    - "free" -> None
    """
    text = str(value).strip() if value is not None else ''
    if not text:
        return None
    cleaned = _PRICE_JUNK.sub('', text.replace(',', ''))
    # Currency labels like "Rs." leave a stray leading dot behind
    cleaned = cleaned.lstrip('.')
    if not cleaned or cleaned in ('-', '.'):
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_bool(value: Any) -> bool:
    """Parse a yes/no style cell."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def parse_categories(value: Any) -> frozenset:
    """
    Parse a category cell.

    Examples:
    - "Vegetables" -> {"Vegetables"}
    - "Vegetables | Organic" -> {"Vegetables", "Organic"}
    """
    text = str(value).strip() if value is not None else ''
    if not text:
        return frozenset()
    return frozenset(part.strip() for part in _CATEGORY_SPLIT.split(text) if part.strip())


def _read_table(path: str, aliases: Optional[dict] = None) -> pd.DataFrame:
    """Read a .csv or .xlsx sheet as text with normalized column names."""
    file_path = Path(path)
    if not file_path.exists():
        raise CatalogLoadError(f"File not found: {path}")

    suffix = file_path.suffix.lower()
    try:
        if suffix == '.csv':
            df = pd.read_csv(file_path, dtype=str, keep_default_na=False)
        elif suffix in ('.xlsx', '.xls'):
            df = pd.read_excel(file_path, dtype=str).fillna('')
        else:
            raise CatalogLoadError(f"Unsupported file type: {suffix or '(none)'}")
    except CatalogLoadError:
        raise
    except Exception as e:
        log_error(None, e, context=f"reading {path}")
        raise CatalogLoadError(f"Could not read {path}: {e}") from e

    df.columns = [normalize_column(c, aliases) for c in df.columns]
    return df


def _require_columns(df: pd.DataFrame, required, path: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise CatalogLoadError(f"{path} is missing required column(s): {', '.join(missing)}")


# =============================================================================
# MAIN LOADERS
# =============================================================================

@timed("catalog_load")
def load_catalog(path: str) -> List[ProductRecord]:
    """
    Load a product catalog from a spreadsheet.

    Args:
        path: Path to a .csv or .xlsx file with at least id, name and price
            columns (description, category, on_sale, sale_price, image optional)

    Returns:
        ProductRecord list in sheet order

    Raises:
        CatalogLoadError: If the file is missing, unreadable or lacks columns
    """
    df = _read_table(path)
    _require_columns(df, REQUIRED_CATALOG_COLUMNS, path)

    products = []
    seen_ids = set()
    skipped = 0
    errors = []

    for idx, row in df.iterrows():
        product_id = parse_id(row.get('id'))
        name = str(row.get('name', '')).strip()
        price = parse_price(row.get('price'))

        problem = None
        if product_id is None:
            problem = "No id"
        elif product_id in seen_ids:
            problem = f"Duplicate id {product_id!r}"
        elif not name:
            problem = "Blank name"
        elif price is None:
            problem = "Missing or unparsable price"
        elif price < 0:
            problem = f"Negative price {price}"

        if problem:
            skipped += 1
            if len(errors) < 10:
                errors.append(f"Row {idx}: {problem}")
            continue

        on_sale = parse_bool(row.get('on_sale', ''))
        sale_price = parse_price(row.get('sale_price')) if on_sale else None
        if sale_price is not None and sale_price < 0:
            sale_price = None

        image = str(row.get('image', '')).strip() or None

        seen_ids.add(product_id)
        products.append(ProductRecord(
            id=product_id,
            name=name,
            description=str(row.get('description', '')).strip(),
            categories=parse_categories(row.get('category')),
            price=price,
            on_sale=on_sale,
            sale_price=sale_price,
            image=image,
        ))

    _logger.info(
        f"Loaded {len(products)} products from {path}",
        extra={"event": "catalog_loaded", "products_found": len(products)}
    )
    if skipped:
        _logger.warning(
            f"Skipped {skipped} catalog rows: {'; '.join(errors[:5])}",
            extra={"event": "catalog_rows_skipped"}
        )

    return products


@timed("co_occurrence_load")
def load_co_occurrence(path: str) -> dict:
    """
    Load a co-purchase table from a pair sheet.

    Args:
        path: Sheet with product_id, other_id and frequency columns

    Returns:
        product_id -> [(other_id, frequency), ...] in sheet order; repeated
        pairs are summed
    """
    df = _read_table(path, PAIR_COLUMN_ALIASES)
    _require_columns(df, REQUIRED_PAIR_COLUMNS, path)

    table: dict = {}
    skipped = 0

    for _, row in df.iterrows():
        product_id = parse_id(row.get('product_id'))
        other_id = parse_id(row.get('other_id'))
        frequency = parse_price(row.get('frequency'))

        if product_id is None or other_id is None or frequency is None:
            skipped += 1
            continue

        row_map = table.setdefault(product_id, {})
        row_map[other_id] = row_map.get(other_id, 0) + frequency

    if skipped:
        _logger.warning(
            f"Skipped {skipped} co-purchase rows with missing values",
            extra={"event": "co_occurrence_rows_skipped"}
        )

    return {product_id: list(row_map.items()) for product_id, row_map in table.items()}


def load_purchase_histories(path: str) -> List[List[Any]]:
    """
    Load past orders as baskets of product ids.

    Args:
        path: Sheet with one (order_id, product_id) pair per row

    Returns:
        Baskets in first-seen order of order ids
    """
    df = _read_table(path, PAIR_COLUMN_ALIASES)
    _require_columns(df, REQUIRED_ORDER_COLUMNS, path)

    baskets: dict = {}
    for _, row in df.iterrows():
        order_id = str(row.get('order_id', '')).strip()
        product_id = parse_id(row.get('product_id'))
        if not order_id or product_id is None:
            continue
        baskets.setdefault(order_id, []).append(product_id)

    return list(baskets.values())


def load_co_occurrence_from_orders(path: str) -> dict:
    """Derive a co-purchase table from an order sheet."""
    return build_co_occurrence(load_purchase_histories(path))


def get_catalog_statistics(products: List[ProductRecord]) -> dict:
    """
    Get statistics about loaded products.

    Returns dict with:
    - total: Total product count
    - by_category: Count by category
    - on_sale: Count of products on sale
    - min_price / max_price / avg_price: Effective price stats
    """
    stats = {
        'total': len(products),
        'by_category': {},
        'on_sale': 0,
        'min_price': None,
        'max_price': None,
        'avg_price': None,
    }

    prices = []
    for product in products:
        for category in sorted(product.categories) or ['other']:
            stats['by_category'][category] = stats['by_category'].get(category, 0) + 1

        if product.on_sale:
            stats['on_sale'] += 1

        prices.append(product.effective_price)

    if prices:
        stats['min_price'] = min(prices)
        stats['max_price'] = max(prices)
        stats['avg_price'] = round(sum(prices) / len(prices), 2)

    return stats
