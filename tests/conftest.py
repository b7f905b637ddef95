"""
Shared fixtures for the farm shop tests.

Run with: pytest tests/ -v
"""

import pytest
from core.context import ProductRecord


@pytest.fixture
def farm_catalog():
    """A small farm shop catalog (effective prices in comments)."""
    return [
        ProductRecord(1, "Organic Tomatoes", "Vine-ripened tomatoes grown without pesticides",
                      {"Vegetables"}, 250),                                   # 250
        ProductRecord(2, "Fresh Carrots", "Crunchy orange carrots, harvested weekly",
                      {"Vegetables"}, 180),                                   # 180
        ProductRecord(3, "Free Range Chicken", "Whole chicken raised on open pasture",
                      {"Chicken"}, 550, on_sale=True, sale_price=480),        # 480
        ProductRecord(4, "Napier Grass", "Fodder grass for cattle and goats",
                      {"Grass"}, 180),                                        # 180
        ProductRecord(5, "Farm Eggs", "A dozen brown eggs from free range hens, great with tomatoes",
                      {"Others"}, 200),                                       # 200
        ProductRecord(6, "Spinach Bundle", "Leafy greens picked this morning",
                      {"Vegetables"}, 220, on_sale=True, sale_price=150),     # 150
        ProductRecord(7, "Chicken Drumsticks", "Tender drumsticks, cleaned and packed",
                      {"Chicken"}, 650),                                      # 650
        ProductRecord(8, "Alfalfa Hay", "Dried alfalfa for livestock",
                      {"Grass"}, 320),                                        # 320
    ]


@pytest.fixture
def two_product_catalog():
    """The tomatoes/carrots catalog used by the typo scenarios."""
    return [
        ProductRecord(1, "Organic Tomatoes"),
        ProductRecord(2, "Fresh Carrots"),
    ]

