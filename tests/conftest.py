"""
Shared pytest fixtures for the Gamme Advisor test suite.

Provides:
  - ``make_product``: factory building a ``ProductMetrics`` with sensible
    defaults; any field can be overridden by keyword.
  - ``supplier_lot``: a small two-rayon supplier lot used by several modules.
"""

from __future__ import annotations

from typing import Callable

import pytest

from gamme_advisor.models.product import ProductMetrics


def _build_product(product_id: str = "P1", **overrides) -> ProductMetrics:
    fields = {
        "id": product_id,
        "label": f"Product {product_id}",
        "rayon_label": "1001 Beverages",
        "supplier_code": "SUP1",
        "total_quantity": 100.0,
        "total_revenue": 500.0,
        "total_margin": 150.0,
        "store_count": 2,
        "months_active": 12,
        "inactivity_months": 0,
    }
    fields.update(overrides)
    return ProductMetrics(**fields)


@pytest.fixture
def make_product() -> Callable[..., ProductMetrics]:
    """Return the product factory: ``make_product("P7", total_quantity=40)``."""
    return _build_product


@pytest.fixture
def supplier_lot() -> list[ProductMetrics]:
    """Eight products: six in rayon 1001, two in rayon 2002.

    P1 is the clear leader; P6 is weak and partly inactive; P8 is a
    single-store product in the small rayon.
    """
    beverages = "1001 Beverages"
    snacks = "2002 Snacks"
    return [
        _build_product("P1", rayon_label=beverages, total_quantity=1200, total_revenue=3600, total_margin=1080),
        _build_product("P2", rayon_label=beverages, total_quantity=800, total_revenue=2000, total_margin=500),
        _build_product("P3", rayon_label=beverages, total_quantity=400, total_revenue=1600, total_margin=640),
        _build_product("P4", rayon_label=beverages, total_quantity=300, total_revenue=900, total_margin=180),
        _build_product("P5", rayon_label=beverages, total_quantity=150, total_revenue=600, total_margin=210),
        _build_product(
            "P6", rayon_label=beverages, total_quantity=20, total_revenue=60, total_margin=6,
            months_active=3, inactivity_months=4,
        ),
        _build_product("P7", rayon_label=snacks, total_quantity=500, total_revenue=1000, total_margin=300),
        _build_product(
            "P8", rayon_label=snacks, total_quantity=90, total_revenue=270, total_margin=90,
            store_count=1,
        ),
    ]
