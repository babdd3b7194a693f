"""
Aggregation of per-store, per-month sales rows into ``ProductMetrics``.

One ``SalesRow`` is one product sold in one store during one month.  For a
reference month R (``YYYYMM``) the window is the 12 months ending at R
inclusive; rows outside it are ignored.

Per product:
  - totals       : sums of quantity, revenue and margin in the window
  - store_count  : distinct stores with a positive quantity (at least 1)
  - weighted_*   : totals doubled when the product sells in a single store
  - sales_12m    : quantity per month, every window month present (0 if none)
  - months_active: months with a positive quantity
  - inactivity   : months between the last sale and R (12 when never sold)
  - is_last_product_of_supplier: the supplier has one product in the lot
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gamme_advisor.models.product import ProductMetrics

logger = logging.getLogger(__name__)

WINDOW_MONTHS = 12


class SalesRow(BaseModel):
    """One product × store × month sales line."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    store_id: str
    month: str
    quantity: float = 0.0
    revenue: float = 0.0
    margin: float = 0.0
    label: str = ""
    rayon_label: str = ""
    nomenclature_code: Optional[str] = None
    supplier_code: Optional[str] = None
    gtin: Optional[str] = None
    current_category: Optional[str] = None

    @field_validator("month")
    @classmethod
    def valid_month(cls, v: str) -> str:
        month_index(v)
        return v


def month_index(month: str) -> int:
    """``"202503"`` → absolute month number (year * 12 + month - 1)."""
    digits = month.replace("-", "")
    if len(digits) != 6 or not digits.isdigit() or not 1 <= int(digits[4:]) <= 12:
        raise ValueError(f"month must be YYYYMM, got '{month}'")
    return int(digits[:4]) * 12 + int(digits[4:]) - 1


def month_key(index: int) -> str:
    year, month0 = divmod(index, 12)
    return f"{year:04d}{month0 + 1:02d}"


def aggregate_sales(
    rows: Iterable[SalesRow],
    reference_month: str,
) -> list[ProductMetrics]:
    """Aggregate ``rows`` into one ``ProductMetrics`` per product.

    Products appear in order of first occurrence.  Revenue and margin are
    clamped at zero after summing.

    Raises:
        ValueError: ``reference_month`` is not ``YYYYMM``.
    """
    ref = month_index(reference_month)
    first = ref - WINDOW_MONTHS + 1
    window = [month_key(i) for i in range(first, ref + 1)]

    meta: dict[str, SalesRow] = {}
    quantity: dict[str, float] = defaultdict(float)
    revenue: dict[str, float] = defaultdict(float)
    margin: dict[str, float] = defaultdict(float)
    stores: dict[str, set[str]] = defaultdict(set)
    monthly: dict[str, dict[str, float]] = defaultdict(lambda: dict.fromkeys(window, 0.0))

    skipped = 0
    for row in rows:
        idx = month_index(row.month)
        if not first <= idx <= ref:
            skipped += 1
            continue
        pid = row.product_id
        meta.setdefault(pid, row)
        quantity[pid] += row.quantity
        revenue[pid] += row.revenue
        margin[pid] += row.margin
        monthly[pid][month_key(idx)] += row.quantity
        if row.quantity > 0:
            stores[pid].add(row.store_id)

    if skipped:
        logger.debug("aggregate_sales: %d row(s) outside window %s–%s", skipped, window[0], window[-1])

    supplier_sizes: dict[Optional[str], int] = defaultdict(int)
    for row in meta.values():
        supplier_sizes[row.supplier_code] += 1

    products: list[ProductMetrics] = []
    for pid, row in meta.items():
        sales = monthly[pid]
        active = [k for k in window if sales[k] > 0]
        store_count = max(1, len(stores[pid]))
        factor = 2 if store_count == 1 else 1
        total_qty = max(0.0, quantity[pid])
        total_rev = max(0.0, revenue[pid])
        products.append(
            ProductMetrics(
                id=pid,
                label=row.label,
                rayon_label=row.rayon_label,
                nomenclature_code=row.nomenclature_code,
                supplier_code=row.supplier_code,
                gtin=row.gtin,
                current_category=row.current_category,
                total_quantity=total_qty,
                total_revenue=total_rev,
                total_margin=max(0.0, margin[pid]),
                store_count=store_count,
                weighted_total_quantity=total_qty * factor,
                weighted_total_revenue=total_rev * factor,
                months_active=len(active),
                inactivity_months=ref - month_index(active[-1]) if active else WINDOW_MONTHS,
                is_last_product_of_supplier=supplier_sizes[row.supplier_code] == 1,
                sales_12m=sales,
                last_month_with_sale=active[-1] if active else None,
            )
        )

    logger.debug("aggregate_sales: %d product(s) for window ending %s", len(products), reference_month)
    return products
