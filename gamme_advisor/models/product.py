"""
ProductMetrics: one product's trailing-12-month performance, aggregated
across all stores.

Instances are built fresh for every analysis request and are never persisted.
The scoring components read them and only ever assign ``score``.

Default resolution (applied here, once, at the boundary)
--------------------------------------------------------
  rayon_key:          nomenclature 4-digit prefix → leading 4 digits of
                      ``rayon_label`` → raw ``rayon_label`` → ``"default"``.
  effective_quantity: ``weighted_total_quantity`` → ``total_quantity`` → 0.
  effective_revenue:  ``weighted_total_revenue``  → ``total_revenue``  → 0.
  margin_rate:        ``total_margin / total_revenue * 100``, 0 when no revenue.

Keys are accepted in snake_case or in the camelCase used by the upstream
grid payloads (``totalQuantity``, ``rayonKey``, ``isLastProductOfSupplier``).
"""

from __future__ import annotations

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from gamme_advisor.models.taxonomy import Category

DEFAULT_RAYON_KEY = "default"

_FOUR_DIGIT_PREFIX = re.compile(r"^(\d{4})")


def resolve_rayon_key(
    nomenclature_code: Optional[str],
    rayon_label: Optional[str],
) -> str:
    """Derive the grouping key of a product's rayon.

    Grouping is done on the level-2 nomenclature (first 4 digits of the
    6-digit code) so that level-3 codes do not split a rayon into artificially
    small cohorts.
    """
    if nomenclature_code:
        code = nomenclature_code.strip()
        match = _FOUR_DIGIT_PREFIX.match(code)
        return match.group(1) if match else code
    if rayon_label:
        match = _FOUR_DIGIT_PREFIX.match(rayon_label.strip())
        if match:
            return match.group(1)
        return rayon_label
    return DEFAULT_RAYON_KEY


class ProductMetrics(BaseModel):
    """Aggregated sales performance of one product within a supplier lot.

    Attributes:
        id: Product key, unique within a supplier lot.
        label: Display name.
        rayon_label: Display name of the product's rayon.
        rayon_key: Cohort grouping key (resolved when not supplied).
        nomenclature_code: Optional 6-digit nomenclature code.
        supplier_code: Supplier identifier (groups the "top 30% of supplier").
        gtin: Optional barcode, used only by the batch duplicate detection.
        total_quantity: Units sold network-wide over 12 months.
        total_revenue: Revenue (CA) network-wide over 12 months.
        total_margin: Margin network-wide over 12 months.
        store_count: Number of stores actively selling the product.
        weighted_total_quantity: Projection doubling single-store figures.
        weighted_total_revenue: Projection doubling single-store figures.
        months_active: Months with any sale in the trailing window (0–12).
        inactivity_months: Months since the last recorded sale.
        current_category: Current gamme, or ``None`` when unset.
        is_last_product_of_supplier: Removing it leaves the supplier empty.
        score: Optional global score on a 0–100 scale.
        sales_12m: Monthly quantities keyed ``YYYYMM``.
        last_month_with_sale: ``YYYYMM`` of the last sale, if known.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str
    label: str = ""
    rayon_label: str = ""
    rayon_key: str = ""
    nomenclature_code: Optional[str] = None
    supplier_code: Optional[str] = None
    gtin: Optional[str] = None

    total_quantity: float = Field(default=0.0, ge=0.0)
    total_revenue: float = Field(default=0.0, ge=0.0)
    total_margin: float = Field(default=0.0, ge=0.0)
    store_count: int = Field(default=1, ge=1)
    weighted_total_quantity: Optional[float] = Field(default=None, ge=0.0)
    weighted_total_revenue: Optional[float] = Field(default=None, ge=0.0)

    months_active: int = Field(default=0, ge=0, le=12)
    inactivity_months: int = Field(default=0, ge=0)
    current_category: Optional[Category] = None
    is_last_product_of_supplier: bool = False
    score: Optional[float] = None

    sales_12m: dict[str, float] = Field(default_factory=dict)
    last_month_with_sale: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_regularity_alias(cls, data: Any) -> Any:
        # Upstream payloads call months_active "regularityScore".
        if isinstance(data, dict) and "regularityScore" in data:
            if "monthsActive" not in data and "months_active" not in data:
                data = dict(data)
                data["months_active"] = data.pop("regularityScore")
        return data

    @field_validator("current_category", mode="before")
    @classmethod
    def normalise_category(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v

    @model_validator(mode="after")
    def resolve_rayon(self) -> "ProductMetrics":
        if not self.rayon_key:
            self.rayon_key = resolve_rayon_key(self.nomenclature_code, self.rayon_label)
        return self

    # ── Derived values (never stored) ─────────────────────────────────────────

    @property
    def margin_rate(self) -> float:
        """Margin as a percentage of revenue; 0 when there is no revenue."""
        if self.total_revenue > 0:
            return self.total_margin / self.total_revenue * 100
        return 0.0

    @property
    def regularity_score(self) -> int:
        """Alias of ``months_active`` used by the scoring vocabulary."""
        return self.months_active

    @property
    def effective_quantity(self) -> float:
        if self.weighted_total_quantity is not None:
            return self.weighted_total_quantity
        return self.total_quantity

    @property
    def effective_revenue(self) -> float:
        if self.weighted_total_revenue is not None:
            return self.weighted_total_revenue
        return self.total_revenue

    @property
    def per_store_quantity(self) -> float:
        return self.total_quantity / max(1, self.store_count)

    @property
    def per_store_revenue(self) -> float:
        return self.total_revenue / max(1, self.store_count)
