"""
Tests for the ProductMetrics value type and the category taxonomy.

What we test
------------
Validation:
  - Negative totals, store_count < 1 and months_active > 12 are rejected.
  - current_category accepts lowercase and blank (→ None); rejects unknown.
  - camelCase payload keys and the "regularityScore" alias are accepted.

Boundary resolution:
  - rayon_key from the nomenclature prefix, then the label prefix, then the
    raw label, then "default"; an explicit rayon_key is kept.
  - effective quantity / revenue: weighted figure first, raw total otherwise.
  - margin_rate and per-store figures.

Taxonomy:
  - Category ranks order A > B > C > Z.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from gamme_advisor.models.product import DEFAULT_RAYON_KEY, ProductMetrics, resolve_rayon_key
from gamme_advisor.models.taxonomy import Category


class TestValidation:
    def test_negative_quantity_raises(self):
        with pytest.raises(ValidationError):
            ProductMetrics(id="X", total_quantity=-1)

    def test_zero_store_count_raises(self):
        with pytest.raises(ValidationError):
            ProductMetrics(id="X", store_count=0)

    def test_months_active_above_12_raises(self):
        with pytest.raises(ValidationError):
            ProductMetrics(id="X", months_active=13)

    def test_category_is_normalised(self):
        assert ProductMetrics(id="X", current_category="a").current_category == Category.A
        assert ProductMetrics(id="X", current_category="  ").current_category is None

    def test_unknown_category_raises(self):
        with pytest.raises(ValidationError):
            ProductMetrics(id="X", current_category="Q")

    def test_camel_case_payload(self):
        p = ProductMetrics.model_validate(
            {
                "id": "X",
                "totalQuantity": 40,
                "totalRevenue": 200,
                "totalMargin": 50,
                "storeCount": 1,
                "isLastProductOfSupplier": True,
                "regularityScore": 7,
                "inactivityMonths": 2,
            }
        )
        assert p.total_quantity == 40
        assert p.store_count == 1
        assert p.is_last_product_of_supplier is True
        assert p.months_active == 7
        assert p.regularity_score == 7
        assert p.inactivity_months == 2

    def test_unknown_keys_ignored(self):
        p = ProductMetrics.model_validate({"id": "X", "somethingElse": 1})
        assert p.id == "X"


class TestRayonKey:
    def test_nomenclature_prefix_wins(self):
        assert resolve_rayon_key("100204", "2002 Snacks") == "1002"

    def test_label_prefix(self):
        assert resolve_rayon_key(None, "2002 Snacks") == "2002"

    def test_raw_label(self):
        assert resolve_rayon_key(None, "Snacks") == "Snacks"

    def test_default(self):
        assert resolve_rayon_key(None, "") == DEFAULT_RAYON_KEY

    def test_resolved_at_construction(self):
        assert ProductMetrics(id="X", rayon_label="3003 Frozen").rayon_key == "3003"

    def test_explicit_key_kept(self):
        p = ProductMetrics(id="X", rayon_label="3003 Frozen", rayon_key="custom")
        assert p.rayon_key == "custom"


class TestDerivedValues:
    def test_margin_rate(self, make_product):
        p = make_product(total_revenue=200, total_margin=50)
        assert p.margin_rate == pytest.approx(25.0)

    def test_margin_rate_without_revenue(self, make_product):
        assert make_product(total_revenue=0, total_margin=0).margin_rate == 0.0

    def test_effective_prefers_weighted(self, make_product):
        p = make_product(
            total_quantity=10, total_revenue=100,
            weighted_total_quantity=20, weighted_total_revenue=200,
        )
        assert p.effective_quantity == 20
        assert p.effective_revenue == 200

    def test_effective_falls_back_to_raw(self, make_product):
        p = make_product(total_quantity=10, total_revenue=100)
        assert p.effective_quantity == 10
        assert p.effective_revenue == 100

    def test_per_store(self, make_product):
        p = make_product(total_quantity=90, total_revenue=300, store_count=3)
        assert p.per_store_quantity == pytest.approx(30.0)
        assert p.per_store_revenue == pytest.approx(100.0)


class TestCategoryOrdering:
    def test_ranks(self):
        assert Category.A.rank > Category.B.rank > Category.C.rank > Category.Z.rank
