"""
Tests for the context profiler.

What we test
------------
  - Empty lot raises EmptyCohortError instead of returning a profile.
  - Per-store normalization: a 2-store product with doubled CA gets the same
    per-store CA and CA percentile as its 1-store twin.
  - Supplier and rayon weights use raw network totals (one decimal).
  - Percentiles round exact halves up.
  - Quadrants against the per-store medians of the lot.
  - Top-20% flags, and trafic / margin signals only for rayons of 6+.
  - Protection and critical-score flags follow the rayon decision and score.
"""

from __future__ import annotations

import pytest

from gamme_advisor.errors import EmptyCohortError
from gamme_advisor.models.taxonomy import Quadrant
from gamme_advisor.scoring.context_profiler import (
    PROTECTION_TOP30,
    build_profile,
    resolve_quadrant,
)
from gamme_advisor.scoring.rayon_engine import analyze_rayon


def _profile(target, lot):
    rayon = [p for p in lot if p.rayon_key == target.rayon_key]
    return build_profile(target, lot, analyze_rayon(target, rayon))


def _by_id(lot, product_id):
    return next(p for p in lot if p.id == product_id)


class TestBuildProfile:
    def test_empty_lot_raises(self, make_product):
        target = make_product()
        scoring = analyze_rayon(target, [target])
        with pytest.raises(EmptyCohortError):
            build_profile(target, [], scoring)

    def test_store_normalization(self, make_product):
        single = make_product("ONE", total_revenue=500, total_quantity=100, store_count=1)
        double = make_product("TWO", total_revenue=1000, total_quantity=200, store_count=2)
        others = [
            make_product("O1", total_revenue=100, total_quantity=20),
            make_product("O2", total_revenue=3000, total_quantity=900),
        ]
        lot = [single, double] + others
        p_single = _profile(single, lot)
        p_double = _profile(double, lot)
        assert p_single.per_store_revenue == pytest.approx(p_double.per_store_revenue)
        assert p_single.percentile_revenue == p_double.percentile_revenue
        assert p_single.percentile_quantity == p_double.percentile_quantity

    def test_weights_use_network_totals(self, supplier_lot):
        profile = _profile(_by_id(supplier_lot, "P1"), supplier_lot)
        assert profile.weight_revenue_supplier == 35.9   # 3600 / 10030
        assert profile.weight_revenue_rayon == 41.1      # 3600 / 8760
        assert profile.lot_size == 8
        assert profile.rayon_size == 6

    @pytest.mark.parametrize(
        "product_id, quadrant",
        [("P3", Quadrant.STAR), ("P1", Quadrant.TRAFIC), ("P5", Quadrant.MARGE), ("P4", Quadrant.WATCH)],
    )
    def test_quadrants(self, supplier_lot, product_id, quadrant):
        assert _profile(_by_id(supplier_lot, product_id), supplier_lot).quadrant == quadrant

    def test_top20_flags(self, supplier_lot):
        assert _profile(_by_id(supplier_lot, "P1"), supplier_lot).is_top20_revenue is True
        assert _profile(_by_id(supplier_lot, "P4"), supplier_lot).is_top20_revenue is False

    def test_percentiles_on_0_100_scale(self, supplier_lot):
        profile = _profile(_by_id(supplier_lot, "P1"), supplier_lot)
        assert profile.percentile_revenue == 100
        assert 0 <= profile.percentile_margin <= 100

    def test_small_rayon_has_no_trafic_or_margin_signal(self, supplier_lot):
        for product_id in ("P7", "P8"):
            profile = _profile(_by_id(supplier_lot, product_id), supplier_lot)
            assert profile.is_high_volume_low_margin is False
            assert profile.is_margin_pure is False

    def test_protection_follows_decision(self, supplier_lot):
        profile = _profile(_by_id(supplier_lot, "P1"), supplier_lot)
        assert profile.is_protected is True
        assert profile.protection_reason == PROTECTION_TOP30

    def test_unprotected_product(self, supplier_lot):
        profile = _profile(_by_id(supplier_lot, "P6"), supplier_lot)
        assert profile.is_protected is False
        assert profile.protection_reason == ""

    def test_score_critical(self, supplier_lot):
        target = _by_id(supplier_lot, "P6").model_copy(update={"score": 12.0})
        lot = [target if p.id == "P6" else p for p in supplier_lot]
        assert _profile(target, lot).score_critical is True
        assert _profile(_by_id(supplier_lot, "P5"), supplier_lot).score_critical is False

    def test_percentile_half_rounds_up(self, make_product):
        lot = [
            make_product(f"R{i}", total_revenue=100.0 * i, store_count=1)
            for i in range(1, 10)
        ]
        # rank 1 of 9 -> 1 / 8 = 12.5%
        assert _profile(_by_id(lot, "R2"), lot).percentile_revenue == 13


class TestResolveQuadrant:
    def test_ties_with_median_are_not_high(self):
        assert resolve_quadrant(10, 5, 10, 5) == Quadrant.WATCH

    def test_each_quadrant(self):
        assert resolve_quadrant(11, 6, 10, 5) == Quadrant.STAR
        assert resolve_quadrant(11, 4, 10, 5) == Quadrant.TRAFIC
        assert resolve_quadrant(9, 6, 10, 5) == Quadrant.MARGE
