"""
Tests for the supplier-wide MAX + bonus score.

What we test
------------
  - The top performer on any axis gets base 100 and a final score of 100.
  - No score ever exceeds 100.
  - Bonus is added per axis strictly above the threshold; settings apply.
  - Scores are rounded to one decimal and written in place.
  - An empty list is returned unchanged; all-zero axes give 0.
  - Idempotent: scoring twice gives the same scores.
"""

from __future__ import annotations

import pytest

from gamme_advisor.config import ScoreSettings
from gamme_advisor.scoring.score_engine import compute_scores


class TestComputeScores:
    def test_max_quantity_scores_100(self, make_product):
        rows = [
            make_product(f"Q{q}", total_quantity=q, total_revenue=10, total_margin=1)
            for q in (10, 20, 20, 30, 100)
        ]
        compute_scores(rows)
        top = next(r for r in rows if r.total_quantity == 100)
        assert top.score == 100.0

    def test_never_above_100(self, supplier_lot):
        compute_scores(supplier_lot)
        assert all(0.0 <= p.score <= 100.0 for p in supplier_lot)

    def test_bonus_per_strong_axis(self, make_product):
        strong = make_product("S", total_quantity=100, total_revenue=100, total_margin=100)
        mid = make_product("M", total_quantity=40, total_revenue=40, total_margin=40)
        compute_scores([strong, mid])
        # base 40, three axes above 30 → +30
        assert mid.score == pytest.approx(70.0)

    def test_threshold_is_strict(self, make_product):
        strong = make_product("S", total_quantity=100, total_revenue=100, total_margin=100)
        edge = make_product("E", total_quantity=30, total_revenue=30, total_margin=30)
        compute_scores([strong, edge])
        assert edge.score == pytest.approx(30.0)

    def test_custom_settings(self, make_product):
        strong = make_product("S", total_quantity=100, total_revenue=100, total_margin=100)
        mid = make_product("M", total_quantity=40, total_revenue=40, total_margin=40)
        compute_scores([strong, mid], ScoreSettings(strong_axis_threshold=50, bonus_per_axis=5))
        assert mid.score == pytest.approx(40.0)
        compute_scores([strong, mid], ScoreSettings(strong_axis_threshold=10, bonus_per_axis=5))
        assert mid.score == pytest.approx(55.0)

    def test_rounded_to_one_decimal(self, make_product):
        top = make_product("T", total_quantity=3, total_revenue=3, total_margin=3)
        low = make_product("L", total_quantity=1, total_revenue=0, total_margin=0)
        compute_scores([top, low])
        # 1/3 * 100 = 33.33 → +10 for the single strong axis
        assert low.score == 43.3

    def test_empty_list(self):
        assert compute_scores([]) == []

    def test_all_zero(self, make_product):
        rows = [make_product("Z1", total_quantity=0, total_revenue=0, total_margin=0)]
        compute_scores(rows)
        assert rows[0].score == 0.0

    def test_returns_same_list(self, supplier_lot):
        assert compute_scores(supplier_lot) is supplier_lot

    def test_idempotent(self, supplier_lot):
        first = [p.score for p in compute_scores(supplier_lot)]
        second = [p.score for p in compute_scores(supplier_lot)]
        assert first == second
