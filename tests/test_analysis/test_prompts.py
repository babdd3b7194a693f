"""
Tests for prompt construction.

What we test
------------
  - The single-product system prompt fixes the A/C/Z vocabulary and the
    score / regularity thresholds.
  - Benchmarks split average quantity by store-count group, for the
    supplier and for the target's rayon.
  - The user message carries identity, weighted stats (single-store
    doubled when not supplied), score out of 10 and a chronological
    monthly summary.
  - The contextual message shows the guard-rail and the manager rule only
    when present.
  - The batch user message is a JSON list of the requested products.
  - Builders are deterministic.
"""

from __future__ import annotations

import json

import pytest

from gamme_advisor.analysis import prompts
from gamme_advisor.scoring.context_profiler import build_profile
from gamme_advisor.scoring.rayon_engine import analyze_rayon


def _profile(target, lot):
    rayon = [p for p in lot if p.rayon_key == target.rayon_key]
    return build_profile(target, lot, analyze_rayon(target, rayon))


class TestSingleProductPrompt:
    def test_system_prompt_rules(self):
        text = prompts.system_prompt()
        for fragment in ("A = permanent", "C = seasonal", "Z = exit", "above 7", "below 3",
                         "more than 8", "fewer than 3"):
            assert fragment in text

    def test_benchmarks(self, supplier_lot):
        target = supplier_lot[-1]   # P8, rayon 2002
        b = prompts.compute_benchmarks(target, supplier_lot)
        assert b.supplier_avg_qty_single == pytest.approx(90.0)
        assert b.supplier_avg_qty_multi == pytest.approx((1200 + 800 + 400 + 300 + 150 + 20 + 500) / 7)
        assert b.rayon_avg_qty_single == pytest.approx(90.0)
        assert b.rayon_avg_qty_multi == pytest.approx(500.0)
        assert b.supplier_total_revenue == pytest.approx(10030.0)
        assert (b.supplier_size, b.rayon_size) == (8, 2)

    def test_benchmarks_empty_group(self, make_product):
        target = make_product("T", store_count=2)
        b = prompts.compute_benchmarks(target, [target])
        assert b.supplier_avg_qty_single == 0.0

    def test_user_message(self, make_product, supplier_lot):
        target = make_product(
            "P9", label="Mulled wine", store_count=1, total_quantity=40,
            total_revenue=400, total_margin=100, score=85.0, current_category="c",
            sales_12m={"202412": 25, "202411": 15},
        )
        text = prompts.user_message(target, prompts.compute_benchmarks(target, supplier_lot))
        assert "PRODUCT: Mulled wine (P9)" in text
        assert "CURRENT CATEGORY: C" in text
        assert "Quantity: 80 | Revenue: 800.00" in text
        assert "8.5/10" in text
        assert "2024-11: 15 | 2024-12: 25" in text

    def test_monthly_summary_empty(self):
        assert prompts.monthly_summary({}) == "no monthly detail"

    def test_deterministic(self, supplier_lot):
        target = supplier_lot[0]
        b = prompts.compute_benchmarks(target, supplier_lot)
        assert prompts.user_message(target, b) == prompts.user_message(target, b)


class TestContextualPrompt:
    def test_protected_product(self, supplier_lot):
        profile = _profile(supplier_lot[0], supplier_lot)
        text = prompts.contextual_message(profile)
        assert f"({profile.product_id})" in text
        assert "GUARD-RAIL ACTIVE" in text
        assert "MANAGER RULE" not in text

    def test_manager_rule(self, supplier_lot):
        profile = _profile(supplier_lot[5], supplier_lot)
        text = prompts.contextual_message(profile, "Keep every sparkling reference")
        assert "GUARD-RAIL ACTIVE" not in text
        assert '"Keep every sparkling reference"' in text

    def test_system_prompt_asks_for_json(self):
        assert '"recommendation"' in prompts.contextual_system_prompt()


class TestBatchPrompt:
    def test_system_prompt_names_rayon(self):
        assert '"Beverages"' in prompts.batch_system_prompt("Beverages")

    def test_user_message_is_json_list(self, supplier_lot):
        text = prompts.batch_user_message(supplier_lot[:2])
        payload = json.loads(text.split("\n", 1)[1])
        assert [p["id"] for p in payload] == ["P1", "P2"]
        assert payload[0]["marginRate"] == 30.0
