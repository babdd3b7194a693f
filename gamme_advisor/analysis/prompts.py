"""
Prompt construction for the completion API.

Three prompt families:

  Single product (benchmark)
      ``system_prompt()`` + ``user_message(product, benchmarks)``.  Raw and
      weighted stats, supplier/rayon benchmarks split by store-count group,
      global score, regularity, margin rate and a month-by-month summary.
      The reply is free text starting with the bracketed letter: ``[A] - ...``.

  Single product (contextual)
      ``contextual_system_prompt()`` + ``contextual_message(profile, rule)``.
      Built from a ``ContextProfile``; the reply is a JSON object.

  Batch (one call per rayon)
      ``batch_system_prompt(rayon)`` + ``batch_user_message(products)``.
      The reply is ``{"results": [{id, recommendation, isDuplicate,
      justification}]}``.

Builders are pure: same inputs, same text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional

from gamme_advisor.models.product import ProductMetrics
from gamme_advisor.scoring.context_profiler import ContextProfile


@dataclass(frozen=True)
class CohortBenchmarks:
    """Average 12-month quantities of the cohort, split by store-count group.

    "single" = products sold in exactly one store; "multi" = two or more.
    """

    supplier_avg_qty_single: float
    supplier_avg_qty_multi:  float
    rayon_avg_qty_single:    float
    rayon_avg_qty_multi:     float
    supplier_total_revenue:  float
    supplier_size:           int
    rayon_size:              int


def compute_benchmarks(
    target: ProductMetrics,
    cohort: list[ProductMetrics],
) -> CohortBenchmarks:
    """Supplier- and rayon-level benchmarks used by the single-product prompt."""
    rayon = [p for p in cohort if p.rayon_key == target.rayon_key]
    return CohortBenchmarks(
        supplier_avg_qty_single=_avg_qty(p for p in cohort if p.store_count == 1),
        supplier_avg_qty_multi=_avg_qty(p for p in cohort if p.store_count > 1),
        rayon_avg_qty_single=_avg_qty(p for p in rayon if p.store_count == 1),
        rayon_avg_qty_multi=_avg_qty(p for p in rayon if p.store_count > 1),
        supplier_total_revenue=sum(p.total_revenue for p in cohort),
        supplier_size=len(cohort),
        rayon_size=len(rayon),
    )


def _avg_qty(products) -> float:
    quantities = [p.total_quantity for p in products]
    return sum(quantities) / len(quantities) if quantities else 0.0


# ── Single product (benchmark) ────────────────────────────────────────────────

def system_prompt() -> str:
    return """You are a senior retail assortment strategist. For each product you recommend exactly one category:
A = permanent range (keep), C = seasonal range, Z = exit (delist).

Business rules, in order of weight:
1. STORE COUNT: a product sold in a single store has its figures doubled ("weighted" stats) so it can be compared fairly with products sold in two stores. Always compare weighted figures.
2. RAYON FIRST: compare the product with its own rayon before comparing it with the whole supplier. A modest product can be a pillar of a small rayon.
3. GLOBAL SCORE (out of 10): above 7 is a strong signal to keep; below 3 is a strong signal to exit.
4. REGULARITY: more than 8 active months out of 12 is strong; fewer than 3 is weak (or a new product).
5. BALANCE: weigh volume, margin and regularity together. High volume with low margin drives traffic; low volume with high margin protects profitability; sales concentrated in a few consecutive months indicate a seasonal product (C).

Answer format: start with the letter in brackets, then one or two sentences citing the key figures.
Example: [A] - Steady rotation (11/12 months) and 8.4% of the rayon volume."""


def user_message(product: ProductMetrics, benchmarks: CohortBenchmarks) -> str:
    """Fixed single-product template."""
    qty = product.total_quantity
    revenue = product.total_revenue
    avg_price = revenue / qty if qty > 0 else 0.0
    weighted_qty = product.weighted_total_quantity
    weighted_revenue = product.weighted_total_revenue
    if weighted_qty is None:
        weighted_qty = qty * 2 if product.store_count == 1 else qty
    if weighted_revenue is None:
        weighted_revenue = revenue * 2 if product.store_count == 1 else revenue
    score = product.score if product.score is not None else 0.0
    current = product.current_category.value if product.current_category else "none"
    supplier_share = (
        revenue / benchmarks.supplier_total_revenue * 100
        if benchmarks.supplier_total_revenue > 0 else 0.0
    )

    return f"""PRODUCT: {product.label} ({product.id})
RAYON: {product.rayon_label or "General"} ({benchmarks.rayon_size} products in this rayon, {benchmarks.supplier_size} for the supplier)
CURRENT CATEGORY: {current}

RAW STATS (12 months, {product.store_count} store(s)):
- Quantity: {qty:g} | Revenue: {revenue:.2f} | Margin rate: {product.margin_rate:.1f}% | Avg price: {avg_price:.2f}
- Share of supplier revenue: {supplier_share:.1f}%
WEIGHTED STATS (single-store doubled):
- Quantity: {weighted_qty:g} | Revenue: {weighted_revenue:.2f}

BENCHMARKS (average 12-month quantity):
- Supplier, 1-store products: {benchmarks.supplier_avg_qty_single:.1f} | 2+ stores: {benchmarks.supplier_avg_qty_multi:.1f}
- Rayon, 1-store products: {benchmarks.rayon_avg_qty_single:.1f} | 2+ stores: {benchmarks.rayon_avg_qty_multi:.1f}

PERFORMANCE SCORE: {score / 10:.1f}/10
REGULARITY: {product.months_active}/12 active months | {product.inactivity_months} month(s) since last sale
MONTHLY SALES: {monthly_summary(product.sales_12m)}

Give your recommendation (A, C or Z):"""


def monthly_summary(sales_12m: dict[str, float]) -> str:
    """``"2025-01: 12 | 2025-02: 0 | ..."`` in chronological order."""
    if not sales_12m:
        return "no monthly detail"
    parts = []
    for key in sorted(sales_12m):
        label = f"{key[:4]}-{key[-2:]}" if len(key) == 6 and key.isdigit() else key
        parts.append(f"{label}: {sales_12m[key]:g}")
    return " | ".join(parts)


# ── Single product (contextual) ───────────────────────────────────────────────

def contextual_system_prompt() -> str:
    return """You are a senior retail assortment strategist. You recommend A (keep), C (seasonal) or Z (exit).

--- PHILOSOPHY ---
A product with a low score can be VITAL if it drives traffic or margin.
An "average" product can be a quiet pillar of its rayon.
Never recommend Z without checking the product's real contribution to revenue and volume.

--- PRIORITY ORDER ---
1. ABSOLUTE RULE: critical score (< 20 out of 100) and no positive signal -> always Z.
2. GUARD-RAIL: if a guard-rail is active (new product / last product / top 30%) -> always A.
3. MANAGER RULE: if the manager gave an instruction and the product is concerned -> apply it (rule_applies = true).
4. CONTEXT: use the positioning sheet (percentiles, weights, signals) to reason.

--- QUADRANT GUIDE ---
- STAR: volume and margin above median -> A unless exceptional.
- TRAFIC: high volume, low margin -> traffic driver -> A, explain the traffic role.
- MARGE: low volume, high margin -> profitability -> A, explain the margin contribution.
- WATCH: volume and margin below median -> check health (inactivity, weights):
  - rayon CA or quantity weight above 5% -> A or C depending on inactivity;
  - low weights and 2+ inactive months -> Z.

--- CONSISTENCY (MANDATORY) ---
Never recommend Z for a product whose CA and quantity percentiles are both higher than those of a product recommended A.

--- RESPONSE FORMAT ---
Reply ONLY with valid JSON, no markdown:
{"rule_applies": boolean, "recommendation": "A" | "C" | "Z", "justification": "2 sentences max citing percentile, weight, quadrant, signal."}"""


def contextual_message(profile: ContextProfile, supplier_rule: Optional[str] = None) -> str:
    """User message built from a ``ContextProfile``."""

    def box(flag: bool) -> str:
        return "[x]" if flag else "[ ]"

    lines = [
        f"PRODUCT: {profile.label} ({profile.product_id})",
        f"RAYON: {profile.rayon_label} ({profile.rayon_size} products in this rayon, "
        f"{profile.lot_size} in total)",
        "",
        "--- QUADRANT ---",
        f"{profile.quadrant.value}: {profile.quadrant_label}",
        f"Health: {profile.months_active}/12 active months | "
        f"{profile.inactivity_months} month(s) without sales | "
        f"Margin: {profile.margin_rate:.1f}%",
        "",
        f"--- POSITION IN SUPPLIER LOT ({profile.lot_size} products, per store) ---",
        f"- CA       : P{profile.percentile_revenue} | supplier weight "
        f"{profile.weight_revenue_supplier}% | rayon weight {profile.weight_revenue_rayon}%",
        f"- Quantity : P{profile.percentile_quantity} | supplier weight "
        f"{profile.weight_quantity_supplier}% | rayon weight {profile.weight_quantity_rayon}%",
        f"- Margin   : P{profile.percentile_margin}",
        f"- Composite score: {profile.percentile_composite}/100",
        "",
        "--- SIGNALS ---",
        f"{box(profile.is_top20_revenue)} Top 20% supplier CA",
        f"{box(profile.is_top20_quantity)} Top 20% supplier quantity",
        f"{box(profile.is_high_volume_low_margin)} Traffic signal: high volume and margin < P40",
        f"{box(profile.is_margin_pure)} Margin signal: margin > P70",
        f"{box(profile.is_above_median_composite)} Above median composite",
        f"{box(profile.is_low_contribution)} Low contribution (< 0.5% of supplier CA and quantity)",
        f"{'[CRITICAL]' if profile.score_critical else '[ ]'} Critical global score (< 20)",
        "",
    ]

    if profile.is_protected:
        lines.append(f"GUARD-RAIL ACTIVE: {profile.protection_reason} -> recommendation A required")
        lines.append("")

    if supplier_rule:
        lines.append("--- MANAGER RULE ---")
        lines.append(f'"{supplier_rule}"')
        lines.append(f'-> Decide whether this product ("{profile.label}") is concerned.')
        lines.append("")

    lines.append("Reply ONLY with the JSON:")
    return "\n".join(lines)


# ── Batch (one call per rayon) ────────────────────────────────────────────────

def batch_system_prompt(rayon: str) -> str:
    return f"""You are a retail assortment expert. You analyse a lot of products from the rayon "{rayon}".
For each product, recommend a category (A, B, C or Z) from its sales volume and margin rate.
Also flag obvious duplicates (same product, similar GTIN, sales split between references) with isDuplicate: true.

Category rules:
- A: flagship product, strong rotation, good margin.
- B: core complementary product, average rotation.
- C: seasonal or niche product, low rotation but possibly good margin.
- Z: product to delist (very low sales, poor margin).

REPLY ONLY WITH VALID JSON. NO TEXT BEFORE OR AFTER.
Expected format:
{{"results": [{{"id": "123", "recommendation": "A", "isDuplicate": false, "justification": "Strong rotation and excellent margin."}}]}}"""


def batch_user_message(products: list[ProductMetrics]) -> str:
    payload = [
        {
            "id": p.id,
            "gtin": p.gtin,
            "label": p.label,
            "quantity": p.total_quantity,
            "marginRate": round(p.margin_rate, 1),
            "monthsActive": p.months_active,
        }
        for p in products
    ]
    return "Analyse this list of products:\n" + json.dumps(payload, indent=2, ensure_ascii=False)
