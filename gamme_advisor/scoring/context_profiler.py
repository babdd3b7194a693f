"""
Context profiler: comparative profile of one product against its supplier lot.

The profile feeds the contextual prompt.  It composes the rayon engine's
``ScoringResult`` (composite score, guard-rails) rather than recomputing it.

Per-store normalization
-----------------------
Before any percentile, top-20% flag or quadrant is computed, CA and quantity
are divided by ``max(1, store_count)``.  A 2-store product therefore does not
mechanically outrank an otherwise identical 1-store product.  Weights in the
supplier and in the rayon keep the raw network totals: share of revenue is a
different question from per-store performance.

Trafic / margin signals are only computed when the target's rayon holds at
least ``MIN_RAYON_SIZE`` products; below that the flags are forced False.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gamme_advisor.errors import EmptyCohortError
from gamme_advisor.models.product import ProductMetrics
from gamme_advisor.models.taxonomy import QUADRANT_LABELS, Quadrant
from gamme_advisor.scoring.rayon_engine import CRITICAL_SCORE, ScoringResult
from gamme_advisor.utils.stats import (
    median,
    percentile_rank,
    round_half_up,
    value_at_percentile,
    weight_pct,
)

logger = logging.getLogger(__name__)

MIN_RAYON_SIZE = 6
TOP_PERCENTILE = 80
HIGH_VOLUME_PERCENTILE = 60
LOW_MARGIN_PERCENTILE = 40
PURE_MARGIN_PERCENTILE = 70
LOW_CONTRIBUTION_WEIGHT_PCT = 0.5

PROTECTION_RECENT = "New product (< 3 months of data)"
PROTECTION_TOP30 = "Top 30% supplier CA"
PROTECTION_LAST = "Last reference of the supplier"


@dataclass(frozen=True)
class ContextProfile:
    """Comparison profile of one product within its supplier lot.

    Percentiles are on a 0–100 scale; weights are one-decimal percentages.
    """

    # Identity
    product_id:     str
    label:          str
    rayon_label:    str

    # Quadrant
    quadrant:       Quadrant
    quadrant_label: str

    # Per-store normalized and raw network figures
    per_store_revenue:  float
    per_store_quantity: float
    network_revenue:    float
    network_quantity:   float

    # Percentiles within the supplier lot
    percentile_revenue:   int
    percentile_quantity:  int
    percentile_margin:    int
    percentile_composite: int

    # Weights (raw totals)
    weight_revenue_supplier:  float
    weight_quantity_supplier: float
    weight_revenue_rayon:     float
    weight_quantity_rayon:    float

    # Health
    margin_rate:       float
    inactivity_months: int
    months_active:     int

    # Lot context
    lot_size:   int
    rayon_size: int

    # Signals
    is_above_median_composite: bool
    is_top20_revenue:          bool
    is_top20_quantity:         bool
    is_low_contribution:       bool
    is_high_volume_low_margin: bool
    is_margin_pure:            bool

    # Guard-rails and absolute rule
    is_protected:      bool
    protection_reason: str
    score_critical:    bool


def build_profile(
    target: ProductMetrics,
    all_products: list[ProductMetrics],
    scoring: ScoringResult,
) -> ContextProfile:
    """Build the comparison profile of ``target`` within ``all_products``.

    Args:
        target:       Product to profile.
        all_products: The full supplier lot.
        scoring:      Rayon engine result for ``target``.

    Returns:
        A ``ContextProfile``.

    Raises:
        EmptyCohortError: If ``all_products`` is empty.
    """
    if not all_products:
        raise EmptyCohortError(
            f"build_profile: empty product lot for product '{target.id}'."
        )

    # ── Raw totals for weights ────────────────────────────────────────────────
    rayon = [p for p in all_products if p.rayon_key == target.rayon_key]

    total_revenue = sum(p.total_revenue for p in all_products)
    total_quantity = sum(p.total_quantity for p in all_products)
    rayon_revenue = sum(p.total_revenue for p in rayon)
    rayon_quantity = sum(p.total_quantity for p in rayon)

    weight_revenue_supplier = weight_pct(target.total_revenue, total_revenue)
    weight_quantity_supplier = weight_pct(target.total_quantity, total_quantity)

    # ── Per-store normalized distributions ────────────────────────────────────
    revenues = [p.per_store_revenue for p in all_products]
    quantities = [p.per_store_quantity for p in all_products]
    margins = [p.margin_rate for p in all_products]

    revenue = target.per_store_revenue
    quantity = target.per_store_quantity
    margin = target.margin_rate

    p_revenue = round_half_up(percentile_rank(revenue, revenues, scale=100))
    p_quantity = round_half_up(percentile_rank(quantity, quantities, scale=100))
    p_margin = round_half_up(percentile_rank(margin, margins, scale=100))
    p_composite = scoring.composite_score

    is_top20_revenue = revenue >= value_at_percentile(revenues, TOP_PERCENTILE)
    is_top20_quantity = quantity >= value_at_percentile(quantities, TOP_PERCENTILE)

    median_quantity = median(quantities)
    median_margin = median(margins)

    # ── Trafic / margin signals ───────────────────────────────────────────────
    is_high_volume_low_margin = False
    is_margin_pure = False
    if len(rayon) >= MIN_RAYON_SIZE:
        is_high_volume_low_margin = (
            quantity >= value_at_percentile(quantities, HIGH_VOLUME_PERCENTILE)
            and margin < value_at_percentile(margins, LOW_MARGIN_PERCENTILE)
        )
        is_margin_pure = (
            margin >= value_at_percentile(margins, PURE_MARGIN_PERCENTILE)
            and quantity < median_quantity
        )

    quadrant = resolve_quadrant(quantity, margin, median_quantity, median_margin)

    # ── Guard-rails (copied from the scoring decision) ────────────────────────
    decision = scoring.decision
    protection_reason = ""
    if decision.is_recent:
        protection_reason = PROTECTION_RECENT
    elif decision.is_top30_supplier:
        protection_reason = PROTECTION_TOP30
    elif decision.is_last_product:
        protection_reason = PROTECTION_LAST

    logger.debug(
        "build_profile %s: quadrant=%s rayon=%s (%d/%d)",
        target.id, quadrant.value, target.rayon_key, len(rayon), len(all_products),
    )

    return ContextProfile(
        product_id=target.id,
        label=target.label,
        rayon_label=target.rayon_label or "General",
        quadrant=quadrant,
        quadrant_label=QUADRANT_LABELS[quadrant],
        per_store_revenue=revenue,
        per_store_quantity=quantity,
        network_revenue=target.total_revenue,
        network_quantity=target.total_quantity,
        percentile_revenue=p_revenue,
        percentile_quantity=p_quantity,
        percentile_margin=p_margin,
        percentile_composite=p_composite,
        weight_revenue_supplier=weight_revenue_supplier,
        weight_quantity_supplier=weight_quantity_supplier,
        weight_revenue_rayon=weight_pct(target.total_revenue, rayon_revenue),
        weight_quantity_rayon=weight_pct(target.total_quantity, rayon_quantity),
        margin_rate=margin,
        inactivity_months=target.inactivity_months,
        months_active=target.months_active,
        lot_size=len(all_products),
        rayon_size=len(rayon),
        is_above_median_composite=p_composite >= 50,
        is_top20_revenue=is_top20_revenue,
        is_top20_quantity=is_top20_quantity,
        is_low_contribution=(
            weight_revenue_supplier < LOW_CONTRIBUTION_WEIGHT_PCT
            and weight_quantity_supplier < LOW_CONTRIBUTION_WEIGHT_PCT
        ),
        is_high_volume_low_margin=is_high_volume_low_margin,
        is_margin_pure=is_margin_pure,
        is_protected=decision.is_protected,
        protection_reason=protection_reason,
        score_critical=target.score is not None and target.score < CRITICAL_SCORE,
    )


def resolve_quadrant(
    quantity: float,
    margin: float,
    median_quantity: float,
    median_margin: float,
) -> Quadrant:
    """Place a product in the volume × margin quadrant of its cohort."""
    high_volume = quantity > median_quantity
    high_margin = margin > median_margin
    if high_volume and high_margin:
        return Quadrant.STAR
    if high_volume:
        return Quadrant.TRAFIC
    if high_margin:
        return Quadrant.MARGE
    return Quadrant.WATCH
