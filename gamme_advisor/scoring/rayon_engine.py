"""
Rayon scoring engine: percentile/quadrant composite score with guard-rails.

Decides a binary keep (A) / drop (Z) recommendation for one product relative
to its rayon cohort.

Preprocessing
-------------
Normalized CA and volume default to the weighted (single-store doubled)
figures, else the raw totals.  Products active 3–11 months are annualized::

    normalized = normalized / months_active * 12

Products with 12 months (full year) or fewer than 3 (too sparse) are left
as-is.

Composite (0–1, reported 0–100)
-------------------------------
    composite = 0.35 * p_ca + 0.25 * p_volume + 0.20 * p_margin
              + 0.10 * profile_score + 0.10 * activity_score

profile_score:  volume and margin above median → 1.0; exactly one above → 0.7;
                neither → 0.2.
activity_score: 0 inactive months → 1.0, 1 → 0.6, 2 → 0.3, ≥3 → 0.0.  In a
                seasonal rayon (>40% of products with any inactivity) any
                inactive product gets 0.8.

Decision
--------
threshold = max(0.10, mean - 1.0 * stddev) of the composite over the cohort.
A if composite >= threshold, else Z.  Guard-rails then force A, first match:

    1. Recent       : months_active < 3
    2. Top 30%      : top 30% of the supplier by normalized CA AND composite >= 30
    3. Last product : is_last_product_of_supplier

Absolute exclusion is checked last and overrides every guard-rail: a global
``score`` below 20 forces Z.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from gamme_advisor.errors import EmptyCohortError
from gamme_advisor.models.product import ProductMetrics
from gamme_advisor.models.taxonomy import Category
from gamme_advisor.utils.stats import (
    mean_and_stddev,
    median,
    percentile_rank,
    round_half_up,
)

logger = logging.getLogger(__name__)

WEIGHT_CA = 0.35
WEIGHT_VOLUME = 0.25
WEIGHT_MARGIN = 0.20
WEIGHT_PROFILE = 0.10
WEIGHT_ACTIVITY = 0.10

RUN_RATE_MIN_MONTHS = 3
FULL_YEAR_MONTHS = 12
SEASONAL_RAYON_INACTIVITY_SHARE = 0.40
THRESHOLD_FLOOR = 0.10
THRESHOLD_SIGMA = 1.0
TOP_SUPPLIER_SHARE = 0.30
TOP_SUPPLIER_MIN_COMPOSITE = 30.0
CRITICAL_SCORE = 20.0

LABEL_STAR = "Star"
LABEL_MARGIN = "Margin contributor"
LABEL_TRAFFIC = "Traffic generator"
LABEL_UNDERPERFORMER = "Underperformer"
LABEL_RECENT = "New product (protected)"
LABEL_LEADER_SUFFIX = "Supplier leader (protected)"
LABEL_LAST_PRODUCT = "Last supplier reference (protected)"
LABEL_CRITICAL = "Critical global score"


@dataclass(frozen=True)
class Percentiles:
    """Fractional ranks (0.0–1.0) of the target within its cohort."""

    ca: float
    volume: float
    margin: float


@dataclass(frozen=True)
class Decision:
    """Keep/drop outcome with the guard-rail flags that produced it.

    Attributes:
        recommendation:    Category.A or Category.Z.
        threshold:         Cohort threshold on the 0–100 scale (rounded).
        is_top30_supplier: Protected as a supplier leader.
        is_last_product:   Protected as the supplier's last reference.
        is_recent:         Protected as a new product (< 3 active months).
        is_critical_score: Forced to Z by the absolute exclusion rule.
        label:             Human-readable profile / guard-rail label.
    """

    recommendation: Category
    threshold: int
    is_top30_supplier: bool
    is_last_product: bool
    is_recent: bool
    is_critical_score: bool
    label: str

    @property
    def is_protected(self) -> bool:
        return self.is_recent or self.is_top30_supplier or self.is_last_product


@dataclass(frozen=True)
class ScoringResult:
    """Output of ``analyze_rayon`` for one target product.

    Attributes:
        product_id:          Target product key.
        composite_score:     Composite on the 0–100 scale, rounded to int.
        percentiles:         CA / volume / margin fractional ranks.
        profile_score:       Quadrant sub-score (0.2, 0.7 or 1.0).
        activity_score:      Inactivity sub-score (0.0–1.0).
        decision:            Recommendation and guard-rail flags.
        normalized_revenue:  Annualized CA used for ranking.
        normalized_quantity: Annualized volume used for ranking.
    """

    product_id:          str
    composite_score:     int
    percentiles:         Percentiles
    profile_score:       float
    activity_score:      float
    decision:            Decision
    normalized_revenue:  float
    normalized_quantity: float


@dataclass(frozen=True)
class _Normalized:
    id: str
    supplier_code: Optional[str]
    revenue: float
    quantity: float
    margin_rate: float
    inactivity_months: int


@dataclass(frozen=True)
class _CohortStats:
    revenues: list[float]
    quantities: list[float]
    margins: list[float]
    median_quantity: float
    median_margin: float
    is_seasonal: bool


def preprocess(product: ProductMetrics) -> _Normalized:
    """Resolve normalized CA/volume for one product, applying run-rate projection."""
    revenue = product.effective_revenue
    quantity = product.effective_quantity

    months = product.months_active
    if RUN_RATE_MIN_MONTHS <= months < FULL_YEAR_MONTHS:
        revenue = revenue / months * FULL_YEAR_MONTHS
        quantity = quantity / months * FULL_YEAR_MONTHS

    return _Normalized(
        id=product.id,
        supplier_code=product.supplier_code,
        revenue=revenue,
        quantity=quantity,
        margin_rate=product.margin_rate,
        inactivity_months=product.inactivity_months,
    )


def analyze_rayon(
    target: ProductMetrics,
    all_products: list[ProductMetrics],
) -> ScoringResult:
    """Score ``target`` against its rayon cohort and decide A or Z.

    Args:
        target:       Product to score.
        all_products: The rayon cohort (normally includes ``target``).

    Returns:
        A ``ScoringResult``.  Calling twice with unchanged inputs yields an
        identical result.

    Raises:
        EmptyCohortError: If ``all_products`` is empty.
    """
    if not all_products:
        raise EmptyCohortError(
            f"analyze_rayon: empty cohort for product '{target.id}'."
        )

    cohort = [preprocess(p) for p in all_products]
    stats = _cohort_stats(cohort)
    norm = preprocess(target)

    p_ca = percentile_rank(norm.revenue, stats.revenues)
    p_vol = percentile_rank(norm.quantity, stats.quantities)
    p_margin = percentile_rank(norm.margin_rate, stats.margins)

    profile_score, profile_label = _profile(norm, stats)
    activity_score = _activity(norm.inactivity_months, stats.is_seasonal)

    composite = (
        p_ca * WEIGHT_CA
        + p_vol * WEIGHT_VOLUME
        + p_margin * WEIGHT_MARGIN
        + profile_score * WEIGHT_PROFILE
        + activity_score * WEIGHT_ACTIVITY
    )

    all_composites = [_composite(p, stats) for p in cohort]
    mean, stddev = mean_and_stddev(all_composites)
    threshold = max(THRESHOLD_FLOOR, mean - THRESHOLD_SIGMA * stddev)

    recommendation = Category.A if composite >= threshold else Category.Z
    label = profile_label

    # ── Guard-rails ───────────────────────────────────────────────────────────
    is_recent = target.months_active < RUN_RATE_MIN_MONTHS
    is_top30 = (
        composite * 100 >= TOP_SUPPLIER_MIN_COMPOSITE
        and _is_top_supplier_revenue(norm, cohort)
    )
    is_last = target.is_last_product_of_supplier

    if is_recent:
        recommendation = Category.A
        label = LABEL_RECENT
    elif is_top30:
        recommendation = Category.A
        label = f"{profile_label} / {LABEL_LEADER_SUFFIX}"
    elif is_last:
        recommendation = Category.A
        label = LABEL_LAST_PRODUCT

    # Absolute exclusion overrides every guard-rail
    is_critical = target.score is not None and target.score < CRITICAL_SCORE
    if is_critical:
        recommendation = Category.Z
        label = LABEL_CRITICAL

    logger.debug(
        "analyze_rayon %s: composite=%.3f threshold=%.3f -> %s (%s)",
        target.id, composite, threshold, recommendation.value, label,
    )

    return ScoringResult(
        product_id=target.id,
        composite_score=round_half_up(composite * 100),
        percentiles=Percentiles(ca=p_ca, volume=p_vol, margin=p_margin),
        profile_score=profile_score,
        activity_score=activity_score,
        decision=Decision(
            recommendation=recommendation,
            threshold=round_half_up(threshold * 100),
            is_top30_supplier=is_top30,
            is_last_product=is_last,
            is_recent=is_recent,
            is_critical_score=is_critical,
            label=label,
        ),
        normalized_revenue=norm.revenue,
        normalized_quantity=norm.quantity,
    )


# ── Helpers ───────────────────────────────────────────────────────────────────

def _cohort_stats(cohort: list[_Normalized]) -> _CohortStats:
    quantities = [p.quantity for p in cohort]
    margins = [p.margin_rate for p in cohort]
    inactive = sum(1 for p in cohort if p.inactivity_months > 0)
    return _CohortStats(
        revenues=[p.revenue for p in cohort],
        quantities=quantities,
        margins=margins,
        median_quantity=median(quantities),
        median_margin=median(margins),
        is_seasonal=inactive / len(cohort) > SEASONAL_RAYON_INACTIVITY_SHARE,
    )


def _profile(p: _Normalized, stats: _CohortStats) -> tuple[float, str]:
    high_volume = p.quantity > stats.median_quantity
    high_margin = p.margin_rate > stats.median_margin
    if high_volume and high_margin:
        return 1.0, LABEL_STAR
    if high_margin:
        return 0.7, LABEL_MARGIN
    if high_volume:
        return 0.7, LABEL_TRAFFIC
    return 0.2, LABEL_UNDERPERFORMER


def _activity(inactivity_months: int, is_seasonal_rayon: bool) -> float:
    if inactivity_months <= 0:
        return 1.0
    if is_seasonal_rayon:
        return 0.8
    if inactivity_months == 1:
        return 0.6
    if inactivity_months == 2:
        return 0.3
    return 0.0


def _composite(p: _Normalized, stats: _CohortStats) -> float:
    profile_score, _ = _profile(p, stats)
    return (
        percentile_rank(p.revenue, stats.revenues) * WEIGHT_CA
        + percentile_rank(p.quantity, stats.quantities) * WEIGHT_VOLUME
        + percentile_rank(p.margin_rate, stats.margins) * WEIGHT_MARGIN
        + profile_score * WEIGHT_PROFILE
        + _activity(p.inactivity_months, stats.is_seasonal) * WEIGHT_ACTIVITY
    )


def _is_top_supplier_revenue(target: _Normalized, cohort: list[_Normalized]) -> bool:
    """True if ``target`` ranks in the top 30% of its supplier by normalized CA."""
    supplier = [p for p in cohort if p.supplier_code == target.supplier_code]
    if not supplier:
        return False
    ranked = sorted(supplier, key=lambda p: p.revenue, reverse=True)
    top_count = math.ceil(len(ranked) * TOP_SUPPLIER_SHARE)
    return target.id in {p.id for p in ranked[:top_count]}
