"""
Deterministic batch categorization ladder.

Rules, evaluated in order (first match wins):
    1. PILLAR        : weight in rayon >= 5%                          → A
    2. STEADY        : months active >= 8                             → A
    3. ABOVE_AVERAGE : global percentile >= 50 AND months active >= 4 → A
    4. SEASONAL      : 2 <= months active <= 4 AND sales concentrated
                       in one season (active months span <= 4)         → C
    5. EXIT          : weight in rayon < 1% AND months active < 5
                       AND global percentile < 30                      → Z
    6. AMBIGUOUS     : everything else                                 → None

An ambiguous outcome is surfaced as ``category=None``; the caller decides
the fallback explicitly (see ``BatchCategorizer``).

Consistency
-----------
Within one batch, if X has both a strictly higher global percentile and a
strictly higher rayon weight than Y, X's category must rank >= Y's
(A > B > C > Z).  ``enforce_consistency()`` raises X to Y's category until no
violation remains.  Items without a category take no part in the check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from gamme_advisor.config import LadderConfig
from gamme_advisor.models.product import ProductMetrics
from gamme_advisor.models.taxonomy import Category
from gamme_advisor.utils.stats import percentile_rank, weight_pct

logger = logging.getLogger(__name__)

RULE_PILLAR = "pillar"
RULE_STEADY = "steady"
RULE_ABOVE_AVERAGE = "above_average"
RULE_SEASONAL = "seasonal"
RULE_EXIT = "exit"
RULE_AMBIGUOUS = "ambiguous"
RULE_CONSISTENCY = "consistency"

DEFAULT_LADDER_CONFIG = LadderConfig()


@dataclass(frozen=True)
class LadderInput:
    """Per-product facts the ladder needs, computed against one batch.

    Attributes:
        product_id:        Product key.
        weight_in_rayon:   Max of CA and quantity weight in the rayon (0–100).
        months_active:     Months with any sale (0–12).
        global_percentile: Percentile of the global score in the batch (0–100).
        sales_12m:         Monthly quantities keyed ``YYYYMM``.
    """

    product_id:        str
    weight_in_rayon:   float
    months_active:     int
    global_percentile: float
    sales_12m:         Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class CategoryAssignment:
    """Category decided for one product, with provenance.

    Attributes:
        product_id:        Product key.
        category:          Assigned category, or ``None`` when unresolved.
        rule:              Ladder rule that matched (or ``consistency``).
        reason:            Human-readable explanation.
        global_percentile: Copied from the ladder input (consistency check).
        weight_in_rayon:   Copied from the ladder input (consistency check).
        source:            "ladder", "llm", "consistency" or "unresolved".
        corrected:         True if relabeled by the consistency check.
    """

    product_id:        str
    category:          Optional[Category]
    rule:              str
    reason:            str
    global_percentile: float
    weight_in_rayon:   float
    source:            str = "ladder"
    corrected:         bool = False


def build_ladder_inputs(
    products: list[ProductMetrics],
    cohort: Optional[list[ProductMetrics]] = None,
) -> list[LadderInput]:
    """Compute ladder inputs for ``products`` relative to ``cohort``.

    ``cohort`` (default: ``products``) supplies the rayon totals for weights.
    The global percentile is ranked among the scores of ``products`` itself,
    the batch.  A missing score ranks as 0.
    """
    cohort = cohort if cohort is not None else products

    rayon_revenue: dict[str, float] = {}
    rayon_quantity: dict[str, float] = {}
    for p in cohort:
        rayon_revenue[p.rayon_key] = rayon_revenue.get(p.rayon_key, 0.0) + p.total_revenue
        rayon_quantity[p.rayon_key] = rayon_quantity.get(p.rayon_key, 0.0) + p.total_quantity

    scores = [p.score or 0.0 for p in products]

    inputs: list[LadderInput] = []
    for p in products:
        weight = max(
            weight_pct(p.total_revenue, rayon_revenue.get(p.rayon_key, 0.0)),
            weight_pct(p.total_quantity, rayon_quantity.get(p.rayon_key, 0.0)),
        )
        inputs.append(
            LadderInput(
                product_id=p.id,
                weight_in_rayon=weight,
                months_active=p.months_active,
                global_percentile=percentile_rank(p.score or 0.0, scores, scale=100),
                sales_12m=dict(p.sales_12m),
            )
        )
    return inputs


def categorize(
    item: LadderInput,
    config: LadderConfig = DEFAULT_LADDER_CONFIG,
) -> CategoryAssignment:
    """Apply the ladder to one product.  First matching rule wins."""
    months = item.months_active
    pct = item.global_percentile
    weight = item.weight_in_rayon

    def assign(category: Optional[Category], rule: str, reason: str) -> CategoryAssignment:
        return CategoryAssignment(
            product_id=item.product_id,
            category=category,
            rule=rule,
            reason=reason,
            global_percentile=pct,
            weight_in_rayon=weight,
            source="ladder" if category is not None else "unresolved",
        )

    if weight >= config.pillar_weight_pct:
        return assign(Category.A, RULE_PILLAR, f"Category pillar ({weight:.1f}% of rayon)")
    if months >= config.steady_months:
        return assign(Category.A, RULE_STEADY, f"Steady shelf rotation ({months}/12 months)")
    if pct >= config.above_average_percentile and months >= config.above_average_min_months:
        return assign(
            Category.A, RULE_ABOVE_AVERAGE,
            f"Above-average performer (P{pct:.0f}, {months}/12 months)",
        )
    if (
        config.seasonal_min_months <= months <= config.seasonal_max_months
        and is_seasonal_concentration(item.sales_12m, config.seasonal_max_span)
    ):
        return assign(Category.C, RULE_SEASONAL, f"Seasonal ({months} concentrated months)")
    if (
        weight < config.low_weight_pct
        and months < config.z_max_months
        and pct < config.z_max_percentile
    ):
        return assign(
            Category.Z, RULE_EXIT,
            f"Exit: {weight:.1f}% of rayon, {months}/12 months, P{pct:.0f}",
        )
    return assign(
        None, RULE_AMBIGUOUS,
        f"No rule matched ({weight:.1f}% of rayon, {months}/12 months, P{pct:.0f})",
    )


def is_seasonal_concentration(sales_12m: Mapping[str, float], max_span: int) -> bool:
    """True if all months with sales fit in a window of ``max_span`` calendar months.

    The window may wrap around the new year (Nov–Jan spans 3 months).
    Keys end with the 2-digit month (``YYYYMM`` or ``YYYY-MM``).
    """
    months = sorted({int(key[-2:]) for key, qty in sales_12m.items() if qty > 0})
    if not months:
        return False
    gaps = [b - a for a, b in zip(months, months[1:])]
    gaps.append(months[0] + 12 - months[-1])
    span = 12 - max(gaps) + 1
    return span <= max_span


def dominates(x: CategoryAssignment, y: CategoryAssignment) -> bool:
    """X is strictly better than Y on both global percentile and rayon weight."""
    return (
        x.global_percentile > y.global_percentile
        and x.weight_in_rayon > y.weight_in_rayon
    )


def find_violations(
    assignments: list[CategoryAssignment],
) -> list[tuple[CategoryAssignment, CategoryAssignment]]:
    """Return ``(better, worse)`` pairs where the worse product outranks the better."""
    labeled = [a for a in assignments if a.category is not None]
    return [
        (x, y)
        for x in labeled
        for y in labeled
        if dominates(x, y) and x.category.rank < y.category.rank
    ]


def enforce_consistency(assignments: list[CategoryAssignment]) -> list[CategoryAssignment]:
    """Relabel dominating products upward until no violation remains.

    Returns a new list in the input order; corrected entries carry
    ``corrected=True`` and ``source="consistency"``.
    """
    current = {a.product_id: a for a in assignments}

    changed = True
    while changed:
        changed = False
        for better, worse in find_violations(list(current.values())):
            x = current[better.product_id]
            y = current[worse.product_id]
            if x.category.rank >= y.category.rank:
                continue
            logger.info(
                "Consistency: %s raised %s -> %s to match dominated %s",
                x.product_id, x.category.value, y.category.value, y.product_id,
            )
            current[x.product_id] = replace(
                x,
                category=y.category,
                rule=RULE_CONSISTENCY,
                reason=f"Raised to {y.category.value}: outperforms {y.product_id}",
                source="consistency",
                corrected=True,
            )
            changed = True

    return [current[a.product_id] for a in assignments]
