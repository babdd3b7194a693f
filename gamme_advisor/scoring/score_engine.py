"""
Score engine: supplier-wide MAX + bonus score.

Gives every product of a supplier lot a 0–100 index for ranking in the grid.
The cohort is the whole list passed in; there is no grouping by rayon here.

Formula
-------
    axis_score = value / axis_max * 100          (0 when axis_max == 0)
    base       = max(axis_qty, axis_revenue, axis_margin)
    bonus      = count(axis_score > strong_axis_threshold) * bonus_per_axis
    score      = round_half_up(min(base + bonus, 100) * 10) / 10

Excelling on one dimension is sufficient: the sole top performer on any axis
reaches 100 on ``base`` alone.
"""

from __future__ import annotations

import logging
from typing import Optional

from gamme_advisor.config import ScoreSettings
from gamme_advisor.models.product import ProductMetrics
from gamme_advisor.utils.stats import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_SCORE_SETTINGS = ScoreSettings()


def compute_scores(
    rows: list[ProductMetrics],
    settings: Optional[ScoreSettings] = None,
) -> list[ProductMetrics]:
    """Populate ``score`` on every row in place and return the same list.

    Idempotent: the same rows and settings always yield the same scores.
    Settings are trusted as given; range validation belongs to ``ScoreSettings``.

    Args:
        rows:     The full supplier lot.
        settings: Threshold and bonus; defaults to 30.0 / 10.

    Returns:
        ``rows``, with ``score`` set on each element.
    """
    if not rows:
        return rows

    settings = settings or DEFAULT_SCORE_SETTINGS

    max_qty = max(r.total_quantity for r in rows)
    max_revenue = max(r.total_revenue for r in rows)
    max_margin = max(r.total_margin for r in rows)

    for row in rows:
        axes = (
            _axis_score(row.total_quantity, max_qty),
            _axis_score(row.total_revenue, max_revenue),
            _axis_score(row.total_margin, max_margin),
        )
        base = max(axes)
        strong = sum(1 for a in axes if a > settings.strong_axis_threshold)
        bonus = strong * settings.bonus_per_axis
        row.score = round_half_up(min(base + bonus, 100.0) * 10) / 10

    logger.debug(
        "Scored %d products (max qty=%.1f, max CA=%.2f, max margin=%.2f)",
        len(rows), max_qty, max_revenue, max_margin,
    )
    return rows


def _axis_score(value: float, axis_max: float) -> float:
    if axis_max <= 0:
        return 0.0
    return value / axis_max * 100.0
