"""
Order-statistics primitives shared by every scoring component.

All functions are pure and operate on plain sequences of numbers.  The score
engine, the rayon engine and the context profiler all call these exact
functions so that they agree on ranking semantics for the same cohort.

Scale convention
----------------
``percentile_rank`` returns a fraction in ``[0.0, 1.0]`` by default.  Callers
that display percentiles on a 0–100 scale pass ``scale=100`` explicitly:

    percentile_rank(v, dist)             # rayon engine: 0.0–1.0
    percentile_rank(v, dist, scale=100)  # context profiler: 0–100

Tie handling
------------
When ``value`` occurs several times in the sorted distribution, its rank is
the average of the first and last matching index::

    percentile_rank(20, [10, 20, 20, 30])  ->  ((1 + 2) / 2) / 3 = 0.5
"""

from __future__ import annotations

import math
from bisect import bisect_left, bisect_right
from typing import Sequence


def percentile_rank(
    value: float,
    distribution: Sequence[float],
    scale: float = 1.0,
) -> float:
    """Return the fractional rank of ``value`` within ``distribution``.

    Args:
        value:        The value to rank.
        distribution: Comparison values (the cohort), in any order.
        scale:        Multiplier applied to the 0–1 rank (``100`` for percent).

    Returns:
        ``scale`` for a distribution of length <= 1 (a singleton or empty
        cohort is never "below" anything).  ``0.0`` when ``value`` does not
        occur in the distribution.  Otherwise the average tie index divided
        by the maximum index, times ``scale``.
    """
    if len(distribution) <= 1:
        return float(scale)

    ordered = sorted(distribution)
    first = bisect_left(ordered, value)
    last = bisect_right(ordered, value) - 1
    if first > last:
        return 0.0

    avg_rank = (first + last) / 2
    return avg_rank / (len(ordered) - 1) * scale


def median(values: Sequence[float]) -> float:
    """Middle element, or the mean of the two middle elements. ``0.0`` if empty."""
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2


def value_at_percentile(values: Sequence[float], p: float) -> float:
    """Return the value at the ceiling-rounded 1-indexed rank for percentile ``p``.

    ``p`` is on a 0–100 scale.  The index is clamped to ``[0, len - 1]``.
    Returns ``0.0`` for an empty sequence.
    """
    if not values:
        return 0.0
    ordered = sorted(values)
    idx = math.ceil(p / 100 * len(ordered)) - 1
    idx = max(0, min(idx, len(ordered) - 1))
    return float(ordered[idx])


def mean_and_stddev(values: Sequence[float]) -> tuple[float, float]:
    """Population mean and standard deviation. ``(0.0, 0.0)`` if empty."""
    if not values:
        return 0.0, 0.0
    mean = sum(values) / len(values)
    variance = sum((x - mean) ** 2 for x in values) / len(values)
    return mean, math.sqrt(variance)


def weight_pct(value: float, total: float) -> float:
    """One-decimal percentage of ``total``; ``0.0`` when the total is 0."""
    if total <= 0:
        return 0.0
    return round_half_up(value / total * 1000) / 10


def round_half_up(value: float) -> int:
    """Nearest integer with halves going up (``12.5 -> 13``).

    The built-in ``round`` sends halves to the even neighbour (``12.5 -> 12``).
    """
    return math.floor(value + 0.5)
