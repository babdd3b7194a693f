"""
Tests for the shared order-statistics primitives.

What we test
------------
percentile_rank:
  - Stays within [0, scale] and gives the maximum element the top rank.
  - Returns the top rank for a distribution of length 0 or 1.
  - Gives every copy of a tied value the same rank (average tie index).
  - Returns 0 for a value absent from the distribution.
  - Is insensitive to input order.

median / value_at_percentile / mean_and_stddev / weight_pct:
  - Basic values, empty input, clamping and one-decimal rounding.

round_half_up:
  - Exact halves go up (12.5 -> 13), not to the even neighbour.
"""

from __future__ import annotations

import pytest

from gamme_advisor.utils.stats import (
    mean_and_stddev,
    median,
    percentile_rank,
    round_half_up,
    value_at_percentile,
    weight_pct,
)


class TestPercentileRank:
    def test_bounds_and_max_gets_top_rank(self):
        dist = [5.0, 1.0, 9.0, 3.0, 7.0]
        ranks = [percentile_rank(v, dist) for v in dist]
        assert all(0.0 <= r <= 1.0 for r in ranks)
        assert percentile_rank(9.0, dist) == 1.0
        assert percentile_rank(1.0, dist) == 0.0

    def test_scale_100(self):
        assert percentile_rank(30, [10, 20, 30], scale=100) == 100.0
        assert percentile_rank(20, [10, 20, 30], scale=100) == 50.0

    @pytest.mark.parametrize("dist", [[], [42.0]])
    def test_singleton_or_empty_returns_top_rank(self, dist):
        assert percentile_rank(0.0, dist) == 1.0
        assert percentile_rank(-5.0, dist, scale=100) == 100.0

    def test_ties_share_average_rank(self):
        dist = [10, 20, 20, 30]
        assert percentile_rank(20, dist) == pytest.approx(0.5)
        assert percentile_rank(20, dist, scale=100) == pytest.approx(50.0)

    def test_all_equal_values_rank_in_the_middle(self):
        assert percentile_rank(7, [7, 7, 7]) == pytest.approx(0.5)

    def test_absent_value_returns_zero(self):
        assert percentile_rank(15, [10, 20, 30]) == 0.0

    def test_order_insensitive(self):
        assert percentile_rank(20, [30, 10, 20]) == percentile_rank(20, [10, 20, 30])


class TestMedian:
    def test_odd(self):
        assert median([3, 1, 2]) == 2.0

    def test_even(self):
        assert median([4, 1, 3, 2]) == 2.5

    def test_empty(self):
        assert median([]) == 0.0


class TestValueAtPercentile:
    def test_ceiling_rank(self):
        values = [10, 20, 30, 40, 50]
        # ceil(0.8 * 5) - 1 = 3
        assert value_at_percentile(values, 80) == 40.0
        # ceil(0.4 * 5) - 1 = 1
        assert value_at_percentile(values, 40) == 20.0

    def test_clamped(self):
        assert value_at_percentile([1, 2, 3], 0) == 1.0
        assert value_at_percentile([1, 2, 3], 150) == 3.0

    def test_empty(self):
        assert value_at_percentile([], 50) == 0.0


class TestMeanAndStddev:
    def test_population_stddev(self):
        mean, std = mean_and_stddev([2, 4, 4, 4, 5, 5, 7, 9])
        assert mean == pytest.approx(5.0)
        assert std == pytest.approx(2.0)

    def test_empty(self):
        assert mean_and_stddev([]) == (0.0, 0.0)


class TestWeightPct:
    def test_one_decimal(self):
        assert weight_pct(1, 3) == 33.3
        assert weight_pct(50, 200) == 25.0

    def test_zero_total(self):
        assert weight_pct(10, 0) == 0.0

    def test_half_rounds_up(self):
        assert weight_pct(1, 80) == 1.3      # 12.5 per mille
        assert weight_pct(1, 400) == 0.3     # 2.5 per mille


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value, expected",
        [(12.5, 13), (0.5, 1), (2.5, 3), (12.49, 12), (99.5, 100), (0.0, 0)],
    )
    def test_halves_go_up(self, value, expected):
        assert round_half_up(value) == expected
