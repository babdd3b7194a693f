"""
Assortment taxonomy: lifecycle categories ("gammes") and commercial quadrants.

``Category`` ordering is the contract used by the batch consistency check:
A (core) > B (complementary) > C (seasonal) > Z (discontinue).

This module has NO imports from any other ``gamme_advisor`` package.
"""

from enum import StrEnum


class Category(StrEnum):
    """Product lifecycle classification."""

    A = "A"
    """Core / permanent range."""

    B = "B"
    """Complementary range."""

    C = "C"
    """Seasonal range."""

    Z = "Z"
    """Discontinue."""

    @property
    def rank(self) -> int:
        """Ordering weight: higher is better."""
        return CATEGORY_RANK[self]


CATEGORY_RANK: dict[Category, int] = {
    Category.A: 3,
    Category.B: 2,
    Category.C: 1,
    Category.Z: 0,
}

CATEGORY_LABELS: dict[Category, str] = {
    Category.A: "permanent",
    Category.B: "complementary",
    Category.C: "seasonal",
    Category.Z: "exit",
}


class Quadrant(StrEnum):
    """2×2 volume × margin position of a product against its cohort medians."""

    STAR = "STAR"
    """Volume and margin both above median."""

    TRAFIC = "TRAFIC"
    """Volume above median, margin at or below: traffic generator."""

    MARGE = "MARGE"
    """Margin above median, volume at or below: margin contributor."""

    WATCH = "WATCH"
    """Neither above median: underperformer to watch."""


QUADRANT_LABELS: dict[Quadrant, str] = {
    Quadrant.STAR: "Star (high volume, high margin)",
    Quadrant.TRAFIC: "Traffic generator (high volume, low margin)",
    Quadrant.MARGE: "Margin contributor (low volume, high margin)",
    Quadrant.WATCH: "Underperformer (low volume, low margin)",
}
