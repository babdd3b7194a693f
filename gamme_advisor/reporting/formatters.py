"""
ASCII terminal formatters for CLI commands.

All formatters take result objects and return plain multi-line strings
suitable for ``typer.echo()``.  No third-party dependencies.
"""

from __future__ import annotations

from gamme_advisor.analysis.service import BatchCategoryResult, BulkReport
from gamme_advisor.models.product import ProductMetrics
from gamme_advisor.scoring.context_profiler import ContextProfile
from gamme_advisor.scoring.rayon_engine import ScoringResult


def format_score_table(products: list[ProductMetrics], top_n: int | None = None) -> str:
    """Products sorted by global score, best first.

        Rank  Product        Label                     Qty    Revenue  Score
        ----------------------------------------------------------------------
           1  P001           Sparkling water 1L       1200     3400.0  100.0
    """
    ranked = sorted(products, key=lambda p: p.score or 0.0, reverse=True)
    if top_n is not None:
        ranked = ranked[:top_n]

    lines: list[str] = ["", "=== Global Scores ==="]
    if not ranked:
        lines.append("  (no products)")
        return "\n".join(lines)

    header = (
        f"  {'Rank':>4}  {'Product':<14}  {'Label':<24}  "
        f"{'Qty':>8}  {'Revenue':>10}  {'Score':>6}"
    )
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for rank, p in enumerate(ranked, 1):
        score_str = f"{p.score:.1f}" if p.score is not None else "-"
        lines.append(
            f"  {rank:>4}  {p.id[:14]:<14}  {p.label[:24]:<24}  "
            f"{p.total_quantity:>8g}  {p.total_revenue:>10.1f}  {score_str:>6}"
        )
    return "\n".join(lines)


def format_profile(profile: ContextProfile, scoring: ScoringResult) -> str:
    """Positioning sheet of one product."""

    def flag(value: bool) -> str:
        return "yes" if value else "no"

    d = scoring.decision
    lines = [
        "",
        f"=== Profile: {profile.label} ({profile.product_id}) ===",
        f"  Rayon:          {profile.rayon_label} ({profile.rayon_size} of {profile.lot_size} products)",
        f"  Quadrant:       {profile.quadrant.value} ({profile.quadrant_label})",
        f"  Composite:      {scoring.composite_score}/100 (threshold {d.threshold})",
        f"  Decision:       {d.recommendation.value} ({d.label})",
        f"  Percentiles:    CA P{profile.percentile_revenue}  "
        f"Qty P{profile.percentile_quantity}  Margin P{profile.percentile_margin}",
        f"  Supplier share: CA {profile.weight_revenue_supplier}%  "
        f"Qty {profile.weight_quantity_supplier}%",
        f"  Rayon share:    CA {profile.weight_revenue_rayon}%  "
        f"Qty {profile.weight_quantity_rayon}%",
        f"  Health:         {profile.months_active}/12 months active, "
        f"{profile.inactivity_months} inactive, margin {profile.margin_rate:.1f}%",
        f"  Signals:        top20 CA={flag(profile.is_top20_revenue)} "
        f"top20 qty={flag(profile.is_top20_quantity)} "
        f"traffic={flag(profile.is_high_volume_low_margin)} "
        f"margin={flag(profile.is_margin_pure)} "
        f"low contribution={flag(profile.is_low_contribution)}",
    ]
    if profile.is_protected:
        lines.append(f"  Protected:      {profile.protection_reason}")
    if profile.score_critical:
        lines.append("  [CRITICAL] Global score below 20")
    return "\n".join(lines)


def format_batch_table(rayon: str, results: list[BatchCategoryResult]) -> str:
    """Batch categorization outcome; corrected rows are marked with ``*``."""
    lines: list[str] = ["", f"=== Categorization: {rayon} ==="]
    if not results:
        lines.append("  (no products)")
        return "\n".join(lines)

    header = f"  {'Product':<14}  {'Cat':>3}  {'Source':<11}  {'Rule':<13}  Reason"
    lines.append(header)
    lines.append("  " + "-" * 70)
    for r in results:
        a = r.assignment
        cat = a.category.value if a.category else "?"
        mark = "*" if a.corrected else " "
        dup = " [duplicate?]" if r.is_duplicate else ""
        lines.append(
            f"  {a.product_id[:14]:<14}  {cat:>2}{mark}  {a.source:<11}  {a.rule:<13}  "
            f"{a.reason}{dup}"
        )
    unresolved = sum(1 for r in results if r.category is None)
    if unresolved:
        lines.append("")
        lines.append(f"  {unresolved} product(s) unresolved: review manually.")
    return "\n".join(lines)


def format_bulk_summary(report: BulkReport) -> str:
    """Per-item status of a bulk analysis, then the counts."""
    lines: list[str] = ["", "=== Bulk Analysis ==="]
    for pid in sorted(report.items):
        item = report.items[pid]
        if item.result is not None:
            rec = item.result.recommendation.value if item.result.recommendation else "?"
            detail = f"{rec}  {item.result.insight}"
        else:
            detail = item.error or ""
        lines.append(f"  [{item.status.value.upper():<9}] {pid:<14}  {detail}")
    lines.append("")
    lines.append(
        f"  ok={report.ok_count}  error={report.error_count}  "
        f"cancelled={report.cancelled_count}"
    )
    return "\n".join(lines)
