"""
Export helpers for spreadsheet review of assortment decisions.

All writers create parent directories and return the written ``Path``.
They accept generic ``list[dict]`` rows; the ``flatten_*`` adapters turn
engine and analysis results into such rows, one per product, with every
sub-score as its own column so the CSV opens in Excel without reshaping.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path

from gamme_advisor.analysis.service import BatchCategoryResult, BulkReport
from gamme_advisor.models.product import ProductMetrics
from gamme_advisor.scoring.rayon_engine import ScoringResult


def export_to_csv(
    records: list[dict],
    path: Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` to a UTF-8 CSV file.

    Args:
        records:    List of row dicts.
        path:       Destination file path (parent dirs created if missing).
        fieldnames: Column order.  If None, uses the keys of the first record.

    Returns:
        ``path`` as written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if not records:
        path.write_text("", encoding="utf-8")
        return path
    cols = fieldnames or list(records[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(records)
    return path


def export_to_json(data: dict | list, path: Path) -> Path:
    """Write ``data`` as pretty-printed UTF-8 JSON (parent dirs created)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(data, indent=2, ensure_ascii=False, default=str), encoding="utf-8"
    )
    return path


def flatten_scores_for_export(products: list[ProductMetrics]) -> list[dict]:
    """One row per product with its totals and global score."""
    return [
        {
            "product_id":       p.id,
            "label":            p.label,
            "rayon_key":        p.rayon_key,
            "current_category": p.current_category.value if p.current_category else "",
            "total_quantity":   p.total_quantity,
            "total_revenue":    round(p.total_revenue, 2),
            "margin_rate":      round(p.margin_rate, 1),
            "store_count":      p.store_count,
            "months_active":    p.months_active,
            "score":            p.score if p.score is not None else "",
        }
        for p in products
    ]


def flatten_scoring_for_export(results: list[ScoringResult]) -> list[dict]:
    """One row per rayon engine result with percentiles and guard-rail flags."""
    rows: list[dict] = []
    for r in results:
        d = r.decision
        rows.append(
            {
                "product_id":          r.product_id,
                "composite_score":     r.composite_score,
                "p_ca":                round(r.percentiles.ca, 4),
                "p_volume":            round(r.percentiles.volume, 4),
                "p_margin":            round(r.percentiles.margin, 4),
                "profile_score":       r.profile_score,
                "activity_score":      r.activity_score,
                "recommendation":      d.recommendation.value,
                "threshold":           d.threshold,
                "label":               d.label,
                "is_recent":           d.is_recent,
                "is_top30_supplier":   d.is_top30_supplier,
                "is_last_product":     d.is_last_product,
                "is_critical_score":   d.is_critical_score,
                "normalized_revenue":  round(r.normalized_revenue, 2),
                "normalized_quantity": round(r.normalized_quantity, 2),
            }
        )
    return rows


def flatten_batch_for_export(rayon: str, results: list[BatchCategoryResult]) -> list[dict]:
    """One row per batch categorization result."""
    rows: list[dict] = []
    for r in results:
        a = r.assignment
        rows.append(
            {
                "rayon":              rayon,
                "product_id":         a.product_id,
                "category":           a.category.value if a.category else "",
                "rule":               a.rule,
                "source":             a.source,
                "corrected":          a.corrected,
                "reason":             a.reason,
                "global_percentile":  round(a.global_percentile, 1),
                "weight_in_rayon":    a.weight_in_rayon,
                "llm_recommendation": r.llm_recommendation.value if r.llm_recommendation else "",
                "is_duplicate":       r.is_duplicate,
                "llm_justification":  r.llm_justification,
            }
        )
    return rows


def flatten_bulk_for_export(report: BulkReport) -> list[dict]:
    """One row per bulk analysis item, sorted by product id."""
    rows: list[dict] = []
    for pid in sorted(report.items):
        item = report.items[pid]
        res = item.result
        rows.append(
            {
                "product_id":      pid,
                "status":          item.status.value,
                "recommendation":  res.recommendation.value if res and res.recommendation else "",
                "engine_decision": res.scoring.decision.recommendation.value if res else "",
                "composite_score": res.scoring.composite_score if res else "",
                "quadrant":        res.profile.quadrant.value if res else "",
                "insight":         res.insight if res else "",
                "error":           item.error or "",
            }
        )
    return rows
