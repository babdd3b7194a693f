"""
Parsing of completion replies into strict category codes.

Free-text parsing is best-effort by nature; it is kept in this module so its
heuristics can change without touching any scoring logic.

    extract_recommendation("Après analyse: [A] - Bonne rotation")  ->  Category.A
    extract_recommendation("No clear verdict")                      ->  None

``None`` means "recommendation unavailable".  Callers must never read it as Z.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from gamme_advisor.errors import MalformedResponseError
from gamme_advisor.models.taxonomy import Category

logger = logging.getLogger(__name__)

_BRACKETED_TOKEN = re.compile(r"\[\s*([ACZ])\s*\]", re.IGNORECASE)
_RECOMMENDATION_TOKEN = re.compile(r"\b([ACZ])\b", re.IGNORECASE)
_LEADING_TAG = re.compile(r"^\[?[ACZ]\]?\s*[:\s-]+\s*", re.IGNORECASE)
_LEADING_WORD = re.compile(
    r"^(justification|explanation|explication|reason|raison|why|pourquoi|avis)\s*[:\s-]+\s*",
    re.IGNORECASE,
)

SINGLE_VOCABULARY = frozenset({Category.A, Category.C, Category.Z})


@dataclass(frozen=True)
class SingleResponse:
    """Parsed reply for one product."""

    recommendation: Optional[Category]
    justification: str
    rule_applies: bool = False


@dataclass(frozen=True)
class BatchLLMItem:
    """One entry of a batch reply."""

    id: str
    recommendation: Optional[Category]
    is_duplicate: bool
    justification: str


def extract_recommendation(text: str) -> Optional[Category]:
    """Return the recommended A, C or Z in ``text``, or ``None``.

    A bracketed tag such as ``[Z]`` wins over any bare letter, so the article
    in "a weak product [Z]" is not read as A.  Without a tag, the first
    standalone token counts.  Matching is case-insensitive and whole-word: the
    "A" of "Après" does not count.
    """
    if not text:
        return None
    match = _BRACKETED_TOKEN.search(text) or _RECOMMENDATION_TOKEN.search(text)
    if match is None:
        return None
    return Category(match.group(1).upper())


def clean_insight(text: str) -> str:
    """Strip a leading ``[A] -`` tag and a leading "justification:" style word."""
    cleaned = _LEADING_TAG.sub("", text.strip())
    cleaned = _LEADING_WORD.sub("", cleaned)
    return cleaned.strip()


def salvage_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object from a reply, tolerating prose or fences around it.

    Tries the whole text first, then the outermost ``{...}`` span.

    Raises:
        MalformedResponseError: No JSON object could be recovered.
    """
    candidate = (text or "").strip()
    try:
        parsed = json.loads(candidate)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    start = candidate.find("{")
    end = candidate.rfind("}")
    if start == -1 or end <= start:
        raise MalformedResponseError(f"No JSON object in reply: {candidate[:120]!r}")
    try:
        parsed = json.loads(candidate[start:end + 1])
    except ValueError as exc:
        raise MalformedResponseError(
            f"Invalid JSON object in reply: {candidate[:120]!r}"
        ) from exc
    if not isinstance(parsed, dict):
        raise MalformedResponseError("Reply JSON is not an object.")
    return parsed


def parse_category(value: Any, vocabulary: Iterable[Category] = tuple(Category)) -> Optional[Category]:
    """Strictly map a JSON field to a category within ``vocabulary``."""
    if not isinstance(value, str):
        return None
    try:
        category = Category(value.strip().upper())
    except ValueError:
        return None
    return category if category in set(vocabulary) else None


def parse_single_response(text: str) -> SingleResponse:
    """Parse the reply for one product: JSON first, free text as fallback."""
    try:
        data = salvage_json_object(text)
    except MalformedResponseError:
        logger.debug("Single reply is not JSON; falling back to text extraction.")
        return SingleResponse(
            recommendation=extract_recommendation(text),
            justification=clean_insight(text),
        )

    justification = str(data.get("justification") or "").strip()
    recommendation = parse_category(data.get("recommendation"), SINGLE_VOCABULARY)
    if recommendation is None:
        recommendation = extract_recommendation(justification)
    return SingleResponse(
        recommendation=recommendation,
        justification=justification,
        rule_applies=bool(data.get("rule_applies", False)),
    )


def parse_batch_response(text: str, requested_ids: Iterable[str]) -> list[BatchLLMItem]:
    """Parse a batch reply ``{"results": [{id, recommendation, ...}]}``.

    Entries for ids that were not requested are dropped, as are repeated ids
    after the first occurrence.

    Raises:
        MalformedResponseError: No object, or ``results`` is not a list.
    """
    data = salvage_json_object(text)
    results = data.get("results")
    if not isinstance(results, list):
        raise MalformedResponseError("Batch reply has no 'results' list.")

    wanted = set(requested_ids)
    seen: set[str] = set()
    items: list[BatchLLMItem] = []
    for entry in results:
        if not isinstance(entry, dict):
            continue
        raw_id = entry.get("id", entry.get("codein"))
        if raw_id is None:
            continue
        product_id = str(raw_id)
        if product_id not in wanted:
            logger.warning("Batch reply contains unrequested product '%s'; dropped.", product_id)
            continue
        if product_id in seen:
            continue
        seen.add(product_id)
        items.append(
            BatchLLMItem(
                id=product_id,
                recommendation=parse_category(
                    entry.get("recommendation", entry.get("recommandationGamme"))
                ),
                is_duplicate=bool(entry.get("isDuplicate", False)),
                justification=str(
                    entry.get("justification", entry.get("justificationCourte")) or ""
                ).strip(),
            )
        )
    return items
