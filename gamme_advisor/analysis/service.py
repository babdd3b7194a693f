"""
Analysis orchestration: single product, per-product bulk run, one-call batch.

    ProductAnalyzer   rayon engine → context profile → one completion call →
                      parsed recommendation.
    BulkAnalyzer      ProductAnalyzer over many products, at most
                      ``concurrency`` calls in flight, bounded retry on rate
                      limiting, cooperative cancellation, per-item status.
    BatchCategorizer  one completion call for a whole rayon, then the
                      deterministic ladder (authoritative) and the
                      consistency correction.

The completion client is passed in by the caller.  Nothing here holds a
shared session.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Optional

from gamme_advisor.analysis import prompts
from gamme_advisor.analysis.parsing import (
    BatchLLMItem,
    parse_batch_response,
    parse_single_response,
    salvage_json_object,
)
from gamme_advisor.analysis.retry import CancellationToken, RetryPolicy
from gamme_advisor.analysis.rule_ladder import (
    CategoryAssignment,
    build_ladder_inputs,
    categorize,
    enforce_consistency,
)
from gamme_advisor.config import BatchConfig, LadderConfig, LLMConfig
from gamme_advisor.errors import (
    AnalysisCancelled,
    GammeAdvisorError,
    IdentityMismatchError,
    LLMConfigurationError,
    MalformedResponseError,
)
from gamme_advisor.llm.client import CompletionClient, LLMRequest
from gamme_advisor.models.product import ProductMetrics
from gamme_advisor.models.taxonomy import Category
from gamme_advisor.scoring.context_profiler import ContextProfile, build_profile
from gamme_advisor.scoring.rayon_engine import ScoringResult, analyze_rayon

logger = logging.getLogger(__name__)

PROMPT_CONTEXTUAL = "contextual"
PROMPT_BENCHMARK = "benchmark"


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of one single-product analysis.

    ``recommendation`` is ``None`` when the reply held no usable letter;
    that is "unavailable", never Z.
    """

    product_id:     str
    recommendation: Optional[Category]
    insight:        str
    scoring:        ScoringResult
    profile:        ContextProfile
    rule_applies:   bool = False


class ProductAnalyzer:
    """Analyze one product against its cohort with a single completion call.

    Args:
        client:       Completion client.  Owned by the caller.
        config:       LLM section (model slug).
        retry_policy: Applied around the completion call.
        prompt_style: ``"contextual"`` (JSON reply built from the context
                      profile) or ``"benchmark"`` (free-text reply built from
                      raw stats and cohort benchmarks).
    """

    def __init__(
        self,
        client: CompletionClient,
        config: LLMConfig,
        retry_policy: Optional[RetryPolicy] = None,
        prompt_style: str = PROMPT_CONTEXTUAL,
    ) -> None:
        if prompt_style not in (PROMPT_CONTEXTUAL, PROMPT_BENCHMARK):
            raise ValueError(f"Unknown prompt style '{prompt_style}'.")
        self.client = client
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()
        self.prompt_style = prompt_style

    def analyze(
        self,
        target: ProductMetrics,
        cohort: list[ProductMetrics],
        supplier_context: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> AnalysisResult:
        """Score, profile and ask for a recommendation for ``target``.

        Args:
            target:           Product to analyze.
            cohort:           The supplier lot (normally includes ``target``).
            supplier_context: Optional manager rule for this supplier.
            token:            Cancellation token checked during retries.

        Raises:
            EmptyCohortError:      No product of ``target``'s rayon in ``cohort``.
            IdentityMismatchError: The reply names another product.
            LLMError:              Completion failed after retries.
            AnalysisCancelled:     ``token`` was cancelled.
        """
        rayon = [p for p in cohort if p.rayon_key == target.rayon_key]
        scoring = analyze_rayon(target, rayon)
        profile = build_profile(target, cohort, scoring)

        if self.prompt_style == PROMPT_BENCHMARK:
            request = LLMRequest(
                system_prompt=prompts.system_prompt(),
                user_prompt=prompts.user_message(
                    target, prompts.compute_benchmarks(target, cohort)
                ),
                model=self.config.model,
                json_mode=False,
            )
        else:
            request = LLMRequest(
                system_prompt=prompts.contextual_system_prompt(),
                user_prompt=prompts.contextual_message(profile, supplier_context),
                model=self.config.model,
            )

        text = self.retry_policy.call(lambda: self.client.complete(request), token)
        _check_identity(target.id, text)
        parsed = parse_single_response(text)

        logger.debug(
            "Analyzed %s: llm=%s engine=%s",
            target.id,
            parsed.recommendation.value if parsed.recommendation else None,
            scoring.decision.recommendation.value,
        )
        return AnalysisResult(
            product_id=target.id,
            recommendation=parsed.recommendation,
            insight=parsed.justification,
            scoring=scoring,
            profile=profile,
            rule_applies=parsed.rule_applies,
        )


def _check_identity(requested_id: str, text: str) -> None:
    """Raise if a JSON reply carries an ``id`` other than ``requested_id``."""
    try:
        data = salvage_json_object(text)
    except MalformedResponseError:
        return
    returned = data.get("id", data.get("codein"))
    if returned is not None and str(returned) != requested_id:
        raise IdentityMismatchError(requested_id, str(returned))


# ── Bulk (per-product calls) ──────────────────────────────────────────────────

class ItemStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ItemResult:
    """Per-product outcome of a bulk run."""

    product_id: str
    status:     ItemStatus
    result:     Optional[AnalysisResult] = None
    error:      Optional[str] = None


@dataclass
class BulkReport:
    """All item outcomes of a bulk run, keyed by product id."""

    items: dict[str, ItemResult] = field(default_factory=dict)
    cancelled: bool = False

    def count(self, status: ItemStatus) -> int:
        return sum(1 for item in self.items.values() if item.status == status)

    @property
    def ok_count(self) -> int:
        return self.count(ItemStatus.OK)

    @property
    def error_count(self) -> int:
        return self.count(ItemStatus.ERROR)

    @property
    def cancelled_count(self) -> int:
        return self.count(ItemStatus.CANCELLED)


class BulkAnalyzer:
    """Run ``ProductAnalyzer`` over many products with bounded concurrency.

    One item's failure (including exhausted rate-limit retries) is recorded
    as ``ItemStatus.ERROR`` and the run continues.  Once the token is
    cancelled, items not yet started are recorded as ``CANCELLED``; finished
    items keep their results.
    """

    def __init__(
        self,
        analyzer: Optional[ProductAnalyzer],
        config: Optional[BatchConfig] = None,
    ) -> None:
        self.analyzer = analyzer
        self.config = config or BatchConfig()

    def run(
        self,
        products: list[ProductMetrics],
        cohort: list[ProductMetrics],
        token: Optional[CancellationToken] = None,
        supplier_context: Optional[str] = None,
    ) -> BulkReport:
        """Analyze every product in ``products`` against ``cohort``.

        Raises:
            LLMConfigurationError: No analyzer or API key; nothing is dispatched.
        """
        if self.analyzer is None or not self.analyzer.client.api_key:
            raise LLMConfigurationError("No completion client configured for bulk analysis.")

        token = token or CancellationToken()
        report = BulkReport()
        if not products:
            return report

        logger.info(
            "Bulk analysis: %d products, concurrency=%d", len(products), self.config.concurrency
        )

        def work(product: ProductMetrics) -> ItemResult:
            if token.is_cancelled:
                return ItemResult(product.id, ItemStatus.CANCELLED)
            try:
                result = self.analyzer.analyze(product, cohort, supplier_context, token)
            except AnalysisCancelled:
                return ItemResult(product.id, ItemStatus.CANCELLED)
            except GammeAdvisorError as exc:
                logger.warning("Analysis failed for %s: %s", product.id, exc)
                return ItemResult(product.id, ItemStatus.ERROR, error=str(exc))
            except Exception as exc:
                logger.exception("Unexpected failure analyzing %s", product.id)
                return ItemResult(product.id, ItemStatus.ERROR, error=f"{type(exc).__name__}: {exc}")
            if result.product_id != product.id:
                exc = IdentityMismatchError(product.id, result.product_id)
                logger.error("%s", exc)
                return ItemResult(product.id, ItemStatus.ERROR, error=str(exc))
            return ItemResult(product.id, ItemStatus.OK, result=result)

        with ThreadPoolExecutor(max_workers=self.config.concurrency) as executor:
            future_map = {executor.submit(work, p): p for p in products}
            for future in as_completed(future_map):
                item = future.result()
                report.items[item.product_id] = item

        report.cancelled = token.is_cancelled
        logger.info(
            "Bulk analysis finished: %d ok, %d error, %d cancelled",
            report.ok_count, report.error_count, report.cancelled_count,
        )
        return report


# ── Batch (one call per rayon) ────────────────────────────────────────────────

@dataclass(frozen=True)
class BatchCategoryResult:
    """Final category of one product in a batch, with the LLM's view alongside."""

    assignment:         CategoryAssignment
    llm_recommendation: Optional[Category] = None
    is_duplicate:       bool = False
    llm_justification:  str = ""

    @property
    def product_id(self) -> str:
        return self.assignment.product_id

    @property
    def category(self) -> Optional[Category]:
        return self.assignment.category


class BatchCategorizer:
    """Categorize a rayon in one pass.

    Ladder decisions are authoritative.  An ambiguous ladder outcome takes
    the LLM letter when one was returned, otherwise it stays unresolved
    (``category=None``, ``source="unresolved"``).  The consistency correction
    runs last.

    ``client=None`` runs the ladder alone.
    """

    def __init__(
        self,
        client: Optional[CompletionClient] = None,
        llm_config: Optional[LLMConfig] = None,
        ladder_config: Optional[LadderConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.client = client
        self.llm_config = llm_config or LLMConfig()
        self.ladder_config = ladder_config or LadderConfig()
        self.retry_policy = retry_policy or RetryPolicy()

    def categorize(
        self,
        rayon: str,
        products: list[ProductMetrics],
        cohort: Optional[list[ProductMetrics]] = None,
        token: Optional[CancellationToken] = None,
    ) -> list[BatchCategoryResult]:
        """Return one result per product, in input order.

        Raises:
            LLMError:          The completion call failed after retries.
            AnalysisCancelled: ``token`` was cancelled during a retry wait.
        """
        if not products:
            return []

        llm_items = self._ask_llm(rayon, products, token) if self.client else {}

        assignments: list[CategoryAssignment] = []
        for item in build_ladder_inputs(products, cohort):
            assignment = categorize(item, self.ladder_config)
            llm = llm_items.get(item.product_id)
            if assignment.category is None and llm is not None and llm.recommendation:
                assignment = replace(
                    assignment,
                    category=llm.recommendation,
                    reason=f"{assignment.reason}; model: {llm.justification or 'no detail'}",
                    source="llm",
                )
            assignments.append(assignment)

        final = enforce_consistency(assignments)
        unresolved = sum(1 for a in final if a.category is None)
        if unresolved:
            logger.warning("Batch '%s': %d product(s) left unresolved", rayon, unresolved)

        results = []
        for assignment in final:
            llm = llm_items.get(assignment.product_id)
            results.append(
                BatchCategoryResult(
                    assignment=assignment,
                    llm_recommendation=llm.recommendation if llm else None,
                    is_duplicate=llm.is_duplicate if llm else False,
                    llm_justification=llm.justification if llm else "",
                )
            )
        return results

    def _ask_llm(
        self,
        rayon: str,
        products: list[ProductMetrics],
        token: Optional[CancellationToken],
    ) -> dict[str, BatchLLMItem]:
        request = LLMRequest(
            system_prompt=prompts.batch_system_prompt(rayon),
            user_prompt=prompts.batch_user_message(products),
            model=self.llm_config.model,
            max_tokens=max(self.llm_config.max_tokens, 120 * len(products)),
        )
        text = self.retry_policy.call(lambda: self.client.complete(request), token)
        try:
            items = parse_batch_response(text, [p.id for p in products])
        except MalformedResponseError as exc:
            logger.warning("Batch '%s': unusable model reply, ladder only (%s)", rayon, exc)
            return {}
        return {item.id: item for item in items}
