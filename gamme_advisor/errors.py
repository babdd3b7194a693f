"""
Exception hierarchy for Gamme Advisor.

Two families:
  - Input invariant violations (``EmptyCohortError``) are programming errors
    and are raised to the caller immediately.
  - External-call failures (``LLMError`` subclasses) are recoverable at the
    batch-item level; the bulk runner records them per product and moves on.

An unparseable recommendation is NOT an exception: it is represented as
``None`` by the parsing layer.
"""

from __future__ import annotations

from typing import Optional


class GammeAdvisorError(Exception):
    """Base class for all errors raised by this package."""


class EmptyCohortError(GammeAdvisorError, ValueError):
    """A percentile-dependent computation received an empty cohort."""


class IdentityMismatchError(GammeAdvisorError):
    """An external result was returned for a different product than requested."""

    def __init__(self, requested_id: str, returned_id: str) -> None:
        super().__init__(
            f"Result for product '{returned_id}' returned for request '{requested_id}'."
        )
        self.requested_id = requested_id
        self.returned_id = returned_id


class AnalysisCancelled(GammeAdvisorError):
    """A cooperative stop signal was observed while work was pending."""


# ── External-call failures ────────────────────────────────────────────────────


class LLMError(GammeAdvisorError):
    """Base class for failures of the completion API call."""


class LLMConfigurationError(LLMError):
    """Systemic misconfiguration (e.g. missing API key). Short-circuits a batch."""


class RateLimitedError(LLMError):
    """HTTP 429 from the completion API.

    Attributes:
        retry_after: Server-suggested wait in seconds, or ``None`` if absent.
    """

    def __init__(self, retry_after: Optional[float] = None) -> None:
        msg = "Rate limited by completion API"
        if retry_after is not None:
            msg += f" (retry after {retry_after:g}s)"
        super().__init__(msg)
        self.retry_after = retry_after


class LLMResponseError(LLMError):
    """Any other non-success HTTP status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"Completion API returned HTTP {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


class LLMTimeoutError(LLMError):
    """The completion API did not answer within the configured timeout."""


class MalformedResponseError(LLMError):
    """The response content could not be turned into the expected structure."""
