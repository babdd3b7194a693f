"""
Bounded retry on rate limiting, with cooperative cancellation.

Only ``RateLimitedError`` is retried; every other error propagates on the
first occurrence.  Wait per retry is the server hint when one was given,
otherwise ``default_backoff_seconds * attempt`` (escalating), capped at
``max_backoff_seconds``.

Attempts are driven by ``tenacity.Retrying``.  Its sleep hook goes through
``CancellationToken.wait()`` so a stop signal interrupts a backoff immediately
instead of after it elapses.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
)

from gamme_advisor.config import BatchConfig
from gamme_advisor.errors import AnalysisCancelled, RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Thread-safe stop signal checked between items and during waits."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis stopped by request.")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry ceiling and backoff for rate-limited calls.

    Attributes:
        max_retries:             Retries after the first attempt (0 = none).
        default_backoff_seconds: Base wait when the server gives no hint.
        max_backoff_seconds:     Upper cap on any single wait.
    """

    max_retries: int = 2
    default_backoff_seconds: float = 15.0
    max_backoff_seconds: float = 120.0

    @classmethod
    def from_config(cls, config: BatchConfig) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            default_backoff_seconds=config.default_backoff_seconds,
            max_backoff_seconds=config.max_backoff_seconds,
        )

    def delay_for(self, attempt: int, retry_after: Optional[float]) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""
        if retry_after is not None:
            delay = retry_after
        else:
            delay = self.default_backoff_seconds * attempt
        return min(max(0.0, delay), self.max_backoff_seconds)

    def _wait(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception()
        hint = exc.retry_after if isinstance(exc, RateLimitedError) else None
        return self.delay_for(retry_state.attempt_number, hint)

    def retrying(self, token: CancellationToken) -> Retrying:
        """Build the tenacity controller for one call guarded by ``token``."""

        def sleep(seconds: float) -> None:
            if token.wait(seconds):
                raise AnalysisCancelled("Analysis stopped during rate-limit backoff.")

        return Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception_type(RateLimitedError),
            sleep=sleep,
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                "Rate limited; retry %d/%d in %.1fs",
                retry_state.attempt_number, self.max_retries,
                retry_state.next_action.sleep,
            ),
        )

    def call(
        self,
        fn: Callable[[], T],
        token: Optional[CancellationToken] = None,
    ) -> T:
        """Call ``fn`` until it succeeds, retrying only on rate limiting.

        Raises:
            RateLimitedError:  The last rate limit once retries are exhausted.
            AnalysisCancelled: ``token`` was cancelled before or during a wait.
        """
        token = token or CancellationToken()

        def attempt() -> T:
            token.raise_if_cancelled()
            return fn()

        try:
            return self.retrying(token)(attempt)
        except RateLimitedError:
            logger.warning("Rate limit retries exhausted after %d attempts", self.max_retries + 1)
            raise
