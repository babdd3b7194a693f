"""
Tests for the bounded retry policy and the cancellation token.

What we test
------------
  - Success on the first call makes exactly one call.
  - Rate limiting is retried up to max_retries, then re-raised.
  - Other errors propagate without retry.
  - Wait uses the server hint, else an escalating default, capped, and is
    slept through the token.
  - A cancelled token stops before the call and interrupts a backoff wait.
"""

from __future__ import annotations

import pytest

from gamme_advisor.analysis.retry import CancellationToken, RetryPolicy
from gamme_advisor.config import BatchConfig
from gamme_advisor.errors import AnalysisCancelled, LLMResponseError, RateLimitedError

NO_WAIT = RetryPolicy(max_retries=2, default_backoff_seconds=0.0, max_backoff_seconds=0.0)


class _Flaky:
    """Raise the given errors in turn, then return "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestRetryPolicyCall:
    def test_first_call_succeeds(self):
        fn = _Flaky()
        assert NO_WAIT.call(fn) == "ok"
        assert fn.calls == 1

    def test_rate_limit_retried(self):
        fn = _Flaky(RateLimitedError(0), RateLimitedError(0))
        assert NO_WAIT.call(fn) == "ok"
        assert fn.calls == 3

    def test_retries_exhausted(self):
        fn = _Flaky(*[RateLimitedError(0) for _ in range(3)])
        with pytest.raises(RateLimitedError):
            NO_WAIT.call(fn)
        assert fn.calls == 3

    def test_zero_retries(self):
        fn = _Flaky(RateLimitedError(0))
        with pytest.raises(RateLimitedError):
            RetryPolicy(max_retries=0).call(fn)
        assert fn.calls == 1

    def test_other_errors_not_retried(self):
        fn = _Flaky(LLMResponseError(500, "boom"))
        with pytest.raises(LLMResponseError):
            NO_WAIT.call(fn)
        assert fn.calls == 1

    def test_cancelled_before_call(self):
        token = CancellationToken()
        token.cancel()
        fn = _Flaky()
        with pytest.raises(AnalysisCancelled):
            NO_WAIT.call(fn, token)
        assert fn.calls == 0

    def test_cancel_interrupts_backoff(self):
        token = CancellationToken()
        policy = RetryPolicy(max_retries=2, default_backoff_seconds=60.0)

        def fn():
            token.cancel()
            raise RateLimitedError(30.0)

        with pytest.raises(AnalysisCancelled):
            policy.call(fn, token)

    def test_waits_follow_hint_then_default(self):
        class RecordingToken(CancellationToken):
            def __init__(self):
                super().__init__()
                self.waits = []

            def wait(self, seconds):
                self.waits.append(seconds)
                return False

        token = RecordingToken()
        policy = RetryPolicy(max_retries=2, default_backoff_seconds=5.0, max_backoff_seconds=60.0)
        fn = _Flaky(RateLimitedError(3.0), RateLimitedError(None))
        assert policy.call(fn, token) == "ok"
        assert token.waits == [3.0, 10.0]


class TestDelay:
    def test_server_hint_used(self):
        assert RetryPolicy().delay_for(1, 7.0) == 7.0

    def test_escalating_default(self):
        policy = RetryPolicy(default_backoff_seconds=15.0)
        assert policy.delay_for(1, None) == 15.0
        assert policy.delay_for(2, None) == 30.0

    def test_capped(self):
        policy = RetryPolicy(max_backoff_seconds=20.0)
        assert policy.delay_for(1, 500.0) == 20.0
        assert policy.delay_for(3, None) == 20.0

    def test_from_config(self):
        policy = RetryPolicy.from_config(
            BatchConfig(max_retries=4, default_backoff_seconds=1.0, max_backoff_seconds=9.0)
        )
        assert (policy.max_retries, policy.default_backoff_seconds, policy.max_backoff_seconds) == (4, 1.0, 9.0)


class TestCancellationToken:
    def test_initial_state(self):
        token = CancellationToken()
        assert token.is_cancelled is False
        assert token.wait(0) is False

    def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled is True
        assert token.wait(10) is True
        with pytest.raises(AnalysisCancelled):
            token.raise_if_cancelled()
