"""
Unit tests for retry with exponential backoff.
"""
import random

import pytest

from app.resilience.cancellation import CancellationToken
from app.resilience.errors import (
    CircuitBreakerOpenError,
    ErrorType,
    OperationCancelledError,
    OrchestrationError,
    RetryFailedError,
)
from app.resilience.retry import Retrier, RetryPolicy, backoff_delays, with_retry


class Flaky:
    """Raises the given errors in order, then returns "ok"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def transient():
    return OrchestrationError("503 from provider", error_type=ErrorType.SERVER_ERROR)


def test_raw_delay_doubles_and_caps():
    policy = RetryPolicy(max_attempts=6, base_delay_ms=100, max_delay_ms=500)
    assert [policy.raw_delay_ms(n) for n in range(1, 6)] == [100, 200, 400, 500, 500]


def test_policy_clamps_bounds():
    policy = RetryPolicy(max_attempts=50, base_delay_ms=2000, max_delay_ms=10)
    assert policy.max_attempts == 10
    assert policy.max_delay_ms == 2000
    assert RetryPolicy(max_attempts=0).max_attempts == 1


@pytest.mark.parametrize("seed", range(10))
def test_backoff_delays_non_decreasing_and_capped(seed):
    policy = RetryPolicy(max_attempts=10, base_delay_ms=300, max_delay_ms=5000, jitter_ratio=0.5)
    delays = list(backoff_delays(policy, random.Random(seed)))

    assert len(delays) == 9
    assert all(b >= a for a, b in zip(delays, delays[1:]))
    assert all(d <= 5.0 for d in delays)
    assert delays[0] >= 0.3


def test_retries_transient_errors_until_success():
    sleeps = []
    operation = Flaky(transient(), transient())
    retrier = Retrier(RetryPolicy(max_attempts=3, base_delay_ms=100, max_delay_ms=1000), sleep=sleeps.append)

    outcome = retrier.run(operation)

    assert outcome.value == "ok"
    assert outcome.attempts == 3
    assert len(sleeps) == 2
    assert sleeps[1] >= sleeps[0]


def test_gives_up_after_max_attempts():
    operation = Flaky(*[transient() for _ in range(5)])
    retrier = Retrier(RetryPolicy(max_attempts=3, base_delay_ms=0, max_delay_ms=0), sleep=lambda _s: None)

    with pytest.raises(RetryFailedError) as exc_info:
        retrier.run(operation)

    assert exc_info.value.attempts == 3
    assert exc_info.value.error_type == ErrorType.SERVER_ERROR
    assert operation.calls == 3


def test_non_retryable_error_fails_fast():
    sleeps = []
    operation = Flaky(OrchestrationError("bad schema", error_type=ErrorType.VALIDATION), transient())
    retrier = Retrier(RetryPolicy(max_attempts=5), sleep=sleeps.append)

    with pytest.raises(RetryFailedError) as exc_info:
        retrier.run(operation)

    assert exc_info.value.attempts == 1
    assert exc_info.value.error_type == ErrorType.VALIDATION
    assert operation.calls == 1
    assert sleeps == []


@pytest.mark.parametrize("error_type", [ErrorType.JSON_PARSE, ErrorType.NO_OBJECT, ErrorType.VALIDATION])
def test_malformed_replies_are_not_retried(error_type):
    operation = Flaky(*[OrchestrationError("unusable reply", error_type=error_type) for _ in range(3)])
    retrier = Retrier(RetryPolicy(max_attempts=3, base_delay_ms=0, max_delay_ms=0), sleep=lambda _s: None)

    with pytest.raises(RetryFailedError) as exc_info:
        retrier.run(operation)

    assert operation.calls == 1
    assert exc_info.value.attempts == 1
    assert exc_info.value.error_type == error_type


def test_before_attempt_runs_ahead_of_each_retry():
    checks = []
    operation = Flaky(transient(), transient())
    retrier = Retrier(RetryPolicy(max_attempts=3, base_delay_ms=0, max_delay_ms=0), sleep=lambda _s: None)

    outcome = retrier.run(operation, before_attempt=lambda: checks.append(operation.calls))

    assert outcome.attempts == 3
    # Not before the first attempt
    assert checks == [1, 2]


def test_before_attempt_error_ends_retries_unwrapped():
    operation = Flaky(transient(), transient())
    retrier = Retrier(RetryPolicy(max_attempts=3, base_delay_ms=0, max_delay_ms=0), sleep=lambda _s: None)

    def circuit_open():
        raise CircuitBreakerOpenError("openai", 30.0)

    with pytest.raises(CircuitBreakerOpenError) as exc_info:
        retrier.run(operation, before_attempt=circuit_open)

    assert operation.calls == 1
    assert exc_info.value.attempts == 1


def test_missing_api_key_is_not_retried():
    operation = Flaky(OrchestrationError("no key", error_type=ErrorType.MISSING_API_KEY))
    with pytest.raises(RetryFailedError):
        Retrier(RetryPolicy(max_attempts=3), sleep=lambda _s: None).run(operation)
    assert operation.calls == 1


def test_cancellation_during_backoff_stops_retrying():
    token = CancellationToken()
    token.cancel()
    operation = Flaky(transient(), transient())
    retrier = Retrier(RetryPolicy(max_attempts=3, base_delay_ms=10_000, max_delay_ms=10_000))

    with pytest.raises(OperationCancelledError):
        retrier.run(operation, cancel_token=token)
    assert operation.calls == 1


def test_with_retry_reraises_original_error():
    calls = []

    @with_retry(RetryPolicy(max_attempts=2, base_delay_ms=0, max_delay_ms=0), sleep=lambda _s: None)
    def fetch():
        calls.append(1)
        raise OrchestrationError("timeout", error_type=ErrorType.TIMEOUT)

    with pytest.raises(OrchestrationError) as exc_info:
        fetch()
    assert not isinstance(exc_info.value, RetryFailedError)
    assert len(calls) == 2
