"""
Retry with exponential backoff.

Only errors classified as retryable are retried; everything else propagates
on the first attempt without consuming a retry.
"""
import functools
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from app.resilience.cancellation import CancellationToken
from app.resilience.errors import (
    OperationCancelledError,
    RetryFailedError,
    is_retryable,
)

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Attempt limit and delay bounds (milliseconds)."""
    max_attempts: int = 3
    base_delay_ms: int = 2000
    max_delay_ms: int = 32000
    jitter_ratio: float = 0.1

    def __post_init__(self):
        self.max_attempts = max(1, min(10, int(self.max_attempts)))
        self.base_delay_ms = max(0, int(self.base_delay_ms))
        self.max_delay_ms = max(self.base_delay_ms, int(self.max_delay_ms))

    def raw_delay_ms(self, attempt: int) -> int:
        """Delay after the given failed attempt (1-based), before jitter."""
        return min(self.base_delay_ms * (2 ** (attempt - 1)), self.max_delay_ms)


def backoff_delays(policy: RetryPolicy, rng: Optional[random.Random] = None) -> Iterator[float]:
    """
    Yield the sleep (seconds) before each retry.

    Jitter is added on top of the exponential delay but the sequence is kept
    non-decreasing and never exceeds ``max_delay_ms``.
    """
    rng = rng or random.Random()
    previous = 0.0
    for attempt in range(1, policy.max_attempts):
        raw = policy.raw_delay_ms(attempt)
        jittered = raw + rng.uniform(0, raw * policy.jitter_ratio)
        delay_ms = max(previous, min(jittered, policy.max_delay_ms))
        previous = delay_ms
        yield delay_ms / 1000.0


@dataclass
class RetryOutcome:
    value: Any
    attempts: int


@dataclass
class Retrier:
    """
    Runs an operation under a ``RetryPolicy``.

    ``sleep`` is injectable so tests do not wait; when a cancellation token
    is given, backoff waits end early and the retry loop gives up.
    """
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Callable[[float], None] = time.sleep
    should_retry: Callable[[BaseException], bool] = is_retryable
    rng: Optional[random.Random] = None
    name: str = "operation"

    def run(
        self,
        operation: Callable[[], Any],
        cancel_token: Optional[CancellationToken] = None,
        before_attempt: Optional[Callable[[], None]] = None,
    ) -> RetryOutcome:
        """
        ``before_attempt`` runs ahead of every retry (not the first attempt);
        whatever it raises ends the loop unwrapped, tagged with the number of
        attempts already made.
        """
        delays = backoff_delays(self.policy, self.rng)
        attempt = 0
        while True:
            attempt += 1
            if attempt > 1 and before_attempt is not None:
                try:
                    before_attempt()
                except Exception as e:
                    e.attempts = attempt - 1
                    logger.warning(f"{self.name} stopped before attempt {attempt}: {e}")
                    raise
            try:
                return RetryOutcome(value=operation(), attempts=attempt)
            except Exception as e:
                if not self.should_retry(e) or attempt >= self.policy.max_attempts:
                    if attempt > 1:
                        logger.warning(f"{self.name} failed after {attempt} attempts: {e}")
                    raise RetryFailedError(e, attempt) from e

                delay = next(delays)
                logger.warning(
                    f"{self.name} attempt {attempt}/{self.policy.max_attempts} failed ({e}), "
                    f"retrying in {delay:.2f}s"
                )
                if cancel_token is not None:
                    if cancel_token.wait(delay):
                        raise OperationCancelledError(f"{self.name} cancelled during backoff") from e
                else:
                    self.sleep(delay)


def with_retry(policy: Optional[RetryPolicy] = None, sleep: Callable[[float], None] = time.sleep):
    """
    Decorator form of ``Retrier`` for plain functions.

    The final error is re-raised unwrapped so callers keep catching the
    exception types they already know.
    """
    policy = policy or RetryPolicy()

    def decorator(fn: Callable) -> Callable:
        retrier = Retrier(policy=policy, sleep=sleep, name=fn.__qualname__)

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return retrier.run(lambda: fn(*args, **kwargs)).value
            except RetryFailedError as e:
                raise e.last_error

        return wrapper

    return decorator
