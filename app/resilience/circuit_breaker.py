"""
Circuit breaker for calls to a flaky dependency (one breaker per AI provider).

closed -> open after ``failure_threshold`` consecutive failures;
open -> half_open once ``reset_timeout_ms`` has elapsed (checked lazily when
the state is read); half_open -> closed on the next success or back to open
on the next failure. Only one probe call is let through while half open.
"""
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from app.resilience.errors import CircuitBreakerOpenError, ErrorType, categorize_error

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:

    def __init__(
        self,
        name: str,
        failure_threshold: int = 10,
        reset_timeout_ms: int = 60000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.reset_timeout_ms = reset_timeout_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False

    def configure(self, failure_threshold: int, reset_timeout_ms: int) -> None:
        with self._lock:
            self.failure_threshold = max(1, failure_threshold)
            self.reset_timeout_ms = reset_timeout_ms

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current_state()

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def _current_state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            elapsed_ms = (self._clock() - self._opened_at) * 1000
            if elapsed_ms >= self.reset_timeout_ms:
                self._state = CircuitState.HALF_OPEN
                self._probe_in_flight = False
                logger.info(f"Circuit breaker '{self.name}' half open after {elapsed_ms:.0f}ms")
        return self._state

    def _retry_after_seconds(self) -> float:
        if self._opened_at is None:
            return 0.0
        remaining_ms = self.reset_timeout_ms - (self._clock() - self._opened_at) * 1000
        return max(0.0, remaining_ms / 1000)

    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def ensure_closed(self) -> None:
        """Fail fast when open, without reserving a half-open probe."""
        with self._lock:
            if self._current_state() == CircuitState.OPEN:
                raise CircuitBreakerOpenError(self.name, self._retry_after_seconds())

    def before_call(self) -> None:
        """Reserve the right to call, or fail fast."""
        with self._lock:
            state = self._current_state()
            if state == CircuitState.OPEN:
                raise CircuitBreakerOpenError(self.name, self._retry_after_seconds())
            if state == CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    raise CircuitBreakerOpenError(self.name, 0.0)
                self._probe_in_flight = True

    def record_success(self) -> None:
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info(f"Circuit breaker '{self.name}' closed")
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None
            self._probe_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            state = self._current_state()
            self._failure_count += 1
            self._probe_in_flight = False
            if state == CircuitState.OPEN:
                return
            if state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
                logger.warning(
                    f"Circuit breaker '{self.name}' opened after {self._failure_count} consecutive failures"
                )
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

    def release_probe(self) -> None:
        with self._lock:
            self._probe_in_flight = False

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        self.before_call()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            # Cancelled calls and calls cut short by an open circuit say
            # nothing new about the provider's health
            if categorize_error(e) in (ErrorType.CANCELLED, ErrorType.CIRCUIT_BREAKER):
                self.release_probe()
            else:
                self.record_failure()
            raise
        self.record_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None
            self._probe_in_flight = False

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            state = self._current_state()
            return {
                "name": self.name,
                "state": state.value,
                "failure_count": self._failure_count,
                "failure_threshold": self.failure_threshold,
                "retry_after_seconds": self._retry_after_seconds() if state == CircuitState.OPEN else 0.0,
            }


class CircuitBreakerRegistry:
    """Breakers keyed by dependency name; shared by every session in the process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, name: str, failure_threshold: int = 10, reset_timeout_ms: int = 60000) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name, failure_threshold, reset_timeout_ms, clock=self._clock)
                self._breakers[name] = breaker
            else:
                breaker.configure(failure_threshold, reset_timeout_ms)
            return breaker

    def snapshot(self) -> list:
        with self._lock:
            breakers = list(self._breakers.values())
        return [breaker.snapshot() for breaker in breakers]
