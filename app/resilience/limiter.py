"""
Bounded concurrency limiter.

Waiting callers poll their cancellation token so a stopped session never
takes a slot it no longer needs.
"""
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from app.resilience.cancellation import CancellationToken

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 10


class ConcurrencyLimiter:

    def __init__(self, limit: int, poll_interval: float = 0.05):
        self.limit = max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, int(limit)))
        self._semaphore = threading.BoundedSemaphore(self.limit)
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def acquire(self, cancel_token: Optional[CancellationToken] = None) -> bool:
        """Block until a slot is free; False if cancelled while waiting."""
        while True:
            if cancel_token is not None and cancel_token.cancelled:
                return False
            if self._semaphore.acquire(timeout=self._poll_interval):
                if cancel_token is not None and cancel_token.cancelled:
                    self._semaphore.release()
                    return False
                with self._lock:
                    self._in_flight += 1
                return True

    def release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self._semaphore.release()

    @contextmanager
    def slot(self, cancel_token: Optional[CancellationToken] = None) -> Iterator[bool]:
        acquired = self.acquire(cancel_token)
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
