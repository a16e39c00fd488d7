"""
Unit tests for the bounded concurrency limiter.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from app.resilience.cancellation import CancellationToken
from app.resilience.limiter import ConcurrencyLimiter


def test_limit_is_clamped():
    assert ConcurrencyLimiter(0).limit == 1
    assert ConcurrencyLimiter(50).limit == 10


def test_never_exceeds_limit():
    limiter = ConcurrencyLimiter(2, poll_interval=0.01)
    peak = []
    lock = threading.Lock()

    def work():
        with limiter.slot() as acquired:
            assert acquired
            with lock:
                peak.append(limiter.in_flight)
            time.sleep(0.02)

    with ThreadPoolExecutor(max_workers=6) as pool:
        for _ in range(12):
            pool.submit(work)

    assert max(peak) <= 2
    assert limiter.in_flight == 0


def test_cancelled_waiter_does_not_take_a_slot():
    limiter = ConcurrencyLimiter(1, poll_interval=0.01)
    token = CancellationToken()
    assert limiter.acquire()

    result = {}
    waiter = threading.Thread(target=lambda: result.setdefault("acquired", limiter.acquire(token)))
    waiter.start()
    time.sleep(0.05)
    token.cancel()
    waiter.join(timeout=1)

    assert result["acquired"] is False
    assert limiter.in_flight == 1

    limiter.release()
    assert limiter.acquire()


def test_already_cancelled_token_returns_immediately():
    limiter = ConcurrencyLimiter(3)
    token = CancellationToken()
    token.cancel()
    assert limiter.acquire(token) is False
    assert limiter.in_flight == 0
