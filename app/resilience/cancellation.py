"""
Session-scoped cancellation flags.
"""
import threading
from typing import Dict, Optional


class CancellationToken:
    """A one-way flag; once cancelled it stays cancelled."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Stopped by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; returns True if cancelled meanwhile."""
        return self._event.wait(timeout)


class CancellationRegistry:
    """Tokens keyed by session id, created on first use."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens: Dict[str, CancellationToken] = {}

    def token_for(self, session_id: str) -> CancellationToken:
        with self._lock:
            token = self._tokens.get(session_id)
            if token is None:
                token = CancellationToken()
                self._tokens[session_id] = token
            return token

    def cancel(self, session_id: str, reason: str = "Stopped by user") -> CancellationToken:
        token = self.token_for(session_id)
        token.cancel(reason)
        return token

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._tokens.pop(session_id, None)
