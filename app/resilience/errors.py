"""
Error taxonomy shared by the scraper and the matcher.

Every failure that reaches a log row is reduced to an ``ErrorType`` so the
dashboard can tell "provider unavailable" apart from "this job failed".
"""
import json
import socket
from enum import Enum
from typing import Optional


class ErrorType(str, Enum):
    CIRCUIT_BREAKER = "circuit_breaker"
    TIMEOUT = "timeout"
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    JSON_PARSE = "json_parse"
    VALIDATION = "validation"
    NO_OBJECT = "no_object"
    NOT_FOUND = "not_found"
    MISSING_API_KEY = "missing_api_key"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


RETRYABLE_ERROR_TYPES = frozenset({
    ErrorType.TIMEOUT,
    ErrorType.NETWORK,
    ErrorType.RATE_LIMIT,
    ErrorType.SERVER_ERROR,
    ErrorType.UNKNOWN,
})


class OrchestrationError(Exception):
    """Base error carrying an error type and an explicit retryability flag."""

    error_type = ErrorType.UNKNOWN

    def __init__(self, message: str, error_type: Optional[ErrorType] = None, retryable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if error_type is not None:
            self.error_type = error_type
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        if self._retryable is not None:
            return self._retryable
        return self.error_type in RETRYABLE_ERROR_TYPES


class CircuitBreakerOpenError(OrchestrationError):
    error_type = ErrorType.CIRCUIT_BREAKER

    def __init__(self, name: str, retry_after_seconds: float = 0.0):
        super().__init__(
            f"Circuit breaker '{name}' is open; provider currently unavailable",
            retryable=False,
        )
        self.name = name
        self.retry_after_seconds = retry_after_seconds


class OperationTimeoutError(OrchestrationError):
    error_type = ErrorType.TIMEOUT

    def __init__(self, message: str = "Operation timed out", timeout_ms: Optional[int] = None):
        if timeout_ms is not None:
            message = f"{message} after {timeout_ms}ms"
        super().__init__(message, retryable=True)
        self.timeout_ms = timeout_ms


class OperationCancelledError(OrchestrationError):
    error_type = ErrorType.CANCELLED

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message, retryable=False)


class RetryFailedError(OrchestrationError):
    """Raised once a retried operation gives up; wraps the final error."""

    def __init__(self, last_error: BaseException, attempts: int):
        error_type = categorize_error(last_error)
        super().__init__(str(last_error) or error_type.value, error_type=error_type, retryable=False)
        self.last_error = last_error
        self.attempts = attempts


def categorize_error(error: BaseException) -> ErrorType:
    """Map any exception onto the error taxonomy."""
    if isinstance(error, OrchestrationError):
        return error.error_type
    if isinstance(error, (TimeoutError, socket.timeout)):
        return ErrorType.TIMEOUT
    if isinstance(error, json.JSONDecodeError):
        return ErrorType.JSON_PARSE
    if isinstance(error, ConnectionError):
        return ErrorType.NETWORK
    if isinstance(error, (ValueError, TypeError, KeyError)):
        return ErrorType.VALIDATION

    message = str(error).lower()
    if "circuit breaker" in message:
        return ErrorType.CIRCUIT_BREAKER
    if "timeout" in message or "timed out" in message:
        return ErrorType.TIMEOUT
    if "rate limit" in message or "429" in message or "too many requests" in message:
        return ErrorType.RATE_LIMIT
    if "econnrefused" in message or "connection" in message or "network" in message:
        return ErrorType.NETWORK
    if "api key" in message:
        return ErrorType.MISSING_API_KEY
    return ErrorType.UNKNOWN


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, OrchestrationError):
        return error.retryable
    return categorize_error(error) in RETRYABLE_ERROR_TYPES


def format_error_message(error: BaseException, limit: int = 500) -> str:
    message = str(error) or error.__class__.__name__
    if len(message) > limit:
        return message[:limit] + "..."
    return message
