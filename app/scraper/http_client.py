"""
HTTP client shared by the platform adapters.

5xx, 429, timeouts and connection failures are retried with exponential
backoff; any other 4xx is returned to the caller on the first attempt.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from app.core.config import SCRAPER_HTTP_RETRIES, SCRAPER_HTTP_TIMEOUT_SECONDS, SCRAPER_USER_AGENT
from app.resilience.errors import ErrorType, OperationTimeoutError, OrchestrationError, RetryFailedError
from app.resilience.retry import Retrier, RetryPolicy

logger = logging.getLogger(__name__)


class HttpClientError(OrchestrationError):
    """Transport-level failure talking to a job board."""


class HttpStatusError(HttpClientError):

    def __init__(self, status_code: int, url: str):
        if status_code == 429:
            error_type = ErrorType.RATE_LIMIT
        elif status_code >= 500:
            error_type = ErrorType.SERVER_ERROR
        elif status_code == 404:
            error_type = ErrorType.NOT_FOUND
        else:
            error_type = ErrorType.VALIDATION
        super().__init__(f"HTTP {status_code} from {url}", error_type=error_type)
        self.status_code = status_code
        self.url = url


class HttpClient:

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = SCRAPER_HTTP_TIMEOUT_SECONDS,
        retries: int = SCRAPER_HTTP_RETRIES,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 8000,
        user_agent: str = SCRAPER_USER_AGENT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.policy = RetryPolicy(max_attempts=retries, base_delay_ms=base_delay_ms, max_delay_ms=max_delay_ms)
        self.sleep = sleep
        self.default_headers = {
            "Accept": "application/json",
            "User-Agent": user_agent,
        }

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        """GET ``url`` and decode JSON, retrying transient failures."""
        return self._request_json("GET", url, params=params, headers=headers)

    def post_json(
        self,
        url: str,
        body: Any,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """POST a JSON body and decode the JSON reply; same retry rules as ``get_json``."""
        return self._request_json("POST", url, params=params, body=body, headers=headers)

    def _request_json(self, method: str, url: str, params=None, body=None, headers=None) -> Any:
        retrier = Retrier(policy=self.policy, sleep=self.sleep, name=f"{method} {url}")
        try:
            return retrier.run(lambda: self._request_json_once(method, url, params, body, headers)).value
        except RetryFailedError as e:
            raise e.last_error

    def _request_json_once(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        body: Any,
        headers: Optional[Dict[str, str]],
    ) -> Any:
        merged_headers = {**self.default_headers, **(headers or {})}
        try:
            if method == "POST":
                merged_headers.setdefault("Content-Type", "application/json")
                response = self.session.post(url, params=params, json=body, headers=merged_headers, timeout=self.timeout)
            else:
                response = self.session.get(url, params=params, headers=merged_headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise OperationTimeoutError(f"{method} {url} timed out", timeout_ms=int(self.timeout * 1000)) from e
        except requests.ConnectionError as e:
            raise HttpClientError(f"Connection to {url} failed: {e}", error_type=ErrorType.NETWORK) from e
        except requests.RequestException as e:
            raise HttpClientError(f"Request to {url} failed: {e}", error_type=ErrorType.NETWORK) from e

        if response.status_code >= 400:
            raise HttpStatusError(response.status_code, url)

        try:
            return response.json()
        except ValueError as e:
            raise HttpClientError(
                f"Invalid JSON from {url}", error_type=ErrorType.JSON_PARSE, retryable=False
            ) from e
