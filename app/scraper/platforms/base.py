"""
Platform adapter contract.

An adapter turns a company's careers URL (or board token) into a normalized
list of ``RawPosting`` objects. Each adapter owns its pagination; transport
retries live in the shared ``HttpClient``.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple

from app.resilience.errors import ErrorType, OrchestrationError
from app.scraper.http_client import HttpClient, HttpStatusError


@dataclass
class RawPosting:
    """A posting exactly as one board listed it, before diffing."""
    external_id: str
    native_id: str
    title: str
    url: Optional[str] = None
    description: Optional[str] = None
    description_format: str = "plain"
    location: Optional[str] = None
    location_type: Optional[str] = None
    department: Optional[str] = None
    salary: Optional[str] = None
    employment_type: Optional[str] = None
    posted_date: Optional[datetime] = None


@dataclass
class DiscoveryResult:
    postings: List[RawPosting] = field(default_factory=list)
    # False when the adapter could not see the whole board; archival is skipped
    listing_complete: bool = True
    detected_board_token: Optional[str] = None


class AdapterError(OrchestrationError):
    """A per-company discovery failure."""


class BoardNotFoundError(AdapterError):
    error_type = ErrorType.NOT_FOUND

    def __init__(self, message: str):
        super().__init__(message, retryable=False)


class UnsupportedPlatformError(AdapterError):
    error_type = ErrorType.VALIDATION

    def __init__(self, platform: Optional[str]):
        super().__init__(f"No adapter available for platform '{platform or 'unknown'}'", retryable=False)
        self.platform = platform


class AdapterNetworkError(AdapterError):
    error_type = ErrorType.NETWORK


def normalize_location(location: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Returns (location, location_type) with type one of remote/hybrid/onsite."""
    if not location or not location.strip():
        return None, None
    lowered = location.lower()
    if "remote" in lowered:
        location_type = "remote"
    elif "hybrid" in lowered:
        location_type = "hybrid"
    else:
        location_type = "onsite"
    return location.strip(), location_type


def parse_employment_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    lowered = value.lower().replace("_", "-").replace(" ", "-")
    for known in ("full-time", "part-time", "contract", "intern", "temporary"):
        if known in lowered:
            return known
    aliases = {"fulltime": "full-time", "parttime": "part-time", "internship": "intern"}
    return aliases.get(lowered, lowered)


class PlatformAdapter(ABC):
    """Abstract base class for job board adapters."""

    platform: str = ""

    def __init__(self, http_client: Optional[HttpClient] = None):
        self.http = http_client or HttpClient()
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def matches_url(self, url: str) -> bool:
        """Whether this adapter understands the careers URL."""
        pass

    @abstractmethod
    def extract_board_token(self, url: str) -> Optional[str]:
        """Pull the board identifier out of a careers URL, if present."""
        pass

    @abstractmethod
    def fetch_postings(self, board_token: str) -> DiscoveryResult:
        """Fetch and normalize every posting on the board."""
        pass

    def discover(self, company: Any) -> DiscoveryResult:
        """
        Discover the current openings for a company.

        Args:
            company: Object with ``careers_url`` and optional ``board_token``

        Raises:
            BoardNotFoundError: token missing or the board does not exist
            AdapterNetworkError: transport failure after retries
        """
        board_token, detected = self.resolve_board_token(company)
        self.logger.info(f"Discovering {self.platform} board '{board_token}' for {getattr(company, 'name', company)}")
        result = self.fetch_postings(board_token)
        if detected:
            result.detected_board_token = board_token
        self.logger.info(f"Found {len(result.postings)} postings on {self.platform} board '{board_token}'")
        return result

    def resolve_board_token(self, company: Any) -> Tuple[str, bool]:
        token = getattr(company, "board_token", None)
        if token:
            return token, False
        token = self.extract_board_token(getattr(company, "careers_url", "") or "")
        if not token:
            raise BoardNotFoundError(
                f"Could not determine {self.platform} board token from URL; board token required"
            )
        return token, True

    def external_id(self, board_token: str, native_id: Any) -> str:
        return f"{self.platform}-{board_token}-{native_id}"

    def get_json(self, url: str, params: Optional[dict] = None, headers: Optional[dict] = None) -> Any:
        """Fetch JSON, translating transport errors into adapter errors."""
        return self._translated(self.http.get_json, url, params=params, headers=headers)

    def post_json(self, url: str, body: Any, params: Optional[dict] = None, headers: Optional[dict] = None) -> Any:
        return self._translated(self.http.post_json, url, body, params=params, headers=headers)

    def _translated(self, send, url: str, *args, **kwargs) -> Any:
        try:
            return send(url, *args, **kwargs)
        except HttpStatusError as e:
            if e.status_code == 404:
                raise BoardNotFoundError(f"{self.platform} board not found at {url}") from e
            raise AdapterNetworkError(str(e), error_type=e.error_type) from e
        except OrchestrationError as e:
            raise AdapterNetworkError(str(e), error_type=e.error_type) from e
