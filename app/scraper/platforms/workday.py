"""
Workday candidate experience API (``/wday/cxs/{tenant}/{board}``).

Board tokens carry the careers host so a token alone is enough to reach the
API: ``acme.wd5.myworkdayjobs.com/External`` (tenant taken from the host) or
``myworkdayjobs.com/acme/External``. A bare ``tenant/board`` token is
completed with the host of the company's careers URL.
"""
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlparse

from app.core.clock import utcnow
from app.scraper.description import process_description
from app.scraper.platforms.base import (
    AdapterError,
    BoardNotFoundError,
    DiscoveryResult,
    PlatformAdapter,
    RawPosting,
    normalize_location,
    parse_employment_type,
)

WORKDAY_HOST = "myworkdayjobs.com"
TENANT_HOST_PATTERN = re.compile(r"^([^.]+)\.wd\d*\.myworkdayjobs\.com$", re.IGNORECASE)
LOCALE_PATTERN = re.compile(r"^[a-z]{2}-[a-z]{2}$", re.IGNORECASE)
DAYS_AGO_PATTERN = re.compile(r"(\d+)")


@dataclass
class WorkdaySite:
    host: str
    tenant: str
    board: str

    @property
    def api_url(self) -> str:
        return f"https://{self.host}/wday/cxs/{quote(self.tenant)}/{quote(self.board)}"

    @property
    def public_url(self) -> str:
        if self.host.lower() == WORKDAY_HOST:
            return f"https://{self.host}/{self.tenant}/{self.board}"
        return f"https://{self.host}/{self.board}"


def parse_site_token(token: str) -> Optional[WorkdaySite]:
    parts = [part for part in token.strip().split("/") if part]
    if len(parts) == 3:
        return WorkdaySite(host=parts[0], tenant=parts[1], board=parts[2])
    if len(parts) == 2:
        match = TENANT_HOST_PATTERN.match(parts[0])
        if match:
            return WorkdaySite(host=parts[0], tenant=match.group(1), board=parts[1])
    return None


def parse_posted_on(value: Optional[str]):
    """Workday lists dates as "Posted Today", "Posted 3 Days Ago", "Posted 30+ Days Ago"."""
    if not value:
        return None
    lowered = value.lower()
    if "today" in lowered:
        days = 0
    elif "yesterday" in lowered:
        days = 1
    else:
        match = DAYS_AGO_PATTERN.search(lowered)
        if not match:
            return None
        days = int(match.group(1))
    posted = utcnow() - timedelta(days=days)
    return posted.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_remote_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    lowered = value.lower()
    if "remote" in lowered:
        return "remote"
    if "hybrid" in lowered:
        return "hybrid"
    return "onsite"


class WorkdayAdapter(PlatformAdapter):

    platform = "workday"
    PAGE_SIZE = 20
    MAX_PAGES = 100
    DETAIL_DELAY_SECONDS = 0.2

    def matches_url(self, url: str) -> bool:
        return WORKDAY_HOST in url.lower()

    def extract_board_token(self, url: str) -> Optional[str]:
        parsed = urlparse(url if "//" in url else f"https://{url}")
        host = (parsed.hostname or "").lower()
        parts = [part for part in parsed.path.split("/") if part]

        match = TENANT_HOST_PATTERN.match(host)
        if match:
            tenant = match.group(1)
            prefix = host
        elif host == WORKDAY_HOST and parts:
            tenant, parts = parts[0], parts[1:]
            prefix = f"{host}/{tenant}"
        else:
            return None

        if parts and LOCALE_PATTERN.match(parts[0]):
            parts = parts[1:]
        return f"{prefix}/{parts[0] if parts else tenant}"

    def resolve_board_token(self, company: Any) -> Tuple[str, bool]:
        token, detected = super().resolve_board_token(company)
        if parse_site_token(token) is not None:
            return token, detected

        # tenant/board with no host; borrow the careers URL's
        host = (urlparse(getattr(company, "careers_url", "") or "").hostname or "").lower()
        if WORKDAY_HOST not in host:
            raise BoardNotFoundError(
                f"Workday board token '{token}' needs a myworkdayjobs.com careers URL to locate the site"
            )
        return f"{host}/{token.strip('/')}", detected

    def fetch_postings(self, board_token: str) -> DiscoveryResult:
        site = parse_site_token(board_token)
        if site is None:
            raise BoardNotFoundError(f"Malformed Workday board token '{board_token}'")

        items, listing_complete = self._list_jobs(site)
        postings = []
        for index, item in enumerate(items):
            posting_id = self._posting_id(item)
            if not posting_id:
                continue
            if index:
                self.http.sleep(self.DETAIL_DELAY_SECONDS)
            postings.append(self._parse_job(site, item, posting_id, self._fetch_detail(site, item)))
        return DiscoveryResult(postings=postings, listing_complete=listing_complete)

    def _list_jobs(self, site: WorkdaySite) -> Tuple[List[Dict[str, Any]], bool]:
        items: List[Dict[str, Any]] = []
        total = None
        offset = 0
        for _ in range(self.MAX_PAGES):
            page = self.post_json(
                f"{site.api_url}/jobs",
                {"appliedFacets": {}, "limit": self.PAGE_SIZE, "offset": offset, "searchText": ""},
            )
            postings = page.get("jobPostings") if isinstance(page, dict) else None
            if not isinstance(postings, list):
                self.logger.warning(f"Workday board {site.tenant}/{site.board} returned no job list at offset {offset}")
                return items, False
            if total is None:
                # Later pages report total 0
                total = page.get("total") or 0
            items.extend(postings)
            offset += self.PAGE_SIZE
            if not postings or offset >= total:
                return items, len(items) >= total
        self.logger.warning(f"Workday board {site.tenant}/{site.board} exceeded {self.MAX_PAGES} pages; listing truncated")
        return items, False

    def _fetch_detail(self, site: WorkdaySite, item: Dict[str, Any]) -> Dict[str, Any]:
        path = item.get("externalPath") or ""
        if not path:
            return {}
        try:
            detail = self.get_json(f"{site.api_url}{path}")
        except AdapterError as e:
            # List data is still a usable posting
            self.logger.warning(f"Workday detail {path} unavailable: {e}")
            return {}
        return (detail or {}).get("jobPostingInfo") or {}

    @staticmethod
    def _posting_id(item: Dict[str, Any]) -> Optional[str]:
        path = item.get("externalPath") or ""
        if path.rstrip("/"):
            return path.rstrip("/").split("/")[-1]
        bullets = item.get("bulletFields") or []
        return bullets[1] if len(bullets) > 1 else None

    def _parse_job(self, site: WorkdaySite, item: Dict[str, Any], posting_id: str, detail: Dict[str, Any]) -> RawPosting:
        raw_description = detail.get("jobDescription")
        description, description_format = process_description(raw_description, "html")
        location, location_type = normalize_location(item.get("locationsText") or detail.get("location"))

        return RawPosting(
            external_id=self.external_id(site.board, posting_id),
            native_id=posting_id,
            title=item.get("title") or detail.get("title") or "Untitled",
            url=detail.get("externalUrl") or f"{site.public_url}{item.get('externalPath') or ''}",
            description=description,
            description_format=description_format,
            location=location,
            location_type=parse_remote_type(item.get("remoteType") or detail.get("remoteType")) or location_type,
            employment_type=parse_employment_type(detail.get("timeType")),
            posted_date=parse_posted_on(item.get("postedOn") or detail.get("postedOn")),
        )
