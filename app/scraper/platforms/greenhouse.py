"""
Greenhouse job boards.

The public boards API needs no authentication. Some boards are only reachable
through the older embed endpoint, which is tried when the API returns 404.
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.scraper.description import process_description
from app.scraper.platforms.base import (
    BoardNotFoundError,
    DiscoveryResult,
    PlatformAdapter,
    RawPosting,
    normalize_location,
)

TOKEN_PATTERNS = (
    re.compile(r"boards\.greenhouse\.io/([^/?#]+)", re.IGNORECASE),
    re.compile(r"job-boards\.greenhouse\.io/([^/?#]+)", re.IGNORECASE),
    re.compile(r"([^./]+)\.greenhouse\.io", re.IGNORECASE),
)
RESERVED_SUBDOMAINS = {"boards", "job-boards", "boards-api", "api", "www"}


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class GreenhouseAdapter(PlatformAdapter):

    platform = "greenhouse"
    API_URL = "https://boards-api.greenhouse.io/v1/boards"
    EMBED_URL = "https://boards.greenhouse.io"

    def matches_url(self, url: str) -> bool:
        return "greenhouse.io" in url.lower()

    def extract_board_token(self, url: str) -> Optional[str]:
        for pattern in TOKEN_PATTERNS:
            match = pattern.search(url)
            if match and match.group(1).lower() not in RESERVED_SUBDOMAINS:
                return match.group(1)
        return None

    def fetch_postings(self, board_token: str) -> DiscoveryResult:
        try:
            data = self.get_json(f"{self.API_URL}/{board_token}/jobs", params={"content": "true"})
        except BoardNotFoundError:
            self.logger.info(f"Greenhouse API has no board '{board_token}', trying embed endpoint")
            data = self.get_json(f"{self.EMBED_URL}/{board_token}/embed/job_board/jobs.json")

        jobs = data.get("jobs", []) if isinstance(data, dict) else []
        postings = [self._parse_job(job, board_token) for job in jobs if job.get("id") is not None]
        return DiscoveryResult(postings=postings, listing_complete=True)

    def _parse_job(self, job: Dict[str, Any], board_token: str) -> RawPosting:
        location_data = job.get("location") or {}
        primary = location_data.get("name", "") if isinstance(location_data, dict) else str(location_data)

        # Multi-location postings list the extra offices in metadata
        extra = ""
        for entry in job.get("metadata") or []:
            if "location" in (entry.get("name") or "").lower():
                value = entry.get("value") or ""
                extra = ", ".join(value) if isinstance(value, list) else str(value)
                break
        combined = ", ".join(part for part in (primary, extra) if part)
        location, location_type = normalize_location(combined)

        description, description_format = process_description(job.get("content"), "html")
        departments = job.get("departments") or []

        return RawPosting(
            external_id=self.external_id(board_token, job["id"]),
            native_id=str(job["id"]),
            title=job.get("title") or "Untitled",
            url=job.get("absolute_url"),
            description=description,
            description_format=description_format,
            location=location,
            location_type=location_type,
            department=departments[0].get("name") if departments else None,
            posted_date=parse_iso_datetime(job.get("updated_at")),
        )
