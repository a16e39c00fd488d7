"""
Lever postings API (``api.lever.co/v0/postings/{company}``).
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from app.scraper.description import process_description
from app.scraper.platforms.base import DiscoveryResult, PlatformAdapter, RawPosting, normalize_location, parse_employment_type

SLUG_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def format_salary_range(salary: Optional[Dict[str, Any]]) -> Optional[str]:
    if not salary or salary.get("min") is None:
        return None
    currency = salary.get("currency") or ""
    interval = (salary.get("interval") or "").replace("-", " ")
    low, high = salary.get("min"), salary.get("max")
    amount = f"{low:,}" if high in (None, low) else f"{low:,} - {high:,}"
    return " ".join(part for part in (currency, amount, interval) if part)


class LeverAdapter(PlatformAdapter):

    platform = "lever"
    API_URL = "https://api.lever.co/v0/postings"
    PAGE_SIZE = 100
    MAX_PAGES = 50

    def matches_url(self, url: str) -> bool:
        return "lever.co" in url.lower()

    def extract_board_token(self, url: str) -> Optional[str]:
        parsed = urlparse(url if "//" in url else f"https://{url}")
        if "lever.co" not in (parsed.hostname or ""):
            return None
        parts = [part for part in parsed.path.split("/") if part]
        if parts and parts[0] == "v0" and len(parts) >= 3:
            parts = parts[2:]
        if parts and SLUG_PATTERN.match(parts[0]):
            return parts[0]
        return None

    def fetch_postings(self, board_token: str) -> DiscoveryResult:
        postings = []
        listing_complete = False
        skip = 0
        for _ in range(self.MAX_PAGES):
            page = self.get_json(
                f"{self.API_URL}/{board_token}",
                params={"mode": "json", "skip": skip, "limit": self.PAGE_SIZE},
            )
            if not isinstance(page, list):
                break
            postings.extend(self._parse_job(job, board_token) for job in page if job.get("id"))
            if len(page) < self.PAGE_SIZE:
                listing_complete = True
                break
            skip += self.PAGE_SIZE
        else:
            self.logger.warning(f"Lever board '{board_token}' exceeded {self.MAX_PAGES} pages; listing truncated")

        return DiscoveryResult(postings=postings, listing_complete=listing_complete)

    def _parse_job(self, job: Dict[str, Any], board_token: str) -> RawPosting:
        categories = job.get("categories") or {}
        location, location_type = normalize_location(categories.get("location"))
        if (job.get("workplaceType") or "").lower() == "remote":
            location_type = "remote"

        if job.get("descriptionPlain"):
            description, description_format = process_description(job["descriptionPlain"], "plain")
        else:
            description, description_format = process_description(job.get("description"), "html")

        created_at = job.get("createdAt")
        posted_date = datetime.fromtimestamp(created_at / 1000, tz=timezone.utc).replace(tzinfo=None) if created_at else None

        return RawPosting(
            external_id=self.external_id(board_token, job["id"]),
            native_id=str(job["id"]),
            title=job.get("text") or "Untitled",
            url=job.get("hostedUrl"),
            description=description,
            description_format=description_format,
            location=location,
            location_type=location_type,
            department=categories.get("team") or categories.get("department"),
            salary=format_salary_range(job.get("salaryRange")),
            employment_type=parse_employment_type(categories.get("commitment")),
            posted_date=posted_date,
        )
