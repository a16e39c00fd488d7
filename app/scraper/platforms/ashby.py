"""
Ashby public job board API.
"""
from typing import Any, Dict, Optional
from urllib.parse import quote, urlparse

from app.scraper.description import process_description
from app.scraper.platforms.base import DiscoveryResult, PlatformAdapter, RawPosting, normalize_location, parse_employment_type
from app.scraper.platforms.greenhouse import parse_iso_datetime


class AshbyAdapter(PlatformAdapter):

    platform = "ashby"
    API_URL = "https://api.ashbyhq.com/posting-api/job-board"

    def matches_url(self, url: str) -> bool:
        return "ashbyhq.com" in url.lower()

    def extract_board_token(self, url: str) -> Optional[str]:
        parsed = urlparse(url if "//" in url else f"https://{url}")
        if "ashbyhq.com" not in (parsed.hostname or ""):
            return None
        parts = [part for part in parsed.path.split("/") if part]
        return parts[0] if parts else None

    def fetch_postings(self, board_token: str) -> DiscoveryResult:
        data = self.get_json(
            f"{self.API_URL}/{quote(board_token)}",
            params={"includeCompensation": "true"},
        )
        jobs = data.get("jobs", []) if isinstance(data, dict) else []
        postings = [
            self._parse_job(job, board_token, index)
            for index, job in enumerate(jobs)
            if job.get("isListed", True)
        ]
        return DiscoveryResult(postings=postings, listing_complete=True)

    def _parse_job(self, job: Dict[str, Any], board_token: str, index: int) -> RawPosting:
        secondary = job.get("secondaryLocations") or []
        primary = job.get("location") or (secondary[0].get("location") if secondary else None)
        if not primary and job.get("isRemote"):
            primary = "Remote"
        location, location_type = normalize_location(primary)
        if job.get("isRemote"):
            location_type = "remote"

        if job.get("descriptionHtml"):
            description, description_format = process_description(job["descriptionHtml"], "html")
        else:
            description, description_format = process_description(job.get("descriptionPlain"), "plain")

        native_id = job.get("id") or job.get("jobUrl") or job.get("applyUrl") or index
        compensation = job.get("compensation") or {}

        return RawPosting(
            external_id=self.external_id(board_token, native_id),
            native_id=str(native_id),
            title=job.get("title") or "Untitled",
            url=job.get("jobUrl") or job.get("applyUrl"),
            description=description,
            description_format=description_format,
            location=location,
            location_type=location_type,
            department=job.get("team") or job.get("department"),
            salary=compensation.get("compensationTierSummary"),
            employment_type=parse_employment_type(job.get("employmentType")),
            posted_date=parse_iso_datetime(job.get("publishedAt")),
        )
