"""
Uber's own careers search API.
"""
import re
from typing import Any, Dict, List, Optional

from app.resilience.errors import ErrorType
from app.scraper.description import process_description
from app.scraper.platforms.base import (
    AdapterError,
    DiscoveryResult,
    PlatformAdapter,
    RawPosting,
    normalize_location,
    parse_employment_type,
)
from app.scraper.platforms.greenhouse import parse_iso_datetime

REGION_PATTERN = re.compile(r"uber\.com/([a-z]+)/", re.IGNORECASE)
EMPTY_SEARCH_PARAMS = {
    "department": [],
    "lineOfBusinessName": [],
    "location": [],
    "programAndPlatform": [],
    "team": [],
}


def format_location(location: Optional[Dict[str, Any]]) -> str:
    if not location:
        return ""
    parts = [location.get("city")]
    if location.get("region") and location.get("region") != location.get("city"):
        parts.append(location["region"])
    parts.append(location.get("countryName"))
    return ", ".join(part for part in parts if part)


class UberAdapter(PlatformAdapter):

    platform = "uber"
    API_URL = "https://www.uber.com/api/loadSearchJobsResults"
    PAGE_SIZE = 100
    MAX_PAGES = 50
    PAGE_DELAY_SECONDS = 0.5

    def matches_url(self, url: str) -> bool:
        lowered = url.lower()
        return "uber.com/careers" in lowered or "jobs.uber.com" in lowered or ("uber.com" in lowered and "career" in lowered)

    def extract_board_token(self, url: str) -> Optional[str]:
        # One board for the whole company; the token only records the region
        match = REGION_PATTERN.search(url)
        return match.group(1).lower() if match else "global"

    def external_id(self, board_token: str, native_id: Any) -> str:
        return f"{self.platform}-{native_id}"

    def fetch_postings(self, board_token: str) -> DiscoveryResult:
        jobs: List[Dict[str, Any]] = []
        for page in range(self.MAX_PAGES):
            if page:
                self.http.sleep(self.PAGE_DELAY_SECONDS)
            reply = self.post_json(
                self.API_URL,
                {"page": page, "limit": self.PAGE_SIZE, "params": EMPTY_SEARCH_PARAMS},
                params={"localeCode": "en"},
                headers={"x-csrf-token": "x"},
            )
            data = reply.get("data") if isinstance(reply, dict) and reply.get("status") == "success" else None
            results = data.get("results") if isinstance(data, dict) else None
            if not isinstance(results, list):
                raise AdapterError("Invalid response from Uber careers API", error_type=ErrorType.VALIDATION, retryable=False)
            jobs.extend(results)
            if len(results) < self.PAGE_SIZE:
                listing_complete = True
                break
        else:
            self.logger.warning(f"Uber careers search exceeded {self.MAX_PAGES} pages; listing truncated")
            listing_complete = False

        postings = [self._parse_job(job) for job in jobs if job.get("id") is not None]
        return DiscoveryResult(postings=postings, listing_complete=listing_complete)

    def _parse_job(self, job: Dict[str, Any]) -> RawPosting:
        all_locations = job.get("allLocations") or []
        if len(all_locations) > 1:
            raw_location = "; ".join(format_location(location) for location in all_locations)
        else:
            raw_location = format_location(job.get("location"))
        location, location_type = normalize_location(raw_location)
        description, description_format = process_description(job.get("description"), "plain")

        return RawPosting(
            external_id=self.external_id("", job["id"]),
            native_id=str(job["id"]),
            title=job.get("title") or "Untitled",
            url=f"https://www.uber.com/global/en/careers/list/{job['id']}/",
            description=description,
            description_format=description_format,
            location=location,
            location_type=location_type,
            department=job.get("team") or job.get("department"),
            employment_type=parse_employment_type(job.get("timeType")),
            posted_date=parse_iso_datetime(job.get("creationDate")),
        )
