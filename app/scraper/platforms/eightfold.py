"""
Eightfold careers sites (``{company}.eightfold.ai``).

The board token is the careers host, optionally followed by the Eightfold
domain when it is not ``{subdomain}.com``: ``acme.eightfold.ai`` or
``careers.acme.io/acme.io``.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from app.scraper.description import process_description
from app.scraper.platforms.base import (
    AdapterError,
    DiscoveryResult,
    PlatformAdapter,
    RawPosting,
    normalize_location,
    parse_employment_type,
)

WORK_LOCATION_TYPES = {
    "remote": "remote",
    "remote_local": "remote",
    "hybrid": "hybrid",
    "onsite": "onsite",
}


def split_site_token(token: str) -> Tuple[str, str]:
    """Returns (host, domain) for a board token."""
    host, _, domain = token.strip().strip("/").partition("/")
    return host.lower(), domain or f"{host.split('.')[0]}.com"


class EightfoldAdapter(PlatformAdapter):

    platform = "eightfold"
    PAGE_SIZE = 10
    MAX_PAGES = 200
    REQUEST_DELAY_SECONDS = 0.1

    def matches_url(self, url: str) -> bool:
        return "eightfold.ai" in url.lower()

    def extract_board_token(self, url: str) -> Optional[str]:
        parsed = urlparse(url if "//" in url else f"https://{url}")
        host = (parsed.hostname or "").lower()
        if not host.endswith(".eightfold.ai") or host.count(".") < 2:
            return None
        return host

    def external_id(self, board_token: str, native_id: Any) -> str:
        _, domain = split_site_token(board_token)
        board = domain[:-4] if domain.lower().endswith(".com") else domain
        return f"{self.platform}-{board}-{native_id}"

    def fetch_postings(self, board_token: str) -> DiscoveryResult:
        host, domain = split_site_token(board_token)
        base_url = f"https://{host}"

        positions, listing_complete = self._list_positions(base_url, domain)
        postings = []
        for index, position in enumerate(positions):
            if position.get("id") is None:
                continue
            if index:
                self.http.sleep(self.REQUEST_DELAY_SECONDS)
            details = self._fetch_details(base_url, domain, position["id"])
            postings.append(self._parse_position(base_url, board_token, position, details))
        return DiscoveryResult(postings=postings, listing_complete=listing_complete)

    def _list_positions(self, base_url: str, domain: str) -> Tuple[List[Dict[str, Any]], bool]:
        positions: List[Dict[str, Any]] = []
        total = None
        start = 0
        for _ in range(self.MAX_PAGES):
            reply = self.get_json(
                f"{base_url}/api/pcsx/search",
                params={"domain": domain, "query": "", "location": "", "start": start, "sort_by": "timestamp"},
            )
            data = reply.get("data") if isinstance(reply, dict) and reply.get("status") == 200 else None
            page = data.get("positions") if isinstance(data, dict) else None
            if not isinstance(page, list):
                self.logger.warning(f"Eightfold search for {domain} returned no positions at start={start}")
                return positions, False
            if total is None:
                total = data.get("count") or 0
            positions.extend(page)
            start += self.PAGE_SIZE
            if not page or start >= total:
                return positions, len(positions) >= total
        self.logger.warning(f"Eightfold domain {domain} exceeded {self.MAX_PAGES} pages; listing truncated")
        return positions, False

    def _fetch_details(self, base_url: str, domain: str, position_id: Any) -> Dict[str, Any]:
        try:
            reply = self.get_json(
                f"{base_url}/api/pcsx/position_details",
                params={"position_id": position_id, "domain": domain, "hl": "en"},
            )
        except AdapterError as e:
            self.logger.warning(f"Eightfold position {position_id} details unavailable: {e}")
            return {}
        if not isinstance(reply, dict) or reply.get("status") != 200:
            return {}
        return reply.get("data") or {}

    def _parse_position(self, base_url: str, board_token: str, position: Dict[str, Any], details: Dict[str, Any]) -> RawPosting:
        locations = details.get("locations") or position.get("locations") or []
        location, location_type = normalize_location(", ".join(locations))
        work_option = (details.get("workLocationOption") or position.get("workLocationOption") or "").lower()
        location_type = WORK_LOCATION_TYPES.get(work_option, location_type)

        description, description_format = process_description(details.get("jobDescription"), "html")
        time_types = details.get("efcustomTextTimeType") or []
        posted_ts = position.get("postedTs")

        return RawPosting(
            external_id=self.external_id(board_token, position["id"]),
            native_id=str(position["id"]),
            title=details.get("name") or position.get("name") or "Untitled",
            url=details.get("publicUrl") or self._position_url(base_url, position),
            description=description,
            description_format=description_format,
            location=location,
            location_type=location_type,
            department=details.get("department") or position.get("department"),
            employment_type=parse_employment_type(time_types[0] if time_types else None),
            posted_date=datetime.fromtimestamp(posted_ts, tz=timezone.utc).replace(tzinfo=None) if posted_ts else None,
        )

    @staticmethod
    def _position_url(base_url: str, position: Dict[str, Any]) -> str:
        url = position.get("positionUrl")
        if url:
            return url if url.startswith("http") else f"{base_url}{url}"
        return f"{base_url}/careers/job/{position['id']}"
