"""
Scrape-time filters applied to discovered postings before they are stored.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional

COUNTRY_MAPPINGS = {
    "india": [
        "india", "ind", "bangalore", "bengaluru", "mumbai", "delhi", "hyderabad", "chennai",
        "pune", "kolkata", "gurugram", "gurgaon", "noida", "ahmedabad", "jaipur", "kochi",
        "thiruvananthapuram", "sez",
    ],
    "united states": [
        "usa", "us", "u.s.", "united states", "america", "new york", "san francisco", "seattle",
        "los angeles", "chicago", "austin", "boston", "denver",
    ],
    "united kingdom": [
        "uk", "u.k.", "britain", "england", "united kingdom", "london", "manchester",
        "edinburgh", "birmingham",
    ],
    "germany": ["germany", "deutschland", "berlin", "munich", "frankfurt", "hamburg"],
    "canada": ["canada", "toronto", "vancouver", "montreal", "ottawa", "calgary"],
}

LOCATION_WILDCARDS = {"remote", "remote position", "worldwide", "anywhere"}


def matches_country(location: Optional[str], country: str) -> bool:
    if not location:
        return False
    location_lower = location.lower().strip()
    if location_lower in LOCATION_WILDCARDS:
        return True
    country_lower = country.lower().strip()
    variants = COUNTRY_MAPPINGS.get(country_lower, [country_lower])
    return any(
        re.search(rf"(?<!\w){re.escape(variant)}(?!\w)", location_lower)
        for variant in variants
    )


def matches_city(location: Optional[str], city: str) -> bool:
    if not city:
        return True
    if not location:
        return False
    return city.lower().strip() in location.lower()


def contains_any_keyword(title: Optional[str], keywords: List[str]) -> bool:
    title_lower = (title or "").lower()
    return any(keyword.lower() in title_lower for keyword in keywords)


@dataclass
class JobFilters:
    country: Optional[str] = None
    city: Optional[str] = None
    title_keywords: List[str] = field(default_factory=list)  # keep titles containing any
    exclude_keywords: List[str] = field(default_factory=list)  # drop titles containing any

    @classmethod
    def from_settings(cls, settings) -> "JobFilters":
        return cls(
            country=settings.country,
            city=settings.city,
            title_keywords=list(settings.title_keywords),
            exclude_keywords=list(settings.exclude_keywords),
        )

    @property
    def is_active(self) -> bool:
        return bool(self.country or self.city or self.title_keywords or self.exclude_keywords)

    def accepts(self, title: Optional[str], location: Optional[str]) -> bool:
        if self.country and not matches_country(location, self.country):
            return False
        if self.city and not matches_city(location, self.city):
            return False
        if self.title_keywords and not contains_any_keyword(title, self.title_keywords):
            return False
        if self.exclude_keywords and contains_any_keyword(title, self.exclude_keywords):
            return False
        return True
