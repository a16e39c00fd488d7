from typing import Optional

# Checked in order; first substring hit wins
PLATFORM_URL_PATTERNS = (
    ("greenhouse.io", "greenhouse"),
    ("lever.co", "lever"),
    ("ashbyhq.com", "ashby"),
    ("myworkdayjobs.com", "workday"),
    ("eightfold.ai", "eightfold"),
    ("uber.com/careers", "uber"),
)


def detect_platform(url: Optional[str]) -> str:
    """Classify a careers URL by platform; unknown sites are "custom"."""
    lowered = (url or "").lower()
    for needle, platform in PLATFORM_URL_PATTERNS:
        if needle in lowered:
            return platform
    return "custom"
