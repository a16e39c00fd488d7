"""
Settings service: typed, clamped snapshots of the key/value settings table.

A session reads its snapshot once at start and keeps it for its whole run,
so edits made mid-session apply to the next session only.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import MATCHER_MODEL
from app.core.logging_config import sanitize_log_data
from app.db.models.setting import Setting

logger = logging.getLogger(__name__)

# key -> (default, kind, min, max)
SETTING_DEFINITIONS: Dict[str, tuple] = {
    "matcher_model": (MATCHER_MODEL, "str", None, None),
    "matcher_bulk_enabled": (False, "bool", None, None),
    "matcher_batch_size": (2, "int", 1, 10),
    "matcher_max_retries": (3, "int", 1, 10),
    "matcher_concurrency_limit": (3, "int", 1, 10),
    "matcher_serialize_operations": (False, "bool", None, None),
    "matcher_inter_request_delay_ms": (500, "int", 0, 10000),
    "matcher_timeout_ms": (30000, "int", 5000, 120000),
    "matcher_backoff_base_delay": (2000, "int", 100, 30000),
    "matcher_backoff_max_delay": (32000, "int", 1000, 120000),
    "matcher_circuit_breaker_threshold": (10, "int", 3, 50),
    "matcher_circuit_breaker_reset_timeout": (60000, "int", 10000, 300000),
    "matcher_auto_match_after_scrape": (True, "bool", None, None),
    "scraper_filter_country": (None, "str", None, None),
    "scraper_filter_city": (None, "str", None, None),
    "scraper_filter_title_keywords": ([], "list", None, None),
    "scraper_filter_exclude_keywords": ([], "list", None, None),
}


class UnknownSettingError(ValueError):
    pass


@dataclass
class MatcherSettings:
    model: str = MATCHER_MODEL
    bulk_enabled: bool = False
    batch_size: int = 2
    max_retries: int = 3
    concurrency_limit: int = 3
    serialize_operations: bool = False
    inter_request_delay_ms: int = 500
    timeout_ms: int = 30000
    backoff_base_delay_ms: int = 2000
    backoff_max_delay_ms: int = 32000
    circuit_breaker_threshold: int = 10
    circuit_breaker_reset_timeout_ms: int = 60000
    auto_match_after_scrape: bool = True

    @property
    def effective_concurrency(self) -> int:
        return 1 if self.serialize_operations else self.concurrency_limit

    @property
    def effective_batch_size(self) -> int:
        return self.batch_size if self.bulk_enabled else 1


@dataclass
class ScraperSettings:
    country: Optional[str] = None
    city: Optional[str] = None
    title_keywords: List[str] = field(default_factory=list)
    exclude_keywords: List[str] = field(default_factory=list)


def _coerce(key: str, raw: Optional[str]) -> Any:
    default, kind, low, high = SETTING_DEFINITIONS[key]
    if raw is None or raw == "":
        return default
    try:
        if kind == "bool":
            value = raw.strip().lower() in ("1", "true", "yes", "on")
        elif kind == "int":
            value = int(float(raw))
        elif kind == "list":
            value = json.loads(raw)
            if not isinstance(value, list):
                raise ValueError("expected a JSON list")
            value = [str(item).strip() for item in value if str(item).strip()]
        else:
            value = raw.strip() or default
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value for setting {key}={raw!r} ({e}); using default {default!r}")
        return default

    if kind == "int":
        if low is not None and value < low:
            value = low
        if high is not None and value > high:
            value = high
    return value


def _serialize(key: str, value: Any) -> Optional[str]:
    kind = SETTING_DEFINITIONS[key][1]
    if value is None:
        return None
    if kind == "bool":
        if isinstance(value, str):
            value = value.strip().lower() in ("1", "true", "yes", "on")
        return "true" if value else "false"
    if kind == "list":
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",")]
        return json.dumps([str(item) for item in value if str(item).strip()])
    return str(value)


def get_settings_snapshot(db: Session) -> Dict[str, Any]:
    """Every known setting, typed, with defaults filled in."""
    stored = {row.key: row.value for row in db.query(Setting).all()}
    return {key: _coerce(key, stored.get(key)) for key in SETTING_DEFINITIONS}


def get_matcher_settings(db: Session) -> MatcherSettings:
    snapshot = get_settings_snapshot(db)
    settings = MatcherSettings(
        model=snapshot["matcher_model"],
        bulk_enabled=snapshot["matcher_bulk_enabled"],
        batch_size=snapshot["matcher_batch_size"],
        max_retries=snapshot["matcher_max_retries"],
        concurrency_limit=snapshot["matcher_concurrency_limit"],
        serialize_operations=snapshot["matcher_serialize_operations"],
        inter_request_delay_ms=snapshot["matcher_inter_request_delay_ms"],
        timeout_ms=snapshot["matcher_timeout_ms"],
        backoff_base_delay_ms=snapshot["matcher_backoff_base_delay"],
        backoff_max_delay_ms=max(snapshot["matcher_backoff_max_delay"], snapshot["matcher_backoff_base_delay"]),
        circuit_breaker_threshold=snapshot["matcher_circuit_breaker_threshold"],
        circuit_breaker_reset_timeout_ms=snapshot["matcher_circuit_breaker_reset_timeout"],
        auto_match_after_scrape=snapshot["matcher_auto_match_after_scrape"],
    )
    logger.debug(f"Matcher settings snapshot: {sanitize_log_data(settings.__dict__)}")
    return settings


def get_scraper_settings(db: Session) -> ScraperSettings:
    snapshot = get_settings_snapshot(db)
    return ScraperSettings(
        country=snapshot["scraper_filter_country"],
        city=snapshot["scraper_filter_city"],
        title_keywords=snapshot["scraper_filter_title_keywords"],
        exclude_keywords=snapshot["scraper_filter_exclude_keywords"],
    )


def update_settings(db: Session, values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Persist the given settings.

    Raises:
        UnknownSettingError: a key is not a known setting
    """
    unknown = sorted(set(values) - set(SETTING_DEFINITIONS))
    if unknown:
        raise UnknownSettingError(f"Unknown settings: {', '.join(unknown)}")

    for key, value in values.items():
        row = db.query(Setting).filter(Setting.key == key).first()
        serialized = _serialize(key, value)
        if row is None:
            db.add(Setting(key=key, value=serialized))
        else:
            row.value = serialized
            row.updated_at = utcnow()
    db.commit()
    logger.info(f"Settings updated: {sorted(values)}")
    return get_settings_snapshot(db)
