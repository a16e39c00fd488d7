"""
Adapter registry: maps a company's platform to the adapter instance.
"""
import logging
from typing import Any, Dict, List, Optional

from app.scraper.http_client import HttpClient
from app.scraper.platforms.ashby import AshbyAdapter
from app.scraper.platforms.base import DiscoveryResult, PlatformAdapter, UnsupportedPlatformError
from app.scraper.platforms.detection import detect_platform
from app.scraper.platforms.eightfold import EightfoldAdapter
from app.scraper.platforms.greenhouse import GreenhouseAdapter
from app.scraper.platforms.lever import LeverAdapter
from app.scraper.platforms.uber import UberAdapter
from app.scraper.platforms.workday import WorkdayAdapter

logger = logging.getLogger(__name__)


class AdapterRegistry:

    def __init__(self):
        self._adapters: Dict[str, PlatformAdapter] = {}

    def register(self, adapter: PlatformAdapter) -> None:
        self._adapters[adapter.platform] = adapter

    def get(self, platform: Optional[str]) -> Optional[PlatformAdapter]:
        return self._adapters.get(platform or "")

    def supported_platforms(self) -> List[str]:
        return sorted(self._adapters)

    def resolve_platform(self, company: Any) -> str:
        return getattr(company, "platform", None) or detect_platform(getattr(company, "careers_url", None))

    def adapter_for(self, company: Any) -> PlatformAdapter:
        platform = self.resolve_platform(company)
        adapter = self.get(platform)
        if adapter is None:
            raise UnsupportedPlatformError(platform)
        return adapter

    def discover(self, company: Any) -> DiscoveryResult:
        return self.adapter_for(company).discover(company)


def create_default_registry(http_client: Optional[HttpClient] = None) -> AdapterRegistry:
    http_client = http_client or HttpClient()
    registry = AdapterRegistry()
    registry.register(GreenhouseAdapter(http_client))
    registry.register(LeverAdapter(http_client))
    registry.register(AshbyAdapter(http_client))
    registry.register(WorkdayAdapter(http_client))
    registry.register(EightfoldAdapter(http_client))
    registry.register(UberAdapter(http_client))
    logger.debug(f"Adapter registry ready: {registry.supported_platforms()}")
    return registry
