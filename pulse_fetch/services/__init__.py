"""Services for the application."""
from typing import Dict

from ..models.retrieval import StrategyIdentifier
from .brightdata_client import BrightDataClient
from .content_normalizer import ContentNormalizer, content_normalizer
from .firecrawl_client import FirecrawlClient
from .html_cleaner import HTMLCleaner, html_cleaner
from .http_client import NativeFetcher
from .scraping_backend import ScrapingBackend
from .storage_service import ResourceStorage, resource_storage
from .strategy_store import FilesystemStrategyStore, MemoryStrategyStore, StrategyStore


def build_scraping_clients(settings) -> Dict[StrategyIdentifier, ScrapingBackend]:
    """Instantiate a backend for every strategy that is configured.

    Args:
        settings: Application settings

    Returns:
        Mapping of strategy to backend; unconfigured strategies are absent
    """
    clients: Dict[StrategyIdentifier, ScrapingBackend] = {}
    if settings.native_enabled:
        clients[StrategyIdentifier.DIRECT] = NativeFetcher(user_agent=settings.user_agent)
    if settings.firecrawl_api_key:
        clients[StrategyIdentifier.MANAGED_API] = FirecrawlClient(
            api_key=settings.firecrawl_api_key,
            base_url=settings.firecrawl_base_url,
        )
    if settings.brightdata_api_key:
        clients[StrategyIdentifier.PROXY_API] = BrightDataClient(
            bearer_token=settings.brightdata_api_key,
            zone=settings.brightdata_zone,
            base_url=settings.brightdata_base_url,
        )
    return clients


__all__ = [
    "build_scraping_clients",
    "BrightDataClient",
    "ContentNormalizer",
    "content_normalizer",
    "FirecrawlClient",
    "HTMLCleaner",
    "html_cleaner",
    "NativeFetcher",
    "ScrapingBackend",
    "ResourceStorage",
    "resource_storage",
    "FilesystemStrategyStore",
    "MemoryStrategyStore",
    "StrategyStore",
]
