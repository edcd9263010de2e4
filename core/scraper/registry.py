"""Scraper Registry - per-site fetcher and parser pairs, built once and injected."""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.config_loader import ScraperConfig
from core.scraper.http_fetcher import HttpPageFetcher
from core.scraper.interfaces import PageFetcher, SiteParser
from core.scraper.jsonld_parser import JsonLdSiteParser

logger = logging.getLogger(__name__)


@dataclass
class SiteScraper:
    site_name: str
    fetcher: PageFetcher
    parser: SiteParser


class ScraperRegistry:
    def __init__(self, default_fetcher: Optional[PageFetcher] = None):
        self._scrapers: Dict[str, SiteScraper] = {}
        # Used for URLs no registered site claims (company websites)
        self.default_fetcher = default_fetcher

    def register(self, site_name: str, fetcher: PageFetcher, parser: SiteParser) -> None:
        if site_name in self._scrapers:
            logger.warning(f"Replacing scraper registration for {site_name}")
        self._scrapers[site_name] = SiteScraper(site_name, fetcher, parser)

    def get(self, site_name: str) -> Optional[SiteScraper]:
        return self._scrapers.get(site_name)

    def sites(self) -> List[str]:
        return list(self._scrapers)

    def for_url(self, url: str) -> Optional[SiteScraper]:
        for scraper in self._scrapers.values():
            if scraper.parser.can_handle(url):
                return scraper
        return None

    def fetcher_for_url(self, url: str) -> Optional[PageFetcher]:
        scraper = self.for_url(url)
        return scraper.fetcher if scraper else self.default_fetcher

    @classmethod
    def from_config(cls, scraper_config: ScraperConfig) -> "ScraperRegistry":
        """One HttpPageFetcher + JsonLdSiteParser per configured site."""
        registry = cls(default_fetcher=HttpPageFetcher(
            user_agent=scraper_config.user_agent,
            request_timeout_seconds=scraper_config.request_timeout_seconds,
        ))
        for site_name, site_config in scraper_config.sites.items():
            fetcher = HttpPageFetcher(
                user_agent=scraper_config.user_agent,
                request_timeout_seconds=scraper_config.request_timeout_seconds,
                max_retries=site_config.max_retries,
                request_delay_ms=site_config.request_delay_ms,
            )
            registry.register(site_name, fetcher, JsonLdSiteParser(site_name, site_config))
        logger.info(f"Scraper registry built for sites: {registry.sites()}")
        return registry
