"""Scraper Module - page fetching, per-site parsing and URL validation."""
from core.scraper.interfaces import (
    DetailInfo,
    FetchResult,
    ListingOptions,
    PageFetcher,
    RawPosting,
    SiteParser,
)
from core.scraper.registry import ScraperRegistry, SiteScraper
from core.scraper.validation import CompanyUrlValidator

__all__ = [
    'DetailInfo',
    'FetchResult',
    'ListingOptions',
    'PageFetcher',
    'RawPosting',
    'SiteParser',
    'ScraperRegistry',
    'SiteScraper',
    'CompanyUrlValidator',
]
