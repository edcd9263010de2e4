"""
Scraper Interfaces - Page fetching and per-site parsing.

The ingestion pipeline only talks to these two seams; site-specific
selectors and browser mechanics live behind them.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class FetchResult:
    html: str = ""
    success: bool = False
    error: Optional[str] = None
    status_code: Optional[int] = None
    # True when a later attempt may succeed (timeout, 5xx, connection error)
    transient: bool = False


@dataclass
class RawPosting:
    """One posting as read from a listing page, before normalization."""
    title: str
    company_name: str
    source_url: str
    source_site: str
    location: str = ""
    external_id: Optional[str] = None
    technologies: List[str] = field(default_factory=list)
    salary_text: Optional[str] = None
    posted_at: Optional[datetime] = None
    description: Optional[str] = None
    company_profile_url: Optional[str] = None
    company_website: Optional[str] = None


@dataclass
class DetailInfo:
    description: Optional[str] = None
    company_profile_url: Optional[str] = None
    company_website: Optional[str] = None


@dataclass
class ListingOptions:
    max_pages: int = 1


class PageFetcher(ABC):
    @abstractmethod
    def fetch(self, url: str) -> FetchResult:
        """Fetch a page. Never raises for HTTP or network failures."""
        pass

    def check(self, url: str) -> FetchResult:
        """Reachability check for a URL; `html` is left empty. Defaults to a full fetch."""
        result = self.fetch(url)
        result.html = ""
        return result


class SiteParser(ABC):
    site_name: str = ""

    @abstractmethod
    def listing_urls(self, options: ListingOptions) -> List[str]:
        pass

    @abstractmethod
    def parse_listing(self, html: str, base_url: str) -> List[RawPosting]:
        pass

    @abstractmethod
    def parse_detail(self, html: str) -> DetailInfo:
        pass

    @abstractmethod
    def can_handle(self, url: str) -> bool:
        pass
