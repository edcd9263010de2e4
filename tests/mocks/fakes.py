#!/usr/bin/env python3
"""
Test fakes for the collaborator interfaces.

Deterministic, in-memory stand-ins for PageFetcher, SiteParser and
AIExtractor so pipeline tests never touch the network.
"""
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from core.config_loader import AppConfig, DatabaseConfig, OrchestratorConfig, JobTypeConfig
from core.llm.interfaces import AIExtractor
from core.scorer.models import CompanyAttributes
from core.scraper.interfaces import (
    DetailInfo,
    FetchResult,
    ListingOptions,
    PageFetcher,
    RawPosting,
    SiteParser,
)


class FakeFetcher(PageFetcher):
    """Serves canned pages; unknown URLs fail with a permanent 404."""

    def __init__(self, pages: Optional[Dict[str, Union[str, FetchResult]]] = None):
        self.pages = dict(pages or {})
        self.calls: List[str] = []
        self.checks: List[str] = []
        self.unreachable: Dict[str, str] = {}
        self._lock = threading.Lock()

    def fetch(self, url: str) -> FetchResult:
        with self._lock:
            self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            return FetchResult(success=False, error="404 Not Found", status_code=404, transient=False)
        if isinstance(page, FetchResult):
            return page
        return FetchResult(html=page, success=True, status_code=200)

    def check(self, url: str) -> FetchResult:
        """Every URL is reachable unless listed in `unreachable`."""
        with self._lock:
            self.checks.append(url)
        if url in self.unreachable:
            return FetchResult(success=False, error=self.unreachable[url], transient=False)
        return FetchResult(success=True, status_code=200)


class FakeParser(SiteParser):
    """Returns the postings registered for a listing URL, ignoring the HTML."""

    def __init__(self, site_name: str, listings: Dict[str, List[RawPosting]],
                 details: Optional[Dict[str, DetailInfo]] = None, domain: str = "board.test"):
        self.site_name = site_name
        self.listings = listings
        self.details = details or {}
        self.domain = domain

    def listing_urls(self, options: ListingOptions) -> List[str]:
        return list(self.listings)[:max(1, options.max_pages)]

    def parse_listing(self, html: str, base_url: str) -> List[RawPosting]:
        return list(self.listings.get(base_url, []))

    def parse_detail(self, html: str) -> DetailInfo:
        return self.details.get(html, DetailInfo(description=html or None))

    def can_handle(self, url: str) -> bool:
        return self.domain in url


class FakeAIExtractor(AIExtractor):
    def __init__(self, configured: bool = True, vacancy: Optional[dict] = None,
                 company: Optional[CompanyAttributes] = None):
        self.configured = configured
        self.vacancy = vacancy
        self.company = company
        self.vacancy_calls: List[str] = []
        self.company_calls: List[str] = []

    def is_configured(self) -> bool:
        return self.configured

    def extract_vacancy(self, content: str) -> Optional[dict]:
        self.vacancy_calls.append(content)
        return dict(self.vacancy) if self.vacancy else None

    def analyze_company_profile(self, content: str, url: str) -> Optional[CompanyAttributes]:
        self.company_calls.append(url)
        return self.company


def make_raw_posting(**overrides) -> RawPosting:
    fields = dict(
        title="Senior Python Developer",
        company_name="Acme",
        source_url="https://board.test/jobs/1",
        source_site="board.test",
        location="Sofia",
        external_id="1",
        technologies=["python", "django", "postgresql"],
        salary_text=None,
        posted_at=datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc),
        description="Build backend services.",
    )
    fields.update(overrides)
    return RawPosting(**fields)


def make_second_posting(**overrides) -> RawPosting:
    """
    A different vacancy at the same company as make_raw_posting().

    Different city, no shared technologies and posted weeks apart, so fuzzy
    matching keeps the two postings separate.
    """
    fields = dict(
        title="QA Automation Engineer",
        source_url="https://board.test/jobs/2",
        external_id="2",
        location="Plovdiv",
        technologies=["Selenium", "Pytest"],
        posted_at=datetime(2025, 2, 10, 9, 0, tzinfo=timezone.utc),
        description="Own the test suite.",
    )
    fields.update(overrides)
    return make_raw_posting(**fields)


def fast_orchestrator_config(**overrides) -> OrchestratorConfig:
    """Tiny backoffs and timeouts so retry paths run in milliseconds."""
    job_types = {
        "scrape": JobTypeConfig(concurrency=1, max_retries=3, backoff_seconds=0.01, priority=7, timeout_seconds=5.0),
        "ai-extraction": JobTypeConfig(concurrency=1, max_retries=3, backoff_seconds=0.01, priority=5, timeout_seconds=5.0),
        "company-analysis": JobTypeConfig(concurrency=1, max_retries=3, backoff_seconds=0.01, priority=3, timeout_seconds=5.0),
        "batch-processing": JobTypeConfig(concurrency=1, max_retries=2, backoff_seconds=0.01, priority=4, timeout_seconds=5.0),
        "health-check": JobTypeConfig(concurrency=1, max_retries=1, backoff_seconds=0.0, priority=10, timeout_seconds=5.0),
    }
    job_types.update(overrides)
    return OrchestratorConfig(job_types=job_types, poll_interval_seconds=0.01)


def make_app_config(**overrides) -> AppConfig:
    data = dict(database=DatabaseConfig(url="sqlite://"), orchestrator=fast_orchestrator_config())
    data.update(overrides)
    return AppConfig(**data)
