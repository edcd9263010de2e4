"""
Tests for the runner entry points over a fully wired AppContext.

The context is built from config with a fake scraper registry and AI
extractor and without the Redis cache. Every entry point runs through the
context's orchestrator, which the runner starts on first use.
"""
import threading
from unittest.mock import MagicMock

import pytest

from core.app_context import AppContext
from core.config_loader import CacheConfig, ScraperConfig, ScraperSiteConfig
from core.exceptions import PersistenceError
from core.scorer.models import CompanyAttributes
from core.scraper.registry import ScraperRegistry
from etl.ingestion import SiteScrapeResult
from pipeline.jobs import JobState
from pipeline.runner import ScrapeOptions, check_health, get_stats, run_batch, run_scrape
from tests.mocks.fakes import (
    FakeAIExtractor,
    FakeFetcher,
    FakeParser,
    make_app_config,
    make_raw_posting,
    make_second_posting,
)

pytestmark = pytest.mark.db

SITE = "board.test"
LISTING = "https://board.test/jobs"
PROFILE_URL = "https://board.test/company/acme"
WAIT = 10.0


def _postings():
    return [
        make_raw_posting(company_profile_url=PROFILE_URL),
        make_second_posting(),
    ]


def build_context(ai=None, pages=None, listings=None):
    fetcher = FakeFetcher({LISTING: "<html></html>"} if pages is None else pages)
    registry = ScraperRegistry(default_fetcher=fetcher)
    registry.register(SITE, fetcher, FakeParser(SITE, {LISTING: _postings()} if listings is None else listings))
    config = make_app_config(
        cache=CacheConfig(enabled=False),
        scraper=ScraperConfig(
            enabled_sites=[SITE],
            sites={SITE: ScraperSiteConfig(base_url="https://board.test", board_domains=[SITE])},
        ),
    )
    return AppContext.build(config, registry=registry, ai_extractor=ai or FakeAIExtractor(configured=False))


@pytest.fixture
def context_factory(sqlite_engine):
    built = []

    def factory(**kwargs):
        ctx = build_context(**kwargs)
        built.append(ctx)
        return ctx

    yield factory
    for ctx in built:
        ctx.orchestrator.shutdown(wait=True, timeout=5)


class TestRunScrape:

    def test_totals_and_queued_enrichment(self, context_factory):
        ctx = context_factory()

        result = run_scrape(ctx)

        assert result.total_found == 2
        assert result.new_vacancies == 2
        assert result.updated_vacancies == 0
        assert result.new_companies == 1
        assert result.errors == []
        assert result.duration_ms >= 0

        assert ctx.orchestrator.join(timeout=WAIT)
        by_type = ctx.orchestrator.stats()["by_type"]
        assert by_type["scrape"]["succeeded"] == 1
        assert by_type["ai-extraction"]["succeeded"] == 2
        assert by_type["company-analysis"]["succeeded"] == 1

    def test_each_site_runs_as_a_scrape_job(self, context_factory):
        ctx = context_factory()

        run_scrape(ctx, ScrapeOptions(enable_ai_extraction=False, enable_company_analysis=False))

        assert ctx.orchestrator.running
        stats = ctx.orchestrator.stats()
        assert stats["total"] == 1
        assert stats["by_type"]["scrape"]["succeeded"] == 1

    def test_persistence_error_propagates(self, context_factory):
        ctx = context_factory()
        ctx.scraping_service.scrape_site = MagicMock(side_effect=PersistenceError("database is down"))

        with pytest.raises(PersistenceError, match="database is down"):
            run_scrape(ctx)

        assert ctx.scraping_service.scrape_site.call_count == 3

    def test_stop_event_cancels_running_scrape(self, context_factory):
        ctx = context_factory()
        stop_event = threading.Event()
        started = threading.Event()

        def slow_scrape(request, cancel_event=None):
            started.set()
            cancel_event.wait(WAIT)
            return SiteScrapeResult(site=request.site, errors=["Scraping cancelled"])

        ctx.scraping_service.scrape_site = slow_scrape
        threading.Thread(target=lambda: started.wait(WAIT) and stop_event.set(), daemon=True).start()

        result = run_scrape(ctx, stop_event=stop_event)

        assert result.errors == [f"[{SITE}] Scraping cancelled"]

    def test_second_run_updates(self, context_factory):
        ctx = context_factory()
        run_scrape(ctx)

        result = run_scrape(ctx)

        assert result.new_vacancies == 0
        assert result.updated_vacancies == 2
        assert result.new_companies == 0

    def test_disabled_enrichment(self, context_factory):
        ctx = context_factory()

        run_scrape(ctx, ScrapeOptions(enable_ai_extraction=False, enable_company_analysis=False))

        by_type = ctx.orchestrator.stats()["by_type"]
        assert sum(by_type["ai-extraction"].values()) == 0
        assert sum(by_type["company-analysis"].values()) == 0

    def test_unknown_site_is_reported(self, context_factory):
        ctx = context_factory()

        result = run_scrape(ctx, ScrapeOptions(sites=["nowhere.test", SITE]))

        assert result.errors == ["Unknown site: nowhere.test"]
        assert result.new_vacancies == 2

    def test_site_errors_are_prefixed(self, context_factory):
        ctx = context_factory(pages={})

        result = run_scrape(ctx)

        assert result.total_found == 0
        assert result.errors == [f"[{SITE}] Scraping failed: 404 Not Found"]

    def test_stop_event_skips_sites(self, context_factory):
        ctx = context_factory()
        stop_event = threading.Event()
        stop_event.set()

        result = run_scrape(ctx, stop_event=stop_event)

        assert result.total_found == 0
        assert result.errors == []

    def test_end_to_end_enrichment(self, context_factory, uow):
        ai = FakeAIExtractor(
            vacancy={"technologies": ["Docker"], "salary_min": 4000, "salary_max": 6000, "currency": "BGN"},
            company=CompanyAttributes(company_name="Acme", industry="Consulting", size="large", founded=2001),
        )
        ctx = context_factory(ai=ai, pages={LISTING: "<html></html>", PROFILE_URL: "<p>Acme consulting</p>"})
        ctx.orchestrator.start()

        run_scrape(ctx)

        assert ctx.orchestrator.join(timeout=10)
        assert ctx.orchestrator.failures() == []
        with uow() as repo:
            posting = repo.postings.get_by_source_url("https://board.test/jobs/1")
            company = repo.companies.find_by_name("acme")
            assert posting.is_extracted
            assert posting.salary_min == 4000
            assert "docker" in posting.technologies
            assert company.industry == "Consulting"
            assert repo.scores.latest(company.id) is not None


class TestGetStats:

    def test_empty_store(self, context_factory):
        stats = get_stats(context_factory())

        assert stats.total_vacancies == 0
        assert stats.active_vacancies == 0
        assert stats.total_companies == 0
        assert stats.per_site_counts == {}
        assert stats.last_scraped_at is None

    def test_counts_after_scrape(self, context_factory):
        ctx = context_factory()
        run_scrape(ctx)

        stats = get_stats(ctx)

        assert stats.total_vacancies == 2
        assert stats.active_vacancies == 2
        assert stats.total_companies == 1
        assert stats.per_site_counts == {SITE: 2}
        assert stats.last_scraped_at is not None
        assert stats.last_scraped_at.tzinfo is not None


class TestRunBatch:

    def test_fetches_urls_and_queues_extraction(self, context_factory):
        detail = "https://board.test/jobs/1"
        ctx = context_factory(pages={LISTING: "<html></html>", detail: "Build the pipeline."})

        status = run_batch(ctx, [detail, "https://board.test/jobs/missing"], batch_id="b1")

        assert status.state == JobState.SUCCEEDED
        summary = status.result
        assert summary["batch_id"] == "b1"
        assert summary["total_urls"] == 2
        assert summary["successful"] == 1
        assert summary["failed"] == 1
        assert summary["errors"] == ["https://board.test/jobs/missing: 404 Not Found"]

        assert ctx.orchestrator.join(timeout=WAIT)
        assert ctx.orchestrator.stats()["by_type"]["ai-extraction"]["succeeded"] == 1

    def test_generates_batch_id(self, context_factory):
        status = run_batch(context_factory(), [])

        assert status.state == JobState.SUCCEEDED
        assert len(status.result["batch_id"]) == 8
        assert status.result["processed"] == 0


class TestCheckHealth:

    def test_healthy(self, context_factory):
        health = check_health(context_factory(), timeout=WAIT)

        assert health["status"] == "healthy"
        assert health["database"] == "up"
        assert health["ai_configured"] is False

    def test_database_check_can_be_skipped(self, context_factory):
        health = check_health(context_factory(), check_database=False, timeout=WAIT)

        assert health["status"] == "healthy"
        assert health["database"] == "skipped"
