"""
Tests for the FreshnessGate decision table and its upserts.
"""
from datetime import datetime, timedelta, timezone

import pytest

from core.config_loader import FreshnessConfig
from etl.freshness import (
    FreshnessGate,
    REASON_FORCED,
    REASON_INVALID_RETRY,
    REASON_NO_PRIOR_RECORD,
    REASON_TTL_EXPIRED,
    REASON_URL_CHANGED,
    REASON_WITHIN_TTL,
)

pytestmark = pytest.mark.db

PROFILE_URL = "https://dev.bg/company/acme/"


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def gate(clock):
    config = FreshnessConfig(ttl_hours={"dev.bg": 24, "company_website": 168}, default_ttl_hours=48)
    return FreshnessGate(config, clock=clock)


@pytest.fixture
def company_id(uow):
    with uow() as repo:
        company, _ = repo.companies.get_or_create("Acme")
        return company.id


def _decide(uow, gate, company_id, site="dev.bg", url=PROFILE_URL, force=False):
    with uow() as repo:
        return gate.should_scrape(repo, company_id, site, url, force=force)


class TestShouldScrape:

    def test_no_prior_record(self, uow, gate, company_id):
        decision = _decide(uow, gate, company_id)
        assert decision.should_scrape is True
        assert decision.reason == REASON_NO_PRIOR_RECORD

    def test_within_ttl_then_expired(self, uow, gate, clock, company_id):
        with uow() as repo:
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL, content="<html>Acme</html>")

        decision = _decide(uow, gate, company_id)
        assert (decision.should_scrape, decision.reason) == (False, REASON_WITHIN_TTL)

        clock.advance(hours=24)
        assert _decide(uow, gate, company_id).should_scrape is False

        clock.advance(seconds=1)
        decision = _decide(uow, gate, company_id)
        assert (decision.should_scrape, decision.reason) == (True, REASON_TTL_EXPIRED)

    def test_invalid_entry_is_retried(self, uow, gate, company_id):
        with uow() as repo:
            gate.mark_invalid(repo, company_id, "dev.bg", "404 Not Found", PROFILE_URL)

        decision = _decide(uow, gate, company_id)
        assert (decision.should_scrape, decision.reason) == (True, REASON_INVALID_RETRY)

    def test_url_change(self, uow, gate, company_id):
        with uow() as repo:
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL)

        decision = _decide(uow, gate, company_id, url="https://dev.bg/company/acme-bulgaria/")
        assert (decision.should_scrape, decision.reason) == (True, REASON_URL_CHANGED)

    def test_force_bypasses_ttl(self, uow, gate, company_id):
        with uow() as repo:
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL)

        decision = _decide(uow, gate, company_id, force=True)
        assert (decision.should_scrape, decision.reason) == (True, REASON_FORCED)

    def test_ttl_per_source_site(self, gate):
        assert gate.ttl_for("dev.bg") == timedelta(hours=24)
        assert gate.ttl_for("company_website") == timedelta(hours=168)
        assert gate.ttl_for("jobs.bg") == timedelta(hours=48)

    def test_sites_are_independent(self, uow, gate, company_id):
        with uow() as repo:
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL)

        decision = _decide(uow, gate, company_id, site="company_website", url="https://acme.example")
        assert decision.reason == REASON_NO_PRIOR_RECORD


class TestMutators:

    def test_upserts_keep_one_row(self, uow, gate, clock, company_id):
        with uow() as repo:
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL)
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL)
            clock.advance(minutes=5)
            gate.mark_invalid(repo, company_id, "dev.bg", "timeout")

        with uow() as repo:
            stats = gate.get_cache_stats(repo)
            entry = repo.sources.get(company_id, "dev.bg")
            assert stats["total"] == 1
            assert stats["invalid"] == 1
            assert entry.is_valid is False
            assert entry.invalid_reason == "timeout"
            # URL kept when the failure did not name one
            assert entry.source_url == PROFILE_URL

    def test_success_clears_invalid_state(self, uow, gate, company_id):
        with uow() as repo:
            gate.mark_invalid(repo, company_id, "dev.bg", "timeout", PROFILE_URL)
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL)
        with uow() as repo:
            entry = repo.sources.get(company_id, "dev.bg")
            assert entry.is_valid is True
            assert entry.invalid_reason is None

    def test_mark_invalid_without_url_on_new_row(self, uow, gate, company_id):
        with uow() as repo:
            gate.mark_invalid(repo, company_id, "company_website", "DNS failure")
        with uow() as repo:
            assert repo.sources.get(company_id, "company_website").source_url == ""

    def test_content_change_detection(self, uow, gate, company_id):
        with uow() as repo:
            assert gate.has_content_changed(repo, company_id, "dev.bg", "<html>v1</html>")
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL, content="<html>v1</html>")
            assert not gate.has_content_changed(repo, company_id, "dev.bg", "<html>v1</html>")
            assert gate.has_content_changed(repo, company_id, "dev.bg", "<html>v2</html>")


class TestMaintenance:

    def test_cleanup_removes_stale_rows(self, uow, gate, clock, company_id):
        with uow() as repo:
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL)
        clock.advance(days=100)
        with uow() as repo:
            gate.record_success(repo, company_id, "company_website", "https://acme.example")

        with uow() as repo:
            assert gate.cleanup(repo, older_than_days=90) == 1
        with uow() as repo:
            assert repo.sources.get(company_id, "dev.bg") is None
            assert repo.sources.get(company_id, "company_website") is not None

    def test_cache_stats(self, uow, gate, clock, company_id):
        with uow() as repo:
            gate.record_success(repo, company_id, "dev.bg", PROFILE_URL)
            clock.advance(hours=1)
            gate.mark_invalid(repo, company_id, "company_website", "403", "https://acme.example")

        with uow() as repo:
            stats = gate.get_cache_stats(repo)
        assert stats["total"] == 2
        assert stats["valid"] == 1
        assert stats["by_site"] == {"dev.bg": 1, "company_website": 1}
        assert stats["oldest"] == datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        assert stats["newest"] == datetime(2025, 6, 1, 13, 0, tzinfo=timezone.utc)
