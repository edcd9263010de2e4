"""Tests for the posting, company and company score repositories."""
from datetime import timedelta

import pytest

from core.scorer import CompanyScoringEngine
from core.scorer.models import CompanyAttributes
from core.utils import utcnow

pytestmark = pytest.mark.db


def _posting_fields(company_id, n, site="board.test", status="active"):
    now = utcnow()
    return dict(
        company_id=company_id,
        title=f"Engineer {n}",
        company_name="Acme",
        source_site=site,
        source_url=f"https://{site}/jobs/{n}",
        external_id=str(n),
        external_ids={site: str(n)},
        status=status,
        created_at=now,
        updated_at=now,
    )


class TestCompanyRepository:

    def test_get_or_create_is_case_insensitive(self, uow):
        with uow() as repo:
            first, created = repo.companies.get_or_create("Acme Corp")
            again, created_again = repo.companies.get_or_create("  acme corp ")
        assert created
        assert not created_again
        assert again.id == first.id

    def test_update_basic_info_only_fills_gaps(self, uow):
        with uow() as repo:
            company, _ = repo.companies.get_or_create("Acme")
            company.industry = "Consulting"
            changed = repo.companies.update_basic_info(
                company, {"industry": "Gaming", "size": "large", "location": "", "founded": 1999}
            )
        assert changed == {"size": "large", "founded": 1999}
        assert company.industry == "Consulting"


class TestPostingRepository:

    def test_lookup_and_counts(self, uow):
        with uow() as repo:
            company, _ = repo.companies.get_or_create("Acme")
            repo.postings.create(**_posting_fields(company.id, 1))
            repo.postings.create(**_posting_fields(company.id, 2, status="duplicate"))
            repo.postings.create(**_posting_fields(company.id, 3, site="jobs.test"))

        with uow() as repo:
            assert repo.postings.get_by_source_url("https://board.test/jobs/1").title == "Engineer 1"
            assert repo.postings.get_by_external_id("jobs.test", "3").title == "Engineer 3"
            assert repo.postings.get_by_external_id("board.test", "3") is None
            assert repo.postings.count_all() == 3
            assert repo.postings.count_active() == 2
            assert repo.postings.count_by_site() == {"board.test": 2, "jobs.test": 1}
            assert repo.postings.last_activity_at() is not None

    def test_find_by_company_name_respects_window(self, uow):
        with uow() as repo:
            company, _ = repo.companies.get_or_create("Acme")
            recent = _posting_fields(company.id, 1)
            old = _posting_fields(company.id, 2)
            old["created_at"] = utcnow() - timedelta(days=60)
            repo.postings.create(**recent)
            repo.postings.create(**old)

        with uow() as repo:
            found = repo.postings.find_by_company_name("acme", since=utcnow() - timedelta(days=30), limit=10)
        assert [p.title for p in found] == ["Engineer 1"]


class TestCompanyScoreRepository:

    def test_latest_score_wins(self, uow):
        engine = CompanyScoringEngine(reference_year=2025)
        with uow() as repo:
            company, _ = repo.companies.get_or_create("Acme")
            repo.scores.add(company.id, engine.score(CompanyAttributes(company_name="Acme")), analysis_source="profile")
            second = repo.scores.add(
                company.id,
                engine.score(CompanyAttributes(company_name="Acme", industry="Financial Technology", size="startup")),
                analysis_source="website",
            )
            second.scored_at = utcnow() + timedelta(seconds=1)

        with uow() as repo:
            latest = repo.scores.latest(company.id)
        assert latest.analysis_source == "website"
        assert set(latest.category_scores) == {
            "developer_experience", "culture_and_values", "growth_opportunities",
            "compensation_benefits", "work_life_balance", "company_stability",
        }
