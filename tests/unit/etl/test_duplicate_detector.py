"""
Tests for duplicate detection and merging.

Tests verify:
- Exact matches by source URL, by a merged site's sighting URL and by
  (site, external id)
- Fuzzy scoring: weights, technology bonus, date bonus, tiers
- Cross-source auto-merge records both external ids
- Merge is fill-only and idempotent
"""
import uuid
from datetime import timedelta

import pytest

from core.config_loader import DuplicateConfig
from core.utils import utcnow
from database.models import Posting
from etl.duplicate_detector import DuplicateDetector
from tests.mocks.fakes import make_raw_posting

pytestmark = pytest.mark.db


@pytest.fixture
def detector():
    return DuplicateDetector(DuplicateConfig())


def _seed(repo, **overrides):
    now = utcnow()
    fields = dict(
        title="Senior Java Developer",
        company_name="Acme",
        location="Sofia",
        posted_at=now,
        source_site="dev.bg",
        source_url="https://dev.bg/job/100",
        external_id="100",
        external_ids={"dev.bg": "100"},
        scraped_sites={"dev.bg": {"lastSeenAt": now.isoformat(), "url": "https://dev.bg/job/100", "originalId": "100"}},
        status="active",
        technologies=["java", "spring"],
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    return repo.postings.create(**fields)


def _jobs_bg_sighting(**overrides):
    fields = dict(
        title="Senior Java Developer",
        company_name="Acme Ltd",
        location="Sofia",
        technologies=["java", "spring", "mysql"],
        posted_at=utcnow(),
        source_site="jobs.bg",
        source_url="https://www.jobs.bg/job/555",
        external_id="555",
        description="Java services for payments.",
    )
    fields.update(overrides)
    return make_raw_posting(**fields)


class TestExactMatch:

    def test_by_source_url(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo)
        with uow() as repo:
            raw = make_raw_posting(source_url="https://dev.bg/job/100", source_site="dev.bg", external_id=None)
            assert detector.find_exact_match(repo, raw) == seeded.id

    def test_by_external_id_on_same_site(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo)
        with uow() as repo:
            raw = make_raw_posting(source_url="https://dev.bg/job/100?ref=feed", source_site="dev.bg", external_id="100")
            assert detector.find_exact_match(repo, raw) == seeded.id

    def test_by_other_site_sighting_url(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo)
            detector.merge(repo, seeded.id, _jobs_bg_sighting(external_id=None))
        with uow() as repo:
            raw = _jobs_bg_sighting(external_id=None, title="Renamed Listing", company_name="Someone Else")
            assert detector.find_exact_match(repo, raw) == seeded.id

    def test_sighting_url_is_matched_per_site(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo)
            detector.merge(repo, seeded.id, _jobs_bg_sighting(external_id=None))
        with uow() as repo:
            raw = make_raw_posting(source_url="https://www.jobs.bg/job/555", source_site="dev.bg", external_id=None)
            assert detector.find_exact_match(repo, raw) is None

    def test_external_id_on_other_site_is_not_exact(self, uow, detector):
        with uow() as repo:
            _seed(repo)
        with uow() as repo:
            raw = make_raw_posting(source_url="https://www.jobs.bg/job/100", source_site="jobs.bg", external_id="100")
            assert detector.find_exact_match(repo, raw) is None


class TestScoring:

    def test_acme_scenario(self, detector):
        posted = utcnow()
        existing = Posting(
            title="Senior Java Developer",
            company_name="Acme",
            location="Sofia",
            technologies=["java", "spring"],
            posted_at=posted,
        )
        incoming = _jobs_bg_sighting(posted_at=posted)

        scored = detector.score(incoming, existing)

        assert scored.title_similarity == 1.0
        assert scored.company_similarity > 0.8
        assert scored.location_similarity == 1.0
        assert scored.tech_bonus == pytest.approx(2 / 3 * 0.2)
        assert scored.date_bonus == 0.1
        assert scored.overall == 1.0
        assert scored.should_merge
        assert "Posted on same day" in scored.match_reasons
        assert "Common technologies: java, spring" in scored.match_reasons

    @pytest.mark.parametrize("days,bonus", [(0, 0.1), (1, 0.1), (3, 0.05), (7, 0.05), (10, 0.0)])
    def test_date_bonus(self, detector, days, bonus):
        posted = utcnow()
        existing = Posting(title="QA", company_name="Globex", location="", technologies=[], posted_at=posted)
        incoming = make_raw_posting(title="QA", company_name="Globex", location="", technologies=[],
                                    posted_at=posted + timedelta(days=days))
        assert detector.score(incoming, existing).date_bonus == bonus

    def test_missing_dates_get_no_bonus(self, detector):
        existing = Posting(title="QA", company_name="Globex", technologies=[], posted_at=None)
        assert detector.score(make_raw_posting(posted_at=None), existing).date_bonus == 0.0

    def test_tiers(self, detector):
        assert detector.tier_for(0.95) == 'exact'
        assert detector.tier_for(0.85) == 'auto-merge'
        assert detector.tier_for(0.80) == 'auto-merge'
        assert detector.tier_for(0.75) == 'candidate'
        assert detector.tier_for(0.69) is None


class TestCandidates:

    def test_cross_source_auto_merge(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo)

        with uow() as repo:
            raw = _jobs_bg_sighting()
            assert detector.find_exact_match(repo, raw) is None
            candidate = detector.find_auto_merge_target(repo, raw)
            assert candidate is not None
            assert candidate.posting_id == seeded.id
            assert candidate.overall >= 0.80
            detector.merge(repo, candidate.posting_id, raw)

        with uow() as repo:
            merged = repo.postings.get_by_id(seeded.id)
            assert merged.external_ids == {"dev.bg": "100", "jobs.bg": "555"}
            assert set(merged.scraped_sites) == {"dev.bg", "jobs.bg"}
            assert merged.technologies == ["java", "spring", "mysql"]
            assert repo.postings.count_all() == 1

    def test_unrelated_posting_has_no_candidates(self, uow, detector):
        with uow() as repo:
            _seed(repo)
        with uow() as repo:
            raw = make_raw_posting(title="Python Developer", company_name="Globex", location="Plovdiv",
                                   technologies=["python"], source_url="https://dev.bg/job/200")
            assert detector.find_candidates(repo, raw) == []

    def test_inactive_and_old_postings_are_not_candidates(self, uow, detector):
        with uow() as repo:
            _seed(repo, status="inactive")
            _seed(repo, source_url="https://dev.bg/job/101", external_ids={},
                  created_at=utcnow() - timedelta(days=45))
        with uow() as repo:
            assert detector.find_candidates(repo, _jobs_bg_sighting()) == []

    def test_candidates_sorted_by_score(self, uow, detector):
        with uow() as repo:
            _seed(repo, location="Varna", technologies=[], source_url="https://dev.bg/job/1", external_ids={})
            best = _seed(repo, source_url="https://dev.bg/job/2", external_ids={})
        with uow() as repo:
            candidates = detector.find_candidates(repo, _jobs_bg_sighting())
            assert [c.posting_id for c in candidates][0] == best.id
            assert candidates[0].overall >= candidates[1].overall


class TestMerge:

    def test_fill_only(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo, description="Original description", salary_min=4000, salary_max=6000, currency="BGN")
        with uow() as repo:
            detector.merge(repo, seeded.id, _jobs_bg_sighting(description="Other text", salary_text="9000 - 9999 EUR"))
        with uow() as repo:
            merged = repo.postings.get_by_id(seeded.id)
            assert merged.description == "Original description"
            assert (merged.salary_min, merged.salary_max, merged.currency) == (4000, 6000, "BGN")

    def test_fills_empty_fields(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo)
        with uow() as repo:
            detector.merge(repo, seeded.id, _jobs_bg_sighting(salary_text="5000 - 7000 BGN"))
        with uow() as repo:
            merged = repo.postings.get_by_id(seeded.id)
            assert merged.description == "Java services for payments."
            assert (merged.salary_min, merged.salary_max) == (5000, 7000)

    def test_idempotent(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo)
        raw = _jobs_bg_sighting()
        for _ in range(2):
            with uow() as repo:
                detector.merge(repo, seeded.id, raw)
        with uow() as repo:
            merged = repo.postings.get_by_id(seeded.id)
            assert merged.external_ids == {"dev.bg": "100", "jobs.bg": "555"}
            assert merged.technologies == ["java", "spring", "mysql"]

    def test_existing_external_id_is_kept(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo)
        with uow() as repo:
            detector.merge(repo, seeded.id, make_raw_posting(source_site="dev.bg", external_id="999",
                                                             source_url="https://dev.bg/job/999"))
        with uow() as repo:
            assert repo.postings.get_by_id(seeded.id).external_ids == {"dev.bg": "100"}

    def test_reactivates_inactive_posting(self, uow, detector):
        with uow() as repo:
            seeded = _seed(repo, status="inactive")
        with uow() as repo:
            detector.merge(repo, seeded.id, _jobs_bg_sighting())
        with uow() as repo:
            assert repo.postings.get_by_id(seeded.id).status == "active"

    def test_missing_target(self, uow, detector):
        with uow() as repo:
            with pytest.raises(LookupError):
                detector.merge(repo, uuid.uuid4(), _jobs_bg_sighting())
