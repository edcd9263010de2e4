"""
Duplicate Detector - Finds the canonical posting for a freshly scraped item.

Matching runs in two stages:
1. Exact: same source URL (the first sighting's or any site's last seen
   URL), or the same external id on the same site.
2. Fuzzy: weighted title/company/location similarity plus technology and
   posting-date bonuses against recent active postings.

Merging is fill-only: it records provenance and fills empty fields, never
overwriting data already on the canonical posting.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, List, Optional

from core.config_loader import DuplicateConfig
from core.scraper.interfaces import RawPosting
from core.similarity import similarity, technology_overlap
from core.utils import ensure_utc, normalize_technologies, parse_salary_range, union_technologies, utcnow
from database.models import Posting
from database.repositories import PipelineRepository

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 0.4
COMPANY_WEIGHT = 0.4
LOCATION_WEIGHT = 0.2
TECH_BONUS_WEIGHT = 0.2
SAME_DAY_BONUS = 0.1
SAME_WEEK_BONUS = 0.05
MIN_TITLE_WORD_LENGTH = 3


@dataclass
class ScoredCandidate:
    posting_id: Any
    title_similarity: float
    company_similarity: float
    location_similarity: float
    tech_bonus: float
    date_bonus: float
    overall: float
    tier: str  # exact|auto-merge|candidate
    match_reasons: List[str] = field(default_factory=list)

    @property
    def should_merge(self) -> bool:
        return self.tier in ('exact', 'auto-merge')


def _days_apart(incoming: RawPosting, existing: Posting) -> Optional[float]:
    if not incoming.posted_at or not existing.posted_at:
        return None
    delta = ensure_utc(incoming.posted_at) - ensure_utc(existing.posted_at)
    return abs(delta.total_seconds()) / 86400


def _date_bonus(days: Optional[float]) -> float:
    if days is None:
        return 0.0
    if days <= 1:
        return SAME_DAY_BONUS
    if days <= 7:
        return SAME_WEEK_BONUS
    return 0.0


def _first_title_word(title: str) -> Optional[str]:
    for word in title.lower().split():
        if len(word) >= MIN_TITLE_WORD_LENGTH:
            return word
    return None


class DuplicateDetector:
    """
    Stateless across calls; every method takes the PipelineRepository of the
    caller's unit of work.
    """

    def __init__(self, config: Optional[DuplicateConfig] = None):
        self.config = config or DuplicateConfig()

    # ------------------------------------------------------------------
    # Exact matching
    # ------------------------------------------------------------------

    def find_exact_match(self, repo: PipelineRepository, posting: RawPosting) -> Optional[Any]:
        if posting.source_url:
            existing = repo.postings.get_by_source_url(posting.source_url)
            if existing:
                logger.debug(f"Exact match by URL: {existing.id}")
                return existing.id

        if posting.source_url and posting.source_site:
            existing = repo.postings.get_by_scraped_url(posting.source_site, posting.source_url)
            if existing:
                logger.debug(f"Exact match by {posting.source_site} sighting URL: {existing.id}")
                return existing.id

        if posting.external_id and posting.source_site:
            existing = repo.postings.get_by_external_id(posting.source_site, posting.external_id)
            if existing:
                logger.debug(f"Exact match by external id {posting.source_site}:{posting.external_id}: {existing.id}")
                return existing.id

        return None

    # ------------------------------------------------------------------
    # Fuzzy matching
    # ------------------------------------------------------------------

    def tier_for(self, overall: float) -> Optional[str]:
        if overall >= self.config.exact_threshold:
            return 'exact'
        if overall >= self.config.auto_merge_threshold:
            return 'auto-merge'
        if overall >= self.config.candidate_threshold:
            return 'candidate'
        return None

    def score(self, posting: RawPosting, existing: Posting) -> ScoredCandidate:
        title_sim = similarity(posting.title, existing.title)
        company_sim = similarity(posting.company_name, existing.company_name)
        location_sim = similarity(posting.location or "", existing.location or "")
        tech_bonus = technology_overlap(posting.technologies, existing.technologies) * TECH_BONUS_WEIGHT
        days = _days_apart(posting, existing)
        date_bonus = _date_bonus(days)

        overall = (
            title_sim * TITLE_WEIGHT
            + company_sim * COMPANY_WEIGHT
            + location_sim * LOCATION_WEIGHT
            + tech_bonus
            + date_bonus
        )
        overall = max(0.0, min(1.0, overall))

        return ScoredCandidate(
            posting_id=existing.id,
            title_similarity=title_sim,
            company_similarity=company_sim,
            location_similarity=location_sim,
            tech_bonus=tech_bonus,
            date_bonus=date_bonus,
            overall=overall,
            tier=self.tier_for(overall),
            match_reasons=self._match_reasons(posting, existing, title_sim, company_sim, location_sim, days),
        )

    @staticmethod
    def _match_reasons(posting, existing, title_sim, company_sim, location_sim, days) -> List[str]:
        reasons = []
        if title_sim > 0.9:
            reasons.append("Very similar job titles")
        elif title_sim > 0.7:
            reasons.append("Similar job titles")

        if company_sim > 0.9:
            reasons.append("Same company")
        elif company_sim > 0.7:
            reasons.append("Similar company names")

        if location_sim > 0.8:
            reasons.append("Same location")

        existing_techs = set(normalize_technologies(existing.technologies))
        common = [t for t in normalize_technologies(posting.technologies) if t in existing_techs]
        if common:
            reasons.append(f"Common technologies: {', '.join(common)}")

        if days is not None:
            if days <= 1:
                reasons.append("Posted on same day")
            elif days <= 7:
                reasons.append("Posted within same week")
        return reasons

    def find_candidates(self, repo: PipelineRepository, posting: RawPosting) -> List[ScoredCandidate]:
        since = utcnow() - timedelta(days=self.config.window_days)

        found = {}
        if posting.company_name:
            for existing in repo.postings.find_by_company_name(
                posting.company_name, since, self.config.company_candidate_limit
            ):
                found.setdefault(existing.id, existing)

        word = _first_title_word(posting.title or "")
        if word:
            for existing in repo.postings.find_by_title_word(word, since, self.config.title_candidate_limit):
                found.setdefault(existing.id, existing)

        scored = [self.score(posting, existing) for existing in found.values()]
        candidates = [c for c in scored if c.tier is not None]
        candidates.sort(key=lambda c: c.overall, reverse=True)

        logger.debug(
            f"Found {len(candidates)} duplicate candidates for '{posting.title}' at {posting.company_name} "
            f"({len(found)} searched)"
        )
        return candidates

    def find_auto_merge_target(self, repo: PipelineRepository, posting: RawPosting) -> Optional[ScoredCandidate]:
        for candidate in self.find_candidates(repo, posting):
            if candidate.should_merge:
                return candidate
            logger.info(
                f"Possible duplicate of {candidate.posting_id} for '{posting.title}' "
                f"(score {candidate.overall:.2f}): {', '.join(candidate.match_reasons)}"
            )
        return None

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge(self, repo: PipelineRepository, target_id: Any, posting: RawPosting) -> Posting:
        """
        Fold a sighting into an existing posting. Idempotent.

        JSON columns are replaced, not mutated in place, so the ORM sees the
        change.
        """
        target = repo.postings.get_by_id(target_id)
        if target is None:
            raise LookupError(f"Posting {target_id} not found for merging")

        now = utcnow()

        external_ids = dict(target.external_ids or {})
        if posting.external_id and posting.source_site not in external_ids:
            external_ids[posting.source_site] = posting.external_id
            target.external_ids = external_ids

        scraped_sites = dict(target.scraped_sites or {})
        scraped_sites[posting.source_site] = {
            "lastSeenAt": now.isoformat(),
            "url": posting.source_url,
            "originalId": posting.external_id,
        }
        target.scraped_sites = scraped_sites

        if posting.description and not target.description:
            target.description = posting.description

        merged_techs = union_technologies(target.technologies, posting.technologies)
        if merged_techs != list(target.technologies or []):
            target.technologies = merged_techs

        if posting.salary_text and target.salary_min is None and target.salary_max is None:
            salary_min, salary_max, currency = parse_salary_range(posting.salary_text)
            if salary_min is not None:
                target.salary_min = salary_min
                target.salary_max = salary_max
                target.currency = currency
            if not target.salary_text:
                target.salary_text = posting.salary_text

        if not target.location and posting.location:
            target.location = posting.location
        if not target.posted_at and posting.posted_at:
            target.posted_at = posting.posted_at

        if target.status == 'inactive':
            logger.info(f"Reactivating posting {target.id} seen again on {posting.source_site}")
            target.status = 'active'

        target.updated_at = now
        repo.db.flush()

        logger.info(f"Merged {posting.source_site} sighting into posting {target.id}")
        return target
