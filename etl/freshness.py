"""
Freshness Gate - Decides when a company source is due for a re-fetch.

Backed by the company_source table: one row per (company, source site),
stamped on every fetch attempt whether it succeeded or not.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from core.config_loader import FreshnessConfig
from core.utils import ContentHasher, ensure_utc, utcnow
from database.repositories import PipelineRepository

logger = logging.getLogger(__name__)

REASON_NO_PRIOR_RECORD = "no-prior-record"
REASON_FORCED = "forced"
REASON_INVALID_RETRY = "previous-fetch-invalid-retry"
REASON_URL_CHANGED = "source-url-changed"
REASON_TTL_EXPIRED = "ttl-expired"
REASON_WITHIN_TTL = "within-ttl"


@dataclass(frozen=True)
class FreshnessDecision:
    should_scrape: bool
    reason: str


class FreshnessGate:
    def __init__(self, config: Optional[FreshnessConfig] = None, clock=utcnow):
        self.config = config or FreshnessConfig()
        self._clock = clock

    def ttl_for(self, source_site: str) -> timedelta:
        hours = self.config.ttl_hours.get(source_site, self.config.default_ttl_hours)
        return timedelta(hours=hours)

    def should_scrape(
        self,
        repo: PipelineRepository,
        company_id: Any,
        source_site: str,
        source_url: str,
        force: bool = False,
    ) -> FreshnessDecision:
        entry = repo.sources.get(company_id, source_site)

        if entry is None:
            return FreshnessDecision(True, REASON_NO_PRIOR_RECORD)
        if force:
            return FreshnessDecision(True, REASON_FORCED)
        if not entry.is_valid:
            return FreshnessDecision(True, REASON_INVALID_RETRY)
        if entry.source_url != source_url:
            return FreshnessDecision(True, REASON_URL_CHANGED)

        last_scraped_at = ensure_utc(entry.last_scraped_at)
        if last_scraped_at is None or self._clock() - last_scraped_at > self.ttl_for(source_site):
            return FreshnessDecision(True, REASON_TTL_EXPIRED)

        return FreshnessDecision(False, REASON_WITHIN_TTL)

    def record_success(
        self,
        repo: PipelineRepository,
        company_id: Any,
        source_site: str,
        source_url: str,
        content: Optional[str] = None,
    ) -> None:
        repo.sources.upsert(
            company_id,
            source_site,
            source_url=source_url,
            is_valid=True,
            invalid_reason=None,
            last_scraped_at=self._clock(),
            content_hash=ContentHasher.calculate(content) if content is not None else None,
            updated_at=self._clock(),
        )
        logger.debug(f"Recorded successful fetch of {source_site} for company {company_id}")

    def mark_invalid(
        self,
        repo: PipelineRepository,
        company_id: Any,
        source_site: str,
        reason: str,
        source_url: Optional[str] = None,
    ) -> None:
        fields = {
            'is_valid': False,
            'invalid_reason': reason,
            'last_scraped_at': self._clock(),
            'updated_at': self._clock(),
        }
        entry = repo.sources.get(company_id, source_site)
        if source_url:
            fields['source_url'] = source_url
        elif entry is None:
            # source_url is NOT NULL; an unknown URL is still worth recording
            fields['source_url'] = ""
        repo.sources.upsert(company_id, source_site, **fields)
        logger.warning(f"Marked {source_site} source invalid for company {company_id}: {reason}")

    def has_content_changed(self, repo: PipelineRepository, company_id: Any, source_site: str, content: str) -> bool:
        entry = repo.sources.get(company_id, source_site)
        if entry is None or not entry.content_hash:
            return True
        return entry.content_hash != ContentHasher.calculate(content)

    def cleanup(self, repo: PipelineRepository, older_than_days: Optional[int] = None) -> int:
        days = older_than_days if older_than_days is not None else self.config.cleanup_after_days
        cutoff = self._clock() - timedelta(days=days)
        deleted = repo.sources.delete_not_scraped_since(cutoff)
        logger.info(f"Removed {deleted} company source records not scraped in {days} days")
        return deleted

    def get_cache_stats(self, repo: PipelineRepository) -> Dict[str, Any]:
        stats = repo.sources.stats()
        stats['oldest'] = ensure_utc(stats['oldest'])
        stats['newest'] = ensure_utc(stats['newest'])
        return stats
