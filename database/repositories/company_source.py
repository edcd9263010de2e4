import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, delete, func, or_

from database.models import CompanySourceCache
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class CompanySourceRepository(BaseRepository):
    def get(self, company_id: Any, source_site: str) -> Optional[CompanySourceCache]:
        stmt = select(CompanySourceCache).where(
            CompanySourceCache.company_id == company_id,
            CompanySourceCache.source_site == source_site,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def upsert(self, company_id: Any, source_site: str, **fields) -> CompanySourceCache:
        entry = self.get(company_id, source_site)
        if entry is None:
            entry = CompanySourceCache(company_id=company_id, source_site=source_site)
            self.db.add(entry)
        for key, value in fields.items():
            setattr(entry, key, value)
        self.db.flush()
        return entry

    def delete_not_scraped_since(self, cutoff: datetime) -> int:
        stmt = delete(CompanySourceCache).where(
            or_(
                CompanySourceCache.last_scraped_at < cutoff,
                CompanySourceCache.last_scraped_at.is_(None),
            )
        )
        result = self.db.execute(stmt)
        return result.rowcount or 0

    def stats(self) -> Dict[str, Any]:
        total = self.db.execute(select(func.count(CompanySourceCache.id))).scalar_one()
        valid = self.db.execute(
            select(func.count(CompanySourceCache.id)).where(CompanySourceCache.is_valid.is_(True))
        ).scalar_one()
        by_site = dict(self.db.execute(
            select(CompanySourceCache.source_site, func.count(CompanySourceCache.id))
            .group_by(CompanySourceCache.source_site)
        ).all())
        oldest, newest = self.db.execute(
            select(func.min(CompanySourceCache.last_scraped_at), func.max(CompanySourceCache.last_scraped_at))
        ).one()
        return {
            'total': total,
            'valid': valid,
            'invalid': total - valid,
            'by_site': by_site,
            'oldest': oldest,
            'newest': newest,
        }
