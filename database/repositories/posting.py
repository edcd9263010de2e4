import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func

from database.models import Posting
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class PostingRepository(BaseRepository):
    def get_by_id(self, posting_id: Any) -> Optional[Posting]:
        return self.db.get(Posting, posting_id)

    def get_by_source_url(self, source_url: str) -> Optional[Posting]:
        stmt = select(Posting).where(Posting.source_url == source_url)
        return self.db.execute(stmt).scalars().first()

    def get_by_external_id(self, source_site: str, external_id: str) -> Optional[Posting]:
        stmt = select(Posting).where(
            Posting.external_ids[source_site].as_string() == str(external_id)
        )
        return self.db.execute(stmt).scalars().first()

    def get_by_scraped_url(self, source_site: str, source_url: str) -> Optional[Posting]:
        """Posting whose provenance for `source_site` records `source_url`."""
        stmt = select(Posting).where(
            Posting.scraped_sites[(source_site, "url")].as_string() == source_url
        )
        return self.db.execute(stmt).scalars().first()

    def find_by_company_name(self, company_name: str, since: datetime, limit: int) -> List[Posting]:
        """Active postings whose company name contains `company_name` (case-insensitive)."""
        stmt = (
            select(Posting)
            .where(
                func.lower(Posting.company_name).contains(company_name.lower(), autoescape=True),
                Posting.status == 'active',
                Posting.created_at >= since,
            )
            .order_by(Posting.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_by_title_word(self, word: str, since: datetime, limit: int) -> List[Posting]:
        stmt = (
            select(Posting)
            .where(
                func.lower(Posting.title).contains(word.lower(), autoescape=True),
                Posting.status == 'active',
                Posting.created_at >= since,
            )
            .order_by(Posting.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def create(self, **fields) -> Posting:
        posting = Posting(**fields)
        self.db.add(posting)
        self.db.flush()  # Generate ID
        return posting

    def count_all(self) -> int:
        return self.db.execute(select(func.count(Posting.id))).scalar_one()

    def count_active(self) -> int:
        stmt = select(func.count(Posting.id)).where(Posting.status == 'active')
        return self.db.execute(stmt).scalar_one()

    def count_by_site(self) -> Dict[str, int]:
        stmt = select(Posting.source_site, func.count(Posting.id)).group_by(Posting.source_site)
        return {site: count for site, count in self.db.execute(stmt).all()}

    def last_activity_at(self) -> Optional[datetime]:
        return self.db.execute(select(func.max(Posting.updated_at))).scalar_one_or_none()
