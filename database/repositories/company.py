import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, func

from core.utils import utcnow
from database.models import Company
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

# Fields a company analysis may fill in; existing values are never replaced
BASIC_INFO_FIELDS = (
    'name', 'description', 'industry', 'location', 'website',
    'size', 'founded', 'employee_count',
)


class CompanyRepository(BaseRepository):
    def get_by_id(self, company_id: Any) -> Optional[Company]:
        return self.db.get(Company, company_id)

    def find_by_name(self, name: str) -> Optional[Company]:
        stmt = (
            select(Company)
            .where(func.lower(Company.name) == name.strip().lower())
            .order_by(Company.created_at)
        )
        return self.db.execute(stmt).scalars().first()

    def get_or_create(self, name: str) -> Tuple[Company, bool]:
        """Return (company, created)."""
        existing = self.find_by_name(name)
        if existing:
            return existing, False

        company = Company(name=name.strip())
        self.db.add(company)
        self.db.flush()
        logger.info(f"Created company {company.name} ({company.id})")
        return company, True

    def update_basic_info(self, company: Company, info: Dict[str, Any]) -> Dict[str, Any]:
        """Fill empty basic fields from `info`; returns the fields that changed."""
        changed = {}
        for field_name in BASIC_INFO_FIELDS:
            value = info.get(field_name)
            if value in (None, ""):
                continue
            if getattr(company, field_name) in (None, ""):
                setattr(company, field_name, value)
                changed[field_name] = value

        if changed:
            company.updated_at = utcnow()
            self.db.flush()
        return changed

    def count(self) -> int:
        return self.db.execute(select(func.count(Company.id))).scalar_one()
