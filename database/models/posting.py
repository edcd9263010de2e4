import uuid

from sqlalchemy import Column, Integer, Text, Boolean, ForeignKey, DateTime, UniqueConstraint, Index, Uuid
from sqlalchemy.orm import relationship

from core.utils import utcnow
from .base import Base, JSONType


class Posting(Base):
    __tablename__ = 'posting'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey('company.id', ondelete='SET NULL'), nullable=True)

    # Core Identity
    title = Column(Text, nullable=False)
    company_name = Column(Text, nullable=False)
    location = Column(Text)
    posted_at = Column(DateTime(timezone=True))

    # First sighting
    source_site = Column(Text, nullable=False)
    source_url = Column(Text, nullable=False)
    external_id = Column(Text)

    # Cross-source identity: {site: external_id}
    external_ids = Column(JSONType, nullable=False, default=dict)
    # Provenance: {site: {"lastSeenAt", "url", "originalId"}}
    scraped_sites = Column(JSONType, nullable=False, default=dict)

    status = Column(Text, nullable=False, default='active')  # active|duplicate|inactive

    # Content
    description = Column(Text)
    technologies = Column(JSONType, nullable=False, default=list)  # lower-cased, trimmed
    salary_text = Column(Text)
    salary_min = Column(Integer)
    salary_max = Column(Integer)
    currency = Column(Text)

    # Enrichment
    content_hash = Column(Text)
    is_extracted = Column(Boolean, nullable=False, default=False)
    extraction_data = Column(JSONType)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Optimistic lock: concurrent merges into one row raise StaleDataError
    version = Column(Integer, nullable=False)

    company = relationship("Company", back_populates="postings")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint('source_url', name='uq_posting_source_url'),
        Index('idx_posting_created', 'created_at'),
        Index('idx_posting_status', 'status'),
        Index('idx_posting_company_name', 'company_name'),
        Index('idx_posting_source_site', 'source_site'),
        Index('idx_posting_content_hash', 'content_hash'),
    )
