import uuid

from sqlalchemy import Column, Integer, Float, Text, Boolean, ForeignKey, DateTime, UniqueConstraint, Index, Uuid
from sqlalchemy.orm import relationship

from core.utils import utcnow
from .base import Base, JSONType


class Company(Base):
    __tablename__ = 'company'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Looked up case-insensitively; see CompanyRepository.find_by_name
    name = Column(Text, nullable=False)

    # Profile data (filled from company analysis, never overwritten once set)
    industry = Column(Text)
    size = Column(Text)  # startup|small|medium|large|enterprise
    founded = Column(Integer)
    employee_count = Column(Integer)
    location = Column(Text)
    website = Column(Text)
    profile_url = Column(Text)
    description = Column(Text)
    work_model = Column(Text)  # remote|hybrid|office

    technologies = Column(JSONType, nullable=False, default=list)
    benefits = Column(JSONType, nullable=False, default=list)
    values = Column(JSONType, nullable=False, default=list)
    awards = Column(JSONType, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    postings = relationship("Posting", back_populates="company")
    sources = relationship("CompanySourceCache", back_populates="company", cascade="all, delete-orphan")
    scores = relationship("CompanyScore", back_populates="company", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_company_name', 'name'),
    )


class CompanySourceCache(Base):
    """
    Freshness record for one (company, source site) pair.

    Updated on every fetch attempt; `is_valid` is False after a failed fetch.
    """
    __tablename__ = 'company_source'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey('company.id', ondelete='CASCADE'), nullable=False)

    source_site = Column(Text, nullable=False)
    source_url = Column(Text, nullable=False)
    last_scraped_at = Column(DateTime(timezone=True))
    is_valid = Column(Boolean, nullable=False, default=True)
    invalid_reason = Column(Text)
    content_hash = Column(Text)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    company = relationship("Company", back_populates="sources")

    __table_args__ = (
        UniqueConstraint('company_id', 'source_site', name='uq_company_source_company_site'),
        Index('idx_company_source_scraped', 'last_scraped_at'),
    )


class CompanyScore(Base):
    """One row per completed analysis; the latest by scored_at is current."""
    __tablename__ = 'company_score'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey('company.id', ondelete='CASCADE'), nullable=False)

    overall_score = Column(Integer, nullable=False)
    category_scores = Column(JSONType, nullable=False, default=dict)
    factor_scores = Column(JSONType, nullable=False, default=dict)
    weights = Column(JSONType, nullable=False, default=dict)

    strengths = Column(JSONType, nullable=False, default=list)
    concerns = Column(JSONType, nullable=False, default=list)
    recommendations = Column(JSONType, nullable=False, default=list)

    confidence_level = Column(Integer, nullable=False, default=0)
    data_completeness = Column(Float)
    data_sources = Column(JSONType, nullable=False, default=list)
    scoring_version = Column(Text, nullable=False)
    analysis_source = Column(Text)

    scored_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    company = relationship("Company", back_populates="scores")

    __table_args__ = (
        Index('idx_company_score_company_scored', 'company_id', 'scored_at'),
    )
