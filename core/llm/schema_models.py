"""
Pydantic models for JSON schemas used in AI extractions.

This module provides:
1. Type-safe Python models for vacancy and company extraction
2. Runtime JSON schema generation for OpenAI structured output
3. Conversion of a company analysis into scoring attributes

All schemas follow OpenAI's structured output requirements with strict validation.
"""
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict

from core.scorer.models import CompanyAttributes
from core.scorer.weights import canonical_industry
from core.utils import normalize_technologies


# ============================================================================
# VACANCY EXTRACTION
# ============================================================================

class VacancyExtraction(BaseModel):
    """Structured data extracted from a single job posting page."""
    model_config = ConfigDict(extra='forbid')

    title: Optional[str] = Field(description="Job title as stated")
    company: Optional[str] = Field(description="Hiring company name")
    location: Optional[str] = Field(description="City or region of the job")
    salary_min: Optional[int] = Field(description="Lower bound of the salary range")
    salary_max: Optional[int] = Field(description="Upper bound of the salary range")
    currency: Optional[str] = Field(description="ISO 4217 currency code, e.g. BGN or EUR")
    experience_level: Optional[Literal["intern", "junior", "mid", "senior", "lead", "principal"]] = Field(
        description="Seniority level"
    )
    employment_type: Optional[Literal["full-time", "part-time", "contract", "internship"]] = Field(
        description="Employment type"
    )
    work_model: Optional[Literal["remote", "hybrid", "office"]] = Field(description="Where the work happens")
    description: Optional[str] = Field(description="Short summary of the role")
    requirements: List[str] = Field(description="Required qualifications, one per item")
    responsibilities: List[str] = Field(description="Responsibilities, one per item")
    technologies: List[str] = Field(description="Technologies, tools and frameworks mentioned")
    benefits: List[str] = Field(description="Benefits and perks mentioned")
    confidence_score: int = Field(description="0-100 confidence in the extraction")
    quality_score: int = Field(description="0-100 quality of the posting itself")


# ============================================================================
# COMPANY ANALYSIS
# ============================================================================

class CompanyAnalysis(BaseModel):
    """Company facts extracted from a job-board profile or a company website."""
    model_config = ConfigDict(extra='forbid')

    name: Optional[str] = Field(description="Company name")
    description: Optional[str] = Field(description="What the company does")
    industry: Optional[str] = Field(description="Primary industry, e.g. fintech, healthcare, gaming")
    size: Optional[Literal["startup", "small", "medium", "large", "enterprise"]] = Field(
        description="Company size bucket"
    )
    location: Optional[str] = Field(description="Headquarters or main office location")
    website: Optional[str] = Field(description="Official company website URL")
    employee_count: Optional[int] = Field(description="Number of employees if stated")
    founded: Optional[int] = Field(description="Founding year if stated")
    work_model: Optional[Literal["remote", "hybrid", "office"]] = Field(description="Predominant work model")
    technologies: List[str] = Field(description="Technologies the company uses")
    benefits: List[str] = Field(description="Employee benefits and perks")
    values: List[str] = Field(description="Stated company values and culture traits")
    awards: List[str] = Field(description="Awards and recognitions")
    job_openings: Optional[int] = Field(description="Number of open positions listed")
    data_completeness: int = Field(description="0-100 share of the fields above that the source covered")
    source_reliability: int = Field(description="0-100 reliability of the source page")

    def to_attributes(self) -> CompanyAttributes:
        return CompanyAttributes(
            company_name=self.name or "",
            industry=canonical_industry(self.industry),
            size=self.size,
            founded=self.founded,
            employee_count=self.employee_count,
            location=self.location,
            website=self.website,
            description=self.description,
            technologies=normalize_technologies(self.technologies),
            benefits=list(self.benefits),
            values=list(self.values),
            awards=list(self.awards),
            work_model=self.work_model,
            job_openings=self.job_openings or 0,
            data_completeness=float(self.data_completeness),
            source_reliability=float(self.source_reliability),
        )


VACANCY_EXTRACTION_SCHEMA = {
    "name": "vacancy_extraction",
    "strict": True,
    "schema": VacancyExtraction.model_json_schema()
}

COMPANY_ANALYSIS_SCHEMA = {
    "name": "company_analysis",
    "strict": True,
    "schema": CompanyAnalysis.model_json_schema()
}
