#!/usr/bin/env python3
"""
Scoring Models - Data structures for company scoring input and results.
"""

from typing import List, Dict, Optional
from dataclasses import dataclass, field

SCORING_VERSION = "2025.1.0"

CATEGORY_FACTORS: Dict[str, List[str]] = {
    "developer_experience": [
        "tech_innovation",
        "development_practices",
        "tools_and_infrastructure",
        "tech_culture_maturity",
    ],
    "culture_and_values": [
        "culture_alignment",
        "work_environment",
        "leadership",
        "transparency",
    ],
    "growth_opportunities": [
        "career_advancement",
        "learning_support",
        "mentorship",
        "skill_development",
    ],
    "compensation_benefits": [
        "salary_competitiveness",
        "equity_participation",
        "benefits_quality",
        "perks_value",
    ],
    "work_life_balance": [
        "work_flexibility",
        "time_off_policy",
        "workload_management",
        "wellness_support",
    ],
    "company_stability": [
        "financial_stability",
        "market_position",
        "growth_trajectory",
        "layoff_risk",
    ],
}

CATEGORY_NAMES: List[str] = list(CATEGORY_FACTORS.keys())
FACTOR_NAMES: List[str] = [name for factors in CATEGORY_FACTORS.values() for name in factors]


@dataclass
class CompanyAttributes:
    """Company attributes extracted from a profile page or website.

    `data_completeness` and `source_reliability` are 0-100 quality indicators
    reported by the extractor.
    """
    company_name: str = ""
    industry: Optional[str] = None
    size: Optional[str] = None  # startup|small|medium|large|enterprise
    founded: Optional[int] = None
    employee_count: Optional[int] = None
    location: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None

    technologies: List[str] = field(default_factory=list)
    benefits: List[str] = field(default_factory=list)
    values: List[str] = field(default_factory=list)
    awards: List[str] = field(default_factory=list)
    work_model: Optional[str] = None  # remote|hybrid|office

    job_openings: int = 0

    glassdoor_rating: Optional[float] = None
    linkedin_followers: Optional[int] = None
    github_activity: Optional[int] = None

    data_completeness: float = 0.0
    source_reliability: float = 0.0


@dataclass
class CompanyScoreResult:
    """Complete company score with category breakdown and insights."""
    overall_score: int
    factor_scores: Dict[str, float]
    category_scores: Dict[str, float]
    weights: Dict[str, float]

    strengths: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    confidence_level: int = 0
    data_completeness: float = 0.0
    data_sources: List[str] = field(default_factory=list)
    industry: Optional[str] = None
    size: Optional[str] = None
    version: str = SCORING_VERSION
