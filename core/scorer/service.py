#!/usr/bin/env python3
"""
Company Scoring Engine - Weighted multi-factor company quality score.

Pipeline:
1. 24 raw factor scores (0-10) from extracted company attributes
2. 6 category scores, each the mean of its 4 factors
3. Category weights from the default table, overridden by industry then size,
   renormalized to sum to 1.0
4. overall = round(sum(category * weight) * 10) on a 0-100 scale
5. Strengths, concerns and recommendations from the factor scores
6. Confidence from data completeness, source reliability and structured data

The engine is pure: identical input yields identical output. Pass
`reference_year` to pin the company-age brackets.
"""

import dataclasses
import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional

from core.scorer.factors import calculate_factor_scores
from core.scorer.models import (
    CATEGORY_FACTORS,
    CATEGORY_NAMES,
    CompanyAttributes,
    CompanyScoreResult,
    SCORING_VERSION,
)
from core.scorer.weights import canonical_size, get_adjusted_weights

logger = logging.getLogger(__name__)

STRENGTH_THRESHOLD = 8.0
CONCERN_THRESHOLD = 5.0
RECOMMENDATION_THRESHOLD = 6.0
MAX_INSIGHTS = 5

STRENGTH_DESCRIPTIONS: Dict[str, str] = {
    "tech_innovation": "Cutting-edge technology stack and modern development practices",
    "development_practices": "Strong software development methodologies and processes",
    "tools_and_infrastructure": "Excellent development tools and infrastructure",
    "tech_culture_maturity": "Mature technical culture with focus on engineering excellence",
    "culture_alignment": "Strong cultural values alignment with developer priorities",
    "work_environment": "Positive and collaborative work environment",
    "leadership": "Strong leadership and clear company vision",
    "transparency": "High level of transparency and open communication",
    "career_advancement": "Clear career advancement opportunities and growth paths",
    "learning_support": "Excellent professional development and learning support",
    "mentorship": "Strong mentorship programs and senior developer guidance",
    "skill_development": "Outstanding opportunities for skill development and learning",
    "salary_competitiveness": "Highly competitive salary and compensation packages",
    "equity_participation": "Attractive equity participation and ownership opportunities",
    "benefits_quality": "Comprehensive and high-quality benefits package",
    "perks_value": "Valuable workplace perks and additional benefits",
    "work_flexibility": "Excellent work flexibility and remote work options",
    "time_off_policy": "Generous time off and vacation policies",
    "workload_management": "Healthy work-life balance with reasonable workload",
    "wellness_support": "Strong focus on employee wellness and mental health",
    "financial_stability": "Excellent financial stability and business health",
    "market_position": "Strong market position and industry recognition",
    "growth_trajectory": "Positive growth trajectory and expansion opportunities",
    "layoff_risk": "Low layoff risk and high employment security",
}

CONCERN_DESCRIPTIONS: Dict[str, str] = {
    "tech_innovation": "Limited use of modern technologies and development practices",
    "development_practices": "Potential gaps in software development methodologies",
    "tools_and_infrastructure": "Development tools and infrastructure may need improvement",
    "tech_culture_maturity": "Technical culture and engineering practices could be enhanced",
    "culture_alignment": "Company culture may not fully align with developer values",
    "work_environment": "Work environment could be more collaborative or supportive",
    "leadership": "Leadership effectiveness or company vision may need strengthening",
    "transparency": "Communication transparency could be improved",
    "career_advancement": "Career advancement opportunities may be limited",
    "learning_support": "Professional development support could be enhanced",
    "mentorship": "Mentorship programs may be lacking or underdeveloped",
    "skill_development": "Skill development opportunities appear to be limited",
    "salary_competitiveness": "Compensation may not be competitive with market rates",
    "equity_participation": "Limited equity or ownership participation opportunities",
    "benefits_quality": "Benefits package may be basic or lacking key components",
    "perks_value": "Workplace perks and additional benefits appear minimal",
    "work_flexibility": "Work flexibility and remote work options may be limited",
    "time_off_policy": "Time off and vacation policies could be more generous",
    "workload_management": "Workload management and work-life balance may be challenging",
    "wellness_support": "Employee wellness and mental health support appears limited",
    "financial_stability": "Financial stability of the company may be a concern",
    "market_position": "Market position and industry recognition could be stronger",
    "growth_trajectory": "Growth trajectory and future opportunities may be uncertain",
    "layoff_risk": "Higher risk of layoffs or employment instability",
}

# Checked in order; each fires when its factor is below RECOMMENDATION_THRESHOLD.
RECOMMENDATION_RULES = [
    ("tech_innovation", "Consider adopting more modern technologies and development practices"),
    ("learning_support", "Invest in professional development programs and learning opportunities"),
    ("work_flexibility", "Implement more flexible work arrangements and remote work options"),
    ("benefits_quality", "Enhance the benefits package to be more competitive"),
    ("culture_alignment", "Focus on building a stronger, more inclusive company culture"),
]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class CompanyScoringEngine:
    """
    Deterministic company scorer.

    Usage:
        engine = CompanyScoringEngine(reference_year=2025)
        result = engine.score(attributes)
    """

    def __init__(self, reference_year: Optional[int] = None):
        self.reference_year = reference_year

    def score(self, attrs: CompanyAttributes) -> CompanyScoreResult:
        reference_year = self.reference_year or datetime.now(timezone.utc).year
        # Factor rules and the size table use lower-case size names
        attrs = dataclasses.replace(attrs, size=canonical_size(attrs.size))

        weights = get_adjusted_weights(attrs.industry, attrs.size)
        factors = calculate_factor_scores(attrs, reference_year)
        categories = self.calculate_category_scores(factors)
        overall = self.calculate_overall_score(categories, weights)

        result = CompanyScoreResult(
            overall_score=overall,
            factor_scores=factors,
            category_scores=categories,
            weights=weights,
            strengths=self.identify_strengths(factors),
            concerns=self.identify_concerns(factors),
            recommendations=self.generate_recommendations(factors),
            confidence_level=self.calculate_confidence_level(attrs),
            data_completeness=attrs.data_completeness,
            data_sources=self.get_data_sources(attrs),
            industry=attrs.industry,
            size=attrs.size,
            version=SCORING_VERSION,
        )

        logger.info(
            f"Score calculated for {attrs.company_name or 'unknown company'}: "
            f"{overall}/100 (confidence: {result.confidence_level}%)"
        )
        return result

    @staticmethod
    def calculate_category_scores(factors: Dict[str, float]) -> Dict[str, float]:
        return {
            category: sum(factors[name] for name in names) / len(names)
            for category, names in CATEGORY_FACTORS.items()
        }

    @staticmethod
    def calculate_overall_score(categories: Dict[str, float], weights: Dict[str, float]) -> int:
        weighted = sum(categories[name] * weights[name] for name in CATEGORY_NAMES)
        return max(0, min(100, round_half_up(weighted * 10)))

    @staticmethod
    def identify_strengths(factors: Dict[str, float]) -> List[str]:
        # sorted() is stable, so ties keep canonical factor order
        top = sorted(
            ((name, value) for name, value in factors.items() if value >= STRENGTH_THRESHOLD),
            key=lambda item: item[1],
            reverse=True,
        )[:MAX_INSIGHTS]
        return [STRENGTH_DESCRIPTIONS[name] for name, _ in top]

    @staticmethod
    def identify_concerns(factors: Dict[str, float]) -> List[str]:
        low = sorted(
            ((name, value) for name, value in factors.items() if value <= CONCERN_THRESHOLD),
            key=lambda item: item[1],
        )[:MAX_INSIGHTS]
        return [CONCERN_DESCRIPTIONS[name] for name, _ in low]

    @staticmethod
    def generate_recommendations(factors: Dict[str, float]) -> List[str]:
        recommendations = [
            text for name, text in RECOMMENDATION_RULES
            if factors[name] < RECOMMENDATION_THRESHOLD
        ]
        return recommendations[:MAX_INSIGHTS]

    @staticmethod
    def calculate_confidence_level(attrs: CompanyAttributes) -> int:
        confidence = (attrs.data_completeness or 0) * 0.7
        confidence += (attrs.source_reliability or 0) * 0.3
        if attrs.technologies:
            confidence += 5
        if attrs.benefits:
            confidence += 5
        if attrs.values:
            confidence += 5
        return max(0, min(100, round_half_up(confidence)))

    @staticmethod
    def get_data_sources(attrs: CompanyAttributes) -> List[str]:
        sources = ['structured_extraction']
        if attrs.glassdoor_rating:
            sources.append('glassdoor')
        if attrs.linkedin_followers:
            sources.append('linkedin')
        if attrs.github_activity:
            sources.append('github')
        return sources
