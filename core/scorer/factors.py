"""
Factor Scoring - 24 deterministic factor functions on a 0-10 scale.

Each factor is a keyword-overlap ratio scaled into 0-10 plus small fixed
adjustments for qualitative signals (work model, company age, size, industry).
All keyword matching is case-insensitive substring matching.
"""
from typing import Callable, Dict, Iterable, Optional

from core.scorer.models import CompanyAttributes, FACTOR_NAMES

# Developer experience
MODERN_TECHS = (
    'react', 'vue.js', 'angular', 'node.js', 'typescript', 'go', 'rust', 'kotlin', 'swift',
    'docker', 'kubernetes', 'aws', 'azure', 'google cloud', 'graphql', 'postgresql', 'mongodb',
    'redis', 'elasticsearch', 'kafka', 'microservices', 'serverless',
)
CUTTING_EDGE_TECHS = ('rust', 'go', 'graphql', 'kubernetes', 'serverless')
PRACTICE_KEYWORDS = (
    'agile', 'scrum', 'ci/cd', 'continuous integration', 'testing', 'code review',
    'pair programming', 'tdd', 'bdd', 'devops', 'automation',
)
TOOL_KEYWORDS = (
    'github', 'gitlab', 'jenkins', 'docker', 'kubernetes', 'aws', 'azure',
    'monitoring', 'logging', 'metrics', 'observability',
)
TECH_CULTURE_KEYWORDS = (
    'innovation', 'learning', 'growth', 'technical excellence', 'engineering',
    'open source', 'conferences', 'tech talks', 'knowledge sharing',
)

# Culture & values
POSITIVE_VALUES = (
    'collaboration', 'teamwork', 'respect', 'diversity', 'inclusion',
    'transparency', 'integrity', 'innovation', 'learning', 'growth',
)
ENVIRONMENT_KEYWORDS = (
    'collaborative', 'supportive', 'inclusive', 'friendly', 'open',
    'creative', 'innovative', 'flexible', 'positive',
)
LEADERSHIP_KEYWORDS = (
    'leadership', 'vision', 'mission', 'strategy', 'guidance',
    'mentorship', 'coaching', 'development', 'empowerment',
)
TRANSPARENCY_KEYWORDS = (
    'transparency', 'open', 'communication', 'feedback', 'honest',
    'clear', 'straightforward', 'direct',
)

# Growth opportunities
CAREER_KEYWORDS = (
    'career', 'advancement', 'promotion', 'growth', 'development',
    'progression', 'path', 'opportunity', 'leadership',
)
LEARNING_KEYWORDS = (
    'training', 'education', 'learning', 'course', 'certification',
    'conference', 'workshop', 'development budget', 'skill development',
)
MENTORSHIP_KEYWORDS = (
    'mentor', 'mentoring', 'mentorship', 'coaching', 'guidance',
    'buddy system', 'onboarding', 'senior developer',
)
SKILL_KEYWORDS = (
    'skill development', 'learning', 'training', 'upskilling',
    'reskilling', 'professional development', 'tech talks', 'hackathon',
)

# Compensation & benefits
HIGH_PAYING_INDUSTRIES = ('Financial Technology', 'Finance', 'Tech', 'Consulting')
SALARY_KEYWORDS = ('competitive salary', 'market rate', 'bonus', 'equity', 'stock options')
EQUITY_KEYWORDS = (
    'equity', 'stock options', 'shares', 'ownership', 'profit sharing',
    'employee stock', 'vesting', 'rsu', 'espp',
)
ESSENTIAL_BENEFITS = (
    'health insurance', 'dental', 'life insurance', 'disability insurance',
    'retirement', 'pension', '401k',
)
PREMIUM_BENEFITS = (
    'additional health insurance', 'supplemental insurance', 'vision',
    'mental health', 'wellness', 'family coverage',
)
PERK_KEYWORDS = (
    'free lunch', 'free breakfast', 'snacks', 'coffee', 'kitchen',
    'gym', 'fitness', 'sports', 'massage', 'game room', 'parking',
    'team building', 'parties', 'events', 'office perks',
)

# Work-life balance
FLEXIBILITY_KEYWORDS = (
    'flexible hours', 'flexible working', 'work from home', 'remote work',
    'flexible schedule', 'core hours', 'flexi time',
)
TIME_OFF_KEYWORDS = (
    'vacation', 'annual leave', 'paid time off', 'pto', 'holidays',
    'sabbatical', 'unlimited vacation', 'flexible time off',
)
WORKLOAD_POSITIVE = ('work life balance', 'reasonable hours', 'no overtime')
WORKLOAD_NEGATIVE = ('crunch', 'long hours', 'overtime', 'demanding')
WELLNESS_KEYWORDS = (
    'wellness', 'mental health', 'fitness', 'gym', 'health',
    'wellbeing', 'mindfulness', 'stress', 'support', 'counseling',
)

# Company stability
RISK_INDUSTRIES = ('Technology', 'Software', 'Social Media')
STABLE_INDUSTRIES = ('Healthcare', 'Finance', 'Government')

LARGE_SIZES = ('large', 'enterprise')


def _clamp(score: float) -> float:
    return max(0.0, min(10.0, score))


def _text(*parts: Optional[Iterable[str]]) -> str:
    """Join lists into one lower-cased haystack (lists separated by a space)."""
    return ' '.join(' '.join(part or []) for part in parts).lower()


def _count(keywords: Iterable[str], haystack: str) -> int:
    return sum(1 for keyword in keywords if keyword in haystack)


def _ratio_score(keywords, haystack: str, scale: float) -> float:
    return min(10.0, _count(keywords, haystack) / len(keywords) * scale)


def _industry_matches(attrs: CompanyAttributes, names: Iterable[str]) -> bool:
    industry = (attrs.industry or '').lower()
    return any(name.lower() in industry for name in names)


def _company_age(attrs: CompanyAttributes, reference_year: int) -> Optional[int]:
    if not attrs.founded:
        return None
    return reference_year - attrs.founded


# --- Developer experience ---

def tech_innovation(attrs: CompanyAttributes, reference_year: int) -> float:
    techs = [tech.lower() for tech in attrs.technologies or []]
    matches = sum(1 for tech in techs if any(modern in tech for modern in MODERN_TECHS))
    cutting_edge = sum(1 for tech in techs if any(c in tech for c in CUTTING_EDGE_TECHS))
    score = min(10.0, matches / len(MODERN_TECHS) * 20)
    return _clamp(score + cutting_edge * 0.5)


def development_practices(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(PRACTICE_KEYWORDS, _text(attrs.values), 15))


def tools_and_infrastructure(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(TOOL_KEYWORDS, _text(attrs.technologies), 12))


def tech_culture_maturity(attrs: CompanyAttributes, reference_year: int) -> float:
    score = _ratio_score(TECH_CULTURE_KEYWORDS, _text(attrs.values, attrs.benefits), 15)
    benefits = [b.lower() for b in attrs.benefits or []]
    for keyword in ('conference', 'training', 'certification'):
        if any(keyword in b for b in benefits):
            score += 1
    return _clamp(score)


# --- Culture & values ---

def culture_alignment(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(POSITIVE_VALUES, _text(attrs.values), 12))


def work_environment(attrs: CompanyAttributes, reference_year: int) -> float:
    score = _ratio_score(ENVIRONMENT_KEYWORDS, _text(attrs.values), 12)
    if attrs.work_model in ('remote', 'hybrid'):
        score += 1
    return _clamp(score)


def leadership(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(LEADERSHIP_KEYWORDS, _text(attrs.values), 15))


def transparency(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(TRANSPARENCY_KEYWORDS, _text(attrs.values), 15))


# --- Growth opportunities ---

def career_advancement(attrs: CompanyAttributes, reference_year: int) -> float:
    score = _ratio_score(CAREER_KEYWORDS, _text(attrs.benefits), 15)
    if attrs.size in LARGE_SIZES:
        score += 1
    if attrs.size == 'startup':
        score -= 0.5
    return _clamp(score)


def learning_support(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(LEARNING_KEYWORDS, _text(attrs.benefits), 15))


def mentorship(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(MENTORSHIP_KEYWORDS, _text(attrs.benefits), 20))


def skill_development(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(SKILL_KEYWORDS, _text(attrs.benefits, attrs.values), 15))


# --- Compensation & benefits ---

def salary_competitiveness(attrs: CompanyAttributes, reference_year: int) -> float:
    score = 6.0
    if _industry_matches(attrs, HIGH_PAYING_INDUSTRIES):
        score += 1
    if attrs.size in LARGE_SIZES:
        score += 1
    if attrs.size == 'startup':
        score -= 0.5
    score += _count(SALARY_KEYWORDS, _text(attrs.benefits)) * 0.5
    return _clamp(score)


def equity_participation(attrs: CompanyAttributes, reference_year: int) -> float:
    matches = _count(EQUITY_KEYWORDS, _text(attrs.benefits))
    score = min(10.0, matches / len(EQUITY_KEYWORDS) * 20)
    if attrs.size == 'startup' and matches > 0:
        score += 2
    return _clamp(score)


def benefits_quality(attrs: CompanyAttributes, reference_year: int) -> float:
    haystack = _text(attrs.benefits)
    essential = _count(ESSENTIAL_BENEFITS, haystack) / len(ESSENTIAL_BENEFITS) * 6
    premium = _count(PREMIUM_BENEFITS, haystack) / len(PREMIUM_BENEFITS) * 4
    return _clamp(essential + premium)


def perks_value(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(PERK_KEYWORDS, _text(attrs.benefits), 15))


# --- Work-life balance ---

def work_flexibility(attrs: CompanyAttributes, reference_year: int) -> float:
    score = 5.0
    if attrs.work_model == 'remote':
        score += 3
    elif attrs.work_model == 'hybrid':
        score += 2
    score += _count(FLEXIBILITY_KEYWORDS, _text(attrs.benefits)) * 0.8
    return _clamp(score)


def time_off_policy(attrs: CompanyAttributes, reference_year: int) -> float:
    haystack = _text(attrs.benefits)
    score = _ratio_score(TIME_OFF_KEYWORDS, haystack, 15)
    if '25' in haystack or '30' in haystack:
        score += 1
    if 'unlimited' in haystack:
        score += 2
    return _clamp(score)


def workload_management(attrs: CompanyAttributes, reference_year: int) -> float:
    haystack = _text(attrs.benefits, attrs.values)
    score = 7.0
    score += _count(WORKLOAD_POSITIVE, haystack) * 1
    score -= _count(WORKLOAD_NEGATIVE, haystack) * 2
    return _clamp(score)


def wellness_support(attrs: CompanyAttributes, reference_year: int) -> float:
    return _clamp(_ratio_score(WELLNESS_KEYWORDS, _text(attrs.benefits), 15))


# --- Company stability ---

def financial_stability(attrs: CompanyAttributes, reference_year: int) -> float:
    score = 6.0
    age = _company_age(attrs, reference_year)
    if age is not None:
        if age >= 20:
            score += 2
        elif age >= 10:
            score += 1
        elif age >= 5:
            score += 0.5
        elif age < 2:
            score -= 1

    if attrs.size == 'enterprise':
        score += 2
    elif attrs.size == 'large':
        score += 1
    elif attrs.size == 'startup':
        score -= 1
    return _clamp(score)


def market_position(attrs: CompanyAttributes, reference_year: int) -> float:
    score = 6.0
    score += min(2.0, len(attrs.awards or []) * 0.5)
    if attrs.employee_count:
        if attrs.employee_count > 1000:
            score += 2
        elif attrs.employee_count > 500:
            score += 1
        elif attrs.employee_count > 100:
            score += 0.5
    return _clamp(score)


def growth_trajectory(attrs: CompanyAttributes, reference_year: int) -> float:
    score = 6.0
    openings = attrs.job_openings or 0
    if openings > 10:
        score += 2
    elif openings > 5:
        score += 1
    elif openings > 0:
        score += 0.5

    age = _company_age(attrs, reference_year)
    if age is not None:
        if 2 <= age <= 7:
            score += 1
        elif age < 2:
            score += 0.5
    return _clamp(score)


def layoff_risk(attrs: CompanyAttributes, reference_year: int) -> float:
    """Higher is safer."""
    score = 7.0
    if attrs.size in LARGE_SIZES:
        score += 1
    elif attrs.size == 'startup':
        score -= 2

    if _industry_matches(attrs, RISK_INDUSTRIES):
        score -= 0.5
    if _industry_matches(attrs, STABLE_INDUSTRIES):
        score += 0.5
    return _clamp(score)


FACTOR_FUNCTIONS: Dict[str, Callable[[CompanyAttributes, int], float]] = {
    "tech_innovation": tech_innovation,
    "development_practices": development_practices,
    "tools_and_infrastructure": tools_and_infrastructure,
    "tech_culture_maturity": tech_culture_maturity,
    "culture_alignment": culture_alignment,
    "work_environment": work_environment,
    "leadership": leadership,
    "transparency": transparency,
    "career_advancement": career_advancement,
    "learning_support": learning_support,
    "mentorship": mentorship,
    "skill_development": skill_development,
    "salary_competitiveness": salary_competitiveness,
    "equity_participation": equity_participation,
    "benefits_quality": benefits_quality,
    "perks_value": perks_value,
    "work_flexibility": work_flexibility,
    "time_off_policy": time_off_policy,
    "workload_management": workload_management,
    "wellness_support": wellness_support,
    "financial_stability": financial_stability,
    "market_position": market_position,
    "growth_trajectory": growth_trajectory,
    "layoff_risk": layoff_risk,
}


def calculate_factor_scores(attrs: CompanyAttributes, reference_year: int) -> Dict[str, float]:
    """Compute all 24 factors in canonical order."""
    return {name: FACTOR_FUNCTIONS[name](attrs, reference_year) for name in FACTOR_NAMES}
