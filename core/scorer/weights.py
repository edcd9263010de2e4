"""Category weight tables and industry/size adjustment."""
from typing import Dict, Optional

from core.scorer.models import CATEGORY_NAMES

DEFAULT_WEIGHTS: Dict[str, float] = {
    "developer_experience": 0.25,
    "culture_and_values": 0.20,
    "growth_opportunities": 0.20,
    "compensation_benefits": 0.15,
    "work_life_balance": 0.15,
    "company_stability": 0.05,
}

INDUSTRY_WEIGHT_ADJUSTMENTS: Dict[str, Dict[str, float]] = {
    "Financial Technology": {
        "compensation_benefits": 0.20,
        "company_stability": 0.10,
    },
    "Gaming": {
        "developer_experience": 0.30,
        "work_life_balance": 0.10,
    },
    "Consulting": {
        "growth_opportunities": 0.25,
        "work_life_balance": 0.10,
    },
    "Healthcare": {
        "company_stability": 0.10,
        "culture_and_values": 0.25,
    },
}

# Common spellings an extractor may return, mapped onto the table keys
INDUSTRY_ALIASES: Dict[str, str] = {
    "fintech": "Financial Technology",
    "financial technology": "Financial Technology",
    "gaming": "Gaming",
    "game development": "Gaming",
    "consulting": "Consulting",
    "it consulting": "Consulting",
    "healthcare": "Healthcare",
    "health care": "Healthcare",
    "healthtech": "Healthcare",
}

SIZE_WEIGHT_ADJUSTMENTS: Dict[str, Dict[str, float]] = {
    "startup": {
        "company_stability": 0.02,
        "growth_opportunities": 0.25,
    },
    "enterprise": {
        "company_stability": 0.10,
        "work_life_balance": 0.20,
    },
}


def canonical_industry(industry: Optional[str]) -> Optional[str]:
    """Map known spellings (case-insensitive) to the weight-table name; others pass through trimmed."""
    if not industry or not industry.strip():
        return None
    name = industry.strip()
    return INDUSTRY_ALIASES.get(name.lower(), name)


def canonical_size(size: Optional[str]) -> Optional[str]:
    if not size or not size.strip():
        return None
    return size.strip().lower()


def get_adjusted_weights(industry: Optional[str], size: Optional[str]) -> Dict[str, float]:
    """
    Default weights, overridden by the industry table then the size table,
    renormalized so the six weights sum to 1.0.
    """
    weights = dict(DEFAULT_WEIGHTS)
    weights.update(INDUSTRY_WEIGHT_ADJUSTMENTS.get(canonical_industry(industry) or "", {}))
    weights.update(SIZE_WEIGHT_ADJUSTMENTS.get(canonical_size(size) or "", {}))

    total = sum(weights[name] for name in CATEGORY_NAMES)
    return {name: weights[name] / total for name in CATEGORY_NAMES}
