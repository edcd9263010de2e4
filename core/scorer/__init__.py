#!/usr/bin/env python3
"""
Scoring Module - Company quality scoring.

Public API:
- CompanyScoringEngine: Pure scoring function over company attributes
- CompanyAttributes: Scoring input extracted from a company profile/website
- CompanyScoreResult: Dataclass for the score, breakdown and insights

Modules:
- models.py: Data structures and the category -> factor layout
- factors.py: The 24 factor functions and their keyword lists
- weights.py: Default, industry and size weight tables
- service.py: CompanyScoringEngine orchestrator
"""

from core.scorer.models import CompanyAttributes, CompanyScoreResult
from core.scorer.service import CompanyScoringEngine

__all__ = ['CompanyScoringEngine', 'CompanyAttributes', 'CompanyScoreResult']
