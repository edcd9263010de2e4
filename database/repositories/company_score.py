from typing import Any, Optional

from sqlalchemy import select

from core.scorer.models import CompanyScoreResult
from database.models import CompanyScore
from database.repositories.base import BaseRepository


class CompanyScoreRepository(BaseRepository):
    def add(self, company_id: Any, result: CompanyScoreResult, analysis_source: Optional[str] = None) -> CompanyScore:
        score = CompanyScore(
            company_id=company_id,
            overall_score=result.overall_score,
            category_scores=dict(result.category_scores),
            factor_scores=dict(result.factor_scores),
            weights=dict(result.weights),
            strengths=list(result.strengths),
            concerns=list(result.concerns),
            recommendations=list(result.recommendations),
            confidence_level=result.confidence_level,
            data_completeness=result.data_completeness,
            data_sources=list(result.data_sources),
            scoring_version=result.version,
            analysis_source=analysis_source,
        )
        self.db.add(score)
        self.db.flush()
        return score

    def latest(self, company_id: Any) -> Optional[CompanyScore]:
        stmt = (
            select(CompanyScore)
            .where(CompanyScore.company_id == company_id)
            .order_by(CompanyScore.scored_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()
