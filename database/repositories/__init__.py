from sqlalchemy.orm import Session

from database.repositories.base import BaseRepository
from database.repositories.posting import PostingRepository
from database.repositories.company import CompanyRepository
from database.repositories.company_source import CompanySourceRepository
from database.repositories.company_score import CompanyScoreRepository


class PipelineRepository(BaseRepository):
    """Groups the per-table repositories that share one Session."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.postings = PostingRepository(db)
        self.companies = CompanyRepository(db)
        self.sources = CompanySourceRepository(db)
        self.scores = CompanyScoreRepository(db)


__all__ = [
    'BaseRepository',
    'PipelineRepository',
    'PostingRepository',
    'CompanyRepository',
    'CompanySourceRepository',
    'CompanyScoreRepository',
]
