from .base import Base, JSONType
from .company import Company, CompanySourceCache, CompanyScore
from .posting import Posting

__all__ = [
    'Base',
    'JSONType',
    'Company',
    'CompanySourceCache',
    'CompanyScore',
    'Posting',
]
