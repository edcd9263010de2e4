"""Cache Module - Caching services."""
from core.cache.extraction_cache import ExtractionCache, CACHE_TTL_SECONDS

__all__ = ['ExtractionCache', 'CACHE_TTL_SECONDS']
