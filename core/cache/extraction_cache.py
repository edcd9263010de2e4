"""Extraction Cache - Redis cache for AI extraction results."""
import json
import logging
from typing import Optional, Dict, Any
from urllib.parse import urlparse

from redis import Redis

from core.utils import ContentHasher, utcnow

logger = logging.getLogger(__name__)

# 1 week in seconds
CACHE_TTL_SECONDS = 7 * 24 * 60 * 60
KEY_PREFIX = "extraction:"


def _sanitize_url(url: str) -> str:
    """Remove credentials from URL for safe logging."""
    parsed = urlparse(url)
    if parsed.password:
        sanitized = parsed._replace(
            netloc=f"{parsed.username or ''}:*@{parsed.hostname}:{parsed.port or 6379}"
        )
        return sanitized.geturl()
    return url


class ExtractionCache:
    """
    Caches AI vacancy extractions by content hash so identical pages are
    never sent to the model twice.

    Every operation degrades to a no-op (with a warning) when Redis is
    unreachable; the cache is never a reason for a job to fail.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        password: Optional[str] = None,
        ttl_seconds: int = CACHE_TTL_SECONDS
    ):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self._redis: Optional[Redis] = None
        self._available = False

        try:
            self._redis = Redis.from_url(
                redis_url,
                password=password,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5
            )
            self._redis.ping()
            self._available = True
            logger.info(f"Extraction cache connected to Redis at {_sanitize_url(redis_url)}")
        except Exception as e:
            logger.warning(f"Extraction cache Redis unavailable: {e}")
            self._redis = None
            self._available = False

    @property
    def is_available(self) -> bool:
        if not self._available or not self._redis:
            return False
        try:
            return bool(self._redis.ping())
        except Exception:
            return False

    @staticmethod
    def make_key(content_hash: str) -> str:
        return f"{KEY_PREFIX}{content_hash}"

    def get(self, content_hash: str) -> Optional[Dict[str, Any]]:
        """Cached extraction for a content hash, or None on miss."""
        if not self.is_available:
            return None

        try:
            raw = self._redis.get(self.make_key(content_hash))
            if not raw:
                logger.debug(f"Cache miss for extraction {ContentHasher.short(content_hash)}...")
                return None
            logger.debug(f"Cache hit for extraction {ContentHasher.short(content_hash)}...")
            return json.loads(raw).get("data")
        except Exception as e:
            logger.warning(f"Error reading from extraction cache: {e}")
            return None

    def set(self, content_hash: str, data: Dict[str, Any], ttl_seconds: Optional[int] = None) -> bool:
        if not self.is_available:
            return False

        ttl = ttl_seconds or self.ttl_seconds
        cache_entry = {
            "data": data,
            "cached_at": utcnow().isoformat(),
            "ttl_seconds": ttl,
        }
        try:
            self._redis.setex(self.make_key(content_hash), ttl, json.dumps(cache_entry))
            logger.debug(f"Cached extraction {ContentHasher.short(content_hash)}... (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.warning(f"Error writing to extraction cache: {e}")
            return False

    def delete(self, content_hash: str) -> bool:
        if not self.is_available:
            return False
        try:
            self._redis.delete(self.make_key(content_hash))
            return True
        except Exception as e:
            logger.warning(f"Error deleting from extraction cache: {e}")
            return False

    def get_cache_stats(self) -> Dict[str, Any]:
        if not self.is_available:
            return {"available": False}

        try:
            info = self._redis.info()
            key_count = 0
            cursor = 0
            while True:
                cursor, keys = self._redis.scan(cursor=cursor, match=f"{KEY_PREFIX}*", count=1000)
                key_count += len(keys)
                if cursor == 0:
                    break
            return {
                "available": True,
                "used_memory_human": info.get("used_memory_human", "unknown"),
                "extraction_keys": key_count,
                "ttl_seconds": self.ttl_seconds,
            }
        except Exception as e:
            logger.warning(f"Error getting cache stats: {e}")
            return {"available": False, "error": str(e)}
