import hashlib
import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# "3000 - 5000 BGN", "2 500–4 000 лв", "4000-6000 EUR"
SALARY_RANGE_PATTERN = re.compile(r'(\d+[\d,\s]*)\s*[-–]\s*(\d+[\d,\s]*)\s*([A-Z]{3}|лв|лева)?')
DEFAULT_CURRENCY = "BGN"


class ContentHasher:
    """
    Pure logic for content hashing used in change detection and caching.
    """

    @staticmethod
    def calculate(content: Optional[str]) -> str:
        """SHA256 hex digest of the given content (empty string for None)."""
        return hashlib.sha256((content or "").encode('utf-8')).hexdigest()

    @staticmethod
    def short(content_hash: str, length: int = 16) -> str:
        return content_hash[:length]


def normalize_technologies(technologies: Optional[Iterable[Any]]) -> List[str]:
    """
    Lower-case, trim and de-duplicate technology names, keeping first-seen order.

    Accepts any iterable; None and blank entries are dropped.
    """
    if not technologies:
        return []
    if isinstance(technologies, str):
        technologies = technologies.split(',')

    seen = set()
    result = []
    for tech in technologies:
        if tech is None:
            continue
        name = str(tech).strip().lower()
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def union_technologies(existing: Optional[Iterable[str]], incoming: Optional[Iterable[str]]) -> List[str]:
    """Union of two technology lists, existing order first."""
    return normalize_technologies(list(existing or []) + list(incoming or []))


def normalize_location(location: Any) -> str:
    """
    Normalize location data which can be a dict, string, or list.
    """
    location_text = ""
    if isinstance(location, dict):
        location_text = location.get('addressLocality') or location.get('city') or location.get('country') or ""
        if isinstance(location_text, list):
            location_text = location_text[0] if location_text else ""
    elif isinstance(location, (list, tuple)):
        location_text = ", ".join(str(part) for part in location if part)
    elif isinstance(location, str):
        location_text = location
    return str(location_text).strip()


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_amount(raw: str) -> Optional[int]:
    digits = re.sub(r'[,\s]', '', raw)
    return int(digits) if digits.isdigit() else None


def parse_salary_range(salary_text: Optional[str]) -> Tuple[Optional[int], Optional[int], Optional[str]]:
    """
    Parse a free-text salary range into (min, max, currency).

    Returns (None, None, None) when no range is present. Bulgarian lev
    spellings map to BGN, and BGN is assumed when no currency is given.
    """
    if not salary_text:
        return None, None, None

    match = SALARY_RANGE_PATTERN.search(salary_text)
    if not match:
        return None, None, None

    salary_min = _parse_amount(match.group(1))
    salary_max = _parse_amount(match.group(2))
    currency = match.group(3)
    if currency in ('лв', 'лева') or not currency:
        currency = DEFAULT_CURRENCY

    if salary_min is None or salary_max is None:
        return None, None, None
    return salary_min, salary_max, currency
