"""Company URL/name validation - keeps job boards from posing as companies."""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

JOB_BOARD_NAMES = [
    'dev.bg', 'indeed', 'linkedin', 'glassdoor', 'jobs.bg', 'angellist',
    'stack overflow', 'careerbuilder', 'monster', 'ziprecruiter',
    'simplyhired', 'dice', 'it jobs', 'jobserve',
]

JOB_BOARD_DOMAINS = [
    'dev.bg', 'indeed.com', 'linkedin.com', 'glassdoor.com', 'jobs.bg',
    'angel.co', 'stackoverflow.com', 'careerbuilder.com', 'monster.com',
    'ziprecruiter.com', 'simplyhired.com', 'dice.com', 'itjobs.bg',
]

# A board profile must point at one company, not the company index
PROFILE_PATH_PATTERN = re.compile(r'/(company|companies|employer|firm)/[\w\-]+', re.IGNORECASE)


class CompanyUrlValidator:
    def __init__(self, extra_board_domains: Optional[Iterable[str]] = None):
        self.board_domains: List[str] = list(JOB_BOARD_DOMAINS)
        self.board_names: List[str] = list(JOB_BOARD_NAMES)
        for domain in extra_board_domains or []:
            self.add_job_board_domain(domain)

    def add_job_board_domain(self, domain: str) -> None:
        domain = domain.lower().strip()
        if domain and domain not in self.board_domains:
            self.board_domains.append(domain)

    def _is_board_host(self, hostname: str) -> bool:
        return any(hostname == d or hostname.endswith("." + d) for d in self.board_domains)

    @staticmethod
    def _hostname(url: Optional[str]) -> Optional[str]:
        if not url or not url.strip():
            return None
        parsed = urlparse(url.strip())
        if parsed.scheme not in ('http', 'https') or not parsed.hostname:
            return None
        return parsed.hostname.lower()

    def is_valid_company_name(self, name: Optional[str]) -> bool:
        if not name or not name.strip():
            return False
        normalized = name.strip().lower()
        if any(board in normalized or normalized in board for board in self.board_names):
            logger.warning(f"Rejected job board name as company: {name}")
            return False
        return True

    def is_valid_company_url(self, url: Optional[str]) -> bool:
        """True for a company's own website; False for job boards and malformed URLs."""
        hostname = self._hostname(url)
        if hostname is None:
            logger.warning(f"Invalid URL format: {url}")
            return False
        if self._is_board_host(hostname):
            logger.warning(f"Rejected job board URL as company website: {url}")
            return False
        return True

    def is_board_profile_url(self, url: Optional[str]) -> bool:
        """True for a per-company profile page on a known job board."""
        hostname = self._hostname(url)
        if hostname is None or not self._is_board_host(hostname):
            return False
        if not PROFILE_PATH_PATTERN.search(urlparse(url).path):
            logger.warning(f"Rejected generic company URL on job board: {url}")
            return False
        return True

    def sanitize_company_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Drop a job-board name or URL that an extractor mistook for the company's own."""
        sanitized = dict(data)
        if sanitized.get('name') and not self.is_valid_company_name(sanitized['name']):
            sanitized.pop('name')
        if sanitized.get('website') and not self.is_valid_company_url(sanitized['website']):
            sanitized.pop('website')
        return sanitized
