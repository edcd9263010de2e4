"""HTTP page fetcher with connection reuse and retry logic."""

import logging
import time
from typing import Optional

import requests
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log,
    RetryError,
)

from core.scraper.interfaces import FetchResult, PageFetcher

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; TalentRadar/1.0)"
CHECK_TIMEOUT_SECONDS = 10
HEAD_UNSUPPORTED_STATUSES = (405, 501)


def _is_retryable_error(exc: Exception) -> bool:
    """
    Determine if an exception is retryable.

    Only retries on:
    - Timeouts
    - Server errors (5xx)
    - Connection errors without a response

    Does NOT retry on client errors (4xx) or malformed URLs.
    """
    if isinstance(exc, requests.Timeout):
        return True

    if isinstance(exc, (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema,
                        requests.exceptions.InvalidSchema)):
        return False

    if isinstance(exc, requests.HTTPError):
        response = getattr(exc, 'response', None)
        if response is not None:
            return response.status_code >= 500
        return True

    if isinstance(exc, requests.RequestException):
        response = getattr(exc, 'response', None)
        if response is not None and 400 <= response.status_code < 500:
            return False
        return True

    return False


class HttpPageFetcher(PageFetcher):
    """
    requests-based PageFetcher.

    Responsibilities:
    - Own a requests.Session for connection reuse
    - Retry transient failures with exponential backoff
    - Keep a minimum delay between consecutive requests (politeness)
    - Report failures as FetchResult instead of raising
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        request_timeout_seconds: int = 30,
        max_retries: int = 3,
        request_delay_ms: int = 0,
        session: Optional[requests.Session] = None
    ):
        self.request_timeout_seconds = request_timeout_seconds
        self.max_retries = max(1, max_retries)
        self.request_delay_ms = request_delay_ms
        self._last_request_at = 0.0

        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml",
            "Accept-Language": "bg,en;q=0.8",
        })

    def _throttle(self) -> None:
        if self.request_delay_ms <= 0:
            return
        elapsed = time.monotonic() - self._last_request_at
        remaining = self.request_delay_ms / 1000.0 - elapsed
        if remaining > 0:
            time.sleep(remaining)

    def _get(self, url: str) -> requests.Response:
        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception(_is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING)
        )
        def _attempt() -> requests.Response:
            self._throttle()
            try:
                response = self.session.get(url, timeout=self.request_timeout_seconds)
            finally:
                self._last_request_at = time.monotonic()
            response.raise_for_status()
            return response

        return _attempt()

    def fetch(self, url: str) -> FetchResult:
        logger.debug(f"Fetching {url}")
        try:
            response = self._get(url)
        except RetryError as e:
            exc = e.last_attempt.exception()
            return self._failure(url, exc)
        except requests.RequestException as e:
            return self._failure(url, e)

        return FetchResult(html=response.text, success=True, status_code=response.status_code)

    def check(self, url: str) -> FetchResult:
        """HEAD the URL, following redirects. Servers that reject HEAD get a GET instead."""
        logger.debug(f"Checking {url}")
        self._throttle()
        try:
            response = self.session.head(
                url,
                timeout=min(self.request_timeout_seconds, CHECK_TIMEOUT_SECONDS),
                allow_redirects=True,
            )
        except requests.RequestException as e:
            return self._failure(url, e)
        finally:
            self._last_request_at = time.monotonic()

        if response.status_code in HEAD_UNSUPPORTED_STATUSES:
            result = self.fetch(url)
            result.html = ""
            return result

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            return self._failure(url, e)
        return FetchResult(success=True, status_code=response.status_code)

    @staticmethod
    def _failure(url: str, exc: Optional[BaseException]) -> FetchResult:
        response = getattr(exc, 'response', None)
        status_code = response.status_code if response is not None else None
        transient = _is_retryable_error(exc) if isinstance(exc, Exception) else False
        logger.warning(f"Failed to fetch {url}: {exc} (transient={transient})")
        return FetchResult(
            success=False,
            error=str(exc),
            status_code=status_code,
            transient=transient,
        )
