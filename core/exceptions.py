"""
Pipeline Exceptions - Error taxonomy for ingestion and enrichment.

Retry behaviour is decided from the exception class, never from message text:
- TransientFetchError / DuplicateMergeConflictError: retry
- ValidationError / AIResultEmptyError: report, do not retry
- PersistenceError: always propagate
- AIUnavailableError: expected operating mode, converted to a structured result
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class TransientFetchError(PipelineError):
    """Network failure, timeout or 5xx while fetching an external page."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ValidationError(PipelineError):
    """Malformed or unreachable source URL. Not retried."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class AIUnavailableError(PipelineError):
    """AI service is not configured."""


class AIResultEmptyError(PipelineError):
    """AI call succeeded but returned no usable data."""


class PersistenceError(PipelineError):
    """Store unavailable. Never swallowed."""


class DuplicateMergeConflictError(PipelineError):
    """Two concurrent merges targeted the same posting."""

    def __init__(self, message: str, posting_id=None):
        super().__init__(message)
        self.posting_id = posting_id


def is_retryable(exc: BaseException) -> bool:
    """Return True for errors that a later attempt may not hit."""
    return isinstance(exc, (TransientFetchError, DuplicateMergeConflictError, PersistenceError, TimeoutError))
