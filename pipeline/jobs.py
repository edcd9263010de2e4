"""
Job definitions for the TaskOrchestrator.

A job is a typed payload: the payload class determines the JobType, and the
orchestrator dispatches on it. Handlers report an Outcome instead of raising.
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from tenacity import RetryCallState, stop_after_attempt, wait_exponential


class JobType(str, Enum):
    SCRAPE = "scrape"
    AI_EXTRACTION = "ai-extraction"
    COMPANY_ANALYSIS = "company-analysis"
    BATCH_PROCESSING = "batch-processing"
    HEALTH_CHECK = "health-check"


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    RETRY_SCHEDULED = "retry-scheduled"
    SUCCEEDED = "succeeded"
    FAILED_PERMANENT = "failed-permanent"
    DROPPED = "dropped"


TERMINAL_STATES = (JobState.SUCCEEDED, JobState.FAILED_PERMANENT, JobState.DROPPED)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScrapeRequest:
    site: str
    max_pages: int = 1
    enable_ai_extraction: bool = True
    enable_company_analysis: bool = True
    force_refresh: bool = False

    job_type = JobType.SCRAPE


@dataclass(frozen=True)
class ExtractionRequest:
    content_hash: str
    content: str
    source_url: str
    posting_id: Optional[Any] = None

    job_type = JobType.AI_EXTRACTION


@dataclass(frozen=True)
class CompanyAnalysisRequest:
    company_id: Any
    source_site: str
    source_url: str
    analysis_type: str  # profile|website
    posting_id: Optional[Any] = None
    force_refresh: bool = False

    job_type = JobType.COMPANY_ANALYSIS

    @property
    def serial_key(self) -> Tuple[str, str]:
        return str(self.company_id), self.source_site


@dataclass(frozen=True)
class BatchRequest:
    batch_id: str
    urls: Tuple[str, ...]
    max_concurrent: Optional[int] = None
    delay_between_requests_ms: Optional[int] = None

    job_type = JobType.BATCH_PROCESSING


@dataclass(frozen=True)
class HealthCheckRequest:
    check_database: bool = True

    job_type = JobType.HEALTH_CHECK


JobPayload = Union[ScrapeRequest, ExtractionRequest, CompanyAnalysisRequest, BatchRequest, HealthCheckRequest]

PAYLOAD_TYPES = (ScrapeRequest, ExtractionRequest, CompanyAnalysisRequest, BatchRequest, HealthCheckRequest)


def job_type_of(payload: JobPayload) -> JobType:
    if not isinstance(payload, PAYLOAD_TYPES):
        raise TypeError(f"Unsupported job payload: {type(payload).__name__}")
    return payload.job_type


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Success:
    result: Any = None


@dataclass(frozen=True)
class Retryable:
    error: str


@dataclass(frozen=True)
class Permanent:
    error: str


Outcome = Union[Success, Retryable, Permanent]


# ---------------------------------------------------------------------------
# Runtime records
# ---------------------------------------------------------------------------

class JobContext:
    """Handed to a handler for one attempt: progress reporting and cancellation."""

    def __init__(self, job_id: str, attempt: int, cancel_event: threading.Event, on_progress=None):
        self.job_id = job_id
        self.attempt = attempt
        self.cancel_event = cancel_event
        self._on_progress = on_progress

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def report_progress(self, value: int) -> None:
        if self._on_progress:
            self._on_progress(self.job_id, value)


@dataclass
class JobStatus:
    """Snapshot of a job, safe to hand out of the orchestrator."""
    job_id: str
    job_type: JobType
    state: JobState
    priority: int
    attempt_count: int
    max_retries: int
    progress: int = 0
    result: Any = None
    error: Optional[str] = None
    delays: Tuple[float, ...] = ()
    created_at: Optional[float] = None
    finished_at: Optional[float] = None
    # Last exception that escaped the handler, if any
    exception: Optional[BaseException] = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass
class Job:
    job_id: str
    payload: JobPayload
    job_type: JobType
    priority: int
    max_retries: int
    backoff_seconds: float
    timeout_seconds: float
    sequence: int
    state: JobState = JobState.QUEUED
    attempt_count: int = 0
    progress: int = 0
    result: Any = None
    error: Optional[str] = None
    delays: list = field(default_factory=list)
    ready_at: float = 0.0
    created_at: float = 0.0
    finished_at: Optional[float] = None
    serial_key: Optional[Tuple[str, str]] = None
    exception: Optional[BaseException] = None
    cancel_requested: bool = False
    # Cancel event of the running attempt
    attempt_cancel: Optional[threading.Event] = None
    done_event: threading.Event = field(default_factory=threading.Event)

    def __post_init__(self):
        self._stop = stop_after_attempt(self.max_retries)
        self._wait = wait_exponential(multiplier=self.backoff_seconds, exp_base=2, min=0)

    def _retry_state(self) -> RetryCallState:
        state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        state.attempt_number = max(1, self.attempt_count)
        return state

    def retries_exhausted(self) -> bool:
        return self._stop(self._retry_state())

    def backoff_delay(self) -> float:
        """base * 2**(attempt-1) for the attempt that just failed."""
        return self._wait(self._retry_state())

    def snapshot(self) -> JobStatus:
        return JobStatus(
            job_id=self.job_id,
            job_type=self.job_type,
            state=self.state,
            priority=self.priority,
            attempt_count=self.attempt_count,
            max_retries=self.max_retries,
            progress=self.progress,
            result=self.result,
            error=self.error,
            delays=tuple(self.delays),
            created_at=self.created_at,
            finished_at=self.finished_at,
            exception=self.exception,
        )


def describe(payload: JobPayload) -> Dict[str, Any]:
    """Short log-friendly summary of a payload."""
    if isinstance(payload, ScrapeRequest):
        return {"site": payload.site, "max_pages": payload.max_pages}
    if isinstance(payload, ExtractionRequest):
        return {"posting_id": str(payload.posting_id), "content_hash": payload.content_hash[:16]}
    if isinstance(payload, CompanyAnalysisRequest):
        return {"company_id": str(payload.company_id), "site": payload.source_site, "type": payload.analysis_type}
    if isinstance(payload, BatchRequest):
        return {"batch_id": payload.batch_id, "urls": len(payload.urls)}
    return {}
