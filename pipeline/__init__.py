"""Pipeline execution modules for TalentRadar."""

from .jobs import (
    JobType,
    JobState,
    JobStatus,
    ScrapeRequest,
    ExtractionRequest,
    CompanyAnalysisRequest,
    BatchRequest,
    HealthCheckRequest,
    Success,
    Retryable,
    Permanent,
)
from .task_orchestrator import TaskOrchestrator

__all__ = [
    'JobType',
    'JobState',
    'JobStatus',
    'ScrapeRequest',
    'ExtractionRequest',
    'CompanyAnalysisRequest',
    'BatchRequest',
    'HealthCheckRequest',
    'Success',
    'Retryable',
    'Permanent',
    'TaskOrchestrator',
]
