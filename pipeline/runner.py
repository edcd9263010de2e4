"""Scrape pipeline runner.

Entry points shared by the CLI and the scheduled worker. Every operation is
submitted to the context's orchestrator as a job, so it gets the job type's
timeout, retries and concurrency limit:
- run_scrape: one scrape job per selected site, waited on and aggregated
- run_batch: one batch-processing job over a list of posting URLs
- check_health: one health-check job
- get_stats: counts over stored postings and companies
"""

import time
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from core.app_context import AppContext
from core.exceptions import PersistenceError
from core.utils import ensure_utc
from database.uow import pipeline_uow
from pipeline.jobs import BatchRequest, HealthCheckRequest, JobState, JobStatus, ScrapeRequest
from pipeline.task_orchestrator import CANCELLED, TaskOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class ScrapeOptions:
    sites: Optional[List[str]] = None
    max_pages: Optional[int] = None
    enable_ai_extraction: Optional[bool] = None
    enable_company_analysis: Optional[bool] = None
    force_refresh: bool = False


@dataclass
class ScrapingResult:
    """Result of one scrape run across all selected sites."""
    total_found: int = 0
    new_vacancies: int = 0
    updated_vacancies: int = 0
    new_companies: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: int = 0


@dataclass
class ScrapeStats:
    total_vacancies: int
    active_vacancies: int
    total_companies: int
    per_site_counts: Dict[str, int]
    last_scraped_at: Optional[datetime] = None


def _resolve_request(ctx: AppContext, site: str, options: ScrapeOptions) -> ScrapeRequest:
    pipeline_config = ctx.config.pipeline
    site_config = ctx.config.scraper.sites.get(site)
    max_pages = options.max_pages or (site_config.max_pages if site_config else 1)

    enable_ai = options.enable_ai_extraction
    if enable_ai is None:
        enable_ai = pipeline_config.enable_ai_extraction
    enable_analysis = options.enable_company_analysis
    if enable_analysis is None:
        enable_analysis = pipeline_config.enable_company_analysis

    return ScrapeRequest(
        site=site,
        max_pages=max_pages,
        enable_ai_extraction=enable_ai,
        enable_company_analysis=enable_analysis,
        force_refresh=options.force_refresh,
    )


def _ensure_started(orchestrator: TaskOrchestrator) -> None:
    if not orchestrator.running:
        logger.info("Starting task orchestrator")
        orchestrator.start()


def _collect(result: ScrapingResult, site: str, status: JobStatus) -> None:
    if status.state == JobState.SUCCEEDED:
        site_result = status.result
        result.total_found += site_result["total_found"]
        result.new_vacancies += site_result["new_vacancies"]
        result.updated_vacancies += site_result["updated_vacancies"]
        result.new_companies += site_result["new_companies"]
        result.errors.extend(f"[{site}] {error}" for error in site_result["errors"])
        return

    if status.state == JobState.FAILED_PERMANENT:
        if isinstance(status.exception, PersistenceError):
            raise status.exception
        logger.error(f"[{site}] Scrape job failed: {status.error}")
        result.errors.append(f"[{site}] Scrape job failed: {status.error}")
        return

    if status.error == CANCELLED:
        logger.info(f"[{site}] Scrape cancelled before it ran")
        return
    logger.error(f"[{site}] Scrape job dropped: {status.error}")
    result.errors.append(f"[{site}] Scrape job dropped: {status.error}")


def run_scrape(
    ctx: AppContext,
    options: Optional[ScrapeOptions] = None,
    stop_event: Optional[threading.Event] = None
) -> ScrapingResult:
    """Scrape every selected site, one orchestrator job per site.

    Never raises for partial failures: unreachable sites and bad postings
    are reported in `errors`. A scrape job that failed on PersistenceError
    re-raises it here.

    Args:
        ctx: Application context with the scraping service and orchestrator
        options: Site selection and feature toggles; config defaults when omitted
        stop_event: Optional threading event; setting it cancels the remaining scrape jobs
    """
    options = options or ScrapeOptions()
    stop_event = stop_event or threading.Event()
    start = time.time()

    sites = options.sites or ctx.config.scraper.enabled_sites

    logger.info("=" * 60)
    logger.info(f"STARTING SCRAPE: {', '.join(sites)}")
    logger.info("=" * 60)

    result = ScrapingResult()
    submitted = []
    for site in sites:
        if stop_event.is_set():
            logger.info("Stop requested, skipping remaining sites")
            break
        if ctx.registry.get(site) is None:
            logger.error(f"Unknown site: {site}")
            result.errors.append(f"Unknown site: {site}")
            continue
        submitted.append((site, ctx.orchestrator.submit(_resolve_request(ctx, site, options))))

    if submitted:
        _ensure_started(ctx.orchestrator)
    for site, job_id in submitted:
        _collect(result, site, ctx.orchestrator.wait(job_id, stop_event=stop_event))

    result.duration_ms = int((time.time() - start) * 1000)

    logger.info("=" * 60)
    logger.info(
        f"SCRAPE COMPLETE: {result.total_found} found, {result.new_vacancies} new, "
        f"{result.updated_vacancies} updated, {result.new_companies} new companies, "
        f"{len(result.errors)} errors in {result.duration_ms}ms"
    )
    logger.info("=" * 60)
    return result


def run_batch(
    ctx: AppContext,
    urls: Sequence[str],
    batch_id: Optional[str] = None,
    max_concurrent: Optional[int] = None,
    delay_between_requests_ms: Optional[int] = None,
    stop_event: Optional[threading.Event] = None,
) -> JobStatus:
    """Fetch posting URLs and queue AI extraction for each; returns the batch job's final status."""
    request = BatchRequest(
        batch_id=batch_id or uuid.uuid4().hex[:8],
        urls=tuple(urls),
        max_concurrent=max_concurrent,
        delay_between_requests_ms=delay_between_requests_ms,
    )
    job_id = ctx.orchestrator.submit(request)
    _ensure_started(ctx.orchestrator)
    return ctx.orchestrator.wait(job_id, stop_event=stop_event)


def check_health(ctx: AppContext, check_database: bool = True, timeout: Optional[float] = None) -> Dict[str, Any]:
    """Run a health-check job. A job that does not finish reports as unhealthy."""
    job_id = ctx.orchestrator.submit(HealthCheckRequest(check_database=check_database))
    _ensure_started(ctx.orchestrator)
    status = ctx.orchestrator.wait(job_id, timeout=timeout)
    if status.state == JobState.SUCCEEDED:
        return status.result
    return {"status": "unhealthy", "error": status.error or f"Health check {status.state.value}"}


def get_stats(ctx: AppContext) -> ScrapeStats:
    with pipeline_uow() as repo:
        return ScrapeStats(
            total_vacancies=repo.postings.count_all(),
            active_vacancies=repo.postings.count_active(),
            total_companies=repo.companies.count(),
            per_site_counts=repo.postings.count_by_site(),
            last_scraped_at=ensure_utc(repo.postings.last_activity_at()),
        )
