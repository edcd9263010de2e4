"""
Job handlers - one per JobType, each returning an Outcome.

Progress checkpoints:
- company-analysis: 10 / 20 / 50 / 70 / 90 / 100
- ai-extraction: 10 / 30 / 80 / 100
- batch-processing: share of URLs processed
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import text

from core.cache.extraction_cache import ExtractionCache
from core.config_loader import BatchConfig
from core.exceptions import (
    AIResultEmptyError,
    AIUnavailableError,
    PersistenceError,
    TransientFetchError,
    ValidationError,
    is_retryable,
)
from core.llm.interfaces import AIExtractor
from core.scorer import CompanyScoringEngine
from core.scraper.jsonld_parser import page_text
from core.scraper.registry import ScraperRegistry
from core.scraper.validation import CompanyUrlValidator
from core.utils import ContentHasher, normalize_technologies, parse_salary_range, union_technologies, utcnow
from database.uow import pipeline_uow
from etl.freshness import FreshnessGate
from etl.ingestion import ScrapingService, EXTRACTION_PRIORITY
from pipeline.jobs import (
    BatchRequest,
    CompanyAnalysisRequest,
    ExtractionRequest,
    HealthCheckRequest,
    JobContext,
    JobType,
    Permanent,
    Retryable,
    ScrapeRequest,
    Success,
)

logger = logging.getLogger(__name__)

AI_NOT_CONFIGURED = {"success": False, "error": "AI service not configured"}

# Company list fields an analysis may fill when they are still empty
COMPANY_LIST_FIELDS = ('technologies', 'benefits', 'values', 'awards')


class PipelineHandlers:
    """
    Holds the collaborators every handler needs. `table()` is the dispatch
    table handed to the TaskOrchestrator.
    """

    def __init__(
        self,
        scraping_service: ScrapingService,
        registry: ScraperRegistry,
        ai_extractor: AIExtractor,
        freshness: FreshnessGate,
        scoring_engine: CompanyScoringEngine,
        validator: CompanyUrlValidator,
        extraction_cache: Optional[ExtractionCache] = None,
        batch_config: Optional[BatchConfig] = None,
        enqueue: Optional[Callable] = None,
        uow_factory=pipeline_uow,
    ):
        self.scraping_service = scraping_service
        self.registry = registry
        self.ai_extractor = ai_extractor
        self.freshness = freshness
        self.scoring_engine = scoring_engine
        self.validator = validator
        self.extraction_cache = extraction_cache
        self.batch_config = batch_config or BatchConfig()
        self.enqueue = enqueue
        self.uow_factory = uow_factory

    def table(self) -> Dict[JobType, Callable]:
        return {
            JobType.SCRAPE: self.handle_scrape,
            JobType.AI_EXTRACTION: self.handle_ai_extraction,
            JobType.COMPANY_ANALYSIS: self.handle_company_analysis,
            JobType.BATCH_PROCESSING: self.handle_batch,
            JobType.HEALTH_CHECK: self.handle_health_check,
        }

    # ------------------------------------------------------------------
    # scrape
    # ------------------------------------------------------------------

    def handle_scrape(self, payload: ScrapeRequest, ctx: JobContext):
        ctx.report_progress(10)
        result = self.scraping_service.scrape_site(payload, cancel_event=ctx.cancel_event)
        ctx.report_progress(100)
        return Success({
            "site": result.site,
            "total_found": result.total_found,
            "new_vacancies": result.new_vacancies,
            "updated_vacancies": result.updated_vacancies,
            "new_companies": result.new_companies,
            "errors": list(result.errors),
        })

    # ------------------------------------------------------------------
    # ai-extraction
    # ------------------------------------------------------------------

    def _require_ai(self, source_url: str) -> None:
        if not self.ai_extractor.is_configured():
            raise AIUnavailableError(f"AI service not configured, skipping {source_url}")

    def handle_ai_extraction(self, payload: ExtractionRequest, ctx: JobContext):
        ctx.report_progress(10)
        try:
            self._require_ai(payload.source_url)
        except AIUnavailableError as e:
            logger.warning(str(e))
            return Success(dict(AI_NOT_CONFIGURED))

        data = self.extraction_cache.get(payload.content_hash) if self.extraction_cache else None
        cached = data is not None
        ctx.report_progress(30)

        if data is None:
            try:
                data = self._extract_vacancy(payload)
            except AIResultEmptyError as e:
                return Permanent(str(e))
        ctx.report_progress(80)

        if payload.posting_id is not None:
            with self.uow_factory() as repo:
                posting = repo.postings.get_by_id(payload.posting_id)
                if posting is None:
                    return Permanent(f"Posting {payload.posting_id} not found")
                self._apply_extraction(posting, data, payload.content_hash)

        ctx.report_progress(100)
        return Success({
            "success": True,
            "posting_id": str(payload.posting_id) if payload.posting_id else None,
            "cached": cached,
        })

    def _extract_vacancy(self, payload: ExtractionRequest) -> Dict[str, Any]:
        data = self.ai_extractor.extract_vacancy(payload.content)
        if not data:
            raise AIResultEmptyError("AI extraction returned no data")
        if self.extraction_cache:
            self.extraction_cache.set(payload.content_hash, data)
        return data

    @staticmethod
    def _apply_extraction(posting, data: Dict[str, Any], content_hash: str) -> None:
        posting.extraction_data = dict(data)
        posting.is_extracted = True
        posting.content_hash = content_hash

        if posting.salary_min is None and posting.salary_max is None:
            if data.get('salary_min') is not None or data.get('salary_max') is not None:
                posting.salary_min = data.get('salary_min')
                posting.salary_max = data.get('salary_max')
                posting.currency = data.get('currency') or posting.currency
            elif posting.salary_text:
                salary_min, salary_max, currency = parse_salary_range(posting.salary_text)
                if salary_min is not None:
                    posting.salary_min, posting.salary_max, posting.currency = salary_min, salary_max, currency

        merged = union_technologies(posting.technologies, data.get('technologies'))
        if merged != list(posting.technologies or []):
            posting.technologies = merged
        if not posting.description and data.get('description'):
            posting.description = data['description']
        posting.updated_at = utcnow()

    # ------------------------------------------------------------------
    # company-analysis
    # ------------------------------------------------------------------

    def handle_company_analysis(self, payload: CompanyAnalysisRequest, ctx: JobContext):
        ctx.report_progress(10)
        try:
            self._require_ai(payload.source_url)
        except AIUnavailableError as e:
            logger.warning(str(e))
            return Success(dict(AI_NOT_CONFIGURED))

        ctx.report_progress(20)
        try:
            html = self._fetch_company_page(payload.source_url)
        except (TransientFetchError, ValidationError) as e:
            with self.uow_factory() as repo:
                self.freshness.mark_invalid(repo, payload.company_id, payload.source_site, str(e), payload.source_url)
            if is_retryable(e):
                return Retryable(f"Fetch failed: {e}")
            return Permanent(str(e))

        if ctx.cancelled:
            return Retryable("Cancelled")

        ctx.report_progress(50)
        with self.uow_factory() as repo:
            self.freshness.record_success(
                repo, payload.company_id, payload.source_site, payload.source_url, content=html
            )

        ctx.report_progress(70)
        attrs = self.ai_extractor.analyze_company_profile(page_text(html), payload.source_url)
        if attrs is None:
            return Permanent("AI analysis failed")

        ctx.report_progress(90)
        with self.uow_factory() as repo:
            company = repo.companies.get_by_id(payload.company_id)
            if company is None:
                return Permanent(f"Company {payload.company_id} not found")

            info = self.validator.sanitize_company_data({
                'name': attrs.company_name,
                'description': attrs.description,
                'industry': attrs.industry,
                'location': attrs.location,
                'website': attrs.website,
                'size': attrs.size,
                'founded': attrs.founded,
                'employee_count': attrs.employee_count,
            })
            repo.companies.update_basic_info(company, info)
            self._fill_company_lists(company, attrs)

            result = self.scoring_engine.score(attrs)
            repo.scores.add(company.id, result, analysis_source=payload.analysis_type)

        ctx.report_progress(100)
        return Success({
            "success": True,
            "company_id": str(payload.company_id),
            "analysis_type": payload.analysis_type,
            "overall_score": result.overall_score,
            "confidence_level": result.confidence_level,
        })

    def _fetch_company_page(self, url: str) -> str:
        fetcher = self.registry.fetcher_for_url(url)
        if fetcher is None:
            raise ValidationError(f"No fetcher available for {url}", url=url)

        fetched = fetcher.fetch(url)
        if fetched.success:
            return fetched.html
        if fetched.transient:
            raise TransientFetchError(fetched.error or "Fetch failed", url=url, status_code=fetched.status_code)
        raise ValidationError(f"Invalid company source: {fetched.error}", url=url)

    @staticmethod
    def _fill_company_lists(company, attrs) -> None:
        for field_name in COMPANY_LIST_FIELDS:
            incoming = getattr(attrs, field_name) or []
            if incoming and not getattr(company, field_name):
                value = normalize_technologies(incoming) if field_name == 'technologies' else list(incoming)
                setattr(company, field_name, value)
        if attrs.work_model and not company.work_model:
            company.work_model = attrs.work_model

    # ------------------------------------------------------------------
    # batch-processing
    # ------------------------------------------------------------------

    def handle_batch(self, payload: BatchRequest, ctx: JobContext):
        start = time.monotonic()
        urls = list(payload.urls)
        max_concurrent = max(1, payload.max_concurrent or self.batch_config.max_concurrent)
        delay_ms = payload.delay_between_requests_ms
        if delay_ms is None:
            delay_ms = self.batch_config.delay_between_requests_ms

        logger.info(f"Processing batch {payload.batch_id} with {len(urls)} URLs")
        processed = successful = failed = 0
        errors: List[str] = []

        for offset in range(0, len(urls), max_concurrent):
            if ctx.cancelled:
                errors.append("Batch cancelled")
                break

            chunk = urls[offset:offset + max_concurrent]
            with ThreadPoolExecutor(max_workers=len(chunk), thread_name_prefix=f"batch-{payload.batch_id}") as pool:
                futures = [
                    pool.submit(self._process_batch_url, url, index * delay_ms / 1000.0, ctx)
                    for index, url in enumerate(chunk)
                ]
                for url, future in zip(chunk, futures):
                    ok, error = future.result()
                    processed += 1
                    if ok:
                        successful += 1
                    else:
                        failed += 1
                        errors.append(f"{url}: {error}")

            ctx.report_progress(int(processed * 100 / len(urls)))

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Batch {payload.batch_id} completed: {successful}/{processed} successful in {duration_ms}ms"
        )
        return Success({
            "batch_id": payload.batch_id,
            "total_urls": len(urls),
            "processed": processed,
            "successful": successful,
            "failed": failed,
            "errors": errors,
            "duration": duration_ms,
        })

    def _process_batch_url(self, url: str, delay_seconds: float, ctx: JobContext) -> Tuple[bool, Optional[str]]:
        if delay_seconds > 0 and ctx.cancel_event.wait(delay_seconds):
            return False, "Cancelled"

        scraper = self.registry.for_url(url)
        fetcher = scraper.fetcher if scraper else self.registry.default_fetcher
        if fetcher is None:
            return False, "No fetcher available"

        fetched = fetcher.fetch(url)
        if not fetched.success:
            return False, fetched.error or "Fetch failed"

        content = scraper.parser.parse_detail(fetched.html).description if scraper else None
        content = content or page_text(fetched.html)
        if not content:
            return False, "Empty page"

        with self.uow_factory() as repo:
            posting = repo.postings.get_by_source_url(url)
            posting_id = posting.id if posting else None

        if self.enqueue is not None:
            self.enqueue(
                ExtractionRequest(
                    content_hash=ContentHasher.calculate(content),
                    content=content,
                    source_url=url,
                    posting_id=posting_id,
                ),
                EXTRACTION_PRIORITY,
            )
        return True, None

    # ------------------------------------------------------------------
    # health-check
    # ------------------------------------------------------------------

    def handle_health_check(self, payload: HealthCheckRequest, ctx: JobContext):
        database_status = "skipped"
        if payload.check_database:
            try:
                with self.uow_factory() as repo:
                    repo.db.execute(text("SELECT 1"))
                database_status = "up"
            except PersistenceError as e:
                logger.error(f"Health check: database unreachable: {e}")
                database_status = "down"

        return Success({
            "status": "healthy" if database_status != "down" else "unhealthy",
            "timestamp": utcnow().isoformat(),
            "database": database_status,
            "ai_configured": self.ai_extractor.is_configured(),
        })
