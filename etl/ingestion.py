"""
Scraping Service - Ingests one site's listings into canonical postings.

For every raw posting, in listing order:
1. normalize
2. find or create the company
3. exact match -> merge, else fuzzy auto-merge candidate -> merge, else create
4. queue AI extraction for new content
5. queue company analysis when the FreshnessGate says the source is stale
   and the company URL is reachable

Each posting is its own unit of work, so one bad posting never rolls back
the others. PersistenceError is the exception: the store being down aborts
the whole scrape.
"""
import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from tenacity import retry, stop_after_attempt, wait_random, retry_if_exception_type, before_sleep_log

from core.exceptions import DuplicateMergeConflictError, PersistenceError
from core.scraper.interfaces import ListingOptions, RawPosting
from core.scraper.registry import ScraperRegistry, SiteScraper
from core.scraper.validation import CompanyUrlValidator
from core.utils import ContentHasher, normalize_location, normalize_technologies, parse_salary_range, utcnow
from database.uow import pipeline_uow
from etl.duplicate_detector import DuplicateDetector
from etl.freshness import FreshnessGate
from pipeline.jobs import CompanyAnalysisRequest, ExtractionRequest, JobPayload, ScrapeRequest

logger = logging.getLogger(__name__)

EXTRACTION_PRIORITY = 5
COMPANY_ANALYSIS_PRIORITY = 3
COMPANY_WEBSITE_SOURCE = "company_website"

Enqueue = Callable[[JobPayload, Optional[int]], str]


@dataclass
class SiteScrapeResult:
    site: str
    total_found: int = 0
    new_vacancies: int = 0
    updated_vacancies: int = 0
    new_companies: int = 0
    extraction_jobs: int = 0
    analysis_jobs: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class IngestOutcome:
    posting_id: Any
    company_id: Any
    created: bool
    company_created: bool
    needs_extraction: bool
    content_hash: Optional[str] = None
    content: Optional[str] = None


def normalize_raw_posting(raw: RawPosting) -> RawPosting:
    return dataclasses.replace(
        raw,
        title=" ".join((raw.title or "").split()),
        company_name=" ".join((raw.company_name or "").split()),
        location=normalize_location(raw.location),
        technologies=normalize_technologies(raw.technologies),
        description=(raw.description or "").strip() or None,
        external_id=str(raw.external_id).strip() if raw.external_id else None,
    )


class ScrapingService:
    def __init__(
        self,
        registry: ScraperRegistry,
        detector: DuplicateDetector,
        freshness: FreshnessGate,
        validator: CompanyUrlValidator,
        enqueue: Optional[Enqueue] = None,
        uow_factory=pipeline_uow,
    ):
        self.registry = registry
        self.detector = detector
        self.freshness = freshness
        self.validator = validator
        # Bound after the orchestrator exists; None means enrichment is not queued
        self.enqueue = enqueue
        self.uow_factory = uow_factory

    # ------------------------------------------------------------------
    # Site level
    # ------------------------------------------------------------------

    def scrape_site(self, request: ScrapeRequest, cancel_event: Optional[threading.Event] = None) -> SiteScrapeResult:
        result = SiteScrapeResult(site=request.site)
        scraper = self.registry.get(request.site)
        if scraper is None:
            result.errors.append(f"Scraping failed: no scraper registered for {request.site}")
            return result

        try:
            raw_postings = self._fetch_listings(scraper, request.max_pages)
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"[{request.site}] Scraping failed: {e}")
            result.errors.append(f"Scraping failed: {e}")
            return result

        result.total_found = len(raw_postings)
        logger.info(f"[{request.site}] Found {result.total_found} postings")

        for raw in raw_postings:
            if cancel_event is not None and cancel_event.is_set():
                result.errors.append("Scraping cancelled")
                break
            try:
                self._process_posting(scraper, raw, request, result)
            except PersistenceError:
                raise
            except Exception as e:
                logger.error(f"[{request.site}] Failed to process {raw.title}: {e}")
                result.errors.append(f"Failed to process {raw.title}: {e}")

        logger.info(
            f"[{request.site}] Scrape complete: {result.new_vacancies} new, "
            f"{result.updated_vacancies} updated, {result.new_companies} new companies, "
            f"{len(result.errors)} errors"
        )
        return result

    def _fetch_listings(self, scraper: SiteScraper, max_pages: int) -> List[RawPosting]:
        urls = scraper.parser.listing_urls(ListingOptions(max_pages=max_pages))
        postings: List[RawPosting] = []
        seen_urls = set()

        for page_number, url in enumerate(urls, start=1):
            fetched = scraper.fetcher.fetch(url)
            if not fetched.success:
                if page_number == 1:
                    raise RuntimeError(fetched.error or f"could not fetch {url}")
                logger.warning(f"[{scraper.site_name}] Stopping at page {page_number}: {fetched.error}")
                break

            page = scraper.parser.parse_listing(fetched.html, url)
            if not page:
                logger.info(f"[{scraper.site_name}] Page {page_number} is empty, stopping")
                break

            for raw in page:
                if raw.source_url in seen_urls:
                    continue
                seen_urls.add(raw.source_url)
                postings.append(raw)

        return postings

    # ------------------------------------------------------------------
    # Posting level
    # ------------------------------------------------------------------

    def _process_posting(self, scraper: SiteScraper, raw: RawPosting, request: ScrapeRequest,
                         result: SiteScrapeResult) -> None:
        raw = normalize_raw_posting(raw)
        if not raw.title or not raw.company_name:
            raise ValueError("posting has no title or company")

        raw = self._with_detail(scraper, raw)
        outcome = self.ingest_one(raw)

        if outcome.created:
            result.new_vacancies += 1
        else:
            result.updated_vacancies += 1
        if outcome.company_created:
            result.new_companies += 1

        if self.enqueue is None:
            return

        if request.enable_ai_extraction and outcome.needs_extraction:
            self.enqueue(
                ExtractionRequest(
                    content_hash=outcome.content_hash,
                    content=outcome.content,
                    source_url=raw.source_url,
                    posting_id=outcome.posting_id,
                ),
                EXTRACTION_PRIORITY,
            )
            result.extraction_jobs += 1

        if request.enable_company_analysis:
            result.analysis_jobs += self._queue_company_analysis(
                raw, outcome.company_id, outcome.posting_id, request.force_refresh
            )

    def _with_detail(self, scraper: SiteScraper, raw: RawPosting) -> RawPosting:
        """Fill description and company URLs from the detail page when the listing lacks them."""
        if raw.description:
            return raw

        with self.uow_factory() as repo:
            existing_id = self.detector.find_exact_match(repo, raw)
            existing = repo.postings.get_by_id(existing_id) if existing_id else None
            if existing is not None and existing.description:
                logger.debug(f"Skipping detail fetch for {raw.source_url}: description already stored")
                return raw

        fetched = scraper.fetcher.fetch(raw.source_url)
        if not fetched.success:
            logger.warning(f"Detail fetch failed for {raw.source_url}: {fetched.error}")
            return raw

        detail = scraper.parser.parse_detail(fetched.html)
        return dataclasses.replace(
            raw,
            description=detail.description or raw.description,
            company_profile_url=raw.company_profile_url or detail.company_profile_url,
            company_website=raw.company_website or detail.company_website,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_random(0.05, 0.3),
        retry=retry_if_exception_type(DuplicateMergeConflictError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def ingest_one(self, raw: RawPosting) -> IngestOutcome:
        """
        Persist one normalized posting in its own unit of work.

        Extraction works on the stored description. A merge never replaces
        it, so other sources' descriptions do not trigger new extractions.
        """
        with self.uow_factory() as repo:
            company, company_created = repo.companies.get_or_create(raw.company_name)
            self._remember_company_urls(company, raw)

            target_id = self.detector.find_exact_match(repo, raw)
            if target_id is None:
                candidate = self.detector.find_auto_merge_target(repo, raw)
                if candidate is not None:
                    logger.info(
                        f"Auto-merging '{raw.title}' from {raw.source_site} into {candidate.posting_id} "
                        f"(score {candidate.overall:.2f}): {', '.join(candidate.match_reasons)}"
                    )
                    target_id = candidate.posting_id

            if target_id is not None:
                posting = self.detector.merge(repo, target_id, raw)
                created = False
            else:
                posting = self._create_posting(repo, raw, company.id)
                created = True

            content = posting.description
            content_hash = ContentHasher.calculate(content) if content else None
            needs_extraction = bool(content_hash) and not (
                posting.is_extracted and posting.content_hash == content_hash
            )
            return IngestOutcome(
                posting_id=posting.id,
                company_id=company.id,
                created=created,
                company_created=company_created,
                needs_extraction=needs_extraction,
                content_hash=content_hash,
                content=content,
            )

    @staticmethod
    def _create_posting(repo, raw: RawPosting, company_id: Any):
        content_hash = ContentHasher.calculate(raw.description) if raw.description else None
        salary_min, salary_max, currency = parse_salary_range(raw.salary_text)
        now = utcnow()
        posting = repo.postings.create(
            company_id=company_id,
            title=raw.title,
            company_name=raw.company_name,
            location=raw.location or None,
            posted_at=raw.posted_at,
            source_site=raw.source_site,
            source_url=raw.source_url,
            external_id=raw.external_id,
            external_ids={raw.source_site: raw.external_id} if raw.external_id else {},
            scraped_sites={
                raw.source_site: {
                    "lastSeenAt": now.isoformat(),
                    "url": raw.source_url,
                    "originalId": raw.external_id,
                }
            },
            status='active',
            description=raw.description,
            technologies=list(raw.technologies),
            salary_text=raw.salary_text,
            salary_min=salary_min,
            salary_max=salary_max,
            currency=currency,
            content_hash=content_hash,
            created_at=now,
            updated_at=now,
        )
        logger.info(f"Created posting {posting.id}: '{raw.title}' at {raw.company_name} ({raw.source_site})")
        return posting

    def _remember_company_urls(self, company, raw: RawPosting) -> None:
        if raw.company_profile_url and not company.profile_url \
                and self.validator.is_board_profile_url(raw.company_profile_url):
            company.profile_url = raw.company_profile_url
        if raw.company_website and not company.website \
                and self.validator.is_valid_company_url(raw.company_website):
            company.website = raw.company_website

    # ------------------------------------------------------------------
    # Company analysis
    # ------------------------------------------------------------------

    def company_sources(self, raw: RawPosting) -> List[Tuple[str, str, str]]:
        """(source_site, url, analysis_type) for each usable company URL on the posting."""
        sources = []
        if raw.company_profile_url and self.validator.is_board_profile_url(raw.company_profile_url):
            sources.append((raw.source_site, raw.company_profile_url, 'profile'))
        if raw.company_website and self.validator.is_valid_company_url(raw.company_website):
            sources.append((COMPANY_WEBSITE_SOURCE, raw.company_website, 'website'))
        return sources

    def _queue_company_analysis(self, raw: RawPosting, company_id: Any, posting_id: Any, force: bool) -> int:
        queued = 0
        for source_site, url, analysis_type in self.company_sources(raw):
            with self.uow_factory() as repo:
                decision = self.freshness.should_scrape(repo, company_id, source_site, url, force=force)

            if not decision.should_scrape:
                logger.debug(f"Skipping {analysis_type} analysis for {raw.company_name}: {decision.reason}")
                continue

            unreachable = self._unreachable_reason(url)
            if unreachable:
                with self.uow_factory() as repo:
                    self.freshness.mark_invalid(repo, company_id, source_site, unreachable, url)
                logger.info(f"Skipping {analysis_type} analysis for {raw.company_name}: {unreachable}")
                continue

            logger.info(f"Queueing {analysis_type} analysis for {raw.company_name} ({decision.reason})")
            self.enqueue(
                CompanyAnalysisRequest(
                    company_id=company_id,
                    source_site=source_site,
                    source_url=url,
                    analysis_type=analysis_type,
                    posting_id=posting_id,
                    force_refresh=force,
                ),
                COMPANY_ANALYSIS_PRIORITY,
            )
            queued += 1
        return queued

    def _unreachable_reason(self, url: str) -> Optional[str]:
        fetcher = self.registry.fetcher_for_url(url)
        if fetcher is None:
            return f"No fetcher available for {url}"
        checked = fetcher.check(url)
        if checked.success:
            return None
        return f"Unreachable company URL: {checked.error or checked.status_code}"
