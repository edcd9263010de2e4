from dataclasses import dataclass
from typing import Optional

from core.cache.extraction_cache import ExtractionCache
from core.config_loader import AppConfig, LlmConfig, CacheConfig
from core.llm.interfaces import AIExtractor
from core.llm.openai_service import OpenAIExtractor
from core.scorer import CompanyScoringEngine
from core.scraper.registry import ScraperRegistry
from core.scraper.validation import CompanyUrlValidator
from etl.duplicate_detector import DuplicateDetector
from etl.freshness import FreshnessGate
from etl.ingestion import ScrapingService
from pipeline.handlers import PipelineHandlers
from pipeline.task_orchestrator import TaskOrchestrator


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    There is no module-level registry or client: everything a job needs is
    built here from config and passed down. DB access is obtained via
    pipeline_uow() inside each unit of work.
    """
    config: AppConfig
    registry: ScraperRegistry
    ai_extractor: AIExtractor
    duplicate_detector: DuplicateDetector
    freshness_gate: FreshnessGate
    scoring_engine: CompanyScoringEngine
    validator: CompanyUrlValidator
    scraping_service: ScrapingService
    handlers: PipelineHandlers
    orchestrator: TaskOrchestrator
    extraction_cache: Optional[ExtractionCache] = None

    @classmethod
    def build(
        cls,
        config: AppConfig,
        registry: Optional[ScraperRegistry] = None,
        ai_extractor: Optional[AIExtractor] = None,
        extraction_cache: Optional[ExtractionCache] = None,
    ) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            registry: Override the config-built scraper registry (tests, custom sites)
            ai_extractor: Override the OpenAI extractor
            extraction_cache: Override the Redis extraction cache

        Returns:
            Fully wired AppContext; the orchestrator is built but not started
        """
        registry = registry or ScraperRegistry.from_config(config.scraper)
        ai_extractor = ai_extractor or cls._build_ai_extractor(config.llm)
        if extraction_cache is None:
            extraction_cache = cls._build_extraction_cache(config.cache)

        validator = cls._build_validator(config)
        detector = DuplicateDetector(config.duplicates)
        freshness = FreshnessGate(config.freshness)
        scoring_engine = CompanyScoringEngine()

        scraping_service = ScrapingService(registry, detector, freshness, validator)
        handlers = PipelineHandlers(
            scraping_service=scraping_service,
            registry=registry,
            ai_extractor=ai_extractor,
            freshness=freshness,
            scoring_engine=scoring_engine,
            validator=validator,
            extraction_cache=extraction_cache,
            batch_config=config.batch,
        )
        orchestrator = TaskOrchestrator(handlers.table(), config.orchestrator)

        # Services enqueue follow-up work through the orchestrator
        scraping_service.enqueue = orchestrator.submit
        handlers.enqueue = orchestrator.submit

        return cls(
            config=config,
            registry=registry,
            ai_extractor=ai_extractor,
            duplicate_detector=detector,
            freshness_gate=freshness,
            scoring_engine=scoring_engine,
            validator=validator,
            scraping_service=scraping_service,
            handlers=handlers,
            orchestrator=orchestrator,
            extraction_cache=extraction_cache,
        )

    @staticmethod
    def _build_ai_extractor(llm_config: LlmConfig) -> OpenAIExtractor:
        """Build OpenAI extractor from LLM configuration (unconfigured without credentials)."""
        return OpenAIExtractor(
            api_key=llm_config.api_key,
            base_url=llm_config.base_url,
            model=llm_config.extraction_model or "gpt-4o-mini",
            temperature=llm_config.extraction_temperature,
            max_content_chars=llm_config.max_content_chars,
        )

    @staticmethod
    def _build_extraction_cache(cache_config: CacheConfig) -> Optional[ExtractionCache]:
        if not cache_config.enabled:
            return None
        return ExtractionCache(
            redis_url=cache_config.redis_url,
            password=cache_config.password,
            ttl_seconds=cache_config.ttl_seconds,
        )

    @staticmethod
    def _build_validator(config: AppConfig) -> CompanyUrlValidator:
        board_domains = []
        for site_config in config.scraper.sites.values():
            board_domains.extend(site_config.board_domains)
        return CompanyUrlValidator(extra_board_domains=board_domains)
