import yaml
import os
from typing import List, Optional, Dict
from pydantic import BaseModel, Field


class ScraperSiteConfig(BaseModel):
    """Per-site scraping settings."""
    base_url: str
    listing_path: str = "/"
    page_param: str = "page"
    request_delay_ms: int = 2000
    max_pages: int = 10
    max_retries: int = 3
    # Hostnames of the board itself; URLs on these hosts are profile pages, not company sites
    board_domains: List[str] = Field(default_factory=list)


class ScraperConfig(BaseModel):
    enabled_sites: List[str] = Field(default_factory=lambda: ["dev.bg", "jobs.bg"])
    sites: Dict[str, ScraperSiteConfig] = Field(default_factory=dict)
    user_agent: str = "Mozilla/5.0 (compatible; TalentRadar/1.0)"
    request_timeout_seconds: int = 30


class ScheduleConfig(BaseModel):
    interval_seconds: int = 3600


class DatabaseConfig(BaseModel):
    url: str


class LlmConfig(BaseModel):
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    extraction_model: Optional[str] = "gpt-4o-mini"
    extraction_temperature: float = 0.0  # 0.0 = deterministic
    max_content_chars: int = 20000


class CacheConfig(BaseModel):
    """Redis cache for AI extraction results, keyed by content hash."""
    enabled: bool = True
    redis_url: str = "redis://localhost:6379/0"
    password: Optional[str] = None
    ttl_seconds: int = 7 * 24 * 60 * 60


class FreshnessConfig(BaseModel):
    """
    Re-fetch policy for company sources.

    A company website changes less often than a job-board profile, but the
    board profile is cheap to refetch, so each source site gets its own TTL.
    """
    ttl_hours: Dict[str, int] = Field(default_factory=lambda: {
        "dev.bg": 720,
        "company_website": 168,
    })
    default_ttl_hours: int = 336
    cleanup_after_days: int = 90


class DuplicateConfig(BaseModel):
    exact_threshold: float = 0.95
    auto_merge_threshold: float = 0.80
    candidate_threshold: float = 0.70
    window_days: int = 30
    company_candidate_limit: int = 50
    title_candidate_limit: int = 30


class JobTypeConfig(BaseModel):
    concurrency: int = 1
    max_retries: int = 3
    backoff_seconds: float = 5.0
    priority: int = 5
    timeout_seconds: float = 600.0
    max_queue_size: int = 1000


def _default_job_types() -> Dict[str, JobTypeConfig]:
    return {
        "scrape": JobTypeConfig(concurrency=1, max_retries=3, backoff_seconds=30.0, priority=7, timeout_seconds=1800.0, max_queue_size=50),
        "ai-extraction": JobTypeConfig(concurrency=3, max_retries=3, backoff_seconds=2.0, priority=5, timeout_seconds=120.0, max_queue_size=500),
        "company-analysis": JobTypeConfig(concurrency=1, max_retries=3, backoff_seconds=5.0, priority=3, timeout_seconds=300.0, max_queue_size=200),
        "batch-processing": JobTypeConfig(concurrency=1, max_retries=2, backoff_seconds=10.0, priority=4, timeout_seconds=1800.0, max_queue_size=20),
        "health-check": JobTypeConfig(concurrency=1, max_retries=1, backoff_seconds=0.0, priority=10, timeout_seconds=30.0, max_queue_size=10),
    }


class OrchestratorConfig(BaseModel):
    """
    Configuration for the TaskOrchestrator.

    Per-type settings are merged over the defaults, so a config file only
    needs to list the values it changes.
    """
    job_types: Dict[str, JobTypeConfig] = Field(default_factory=_default_job_types)
    poll_interval_seconds: float = 0.1
    # Finished jobs stay queryable until either limit is hit
    max_finished_jobs: int = 1000
    finished_job_ttl_seconds: float = 3600.0
    max_failures: int = 100

    def for_type(self, job_type: str) -> JobTypeConfig:
        return self.job_types.get(job_type) or _default_job_types().get(job_type) or JobTypeConfig()


class BatchConfig(BaseModel):
    max_concurrent: int = 2
    delay_between_requests_ms: int = 1000


class PipelineConfig(BaseModel):
    enable_ai_extraction: bool = True
    enable_company_analysis: bool = True


class AppConfig(BaseModel):
    database: DatabaseConfig
    scraper: ScraperConfig = Field(default_factory=ScraperConfig)
    llm: LlmConfig = Field(default_factory=LlmConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    freshness: FreshnessConfig = Field(default_factory=FreshnessConfig)
    duplicates: DuplicateConfig = Field(default_factory=DuplicateConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)


def _merge_job_types(data: dict) -> None:
    """Overlay configured job-type settings onto the defaults."""
    orchestrator = data.get('orchestrator') or {}
    configured = orchestrator.get('job_types') or {}
    merged = {name: cfg.model_dump() for name, cfg in _default_job_types().items()}
    for name, overrides in configured.items():
        merged.setdefault(name, JobTypeConfig().model_dump()).update(overrides or {})
    orchestrator['job_types'] = merged
    data['orchestrator'] = orchestrator


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from root), try absolute or adjusted path
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        data.setdefault('database', {})
        data['database']['url'] = env_db_url

    # Allow env var override for Redis URL
    env_redis_url = os.environ.get("REDIS_URL")
    if env_redis_url:
        data.setdefault('cache', {})
        data['cache']['redis_url'] = env_redis_url

    # Allow env var override for LLM credentials
    env_api_key = os.environ.get("OPENAI_API_KEY")
    if env_api_key:
        data.setdefault('llm', {})
        data['llm']['api_key'] = env_api_key

    env_llm_base_url = os.environ.get("ETL_LLM_BASE_URL")
    if env_llm_base_url:
        data.setdefault('llm', {})
        data['llm']['base_url'] = env_llm_base_url

    _merge_job_types(data)

    return AppConfig(**data)
