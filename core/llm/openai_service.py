"""
OpenAI Service - AI extraction using the OpenAI chat completions API.

Both extractions use JSON Schema structured output generated from the
pydantic models in core.llm.schema_models. Works with any OpenAI-compatible
endpoint (set base_url for Ollama and friends).
"""
from typing import Dict, Any, Optional, Tuple
import json
import logging
import copy
import re

import openai
from openai import OpenAI
from pydantic import ValidationError as SchemaValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity import RetryCallState

from core.llm.interfaces import AIExtractor
from core.llm.schema_models import (
    CompanyAnalysis,
    VacancyExtraction,
    COMPANY_ANALYSIS_SCHEMA,
    VACANCY_EXTRACTION_SCHEMA,
)
from core.llm.system_prompts import (
    COMPANY_ANALYSIS_SYSTEM_PROMPT,
    VACANCY_EXTRACTION_SYSTEM_PROMPT,
)
from core.scorer.models import CompanyAttributes

logger = logging.getLogger(__name__)

RETRYABLE_API_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------

def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    if isinstance(exc, openai.RateLimitError):
        logger.warning(
            "Rate limit hit (attempt %s). Waiting %.1fs before retry. Details: %s",
            retry_state.attempt_number, wait, exc,
        )
    else:
        logger.warning(
            "Transient API error (attempt %s). Waiting %.1fs before retry. Details: %s",
            retry_state.attempt_number, wait, exc,
        )


def _retry_after_seconds(exc: openai.RateLimitError) -> float:
    """Seconds declared by a `retry-after` header, 0.0 if absent or unparsable."""
    response = getattr(exc, "response", None)
    value = response.headers.get("retry-after", "") if response is not None else ""
    match = re.fullmatch(r"\s*([\d.]+)\s*", value or "")
    return float(match.group(1)) if match else 0.0


def _wait_respecting_retry_after(retry_state: RetryCallState) -> float:
    exc = retry_state.outcome.exception()
    if isinstance(exc, openai.RateLimitError):
        wait = _retry_after_seconds(exc)
        if wait > 0:
            return min(wait, 120)

    # Fallback: exponential backoff 2 -> 4 -> 8 ... capped at 60s
    exp = wait_exponential(multiplier=1, min=2, max=60)
    return exp(retry_state)


def _llm_retry(**kwargs):
    """Return a tenacity @retry decorator for LLM API calls."""
    return retry(
        retry=retry_if_exception_type(RETRYABLE_API_ERRORS),
        wait=_wait_respecting_retry_after,
        stop=stop_after_attempt(4),
        before_sleep=_log_retry,
        reraise=True,
        **kwargs,
    )


def _unwrap_schema_spec(spec: Dict[str, Any]) -> Tuple[str, bool, Dict[str, Any]]:
    """Return (name, strict, raw_schema) from a wrapped {'name', 'strict', 'schema'} spec."""
    if isinstance(spec, dict) and "schema" in spec and "name" in spec:
        return spec.get("name", "extraction_response"), bool(spec.get("strict", False)), spec["schema"]
    return "extraction_response", False, spec


class OpenAIExtractor(AIExtractor):
    """
    OpenAI-backed AIExtractor.

    Without an API key or base URL the extractor reports itself unconfigured
    and never builds a client.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        max_content_chars: int = 20000,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_content_chars = max_content_chars
        self.client = client

        if self.client is None and (api_key or base_url):
            client_kwargs = {}
            # Local OpenAI-compatible servers accept any key
            client_kwargs['api_key'] = api_key or "not-needed"
            if base_url:
                client_kwargs['base_url'] = base_url
            self.client = OpenAI(**client_kwargs)

    def is_configured(self) -> bool:
        return self.client is not None

    @_llm_retry()
    def extract_structured_data(self, schema_spec: Dict, system_prompt: str, user_message: str) -> Optional[Dict[str, Any]]:
        """Run one JSON Schema completion; returns None if the reply is not valid JSON."""
        name, strict, raw_schema = _unwrap_schema_spec(schema_spec)
        runtime_schema = copy.deepcopy(raw_schema)

        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            temperature=self.temperature,
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": name,
                    "schema": runtime_schema,
                    "strict": strict,
                },
            },
        )

        try:
            content = response.choices[0].message.content
            return json.loads(content) if content else None
        except (json.JSONDecodeError, IndexError, AttributeError, TypeError) as e:
            logger.error(f"Failed to parse structured data response: {e}")
            return None

    def _truncate(self, content: str) -> str:
        if len(content) > self.max_content_chars:
            logger.debug(f"Truncating content from {len(content)} to {self.max_content_chars} chars")
            return content[:self.max_content_chars]
        return content

    def extract_vacancy(self, content: str) -> Optional[Dict[str, Any]]:
        if not self.is_configured() or not content:
            return None

        data = self.extract_structured_data(
            VACANCY_EXTRACTION_SCHEMA,
            system_prompt=VACANCY_EXTRACTION_SYSTEM_PROMPT,
            user_message=f"<JOB_POSTING>\n{self._truncate(content)}\n</JOB_POSTING>\n\nExtract the vacancy data.",
        )
        if not data:
            return None

        try:
            extraction = VacancyExtraction.model_validate(data)
        except SchemaValidationError as e:
            logger.warning(f"Vacancy extraction did not match schema: {e}")
            return None

        if not extraction.title and not extraction.technologies and not extraction.description:
            return None

        logger.info(
            f"Extracted vacancy '{extraction.title}' with {len(extraction.technologies)} technologies "
            f"(confidence: {extraction.confidence_score}%)"
        )
        return extraction.model_dump()

    def analyze_company_profile(self, content: str, url: str) -> Optional[CompanyAttributes]:
        if not self.is_configured() or not content:
            return None

        data = self.extract_structured_data(
            COMPANY_ANALYSIS_SCHEMA,
            system_prompt=COMPANY_ANALYSIS_SYSTEM_PROMPT,
            user_message=f"Source URL: {url}\n\n<COMPANY_PAGE>\n{self._truncate(content)}\n</COMPANY_PAGE>\n\nAnalyze the company.",
        )
        if not data:
            return None

        try:
            analysis = CompanyAnalysis.model_validate(data)
        except SchemaValidationError as e:
            logger.warning(f"Company analysis did not match schema: {e}")
            return None

        if not analysis.name and not analysis.description:
            return None

        logger.info("=" * 60)
        logger.info(f"COMPANY ANALYSIS ({self.model}): {analysis.name or url}")
        logger.info("-" * 60)
        logger.info(
            f"industry={analysis.industry} size={analysis.size} "
            f"completeness={analysis.data_completeness}% reliability={analysis.source_reliability}%"
        )
        logger.info("=" * 60)
        return analysis.to_attributes()
