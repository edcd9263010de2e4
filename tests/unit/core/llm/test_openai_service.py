"""
Unit tests for the OpenAI extractor.

Tests verify:
- Schema unwrapping helper works correctly
- extract_structured_data sends the JSON schema to the LLM
- Vacancy and company results are validated and converted
- Unconfigured extractors never build a client
- Transient API errors are retried
"""
import json
from unittest.mock import MagicMock, Mock

import httpx
import openai
import pytest
from tenacity import wait_none

from core.llm.openai_service import OpenAIExtractor, _retry_after_seconds, _unwrap_schema_spec
from core.llm.schema_models import COMPANY_ANALYSIS_SCHEMA, VACANCY_EXTRACTION_SCHEMA
from core.scorer.models import CompanyAttributes


def _response(payload):
    message = MagicMock()
    message.content = json.dumps(payload) if isinstance(payload, dict) else payload
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


def _vacancy(**overrides):
    data = {
        "title": "Senior Python Developer",
        "company": "Acme",
        "location": "Sofia",
        "salary_min": 5000,
        "salary_max": 7000,
        "currency": "BGN",
        "experience_level": "senior",
        "employment_type": "full-time",
        "work_model": "hybrid",
        "description": "Backend services",
        "requirements": ["5+ years Python"],
        "responsibilities": ["Build APIs"],
        "technologies": ["Python", "Django"],
        "benefits": ["Food vouchers"],
        "confidence_score": 90,
        "quality_score": 80,
    }
    data.update(overrides)
    return data


def _company(**overrides):
    data = {
        "name": "Acme",
        "description": "Payments platform",
        "industry": "fintech",
        "size": "medium",
        "location": "Sofia",
        "website": "https://acme.example",
        "employee_count": 250,
        "founded": 2012,
        "work_model": "hybrid",
        "technologies": ["Kotlin", "AWS"],
        "benefits": ["health insurance"],
        "values": ["transparency"],
        "awards": [],
        "job_openings": 4,
        "data_completeness": 70,
        "source_reliability": 80,
    }
    data.update(overrides)
    return data


class TestUnwrapSchemaSpec:

    def test_wrapper_schema_returns_name_strict_and_inner_schema(self):
        name, strict, raw_schema = _unwrap_schema_spec(VACANCY_EXTRACTION_SCHEMA)

        assert name == "vacancy_extraction"
        assert strict is True
        assert raw_schema.get("type") == "object"
        assert "technologies" in raw_schema["properties"]

    def test_raw_schema_passes_through_unchanged(self):
        raw = {"type": "object", "properties": {"foo": {"type": "string"}}}
        name, strict, result = _unwrap_schema_spec(raw)

        assert name == "extraction_response"
        assert strict is False
        assert result == raw


class TestConfiguration:

    def test_unconfigured_without_credentials(self):
        extractor = OpenAIExtractor()
        assert extractor.is_configured() is False
        assert extractor.extract_vacancy("some text") is None
        assert extractor.analyze_company_profile("some text", "https://acme.example") is None

    def test_base_url_alone_configures_client(self):
        extractor = OpenAIExtractor(base_url="http://localhost:11434/v1")
        assert extractor.is_configured() is True


class TestExtraction:

    @pytest.fixture
    def extractor(self):
        return OpenAIExtractor(client=MagicMock(), model="gpt-4o-mini", max_content_chars=50)

    def test_sends_unwrapped_json_schema(self, extractor):
        extractor.client.chat.completions.create.return_value = _response(_vacancy())

        extractor.extract_vacancy("Senior Python Developer at Acme")

        call_kwargs = extractor.client.chat.completions.create.call_args[1]
        json_schema = call_kwargs['response_format']['json_schema']
        assert call_kwargs['model'] == "gpt-4o-mini"
        assert json_schema['name'] == "vacancy_extraction"
        assert json_schema['strict'] is True
        assert "name" not in json_schema['schema']

    def test_content_is_truncated(self, extractor):
        extractor.client.chat.completions.create.return_value = _response(_vacancy())

        extractor.extract_vacancy("x" * 500)

        user_message = extractor.client.chat.completions.create.call_args[1]['messages'][1]['content']
        assert "x" * 50 in user_message
        assert "x" * 51 not in user_message

    def test_extract_vacancy_returns_validated_dict(self, extractor):
        extractor.client.chat.completions.create.return_value = _response(_vacancy())

        data = extractor.extract_vacancy("posting text")

        assert data["title"] == "Senior Python Developer"
        assert data["salary_min"] == 5000
        assert data["technologies"] == ["Python", "Django"]

    def test_schema_mismatch_returns_none(self, extractor):
        extractor.client.chat.completions.create.return_value = _response(_vacancy(experience_level="wizard"))
        assert extractor.extract_vacancy("posting text") is None

    def test_empty_result_returns_none(self, extractor):
        extractor.client.chat.completions.create.return_value = _response(
            _vacancy(title=None, technologies=[], description=None)
        )
        assert extractor.extract_vacancy("posting text") is None

    def test_unparsable_reply_returns_none(self, extractor):
        extractor.client.chat.completions.create.return_value = _response("not json {")
        assert extractor.extract_vacancy("posting text") is None

    def test_analyze_company_profile(self, extractor):
        extractor.client.chat.completions.create.return_value = _response(_company())

        attrs = extractor.analyze_company_profile("About Acme", "https://acme.example/about")

        assert isinstance(attrs, CompanyAttributes)
        assert attrs.company_name == "Acme"
        assert attrs.industry == "Financial Technology"
        assert attrs.technologies == ["kotlin", "aws"]
        assert attrs.data_completeness == 70.0
        call_kwargs = extractor.client.chat.completions.create.call_args[1]
        assert call_kwargs['response_format']['json_schema']['name'] == COMPANY_ANALYSIS_SCHEMA["name"]

    def test_analysis_without_name_or_description_is_empty(self, extractor):
        extractor.client.chat.completions.create.return_value = _response(_company(name=None, description=None))
        assert extractor.analyze_company_profile("About", "https://acme.example") is None


class TestRetry:

    def test_transient_error_is_retried(self):
        extractor = OpenAIExtractor(client=MagicMock())
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        extractor.client.chat.completions.create.side_effect = [
            openai.APIConnectionError(request=request),
            _response({"ok": True}),
        ]

        no_wait = OpenAIExtractor.extract_structured_data.retry_with(wait=wait_none())
        result = no_wait(extractor, VACANCY_EXTRACTION_SCHEMA, "system", "user")

        assert result == {"ok": True}
        assert extractor.client.chat.completions.create.call_count == 2

    def test_retry_after_header(self):
        exc = Mock()
        exc.response.headers = {"retry-after": "7"}
        assert _retry_after_seconds(exc) == 7.0

        exc.response.headers = {}
        assert _retry_after_seconds(exc) == 0.0
