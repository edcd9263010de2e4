"""
AI Extractor Interface - Abstract base for AI enrichment providers.

Implementations must not raise when unconfigured; callers check
`is_configured()` first and turn a False into a structured failure result.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from core.scorer.models import CompanyAttributes


class AIExtractor(ABC):
    """
    Abstract Interface for AI enrichment (OpenAI, Ollama, etc.).
    """

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    def extract_vacancy(self, content: str) -> Optional[Dict[str, Any]]:
        """
        Extract structured vacancy data from page content.

        Returns None when the model produced no usable result.
        """
        pass

    @abstractmethod
    def analyze_company_profile(self, content: str, url: str) -> Optional[CompanyAttributes]:
        """
        Analyze a company profile or website page into scoring attributes.

        Returns None when the model produced no usable result.
        """
        pass
