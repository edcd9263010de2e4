"""LLM Module - AI extraction services and interfaces."""
from core.llm.interfaces import AIExtractor
from core.llm.openai_service import OpenAIExtractor

__all__ = ['AIExtractor', 'OpenAIExtractor']
