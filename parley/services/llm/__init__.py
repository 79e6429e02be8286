"""Generator factory."""

from parley.core.config import settings
from parley.services.llm.base import BaseGenerator


def get_generator() -> BaseGenerator:
    """Factory function that returns the configured generator."""
    if settings.llm_provider == "gemini":
        from parley.services.llm.gemini import GeminiGenerator
        return GeminiGenerator()
    else:
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")
