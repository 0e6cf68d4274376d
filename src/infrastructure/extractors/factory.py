"""
Extractor factory.

Selects the extraction backend once from ``LLM_PROVIDER``.
"""

from src.config import get_logger, get_settings
from src.core.interfaces import IInvoiceExtractor

logger = get_logger(__name__)

_extractor: IInvoiceExtractor | None = None


def create_extractor(provider_type: str | None = None) -> IInvoiceExtractor:
    """
    Build an extractor for the given backend.

    Args:
        provider_type: "mock", "ollama", "openai" or "gemini" (default from settings)
    """
    provider_type = provider_type or get_settings().llm.provider

    if provider_type == "mock":
        from src.infrastructure.extractors.mock_extractor import MockInvoiceExtractor

        return MockInvoiceExtractor()

    from src.infrastructure.extractors.llm_extractor import LLMInvoiceExtractor
    from src.infrastructure.llm.factory import get_vision_provider

    return LLMInvoiceExtractor(get_vision_provider(provider_type))


def get_extractor() -> IInvoiceExtractor:
    """Get or create the configured extractor singleton."""
    global _extractor
    if _extractor is None:
        _extractor = create_extractor()
        logger.info("extractor_selected", provider=_extractor.name)
    return _extractor


def reset_extractor() -> None:
    """Forget the cached extractor (for testing)."""
    global _extractor
    _extractor = None
