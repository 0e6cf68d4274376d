"""Invoice extractor implementations."""

from src.infrastructure.extractors.factory import (
    create_extractor,
    get_extractor,
    reset_extractor,
)
from src.infrastructure.extractors.llm_extractor import (
    EXTRACTION_PROMPT,
    LLMInvoiceExtractor,
)
from src.infrastructure.extractors.mock_extractor import MockInvoiceExtractor

__all__ = [
    "MockInvoiceExtractor",
    "LLMInvoiceExtractor",
    "EXTRACTION_PROMPT",
    "create_extractor",
    "get_extractor",
    "reset_extractor",
]
