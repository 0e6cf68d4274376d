"""Core interfaces (ports) for dependency injection."""

from src.core.interfaces.extractor import IInvoiceExtractor
from src.core.interfaces.llm import (
    HealthStatus,
    IVisionProvider,
    LLMProvider,
    VisionResponse,
)
from src.core.interfaces.storage import IFileStorage, IInvoiceRepository

__all__ = [
    # Extraction interfaces
    "IInvoiceExtractor",
    # LLM interfaces
    "IVisionProvider",
    "LLMProvider",
    "VisionResponse",
    "HealthStatus",
    # Storage interfaces
    "IInvoiceRepository",
    "IFileStorage",
]
