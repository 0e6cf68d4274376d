"""
Service factory functions for dependency injection.

This module wires infrastructure implementations to core services.
Use cases and API handlers import from here.
"""

from typing import TYPE_CHECKING

from src.core.services import DuplicateDetector, InvoiceValidator

if TYPE_CHECKING:
    from src.core.interfaces import IFileStorage, IInvoiceExtractor, IInvoiceRepository


# Singleton service instances
_invoice_validator: InvoiceValidator | None = None
_duplicate_detector: DuplicateDetector | None = None


def get_invoice_extractor() -> "IInvoiceExtractor":
    """Get the configured invoice extractor (mock or LLM-backed)."""
    # Lazy import infrastructure to avoid circular imports
    from src.infrastructure.extractors import get_extractor

    return get_extractor()


async def get_invoice_repository() -> "IInvoiceRepository":
    """Get the invoice repository backed by SQLite."""
    from src.infrastructure.storage.sqlite import get_invoice_repository as _get_repository

    return await _get_repository()


def get_file_storage() -> "IFileStorage":
    """Get the raw document storage."""
    from src.infrastructure.storage.files import get_file_storage as _get_file_storage

    return _get_file_storage()


def get_invoice_validator() -> InvoiceValidator:
    global _invoice_validator
    if _invoice_validator is None:
        _invoice_validator = InvoiceValidator()
    return _invoice_validator


async def get_duplicate_detector(
    repository: "IInvoiceRepository | None" = None,
) -> DuplicateDetector:
    """
    Get or create the DuplicateDetector.

    Args:
        repository: Optional repository override; bypasses the singleton

    Returns:
        Configured DuplicateDetector
    """
    global _duplicate_detector

    if repository is not None:
        return DuplicateDetector(repository)

    if _duplicate_detector is None:
        _duplicate_detector = DuplicateDetector(await get_invoice_repository())
    return _duplicate_detector


def reset_services() -> None:
    """
    Reset all service singletons.

    Useful for testing or reconfiguration.
    """
    global _invoice_validator
    global _duplicate_detector

    _invoice_validator = None
    _duplicate_detector = None

    from src.infrastructure.extractors import reset_extractor
    from src.infrastructure.storage.files import reset_file_storage

    reset_extractor()
    reset_file_storage()


__all__ = [
    "get_invoice_extractor",
    "get_invoice_repository",
    "get_file_storage",
    "get_invoice_validator",
    "get_duplicate_detector",
    "reset_services",
]
