"""Core domain entities."""

from src.core.entities.batch import BatchResult, FileOutcome, OutcomeStatus
from src.core.entities.extraction import (
    ExtractedInvoice,
    ExtractedLineItem,
    ExtractionResult,
)
from src.core.entities.invoice import (
    Invoice,
    InvoiceStatus,
    LineItem,
    ValidationError,
    ValidationWarning,
)
from src.core.entities.money import Money

__all__ = [
    # Value objects
    "Money",
    # Invoice aggregate
    "Invoice",
    "InvoiceStatus",
    "LineItem",
    "ValidationError",
    "ValidationWarning",
    # Extraction
    "ExtractedInvoice",
    "ExtractedLineItem",
    "ExtractionResult",
    # Batch
    "BatchResult",
    "FileOutcome",
    "OutcomeStatus",
]
