"""
Core business logic services.

Layer-pure services that depend only on:
- src/core/entities/*
- src/core/interfaces/*
- src/core/exceptions.py

NO infrastructure imports. All dependencies injected via constructor.
"""

from src.core.services.duplicate_detector import DuplicateDetector
from src.core.services.extraction_parser import parse_date, parse_extraction_response
from src.core.services.invoice_assembler import assemble_invoice, failed_invoice
from src.core.services.invoice_validator import InvoiceValidator, ValidationResult

__all__ = [
    # Validation
    "InvoiceValidator",
    "ValidationResult",
    # Duplicates
    "DuplicateDetector",
    # Assembly
    "assemble_invoice",
    "failed_invoice",
    # Response parsing
    "parse_extraction_response",
    "parse_date",
]
