"""
Application layer - Use cases, DTOs, and service factories.

This layer orchestrates business logic by:
1. Defining request/response DTOs for API contracts
2. Implementing use cases that coordinate core services
3. Providing factory functions for dependency injection

Use cases are the only entry point for API handlers.
"""

from src.application.dto import (
    BatchUploadResponse,
    ErrorResponse,
    FileResultResponse,
    HealthResponse,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceSummaryResponse,
    ListInvoicesRequest,
    ProviderHealthResponse,
    UploadInvoicesRequest,
)
from src.application.services import (
    get_duplicate_detector,
    get_file_storage,
    get_invoice_extractor,
    get_invoice_repository,
    get_invoice_validator,
    reset_services,
)
from src.application.use_cases import IncomingFile, ProcessInvoicesUseCase

__all__ = [
    # Request DTOs
    "UploadInvoicesRequest",
    "ListInvoicesRequest",
    # Response DTOs
    "BatchUploadResponse",
    "FileResultResponse",
    "InvoiceResponse",
    "InvoiceSummaryResponse",
    "InvoiceListResponse",
    "HealthResponse",
    "ProviderHealthResponse",
    "ErrorResponse",
    # Services
    "get_invoice_extractor",
    "get_invoice_repository",
    "get_file_storage",
    "get_invoice_validator",
    "get_duplicate_detector",
    "reset_services",
    # Use cases
    "IncomingFile",
    "ProcessInvoicesUseCase",
]
