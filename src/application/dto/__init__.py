"""Data transfer objects for the API boundary."""

from src.application.dto.requests import ListInvoicesRequest, UploadInvoicesRequest
from src.application.dto.responses import (
    BatchUploadResponse,
    ErrorResponse,
    FileResultResponse,
    FindingResponse,
    HealthResponse,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceSummaryResponse,
    LineItemResponse,
    PaginatedResponse,
    ProviderHealthResponse,
)

__all__ = [
    # Requests
    "UploadInvoicesRequest",
    "ListInvoicesRequest",
    # Responses
    "BatchUploadResponse",
    "FileResultResponse",
    "FindingResponse",
    "InvoiceResponse",
    "InvoiceSummaryResponse",
    "InvoiceListResponse",
    "LineItemResponse",
    "PaginatedResponse",
    "HealthResponse",
    "ProviderHealthResponse",
    "ErrorResponse",
]
