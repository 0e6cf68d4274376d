"""Response DTOs for API endpoints.

Pydantic v2 models for API response serialization.
Amounts are decimals and serialize as strings to keep exact cents.
"""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field

from src.core.entities import BatchResult, FileOutcome, Invoice, LineItem


class FindingResponse(BaseModel):
    """Validation warning or error."""

    code: str
    message: str


class LineItemResponse(BaseModel):
    """Line item in invoice response."""

    id: str
    line_number: int
    description: str
    quantity: Decimal
    unit: str = ""
    unit_price: Decimal
    line_total: Decimal

    @classmethod
    def from_entity(cls, item: LineItem) -> "LineItemResponse":
        return cls(
            id=item.id,
            line_number=item.line_number,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            unit_price=item.unit_price.amount,
            line_total=item.line_total.amount,
        )


class InvoiceSummaryResponse(BaseModel):
    """Invoice header for list views."""

    id: str = Field(..., description="Invoice ID")
    invoice_number: str = Field(..., description="Invoice number")
    invoice_date: datetime = Field(..., description="Invoice date (UTC)")
    vendor_name: str = Field(..., description="Vendor name")
    customer_name: str = Field(default="", description="Customer name")
    total_amount: Decimal = Field(..., description="Stated total")
    currency: str = Field(default="USD", description="Currency code")
    status: str = Field(..., description="Processing status")
    original_file_name: str = Field(default="", description="Uploaded file name")
    processed_at: datetime = Field(..., description="Processing timestamp")
    is_valid: bool = Field(..., description="True when there are no validation errors")

    @classmethod
    def from_entity(cls, invoice: Invoice) -> "InvoiceSummaryResponse":
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            invoice_date=invoice.invoice_date,
            vendor_name=invoice.vendor_name,
            customer_name=invoice.customer_name,
            total_amount=invoice.total_amount.amount,
            currency=invoice.currency,
            status=invoice.status.value,
            original_file_name=invoice.original_file_name,
            processed_at=invoice.processed_at,
            is_valid=invoice.is_valid,
        )


class InvoiceResponse(InvoiceSummaryResponse):
    """Full invoice with items and findings."""

    due_date: datetime | None = Field(default=None, description="Payment due date")
    tax_amount: Decimal | None = Field(default=None, description="Tax amount")
    subtotal: Decimal | None = Field(default=None, description="Subtotal before tax")
    line_items_total: Decimal = Field(..., description="Sum of line item totals")
    file_hash: str = Field(default="", description="SHA-256 of the uploaded file")
    processing_error: str | None = Field(default=None, description="Why processing failed")
    line_items: list[LineItemResponse] = Field(default_factory=list)
    validation_warnings: list[FindingResponse] = Field(default_factory=list)
    validation_errors: list[FindingResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, invoice: Invoice) -> "InvoiceResponse":
        summary = InvoiceSummaryResponse.from_entity(invoice)
        return cls(
            **summary.model_dump(),
            due_date=invoice.due_date,
            tax_amount=invoice.tax_amount.amount if invoice.tax_amount else None,
            subtotal=invoice.subtotal.amount if invoice.subtotal else None,
            line_items_total=invoice.line_items_total.amount,
            file_hash=invoice.file_hash,
            processing_error=invoice.processing_error,
            line_items=[LineItemResponse.from_entity(i) for i in invoice.line_items],
            validation_warnings=[
                FindingResponse(code=w.code, message=w.message) for w in invoice.validation_warnings
            ],
            validation_errors=[
                FindingResponse(code=e.code, message=e.message) for e in invoice.validation_errors
            ],
        )


class FileResultResponse(BaseModel):
    """Outcome of one file in a batch upload."""

    file_name: str
    status: str
    invoice_id: str | None = None
    invoice: InvoiceResponse | None = None
    warnings: list[FindingResponse] = Field(default_factory=list)
    errors: list[FindingResponse] = Field(default_factory=list)
    processing_error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: FileOutcome) -> "FileResultResponse":
        return cls(
            file_name=outcome.file_name,
            status=outcome.status.value,
            invoice_id=outcome.invoice_id,
            invoice=InvoiceResponse.from_entity(outcome.invoice) if outcome.invoice else None,
            warnings=[FindingResponse(code=w.code, message=w.message) for w in outcome.warnings],
            errors=[FindingResponse(code=e.code, message=e.message) for e in outcome.errors],
            processing_error=outcome.processing_error,
        )


class BatchUploadResponse(BaseModel):
    """Response for a batch upload."""

    success: bool
    total_processed: int
    total_failed: int
    total_duplicates: int
    results: list[FileResultResponse] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_batch(cls, batch: BatchResult) -> "BatchUploadResponse":
        return cls(
            success=batch.success,
            total_processed=batch.total_processed,
            total_failed=batch.total_failed,
            total_duplicates=batch.total_duplicates,
            results=[FileResultResponse.from_outcome(o) for o in batch.results],
            errors=list(batch.errors),
        )


class PaginatedResponse(BaseModel):
    """Base for paginated responses."""

    total: int
    page: int
    page_size: int
    has_more: bool


class InvoiceListResponse(PaginatedResponse):
    """Page of invoice summaries."""

    invoices: list[InvoiceSummaryResponse] = Field(default_factory=list)


class ProviderHealthResponse(BaseModel):
    """Provider health status."""

    name: str
    available: bool
    latency_ms: float | None = None
    model: str | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = "1.0.0"
    uptime_seconds: float
    llm: ProviderHealthResponse | None = None
    database: ProviderHealthResponse | None = None


class ErrorResponse(BaseModel):
    """Standardized error response DTO.

    Every error response includes:
    - error_code: machine-readable code (e.g. INVOICE_NOT_FOUND)
    - message: human-readable description
    - hint: suggested recovery action
    - path: request path that triggered the error
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")
    hint: str | None = Field(default=None, description="Suggested recovery action")
    detail: str | None = Field(default=None, description="Additional details")
    path: str | None = Field(default=None, description="Request path")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
