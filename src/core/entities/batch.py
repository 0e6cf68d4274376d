"""Batch processing outcomes."""

from enum import Enum

from pydantic import BaseModel, Field

from src.core.entities.invoice import Invoice, ValidationError, ValidationWarning


class OutcomeStatus(str, Enum):
    """Terminal state of one file in a batch."""

    PROCESSED = "processed"
    FAILED = "failed"
    DUPLICATE = "duplicate"
    CANCELLED = "cancelled"


class FileOutcome(BaseModel):
    """What happened to one uploaded file."""

    file_name: str
    status: OutcomeStatus
    invoice: Invoice | None = None
    warnings: list[ValidationWarning] = Field(default_factory=list)
    errors: list[ValidationError] = Field(default_factory=list)
    processing_error: str | None = None

    @property
    def invoice_id(self) -> str | None:
        return self.invoice.id if self.invoice else None


class BatchResult(BaseModel):
    """Aggregated outcome of a batch upload."""

    success: bool = False
    total_processed: int = 0
    total_failed: int = 0
    total_duplicates: int = 0
    results: list[FileOutcome] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
