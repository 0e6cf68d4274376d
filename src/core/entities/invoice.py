"""
Invoice aggregate with Pydantic v2 validation.

The invoice owns its line items and its validation findings. Line items
and findings are frozen once created; the invoice header is mutated only
by the processing pipeline during a single run.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from src.core.entities.money import Money, to_decimal
from src.core.exceptions import CurrencyMismatchError, InvalidArgumentError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class InvoiceStatus(str, Enum):
    """Processing status of an invoice."""

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    DUPLICATE = "duplicate"


class _Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    message: str

    @field_validator("code", "message", mode="before")
    @classmethod
    def require_text(cls, v: Any, info: ValidationInfo) -> str:
        if v is None or not str(v).strip():
            raise InvalidArgumentError(info.field_name, "must not be empty")
        return str(v).strip()


class ValidationWarning(_Finding):
    """Advisory finding; never blocks persistence."""


class ValidationError(_Finding):
    """Blocking finding; the invoice is still persisted for audit."""


class LineItem(BaseModel):
    """
    One billed entry of an invoice.

    Build new items with ``LineItem.create`` so that ``line_total`` is
    derived from quantity and unit price.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    invoice_id: str | None = None
    line_number: int
    description: str
    quantity: Decimal
    unit: str = ""
    unit_price: Money
    line_total: Money

    @classmethod
    def create(
        cls,
        line_number: int,
        description: str,
        quantity: Any,
        unit_price: Money,
        unit: str | None = "",
        invoice_id: str | None = None,
    ) -> "LineItem":
        if line_number < 1:
            raise InvalidArgumentError("line_number", "must be at least 1")
        description = (description or "").strip()
        if not description:
            raise InvalidArgumentError("description", "is required")
        try:
            qty = to_decimal(quantity)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidArgumentError("quantity", f"not a number: {quantity!r}") from None
        if not qty.is_finite() or qty <= 0:
            raise InvalidArgumentError("quantity", "must be greater than zero")

        return cls(
            invoice_id=invoice_id,
            line_number=line_number,
            description=description,
            quantity=qty,
            unit=(unit or "").strip(),
            unit_price=unit_price,
            line_total=unit_price * qty,
        )


class Invoice(BaseModel):
    """
    Invoice aggregate root.

    Use ``Invoice.create`` for new invoices. The plain constructor is used
    when rehydrating rows from storage.
    """

    id: str = Field(default_factory=new_id)
    invoice_number: str
    invoice_date: datetime
    due_date: datetime | None = None
    vendor_name: str
    customer_name: str = ""

    total_amount: Money
    tax_amount: Money | None = None
    subtotal: Money | None = None

    # File metadata
    original_file_name: str = ""
    file_path: str = ""
    file_hash: str = ""

    status: InvoiceStatus = InvoiceStatus.PENDING
    processed_at: datetime = Field(default_factory=utcnow)
    processing_error: str | None = None

    line_items: list[LineItem] = Field(default_factory=list)
    validation_warnings: list[ValidationWarning] = Field(default_factory=list)
    validation_errors: list[ValidationError] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        invoice_number: str,
        invoice_date: datetime,
        vendor_name: str,
        customer_name: str | None,
        total_amount: Money,
        tax_amount: Money | None = None,
        subtotal: Money | None = None,
        due_date: datetime | None = None,
    ) -> "Invoice":
        invoice_number = (invoice_number or "").strip()
        if not invoice_number:
            raise InvalidArgumentError("invoice_number", "is required")
        vendor_name = (vendor_name or "").strip()
        if not vendor_name:
            raise InvalidArgumentError("vendor_name", "is required")
        if not isinstance(total_amount, Money):
            raise InvalidArgumentError("total_amount", "must be a Money value")

        return cls(
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            due_date=due_date,
            vendor_name=vendor_name,
            customer_name=(customer_name or "").strip(),
            total_amount=total_amount,
            tax_amount=tax_amount,
            subtotal=subtotal,
        )

    @property
    def currency(self) -> str:
        return self.total_amount.currency

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors

    @property
    def line_items_total(self) -> Money:
        total = Money.zero(self.currency)
        for item in self.line_items:
            total = total + item.line_total
        return total

    def set_due_date(self, due_date: datetime | None) -> None:
        self.due_date = due_date

    def add_line_item(self, item: LineItem) -> None:
        """Attach a line item; its currency must match the invoice total."""
        if item.line_total.currency != self.currency:
            raise CurrencyMismatchError(self.currency, item.line_total.currency, "add line item")
        if item.invoice_id != self.id:
            item = item.model_copy(update={"invoice_id": self.id})
        self.line_items.append(item)

    def add_validation_warning(self, code: str, message: str) -> None:
        self.validation_warnings.append(ValidationWarning(code=code, message=message))

    def add_validation_error(self, code: str, message: str) -> None:
        # Status is left to the caller.
        self.validation_errors.append(ValidationError(code=code, message=message))

    def set_file_metadata(self, original_file_name: str, file_path: str, file_hash: str) -> None:
        self.original_file_name = original_file_name
        self.file_path = file_path
        self.file_hash = file_hash

    def update_status(self, status: InvoiceStatus) -> None:
        self.status = status
        if status in (InvoiceStatus.PROCESSED, InvoiceStatus.FAILED):
            self.processed_at = utcnow()

    def set_processing_error(self, error: str | None) -> None:
        self.processing_error = error
