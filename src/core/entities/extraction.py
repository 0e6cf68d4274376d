"""
Extraction result shapes.

``ExtractedInvoice`` is the raw structured guess returned by an extractor,
before it becomes an ``Invoice`` aggregate. Fields stay permissive here;
the validation engine decides what is acceptable.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.core.entities.money import to_decimal


def coerce_decimal(v: Any, default: Decimal | None) -> Decimal | None:
    if v is None or (isinstance(v, str) and not v.strip()):
        return default
    try:
        value = to_decimal(v)
    except (InvalidOperation, ValueError, TypeError):
        return default
    return value if value.is_finite() else default


class ExtractedLineItem(BaseModel):
    """Line item as read from the document."""

    line_number: int = 1
    description: str = ""
    quantity: Decimal = Decimal("1")
    unit: str = ""
    unit_price: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> Decimal:
        return coerce_decimal(v, Decimal("1"))

    @field_validator("unit_price", "line_total", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return coerce_decimal(v, Decimal("0"))

    @field_validator("description", "unit", mode="before")
    @classmethod
    def coerce_string(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()


class ExtractedInvoice(BaseModel):
    """Invoice header and lines as read from the document."""

    invoice_number: str = ""
    invoice_date: datetime | None = None
    due_date: datetime | None = None
    vendor_name: str = ""
    customer_name: str = ""
    currency: str = "USD"
    total_amount: Decimal = Decimal("0")
    tax_amount: Decimal | None = None
    subtotal: Decimal | None = None
    line_items: list[ExtractedLineItem] = Field(default_factory=list)

    @field_validator("total_amount", mode="before")
    @classmethod
    def coerce_total(cls, v: Any) -> Decimal:
        return coerce_decimal(v, Decimal("0"))

    @field_validator("tax_amount", "subtotal", mode="before")
    @classmethod
    def coerce_optional(cls, v: Any) -> Decimal | None:
        return coerce_decimal(v, None)

    @field_validator("invoice_number", "vendor_name", "customer_name", mode="before")
    @classmethod
    def coerce_string(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return "USD"
        return str(v).strip().upper()


class ExtractionResult(BaseModel):
    """
    Outcome of one extraction call.

    Exactly one of ``invoice`` and ``error`` is set. Extractors return a
    failed result instead of raising.
    """

    success: bool
    invoice: ExtractedInvoice | None = None
    error: str | None = None
    provider: str
    file_name: str = ""

    @classmethod
    def ok(cls, invoice: ExtractedInvoice, provider: str, file_name: str = "") -> "ExtractionResult":
        return cls(success=True, invoice=invoice, provider=provider, file_name=file_name)

    @classmethod
    def failure(cls, error: str, provider: str, file_name: str = "") -> "ExtractionResult":
        return cls(success=False, error=error or "Unknown extraction error", provider=provider, file_name=file_name)
