"""
Invoice validation engine.

Layer-pure, deterministic rule set run against an extracted invoice.
Errors block (the invoice ends up failed but is still stored); warnings
are advisory only.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.config import get_logger
from src.core.entities.extraction import ExtractedInvoice
from src.core.entities.invoice import ValidationError, ValidationWarning

logger = get_logger(__name__)


@dataclass
class ValidationResult:
    """Errors and warnings produced by one validation run."""

    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str) -> None:
        self.errors.append(ValidationError(code=code, message=message))

    def warn(self, code: str, message: str) -> None:
        self.warnings.append(ValidationWarning(code=code, message=message))


class InvoiceValidator:
    """
    Rule-based invoice validation.

    Rules run in a fixed order and use stable codes:
    - required header fields (InvoiceNumber, InvoiceDate, TotalAmount,
      VendorName, CustomerName)
    - line item presence and per-item sanity (LineItem[i].*)
    - repeated descriptions (LineItems warning)
    - line totals vs stated total (AMOUNT_MISMATCH warning)
    """

    # Rounding tolerance for the amount consistency check
    AMOUNT_TOLERANCE = Decimal("0.01")

    def __init__(self, amount_tolerance: Decimal | None = None):
        self._tolerance = (
            amount_tolerance if amount_tolerance is not None else self.AMOUNT_TOLERANCE
        )

    def validate(self, invoice: ExtractedInvoice) -> ValidationResult:
        result = ValidationResult()

        self._check_required_fields(invoice, result)
        self._check_line_items(invoice, result)
        self._check_repeated_descriptions(invoice, result)
        self._check_amounts(invoice, result)

        logger.info(
            "invoice_validated",
            invoice_number=invoice.invoice_number,
            is_valid=result.is_valid,
            errors=len(result.errors),
            warnings=len(result.warnings),
        )
        return result

    def _check_required_fields(self, invoice: ExtractedInvoice, result: ValidationResult) -> None:
        if not invoice.invoice_number.strip():
            result.error("InvoiceNumber", "Invoice number is required")

        if invoice.invoice_date is None or invoice.invoice_date.replace(tzinfo=None) == datetime.min:
            result.error("InvoiceDate", "Invoice date is required")

        if invoice.total_amount <= 0:
            result.error("TotalAmount", "Total amount must be greater than zero")

        if not invoice.vendor_name.strip():
            result.error("VendorName", "Vendor name is required")

        if not invoice.customer_name.strip():
            result.error("CustomerName", "Customer name is required")

    def _check_line_items(self, invoice: ExtractedInvoice, result: ValidationResult) -> None:
        if not invoice.line_items:
            result.error("LineItems", "At least one line item is required")
            return

        for i, item in enumerate(invoice.line_items):
            if not item.description.strip():
                result.error(f"LineItem[{i}].Description", "Line item description is required")
            if item.quantity <= 0:
                result.error(f"LineItem[{i}].Quantity", "Line item quantity must be greater than zero")
            if item.unit_price <= 0:
                result.error(f"LineItem[{i}].UnitPrice", "Line item unit price must be greater than zero")

    def _check_repeated_descriptions(self, invoice: ExtractedInvoice, result: ValidationResult) -> None:
        counts = Counter(item.description for item in invoice.line_items)
        for description, count in counts.items():
            if count > 1:
                result.warn("LineItems", f"Multiple line items with description '{description}'")

    def _check_amounts(self, invoice: ExtractedInvoice, result: ValidationResult) -> None:
        if not invoice.line_items:
            return

        calculated = sum((item.line_total for item in invoice.line_items), Decimal("0"))
        if abs(calculated - invoice.total_amount) > self._tolerance:
            result.warn(
                "AMOUNT_MISMATCH",
                f"Sum of line items ({calculated}) does not match invoice total ({invoice.total_amount}).",
            )
