"""
Invoice assembly.

Builds the ``Invoice`` aggregate from an extractor's guess, and the
placeholder record stored when extraction fails outright.
"""

from datetime import datetime, timezone

from src.config import get_logger
from src.core.entities.extraction import ExtractedInvoice
from src.core.entities.invoice import Invoice, InvoiceStatus, LineItem
from src.core.entities.money import Money
from src.core.exceptions import DomainError

logger = get_logger(__name__)

FAILED_INVOICE_NUMBER = "PROCESSING_FAILED"
FAILED_PARTY_NAME = "Unknown"
EXTRACTION_ERROR_CODE = "EXTRACTION_ERROR"


def assemble_invoice(extracted: ExtractedInvoice) -> Invoice:
    """
    Build an Invoice from extracted data.

    Header violations raise a DomainError. Line items that break
    LineItem rules are skipped; the validation engine reports them.
    """
    currency = extracted.currency
    invoice = Invoice.create(
        invoice_number=extracted.invoice_number,
        invoice_date=extracted.invoice_date or datetime.now(timezone.utc),
        vendor_name=extracted.vendor_name,
        customer_name=extracted.customer_name,
        total_amount=Money(extracted.total_amount, currency),
        tax_amount=Money(extracted.tax_amount, currency) if extracted.tax_amount is not None else None,
        subtotal=Money(extracted.subtotal, currency) if extracted.subtotal is not None else None,
    )
    invoice.set_due_date(extracted.due_date)

    for position, item in enumerate(extracted.line_items, start=1):
        try:
            line = LineItem.create(
                line_number=item.line_number if item.line_number >= 1 else position,
                description=item.description,
                quantity=item.quantity,
                unit_price=Money(item.unit_price, currency),
                unit=item.unit,
                invoice_id=invoice.id,
            )
        except DomainError as e:
            logger.debug("line_item_skipped", line_number=position, reason=e.message)
            continue
        invoice.add_line_item(line)

    return invoice


def failed_invoice(reason: str) -> Invoice:
    """Placeholder invoice recording an extraction failure."""
    invoice = Invoice.create(
        invoice_number=FAILED_INVOICE_NUMBER,
        invoice_date=datetime.now(timezone.utc),
        vendor_name=FAILED_PARTY_NAME,
        customer_name=FAILED_PARTY_NAME,
        total_amount=Money.zero("USD"),
    )
    invoice.set_processing_error(reason)
    invoice.add_validation_error(EXTRACTION_ERROR_CODE, reason)
    invoice.update_status(InvoiceStatus.FAILED)
    return invoice
