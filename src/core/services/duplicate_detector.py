"""
Duplicate detection service.

Two read-only checks against stored invoices:
- exact content match on the file's SHA-256 (hard duplicate)
- same number, vendor and invoice day (possible duplicate, warning only)
"""

from src.config import get_logger
from src.core.entities.invoice import Invoice
from src.core.interfaces import IInvoiceRepository

logger = get_logger(__name__)

DUPLICATE_WARNING_CODE = "DUPLICATE_POSSIBLE"


class DuplicateDetector:
    """Duplicate and near-duplicate lookups over the invoice repository."""

    def __init__(self, repository: IInvoiceRepository):
        self._repository = repository

    async def find_exact(self, file_hash: str) -> Invoice | None:
        """Return the stored invoice with identical file content, if any."""
        existing = await self._repository.get_by_file_hash(file_hash)
        if existing:
            logger.info(
                "duplicate_content_found",
                file_hash=file_hash[:12],
                existing_id=existing.id,
                existing_number=existing.invoice_number,
            )
        return existing

    async def find_near_duplicates(self, invoice: Invoice) -> list[Invoice]:
        matches = await self._repository.find_similar(
            invoice.invoice_number,
            invoice.vendor_name,
            invoice.invoice_date,
        )
        return [m for m in matches if m.id != invoice.id]

    async def flag_near_duplicates(self, invoice: Invoice) -> bool:
        """
        Attach a warning when similar invoices exist.

        Status is not changed. Returns True when the invoice was flagged.
        """
        matches = await self.find_near_duplicates(invoice)
        if not matches:
            return False

        invoice.add_validation_warning(
            DUPLICATE_WARNING_CODE,
            f"Similar invoice(s) with number {invoice.invoice_number} "
            f"already exist for vendor {invoice.vendor_name}",
        )
        logger.info(
            "possible_duplicate_flagged",
            invoice_number=invoice.invoice_number,
            vendor=invoice.vendor_name,
            matches=len(matches),
        )
        return True
