"""
Extraction contract.

An extractor turns document bytes into an ``ExtractionResult``. Failures
are reported in the result, never raised across this boundary.
"""

from abc import ABC, abstractmethod

from src.config import get_logger
from src.core.entities.extraction import ExtractionResult

logger = get_logger(__name__)


class IInvoiceExtractor(ABC):
    """Abstract interface for invoice extractors."""

    name: str = "extractor"

    @abstractmethod
    async def extract_invoice(self, content: bytes, file_name: str) -> ExtractionResult:
        """
        Extract structured invoice data from a document.

        Args:
            content: Raw document bytes
            file_name: Original file name, used for MIME detection

        Returns:
            ExtractionResult, successful or failed
        """
        pass

    async def extract_invoices(
        self, files: list[tuple[bytes, str]]
    ) -> list[ExtractionResult]:
        """
        Extract a list of documents one by one.

        A failing file becomes a failed result; the rest of the list is
        still processed.
        """
        results: list[ExtractionResult] = []
        for content, file_name in files:
            try:
                results.append(await self.extract_invoice(content, file_name))
            except Exception as e:
                logger.error("extraction_failed", file_name=file_name, error=str(e))
                results.append(ExtractionResult.failure(str(e), self.name, file_name))
        return results
