"""
Abstract interfaces for storage providers.

Defines contracts for the invoice repository and for raw file storage.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import BinaryIO

from src.core.entities.invoice import Invoice


class IInvoiceRepository(ABC):
    """
    Abstract interface for invoice persistence.

    Handles invoices together with their line items and validation findings.
    """

    # Lookups
    @abstractmethod
    async def get_by_id(self, invoice_id: str) -> Invoice | None:
        """Get invoice by ID with items."""
        pass

    @abstractmethod
    async def get_by_file_hash(self, file_hash: str) -> Invoice | None:
        """Get invoice by file content hash (for deduplication)."""
        pass

    @abstractmethod
    async def get_by_number(self, invoice_number: str, vendor_name: str | None = None) -> Invoice | None:
        """Get the most recent invoice with this number, optionally for one vendor."""
        pass

    @abstractmethod
    async def find_similar(
        self,
        invoice_number: str,
        vendor_name: str,
        invoice_date: datetime,
    ) -> list[Invoice]:
        """Find invoices with the same number and vendor on the same calendar day."""
        pass

    @abstractmethod
    async def exists_by_number_vendor_date(
        self,
        invoice_number: str,
        vendor_name: str,
        invoice_date: datetime,
    ) -> bool:
        """Check whether a near-duplicate exists."""
        pass

    # Writes
    @abstractmethod
    async def add(self, invoice: Invoice) -> Invoice:
        """
        Insert the invoice with its line items in one transaction.

        Raises DuplicateContentError when the file hash is already stored.
        """
        pass

    @abstractmethod
    async def delete(self, invoice_id: str) -> bool:
        """Delete invoice and items."""
        pass

    # Listing
    @abstractmethod
    async def get_all(
        self,
        page: int = 0,
        page_size: int = 0,
        vendor_name: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[Invoice]:
        """
        List invoices, most recently processed first.

        Pages are 1-based; page <= 0 or page_size <= 0 returns every match.
        """
        pass

    @abstractmethod
    async def count(
        self,
        vendor_name: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> int:
        """Count invoices matching the same filters as get_all."""
        pass


class IFileStorage(ABC):
    """
    Abstract interface for raw document storage.

    Paths returned by ``save`` are opaque to callers.
    """

    @abstractmethod
    async def save(self, content: bytes | BinaryIO, file_name: str) -> str:
        """Store content under a unique name and return its path."""
        pass

    @abstractmethod
    async def read(self, path: str) -> BinaryIO:
        """Open a stored file. Raises StoredFileNotFoundError when absent."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Delete a stored file. Returns False when it did not exist."""
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def hash_content(self, content: bytes | BinaryIO) -> str:
        """
        SHA-256 of the content as lowercase hex.

        Streams are rewound before and after hashing.
        """
        pass
