"""Storage infrastructure implementations."""

from src.infrastructure.storage.files import LocalFileStorage, get_file_storage
from src.infrastructure.storage.sqlite import (
    SQLiteInvoiceRepository,
    close_pool,
    get_connection,
    get_invoice_repository,
    get_pool,
    get_transaction,
)

__all__ = [
    # SQLite repository
    "SQLiteInvoiceRepository",
    "get_invoice_repository",
    # Connection pool
    "get_pool",
    "close_pool",
    "get_connection",
    "get_transaction",
    # File storage
    "LocalFileStorage",
    "get_file_storage",
]
