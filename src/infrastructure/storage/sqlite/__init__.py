"""SQLite storage implementations."""

from src.infrastructure.storage.sqlite.connection import (
    ConnectionPool,
    close_pool,
    get_connection,
    get_pool,
    get_transaction,
)
from src.infrastructure.storage.sqlite.invoice_store import SQLiteInvoiceRepository

# Type alias for convenience
InvoiceRepository = SQLiteInvoiceRepository

# Singleton instance
_invoice_repository: SQLiteInvoiceRepository | None = None


async def get_invoice_repository() -> SQLiteInvoiceRepository:
    """Get singleton invoice repository instance."""
    global _invoice_repository
    if _invoice_repository is None:
        _invoice_repository = SQLiteInvoiceRepository()
    return _invoice_repository


__all__ = [
    # Connection
    "ConnectionPool",
    "get_pool",
    "close_pool",
    "get_connection",
    "get_transaction",
    # Repository
    "SQLiteInvoiceRepository",
    "InvoiceRepository",
    "get_invoice_repository",
]
