"""
Dependency injection container for FastAPI.

Provides service instances to route handlers. Tests replace these
through ``app.dependency_overrides``.
"""

from src.application.services import (
    get_file_storage,
    get_invoice_repository,
)
from src.application.use_cases import ProcessInvoicesUseCase
from src.core.interfaces import IFileStorage, IInvoiceRepository


async def get_repository() -> IInvoiceRepository:
    """Get invoice repository."""
    return await get_invoice_repository()


def get_storage() -> IFileStorage:
    """Get raw document storage."""
    return get_file_storage()


def get_process_invoices_use_case() -> ProcessInvoicesUseCase:
    """Get a batch processing use case with default wiring."""
    return ProcessInvoicesUseCase()
