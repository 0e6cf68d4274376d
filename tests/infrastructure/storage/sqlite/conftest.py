"""Pytest fixtures for SQLite storage tests."""

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from src.core.entities import Invoice, InvoiceStatus, LineItem, Money
from src.infrastructure.storage.sqlite.invoice_store import SQLiteInvoiceRepository
from src.infrastructure.storage.sqlite.migrations import initialize_database


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
async def initialized_db(temp_db_path: Path) -> Path:
    """Create a temporary database with the full migrated schema."""
    await initialize_database(temp_db_path, create_backup_before=False)
    return temp_db_path


@pytest.fixture
def mock_settings(temp_db_path: Path):
    """Mock settings with temp database path."""
    mock = MagicMock()
    mock.storage.db_path = temp_db_path
    mock.storage.pool_size = 2
    mock.storage.busy_timeout = 5000
    return mock


@pytest.fixture
async def repository(initialized_db, mock_settings) -> AsyncGenerator[SQLiteInvoiceRepository, None]:
    """Repository bound to a fresh pool over the migrated temp database."""
    import src.infrastructure.storage.sqlite.connection as conn_module

    conn_module._pool = None
    mock_settings.storage.db_path = initialized_db

    with patch.object(conn_module, "get_settings", return_value=mock_settings):
        yield SQLiteInvoiceRepository()
        await conn_module.close_pool()


def make_invoice(
    invoice_number: str = "INV-2024-001",
    vendor_name: str = "Fresh Foods Inc.",
    invoice_date: datetime | None = None,
    file_hash: str = "",
    processed_at: datetime | None = None,
    items: int = 2,
) -> Invoice:
    """Processed invoice with ``items`` line items of 2 x 1.50."""
    invoice = Invoice.create(
        invoice_number=invoice_number,
        invoice_date=invoice_date or datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc),
        vendor_name=vendor_name,
        customer_name="Your Grocery Store",
        total_amount=Money(3 * items, "USD"),
        tax_amount=Money("0.30", "USD"),
    )
    for n in range(1, items + 1):
        invoice.add_line_item(LineItem.create(n, f"Item {n}", 2, Money("1.50", "USD"), unit="kg"))
    invoice.set_file_metadata(f"{invoice_number}.pdf", f"/uploads/{invoice_number}.pdf", file_hash)
    invoice.update_status(InvoiceStatus.PROCESSED)
    if processed_at is not None:
        invoice.processed_at = processed_at
    return invoice


@pytest.fixture
def invoice_factory():
    return make_invoice


@pytest.fixture
def base_time() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
