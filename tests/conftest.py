"""Pytest configuration and fixtures."""

from collections.abc import Generator
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from src.application.services import reset_services
from src.config import reset_settings
from src.core.entities import ExtractedInvoice, ExtractedLineItem, Invoice, LineItem, Money


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point storage at a temp dir and use the instant mock extractor."""
    import src.infrastructure.llm.factory as llm_factory
    import src.infrastructure.storage.sqlite.connection as conn_module

    data_dir = tmp_path / "data"
    monkeypatch.setenv("STORAGE_DATA_DIR", str(data_dir))
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("LLM_MOCK_DELAY", "0")
    monkeypatch.setenv("ENVIRONMENT", "development")

    reset_settings()
    reset_services()
    llm_factory._providers.clear()
    conn_module._pool = None

    yield data_dir

    reset_settings()
    reset_services()
    llm_factory._providers.clear()
    conn_module._pool = None


@pytest.fixture
def invoice_date() -> datetime:
    return datetime(2024, 1, 15, tzinfo=timezone.utc)


@pytest.fixture
def sample_extracted_invoice(invoice_date: datetime) -> ExtractedInvoice:
    """Extracted invoice that passes every validation rule."""
    return ExtractedInvoice(
        invoice_number="INV-2024-001",
        invoice_date=invoice_date,
        vendor_name="Fresh Foods Inc.",
        customer_name="Your Grocery Store",
        currency="USD",
        total_amount=Decimal("30.00"),
        subtotal=Decimal("30.00"),
        line_items=[
            ExtractedLineItem(
                line_number=1,
                description="Apples",
                quantity=Decimal("10"),
                unit="kg",
                unit_price=Decimal("2.50"),
                line_total=Decimal("25.00"),
            ),
            ExtractedLineItem(
                line_number=2,
                description="Milk",
                quantity=Decimal("4"),
                unit="liter",
                unit_price=Decimal("1.25"),
                line_total=Decimal("5.00"),
            ),
        ],
    )


@pytest.fixture
def sample_invoice(invoice_date: datetime) -> Invoice:
    """Invoice aggregate with two line items."""
    invoice = Invoice.create(
        invoice_number="INV-2024-001",
        invoice_date=invoice_date,
        vendor_name="Fresh Foods Inc.",
        customer_name="Your Grocery Store",
        total_amount=Money("30.00", "USD"),
    )
    invoice.add_line_item(
        LineItem.create(1, "Apples", Decimal("10"), Money("2.50", "USD"), unit="kg")
    )
    invoice.add_line_item(
        LineItem.create(2, "Milk", Decimal("4"), Money("1.25", "USD"), unit="liter")
    )
    return invoice
