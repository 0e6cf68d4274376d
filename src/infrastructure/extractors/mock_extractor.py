"""
Synthetic invoice generator.

Produces plausible grocery invoices without any network access. The random
generator is seeded from settings or from the file's SHA-256, so the same
bytes always yield the same invoice.
"""

import asyncio
import hashlib
import random
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from src.config import get_logger, get_settings
from src.core.entities.extraction import (
    ExtractedInvoice,
    ExtractedLineItem,
    ExtractionResult,
)
from src.core.interfaces import IInvoiceExtractor

logger = get_logger(__name__)

VENDORS = (
    "Fresh Foods Inc.",
    "Quality Produce Co.",
    "Global Suppliers Ltd.",
    "Local Farm Distributors",
)

PRODUCTS = (
    ("Apples", "kg"),
    ("Oranges", "kg"),
    ("Bananas", "bunch"),
    ("Tomatoes", "kg"),
    ("Potatoes", "kg"),
    ("Onions", "kg"),
    ("Carrots", "kg"),
    ("Lettuce", "head"),
    ("Milk", "liter"),
    ("Eggs", "dozen"),
)

CUSTOMER_NAME = "Your Grocery Store"
TAX_RATE = Decimal("0.10")
CENTS = Decimal("0.01")


class MockInvoiceExtractor(IInvoiceExtractor):
    """Deterministic synthetic extractor for offline development and tests."""

    name = "mock"

    def __init__(self, delay: float | None = None, seed: int | None = None):
        settings = get_settings()
        self.delay = settings.llm.mock_delay if delay is None else delay
        self.seed = settings.llm.mock_seed if seed is None else seed

    def _rng(self, content: bytes) -> random.Random:
        if self.seed is not None:
            return random.Random(self.seed)
        return random.Random(int.from_bytes(hashlib.sha256(content).digest()[:8], "big"))

    def generate(self, content: bytes) -> ExtractedInvoice:
        """Build a synthetic invoice for the given bytes."""
        rng = self._rng(content)
        now = datetime.now(timezone.utc)

        items: list[ExtractedLineItem] = []
        for i in range(rng.randint(3, 7)):
            description, unit = rng.choice(PRODUCTS)
            quantity = Decimal(rng.randint(1, 50))
            unit_price = Decimal(str(rng.random() * 10 + 1)).quantize(CENTS, rounding=ROUND_HALF_UP)
            items.append(
                ExtractedLineItem(
                    line_number=i + 1,
                    description=description,
                    quantity=quantity,
                    unit=unit,
                    unit_price=unit_price,
                    line_total=quantity * unit_price,
                )
            )

        total = sum((item.line_total for item in items), Decimal("0"))
        tax = (total * TAX_RATE).quantize(CENTS, rounding=ROUND_HALF_UP)

        return ExtractedInvoice(
            invoice_number=f"INV-{now:%Y%m%d}-{rng.randint(1000, 9999)}",
            invoice_date=now - timedelta(days=rng.randint(1, 29)),
            due_date=now + timedelta(days=rng.randint(15, 44)),
            vendor_name=rng.choice(VENDORS),
            customer_name=CUSTOMER_NAME,
            currency="USD",
            total_amount=total,
            tax_amount=tax,
            subtotal=total - tax,
            line_items=items,
        )

    async def extract_invoice(self, content: bytes, file_name: str) -> ExtractionResult:
        logger.info("mock_extraction", file_name=file_name, size=len(content))
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        return ExtractionResult.ok(self.generate(content), self.name, file_name)
