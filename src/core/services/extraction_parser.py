"""
Parser for model responses.

Turns the JSON text returned by a vision model into an ``ExtractedInvoice``,
filling defaults for anything the model left out.
"""

import json
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from src.core.entities.extraction import (
    ExtractedInvoice,
    ExtractedLineItem,
    coerce_decimal,
)
from src.core.exceptions import LLMResponseError

DEFAULT_VENDOR = "Unknown Vendor"
DEFAULT_CURRENCY = "USD"

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%d-%m-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)

# camelCase key -> snake_case key
_KEY_ALIASES = {
    "invoiceNumber": "invoice_number",
    "invoiceDate": "invoice_date",
    "dueDate": "due_date",
    "vendorName": "vendor_name",
    "customerName": "customer_name",
    "totalAmount": "total_amount",
    "taxAmount": "tax_amount",
    "lineItems": "line_items",
    "unitPrice": "unit_price",
    "lineTotal": "line_total",
}


def extract_json_string(text: str) -> str | None:
    """Pull the JSON object out of a model response."""
    text = (text or "").strip()

    # Fenced block first
    match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if match:
        return match.group(1).strip()

    if text.startswith("{"):
        return text

    match = re.search(r"\{[\s\S]*\}", text)
    if match:
        return match.group(0)

    return None


def parse_date(value: Any) -> datetime | None:
    """
    Parse a date from ISO 8601 or a handful of common invoice formats.

    Naive results are taken as UTC. Returns None when nothing matches.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_KEY_ALIASES.get(k, k): v for k, v in data.items()}


def _text(value: Any) -> str | None:
    """Blank strings count as missing."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _build_line_item(index: int, raw: Any) -> ExtractedLineItem:
    data = _normalize_keys(raw) if isinstance(raw, dict) else {}

    quantity = coerce_decimal(data.get("quantity"), None)
    unit_price = coerce_decimal(data.get("unit_price"), None)
    line_total = coerce_decimal(data.get("line_total"), None)
    if line_total is None:
        line_total = (quantity if quantity is not None else Decimal("1")) * (
            unit_price if unit_price is not None else Decimal("0")
        )

    return ExtractedLineItem(
        line_number=index + 1,
        description=_text(data.get("description")) or f"Item {index + 1}",
        quantity=quantity if quantity is not None else Decimal("1"),
        unit=_text(data.get("unit")) or "",
        unit_price=unit_price if unit_price is not None else Decimal("0"),
        line_total=line_total,
    )


def build_extracted_invoice(data: dict[str, Any]) -> ExtractedInvoice:
    """Apply defaults to a decoded response object."""
    data = _normalize_keys(data)

    raw_items = data.get("line_items") or data.get("items") or []
    if not isinstance(raw_items, list):
        raw_items = []

    return ExtractedInvoice(
        invoice_number=_text(data.get("invoice_number")) or f"UNKNOWN_{uuid.uuid4().hex[:8]}",
        invoice_date=parse_date(data.get("invoice_date")) or datetime.now(timezone.utc),
        due_date=parse_date(data.get("due_date")),
        vendor_name=_text(data.get("vendor_name")) or DEFAULT_VENDOR,
        customer_name=_text(data.get("customer_name")) or "",
        currency=(_text(data.get("currency")) or DEFAULT_CURRENCY).upper(),
        total_amount=data.get("total_amount"),
        tax_amount=data.get("tax_amount"),
        subtotal=data.get("subtotal"),
        line_items=[_build_line_item(i, item) for i, item in enumerate(raw_items)],
    )


def parse_extraction_response(text: str) -> ExtractedInvoice:
    """
    Parse a model response into an ExtractedInvoice.

    Raises:
        LLMResponseError: no JSON object could be decoded
    """
    json_str = extract_json_string(text)
    if not json_str:
        raise LLMResponseError("No JSON object found in response", text)

    try:
        data = json.loads(json_str, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Invalid JSON syntax: {e}", text) from e

    if not isinstance(data, dict):
        raise LLMResponseError("Expected a JSON object", text)

    return build_extracted_invoice(data)
