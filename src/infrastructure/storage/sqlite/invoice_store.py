"""
SQLite implementation of the invoice repository.

Handles invoices, line items, and their validation findings.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal

import aiosqlite

from src.config import get_logger
from src.core.entities import (
    Invoice,
    InvoiceStatus,
    LineItem,
    Money,
    ValidationError,
    ValidationWarning,
)
from src.core.exceptions import DatabaseError, DuplicateContentError
from src.core.interfaces import IInvoiceRepository
from src.infrastructure.storage.sqlite.connection import get_connection, get_transaction

logger = get_logger(__name__)


def _iso(value: datetime | None) -> str | None:
    """Serialize a datetime as UTC ISO 8601; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _day(value: datetime | date) -> str:
    """Calendar day (UTC) as YYYY-MM-DD."""
    if isinstance(value, datetime):
        return _iso(value)[:10]
    return value.isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteInvoiceRepository(IInvoiceRepository):
    """SQLite implementation of invoice storage."""

    async def add(self, invoice: Invoice) -> Invoice:
        """Insert invoice and items in one transaction."""
        try:
            async with get_transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO invoices (
                        id, invoice_number, invoice_date, due_date, vendor_name,
                        customer_name, currency, total_amount, tax_amount, subtotal,
                        original_file_name, file_path, file_hash, status, processed_at,
                        processing_error, warnings_json, errors_json
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        invoice.id,
                        invoice.invoice_number,
                        _iso(invoice.invoice_date),
                        _iso(invoice.due_date),
                        invoice.vendor_name,
                        invoice.customer_name,
                        invoice.currency,
                        str(invoice.total_amount.amount),
                        str(invoice.tax_amount.amount) if invoice.tax_amount else None,
                        str(invoice.subtotal.amount) if invoice.subtotal else None,
                        invoice.original_file_name,
                        invoice.file_path,
                        invoice.file_hash,
                        invoice.status.value,
                        _iso(invoice.processed_at),
                        invoice.processing_error,
                        json.dumps([w.model_dump() for w in invoice.validation_warnings]),
                        json.dumps([e.model_dump() for e in invoice.validation_errors]),
                    ),
                )

                for item in invoice.line_items:
                    await self._insert_item(conn, invoice.id, item)

        except aiosqlite.IntegrityError as e:
            if "file_hash" in str(e):
                existing = await self.get_by_file_hash(invoice.file_hash)
                raise DuplicateContentError(
                    invoice.file_hash, existing.invoice_number if existing else None
                ) from e
            raise DatabaseError("add invoice", str(e)) from e
        except aiosqlite.Error as e:
            raise DatabaseError("add invoice", str(e)) from e

        logger.info(
            "invoice_created",
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            status=invoice.status.value,
            items=len(invoice.line_items),
        )
        return invoice

    async def _insert_item(self, conn: aiosqlite.Connection, invoice_id: str, item: LineItem) -> None:
        await conn.execute(
            """
            INSERT INTO invoice_items (
                id, invoice_id, line_number, description, quantity, unit,
                unit_price, line_total, currency
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.id,
                invoice_id,
                item.line_number,
                item.description,
                str(item.quantity),
                item.unit,
                str(item.unit_price.amount),
                str(item.line_total.amount),
                item.unit_price.currency,
            ),
        )

    async def get_by_id(self, invoice_id: str) -> Invoice | None:
        async with get_connection() as conn:
            cursor = await conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,))
            row = await cursor.fetchone()
            if row is None:
                return None
            return (await self._hydrate(conn, [row]))[0]

    async def get_by_file_hash(self, file_hash: str) -> Invoice | None:
        if not file_hash:
            return None
        async with get_connection() as conn:
            cursor = await conn.execute("SELECT * FROM invoices WHERE file_hash = ?", (file_hash,))
            row = await cursor.fetchone()
            if row is None:
                return None
            return (await self._hydrate(conn, [row]))[0]

    async def get_by_number(self, invoice_number: str, vendor_name: str | None = None) -> Invoice | None:
        query = "SELECT * FROM invoices WHERE invoice_number = ?"
        params: list = [invoice_number]
        if vendor_name:
            query += " AND vendor_name = ?"
            params.append(vendor_name)
        query += " ORDER BY processed_at DESC, rowid DESC LIMIT 1"

        async with get_connection() as conn:
            cursor = await conn.execute(query, params)
            row = await cursor.fetchone()
            if row is None:
                return None
            return (await self._hydrate(conn, [row]))[0]

    async def find_similar(
        self,
        invoice_number: str,
        vendor_name: str,
        invoice_date: datetime,
    ) -> list[Invoice]:
        async with get_connection() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM invoices
                WHERE invoice_number = ? AND vendor_name = ?
                  AND substr(invoice_date, 1, 10) = ?
                ORDER BY processed_at DESC, rowid DESC
                """,
                (invoice_number, vendor_name, _day(invoice_date)),
            )
            rows = await cursor.fetchall()
            return await self._hydrate(conn, rows)

    async def exists_by_number_vendor_date(
        self,
        invoice_number: str,
        vendor_name: str,
        invoice_date: datetime,
    ) -> bool:
        async with get_connection() as conn:
            cursor = await conn.execute(
                """
                SELECT 1 FROM invoices
                WHERE invoice_number = ? AND vendor_name = ?
                  AND substr(invoice_date, 1, 10) = ?
                LIMIT 1
                """,
                (invoice_number, vendor_name, _day(invoice_date)),
            )
            return await cursor.fetchone() is not None

    async def delete(self, invoice_id: str) -> bool:
        """Delete invoice; line items cascade."""
        async with get_transaction() as conn:
            cursor = await conn.execute("DELETE FROM invoices WHERE id = ?", (invoice_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("invoice_deleted", invoice_id=invoice_id)
        return deleted

    def _filters(
        self,
        vendor_name: str | None,
        date_from: datetime | date | None,
        date_to: datetime | date | None,
    ) -> tuple[str, list]:
        clauses: list[str] = []
        params: list = []
        if vendor_name and vendor_name.strip():
            clauses.append("vendor_name LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(vendor_name.strip())}%")
        if date_from is not None:
            clauses.append("substr(invoice_date, 1, 10) >= ?")
            params.append(_day(date_from))
        if date_to is not None:
            clauses.append("substr(invoice_date, 1, 10) <= ?")
            params.append(_day(date_to))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    async def get_all(
        self,
        page: int = 0,
        page_size: int = 0,
        vendor_name: str | None = None,
        date_from: datetime | date | None = None,
        date_to: datetime | date | None = None,
    ) -> list[Invoice]:
        """List invoices, newest processed first, optionally one page."""
        where, params = self._filters(vendor_name, date_from, date_to)
        query = f"SELECT * FROM invoices {where} ORDER BY processed_at DESC, rowid DESC"
        if page > 0 and page_size > 0:
            query += " LIMIT ? OFFSET ?"
            params += [page_size, (page - 1) * page_size]

        async with get_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return await self._hydrate(conn, rows)

    async def count(
        self,
        vendor_name: str | None = None,
        date_from: datetime | date | None = None,
        date_to: datetime | date | None = None,
    ) -> int:
        where, params = self._filters(vendor_name, date_from, date_to)
        async with get_connection() as conn:
            cursor = await conn.execute(f"SELECT COUNT(*) FROM invoices {where}", params)
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def _hydrate(self, conn: aiosqlite.Connection, rows: list[aiosqlite.Row]) -> list[Invoice]:
        """Build invoices from rows, loading all their items in one query."""
        if not rows:
            return []

        ids = [row["id"] for row in rows]
        placeholders = ", ".join("?" for _ in ids)
        cursor = await conn.execute(
            f"SELECT * FROM invoice_items WHERE invoice_id IN ({placeholders}) "
            "ORDER BY invoice_id, line_number",
            ids,
        )
        items_by_invoice: dict[str, list[LineItem]] = {}
        for item_row in await cursor.fetchall():
            items_by_invoice.setdefault(item_row["invoice_id"], []).append(self._row_to_item(item_row))

        return [self._row_to_invoice(row, items_by_invoice.get(row["id"], [])) for row in rows]

    def _row_to_invoice(self, row: aiosqlite.Row, items: list[LineItem]) -> Invoice:
        currency = row["currency"]
        return Invoice(
            id=row["id"],
            invoice_number=row["invoice_number"],
            invoice_date=_from_iso(row["invoice_date"]),
            due_date=_from_iso(row["due_date"]),
            vendor_name=row["vendor_name"],
            customer_name=row["customer_name"],
            total_amount=Money(Decimal(row["total_amount"]), currency),
            tax_amount=Money(Decimal(row["tax_amount"]), currency) if row["tax_amount"] is not None else None,
            subtotal=Money(Decimal(row["subtotal"]), currency) if row["subtotal"] is not None else None,
            original_file_name=row["original_file_name"],
            file_path=row["file_path"],
            file_hash=row["file_hash"],
            status=InvoiceStatus(row["status"]),
            processed_at=_from_iso(row["processed_at"]),
            processing_error=row["processing_error"],
            line_items=items,
            validation_warnings=[ValidationWarning(**w) for w in json.loads(row["warnings_json"] or "[]")],
            validation_errors=[ValidationError(**e) for e in json.loads(row["errors_json"] or "[]")],
        )

    def _row_to_item(self, row: aiosqlite.Row) -> LineItem:
        currency = row["currency"]
        return LineItem(
            id=row["id"],
            invoice_id=row["invoice_id"],
            line_number=row["line_number"],
            description=row["description"],
            quantity=Decimal(row["quantity"]),
            unit=row["unit"],
            unit_price=Money(Decimal(row["unit_price"]), currency),
            line_total=Money(Decimal(row["line_total"]), currency),
        )
