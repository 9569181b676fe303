import json
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation

import aiosqlite
import structlog

from customer_import.customers.importers.base import RecordStore
from customer_import.customers.importers.schemas import ImportedCustomer
from customer_import.exceptions import StoreError

logger = structlog.get_logger()

INCOME_PLACES = Decimal("0.01")


def _format_income(amount: Decimal | None) -> str | None:
    if amount is None:
        return None
    try:
        return str(amount.quantize(INCOME_PLACES))
    except InvalidOperation:
        # Too many digits to quantize; keep the value as given.
        return str(amount)


class CustomerRepository(RecordStore):
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def find_existing_emails(self, candidates: set[str]) -> set[str]:
        if not candidates:
            return set()
        try:
            cursor = await self._db.execute(
                """
                SELECT email FROM customers
                WHERE lower(email) IN (SELECT lower(value) FROM json_each(?))
                """,
                (json.dumps(sorted(candidates)),),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to look up existing emails: {exc}") from exc
        return {row["email"].lower() for row in rows}

    async def insert(
        self,
        name: str,
        email: str,
        date_of_birth: date | None,
        annual_income: Decimal | None,
    ) -> ImportedCustomer:
        now = datetime.now(UTC).isoformat()
        try:
            cursor = await self._db.execute(
                """
                INSERT INTO customers (
                    name, email, date_of_birth, annual_income, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    name,
                    email,
                    date_of_birth.isoformat() if date_of_birth else None,
                    _format_income(annual_income),
                    now,
                    now,
                ),
            )
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to insert customer: {exc}") from exc

        customer_id = cursor.lastrowid
        if customer_id is None:
            raise StoreError("Insert did not return a customer id")
        return ImportedCustomer(id=customer_id, name=name)

    async def commit(self) -> None:
        try:
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to commit: {exc}") from exc

    async def rollback(self) -> None:
        try:
            await self._db.rollback()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to roll back: {exc}") from exc

    async def count(self) -> int:
        cursor = await self._db.execute("SELECT COUNT(*) AS total FROM customers")
        row = await cursor.fetchone()
        return int(row["total"]) if row else 0

    async def list_page(self, limit: int, offset: int) -> list[dict]:
        cursor = await self._db.execute(
            """
            SELECT id, name, email, date_of_birth, annual_income, created_at
            FROM customers
            ORDER BY id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        )
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]
