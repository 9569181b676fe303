from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from customer_import.config import settings
from customer_import.customers.importers.base import RecordStore
from customer_import.customers.importers.schemas import ImportedCustomer
from customer_import.exceptions import StoreError

HEADER = "name,email,date_of_birth,annual_income"


def make_csv(*lines: str, header: str = HEADER) -> bytes:
    """Build CSV bytes from a header plus raw data lines."""
    return "\n".join([header, *lines]).encode("utf-8")


class InMemoryStore(RecordStore):
    """Record store fake with commit/rollback and scripted failures.

    ``fail_on_insert=n`` makes the n-th insert attempt (and any later one) raise.
    ``fail_on_commit=n`` makes the n-th commit raise.
    ``fail_on_lookup`` makes the duplicate prefetch raise.
    """

    def __init__(
        self,
        existing: tuple[str, ...] = (),
        *,
        fail_on_insert: int | None = None,
        fail_on_commit: int | None = None,
        fail_on_lookup: bool = False,
    ) -> None:
        self.committed: dict[int, dict] = {}
        self.pending: dict[int, dict] = {}
        self.lookups: list[set[str]] = []
        self.insert_attempts = 0
        self.commits = 0
        self.rollbacks = 0
        self._next_id = 1
        self._fail_on_insert = fail_on_insert
        self._fail_on_commit = fail_on_commit
        self._fail_on_lookup = fail_on_lookup
        for email in existing:
            self.committed[self._next_id] = {"name": "Existing", "email": email}
            self._next_id += 1

    def _stored_emails(self) -> set[str]:
        return {r["email"].lower() for r in [*self.committed.values(), *self.pending.values()]}

    async def find_existing_emails(self, candidates: set[str]) -> set[str]:
        self.lookups.append(set(candidates))
        if self._fail_on_lookup:
            raise StoreError("database is locked")
        stored = {r["email"] for r in [*self.committed.values(), *self.pending.values()]}
        return {email for email in stored if email.lower() in {c.lower() for c in candidates}}

    async def insert(
        self,
        name: str,
        email: str,
        date_of_birth: date | None,
        annual_income: Decimal | None,
    ) -> ImportedCustomer:
        self.insert_attempts += 1
        if self._fail_on_insert is not None and self.insert_attempts >= self._fail_on_insert:
            raise StoreError("connection lost")
        if email.lower() in self._stored_emails():
            raise StoreError("UNIQUE constraint failed: customers.email")

        customer_id = self._next_id
        self._next_id += 1
        self.pending[customer_id] = {
            "name": name,
            "email": email,
            "date_of_birth": date_of_birth,
            "annual_income": annual_income,
        }
        return ImportedCustomer(id=customer_id, name=name)

    async def commit(self) -> None:
        self.commits += 1
        if self._fail_on_commit is not None and self.commits == self._fail_on_commit:
            raise StoreError("connection lost during commit")
        self.committed.update(self.pending)
        self.pending.clear()

    async def rollback(self) -> None:
        self.rollbacks += 1
        self.pending.clear()

    @property
    def committed_emails(self) -> list[str]:
        return [r["email"] for r in self.committed.values()]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "db_path", str(tmp_path / "customers.db"))

    from customer_import.main import app

    with TestClient(app) as test_client:
        yield test_client
