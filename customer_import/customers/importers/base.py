from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal

from customer_import.customers.importers.schemas import ImportedCustomer


class RecordStore(ABC):
    """The two persistence capabilities the import pipeline needs, plus transaction bounds."""

    @abstractmethod
    async def find_existing_emails(self, candidates: set[str]) -> set[str]:
        """Return the subset of candidates already stored, compared case-insensitively."""
        ...

    @abstractmethod
    async def insert(
        self,
        name: str,
        email: str,
        date_of_birth: date | None,
        annual_income: Decimal | None,
    ) -> ImportedCustomer:
        """Persist one customer. Raises StoreError on any failure."""
        ...

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...
