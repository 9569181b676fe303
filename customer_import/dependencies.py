from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends

from customer_import.config import settings
from customer_import.customers.importers.service import ImportService
from customer_import.customers.models import PersistencePolicy
from customer_import.customers.repository import CustomerRepository
from customer_import.customers.service import CustomerService
from customer_import.database import get_db, open_connection


def get_customer_repo() -> CustomerRepository:
    return CustomerRepository(get_db())


def get_customer_service() -> CustomerService:
    return CustomerService(get_customer_repo(), max_page_size=settings.customers_max_page_size)


async def get_import_service() -> AsyncIterator[ImportService]:
    # An import commits and rolls back on its own connection, never on one shared with other requests.
    db = await open_connection()
    try:
        yield ImportService(
            CustomerRepository(db),
            batch_size=settings.import_batch_size,
            policy=PersistencePolicy(settings.import_persistence_policy),
        )
    finally:
        await db.close()


CustomerServiceDep = Annotated[CustomerService, Depends(get_customer_service)]
ImportServiceDep = Annotated[ImportService, Depends(get_import_service)]
