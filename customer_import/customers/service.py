import structlog

from customer_import.customers.repository import CustomerRepository
from customer_import.customers.schemas import CustomerPage, CustomerResponse

logger = structlog.get_logger()


class CustomerService:
    def __init__(self, repo: CustomerRepository, max_page_size: int = 50) -> None:
        self._repo = repo
        self._max_page_size = max_page_size

    async def list_customers(self, page: int = 1, per_page: int = 10) -> CustomerPage:
        """Newest customers first; out-of-range paging values are clamped."""
        per_page = max(1, min(per_page, self._max_page_size))
        page = max(1, page)

        rows = await self._repo.list_page(limit=per_page, offset=(page - 1) * per_page)
        total = await self._repo.count()

        logger.debug("customers_listed", page=page, per_page=per_page, returned=len(rows))
        return CustomerPage(
            items=[self._to_response(row) for row in rows],
            total=total,
            page=page,
            per_page=per_page,
        )

    def _to_response(self, row: dict) -> CustomerResponse:
        return CustomerResponse(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            date_of_birth=row["date_of_birth"],
            annual_income=row["annual_income"],
            created_at=row["created_at"],
        )
