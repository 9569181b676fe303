from pydantic import BaseModel


class CustomerResponse(BaseModel):
    id: int
    name: str
    email: str
    date_of_birth: str | None
    annual_income: str | None
    created_at: str


class CustomerPage(BaseModel):
    items: list[CustomerResponse]
    total: int
    page: int
    per_page: int
