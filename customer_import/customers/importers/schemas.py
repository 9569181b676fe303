from pydantic import BaseModel


class RowError(BaseModel):
    field: str
    message: str


class RowDiagnostic(BaseModel):
    row_number: int
    values: dict[str, str | None] | list[str]
    errors: list[RowError]


class ImportedCustomer(BaseModel):
    id: int
    name: str


class ImportResult(BaseModel):
    total_rows_processed: int
    imported_count: int
    failed_count: int
    aborted: bool
    fatal_error: str | None
    imported: list[ImportedCustomer]
    errors: list[RowDiagnostic]
