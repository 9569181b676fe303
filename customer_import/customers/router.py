from pathlib import PurePath

from fastapi import APIRouter, Query, UploadFile

from customer_import.config import settings
from customer_import.customers.importers.schemas import ImportResult
from customer_import.customers.schemas import CustomerPage
from customer_import.dependencies import CustomerServiceDep, ImportServiceDep
from customer_import.exceptions import InvalidCsvFileError

router = APIRouter()


def _check_upload(filename: str | None, content: bytes) -> None:
    """Transport-level checks that run before the import pipeline sees the file."""
    extension = PurePath(filename or "").suffix.lower().lstrip(".")
    if extension not in settings.allowed_extension_set:
        raise InvalidCsvFileError("The uploaded file must be a CSV file.")
    if len(content) > settings.max_upload_bytes:
        raise InvalidCsvFileError(
            f"The CSV file must not exceed {settings.max_upload_bytes // (1024 * 1024)}MB."
        )
    if not content:
        raise InvalidCsvFileError("The uploaded file is empty.")


@router.get("/", response_model=CustomerPage)
async def list_customers(
    service: CustomerServiceDep,
    page: int = Query(default=1),
    per_page: int = Query(default=10),
) -> CustomerPage:
    return await service.list_customers(page=page, per_page=per_page)


@router.post("/import", response_model=ImportResult)
async def import_customers(
    file: UploadFile,
    service: ImportServiceDep,
) -> ImportResult:
    content = await file.read()
    _check_upload(file.filename, content)
    return await service.import_csv(content, file.filename or "upload.csv")
