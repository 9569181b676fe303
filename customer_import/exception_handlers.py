import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from customer_import.exceptions import (
    AppError,
    InvalidCsvFileError,
    InvalidCsvHeaderError,
    StoreError,
)

logger = structlog.get_logger()

STORE_UNAVAILABLE_MESSAGE = "The customer store is unavailable. Please try again later."


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": exc.code, "message": exc.message},
    )


async def invalid_csv_handler(
    request: Request, exc: InvalidCsvFileError | InvalidCsvHeaderError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": exc.code, "message": exc.message},
    )


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("store_unavailable", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=503,
        content={"error": exc.code, "message": STORE_UNAVAILABLE_MESSAGE},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidCsvFileError, invalid_csv_handler)
    app.add_exception_handler(InvalidCsvHeaderError, invalid_csv_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(AppError, app_error_handler)
