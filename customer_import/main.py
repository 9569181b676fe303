from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from customer_import.config import settings
from customer_import.customers.router import router as customers_router
from customer_import.database import check_health, close_database, init_database
from customer_import.exception_handlers import register_exception_handlers
from customer_import.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_database()
    yield
    await close_database()


app = FastAPI(
    title="Customer Import",
    description="CSV customer import with per-row diagnostics",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(customers_router, prefix="/api/v1/customers", tags=["customers"])


@app.get("/api/v1/health")
async def health():
    await check_health()
    return {"status": "healthy"}
