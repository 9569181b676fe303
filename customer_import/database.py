import aiosqlite
import structlog

from customer_import.config import settings

logger = structlog.get_logger()

_db: aiosqlite.Connection | None = None

DDL_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE COLLATE NOCASE,
        date_of_birth TEXT,
        annual_income TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
]


async def open_connection(db_path: str | None = None) -> aiosqlite.Connection:
    """Open a connection that waits on a locked database instead of failing at once."""
    db = await aiosqlite.connect(db_path or settings.db_path, timeout=settings.db_busy_timeout)
    db.row_factory = aiosqlite.Row
    return db


async def init_database(db_path: str | None = None) -> aiosqlite.Connection:
    global _db
    path = db_path or settings.db_path
    _db = await open_connection(path)
    await _db.execute("PRAGMA journal_mode=WAL")
    await _db.execute("PRAGMA foreign_keys=ON")

    for ddl in DDL_STATEMENTS:
        await _db.execute(ddl)
    await _db.commit()

    logger.info("database_initialized", path=path)
    return _db


async def close_database() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("database_closed")


def get_db() -> aiosqlite.Connection:
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _db


async def check_health() -> None:
    db = get_db()
    cursor = await db.execute("SELECT 1")
    await cursor.close()
