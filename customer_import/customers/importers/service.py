from collections import Counter
from datetime import date

import structlog

from customer_import.customers.importers.base import RecordStore
from customer_import.customers.importers.batch import DEFAULT_BATCH_SIZE, BatchImporter, BatchRun
from customer_import.customers.importers.csv_parser import CustomerCSVParser, ParseResult
from customer_import.customers.importers.duplicates import build_duplicate_index
from customer_import.customers.importers.schemas import ImportResult
from customer_import.customers.models import PersistencePolicy

logger = structlog.get_logger()


class ImportService:
    def __init__(
        self,
        store: RecordStore,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        policy: PersistencePolicy = PersistencePolicy.per_row,
    ) -> None:
        self._store = store
        self._batch_size = batch_size
        self._policy = policy

    async def import_csv(self, file_content: bytes, filename: str, today: date | None = None) -> ImportResult:
        """Import customers from a CSV file.

        File and header problems raise before anything is written; every
        row-level problem ends up in the returned ``errors``.
        """
        logger.info("import_started", filename=filename, size=len(file_content), policy=self._policy)

        parsed = CustomerCSVParser().parse(file_content, filename)
        duplicates = await build_duplicate_index(parsed.rows, self._store)

        importer = BatchImporter(
            self._store,
            duplicates,
            batch_size=self._batch_size,
            policy=self._policy,
            today=today,
        )
        run = await importer.run(parsed.rows)

        result = self._build_result(parsed, run)
        logger.info(
            "import_completed",
            filename=filename,
            total_rows_processed=result.total_rows_processed,
            imported=result.imported_count,
            failed=result.failed_count,
            aborted=result.aborted,
            row_states=dict(Counter({**parsed.row_states, **run.row_states}.values())),
        )
        return result

    @staticmethod
    def _build_result(parsed: ParseResult, run: BatchRun) -> ImportResult:
        # Each row carries at most one diagnostic; merge the parser's and the importer's by file position.
        errors = sorted([*parsed.malformed, *run.errors], key=lambda d: d.row_number)
        return ImportResult(
            total_rows_processed=parsed.total_rows_processed,
            imported_count=len(run.imported),
            failed_count=len(errors),
            aborted=run.aborted,
            fatal_error=run.fatal_error,
            imported=run.imported,
            errors=errors,
        )
