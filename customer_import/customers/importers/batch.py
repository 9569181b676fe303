from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import date

import structlog

from customer_import.customers.importers.base import RecordStore
from customer_import.customers.importers.csv_parser import ParsedRow
from customer_import.customers.importers.duplicates import DuplicateIndex
from customer_import.customers.importers.rules import parse_date, parse_income, validate_row
from customer_import.customers.importers.schemas import ImportedCustomer, RowDiagnostic, RowError
from customer_import.customers.models import PersistencePolicy, RowState, RunState
from customer_import.exceptions import StoreError

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 100
FATAL_ERROR_MESSAGE = "Database became unavailable; import aborted."


def chunked(rows: Sequence[ParsedRow], size: int) -> Iterator[Sequence[ParsedRow]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


@dataclass
class BatchRun:
    state: RunState = RunState.running
    fatal_error: str | None = None
    imported: list[ImportedCustomer] = field(default_factory=list)
    errors: list[RowDiagnostic] = field(default_factory=list)
    row_states: dict[int, RowState] = field(default_factory=dict)

    @property
    def aborted(self) -> bool:
        return self.state == RunState.aborted


class BatchImporter:
    """Persist validated rows batch by batch, aborting everything left on a store failure.

    With ``PersistencePolicy.per_row`` each insert is committed on its own, so rows
    written before a failure stay written. With ``PersistencePolicy.per_batch`` a
    batch is committed as a unit and a failure rolls back the whole current batch;
    earlier batches stay committed.
    """

    def __init__(
        self,
        store: RecordStore,
        duplicates: DuplicateIndex,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        policy: PersistencePolicy = PersistencePolicy.per_row,
        today: date | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._store = store
        self._duplicates = duplicates
        self._batch_size = batch_size
        self._policy = policy
        self._today = today

    async def run(self, rows: Sequence[ParsedRow]) -> BatchRun:
        run = BatchRun(row_states={row.row_number: RowState.pending for row in rows})
        for batch_index, batch in enumerate(chunked(rows, self._batch_size)):
            await self._process_batch(run, batch_index, batch)

        if run.state == RunState.running:
            run.state = RunState.completed
        return run

    async def _process_batch(self, run: BatchRun, batch_index: int, batch: Sequence[ParsedRow]) -> None:
        written: list[tuple[ParsedRow, ImportedCustomer]] = []

        for row in batch:
            if run.aborted:
                self._mark_unprocessed(run, row)
                continue

            errors = validate_row(row, self._duplicates, self._today)
            if errors:
                self._reject(run, row, errors)
                continue

            try:
                customer = await self._persist(row)
            except StoreError as exc:
                await self._abort(run, row, exc, written)
                continue

            run.imported.append(customer)
            run.row_states[row.row_number] = RowState.imported
            self._duplicates.mark_stored(row.email)
            written.append((row, customer))

        if run.aborted:
            return

        if self._policy == PersistencePolicy.per_batch and written:
            try:
                await self._store.commit()
            except StoreError as exc:
                last_row, _ = written[-1]
                await self._abort(run, last_row, exc, written)
                return

        logger.info(
            "import_batch_completed",
            batch=batch_index,
            rows=len(batch),
            written=len(written),
        )

    async def _persist(self, row: ParsedRow) -> ImportedCustomer:
        customer = await self._store.insert(
            name=row.name,
            email=row.email,
            date_of_birth=parse_date(row.date_of_birth) if row.date_of_birth else None,
            annual_income=parse_income(row.annual_income) if row.annual_income else None,
        )
        if self._policy == PersistencePolicy.per_row:
            await self._store.commit()
        return customer

    def _reject(self, run: BatchRun, row: ParsedRow, errors: list[RowError]) -> None:
        logger.debug(
            "import_row_rejected",
            row=row.row_number,
            errors=[e.message for e in errors],
        )
        run.errors.append(RowDiagnostic(row_number=row.row_number, values=row.values(), errors=errors))
        run.row_states[row.row_number] = RowState.rejected

    def _mark_unprocessed(self, run: BatchRun, row: ParsedRow) -> None:
        run.errors.append(
            RowDiagnostic(
                row_number=row.row_number,
                values=row.values(),
                errors=[RowError(field="row", message=run.fatal_error or FATAL_ERROR_MESSAGE)],
            )
        )
        run.row_states[row.row_number] = RowState.aborted_unprocessed

    async def _abort(
        self,
        run: BatchRun,
        failed_row: ParsedRow,
        exc: StoreError,
        written: list[tuple[ParsedRow, ImportedCustomer]],
    ) -> None:
        run.state = RunState.aborted
        run.fatal_error = FATAL_ERROR_MESSAGE
        logger.error("import_aborted", row=failed_row.row_number, error=exc.message)

        try:
            await self._store.rollback()
        except StoreError as rollback_exc:
            logger.error("import_rollback_failed", error=rollback_exc.message)

        if self._policy == PersistencePolicy.per_batch:
            self._discard_uncommitted(run, written)

        if run.row_states.get(failed_row.row_number) != RowState.aborted_unprocessed:
            self._mark_unprocessed(run, failed_row)

    def _discard_uncommitted(self, run: BatchRun, written: list[tuple[ParsedRow, ImportedCustomer]]) -> None:
        """Forget rows of the current batch that the rollback removed from the store."""
        if not written:
            return
        rolled_back_ids = {customer.id for _, customer in written}
        run.imported = [c for c in run.imported if c.id not in rolled_back_ids]
        self._duplicates.unmark_stored({row.email for row, _ in written})
        for row, _ in written:
            self._mark_unprocessed(run, row)
        logger.warning("import_batch_rolled_back", rows=len(written))
