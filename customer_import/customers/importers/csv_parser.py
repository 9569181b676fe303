import codecs
import csv
import io
from collections.abc import Iterator
from dataclasses import dataclass, field

import structlog

from customer_import.customers.importers.schemas import RowDiagnostic, RowError
from customer_import.customers.models import EXPECTED_HEADERS, RowState
from customer_import.exceptions import InvalidCsvFileError, InvalidCsvHeaderError

logger = structlog.get_logger()

BOM = "\ufeff"
FIRST_DATA_ROW = 2

MALFORMED_ROW_MESSAGE = "Malformed CSV row: wrong number of columns."
EMPTY_FILE_MESSAGE = "The CSV file appears to be empty or invalid."
UNREADABLE_FILE_MESSAGE = "Unable to read the uploaded file."
HEADERS_ONLY_MESSAGE = "The CSV file contains only headers and no data."
INVALID_HEADER_MESSAGE = "Invalid CSV header. Expected: " + ",".join(EXPECTED_HEADERS)


@dataclass(frozen=True)
class ParsedRow:
    """A structurally valid data row after trimming and normalization."""

    row_number: int
    name: str
    email: str
    date_of_birth: str | None
    annual_income: str | None

    def values(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "email": self.email,
            "date_of_birth": self.date_of_birth,
            "annual_income": self.annual_income,
        }


@dataclass
class ParseResult:
    total_rows_processed: int = 0
    rows: list[ParsedRow] = field(default_factory=list)
    malformed: list[RowDiagnostic] = field(default_factory=list)
    row_states: dict[int, RowState] = field(default_factory=dict)


def normalize_header(header: list[str]) -> list[str]:
    """Drop a leading byte-order mark, then trim and lower-case every column name."""
    if header and header[0].startswith(BOM):
        header = [header[0][len(BOM) :], *header[1:]]
    return [column.strip().lower() for column in header]


def is_blank_row(values: list[str]) -> bool:
    return not values or all(not (value or "").strip() for value in values)


class CustomerCSVParser:
    def parse(self, file_content: bytes, filename: str) -> ParseResult:
        """Validate the header and split the remaining records into parsed rows and malformed diagnostics.

        Raises InvalidCsvFileError when the file yields no header or no non-blank
        data row, and InvalidCsvHeaderError when the columns do not match.
        """
        text = self._decode_content(file_content)
        # No field can be longer than the whole text.
        if len(text) > csv.field_size_limit():
            csv.field_size_limit(len(text))
        records = csv.reader(io.StringIO(text, newline=""))

        try:
            self._validate_header(next(records, None), filename)
            result = self._parse_records(records, filename)
        except csv.Error as exc:
            logger.warning("csv_unreadable", filename=filename, error=str(exc))
            raise InvalidCsvFileError(UNREADABLE_FILE_MESSAGE) from exc

        if result.total_rows_processed == 0:
            logger.warning("csv_headers_only", filename=filename)
            raise InvalidCsvFileError(HEADERS_ONLY_MESSAGE)

        logger.info(
            "csv_parsed",
            filename=filename,
            total_rows_processed=result.total_rows_processed,
            parsed=len(result.rows),
            malformed=len(result.malformed),
        )
        return result

    def _parse_records(self, records: Iterator[list[str]], filename: str) -> ParseResult:
        result = ParseResult()

        # Blank records still consume a row number so later rows keep their file position.
        for row_number, values in enumerate(records, start=FIRST_DATA_ROW):
            if is_blank_row(values):
                result.row_states[row_number] = RowState.skipped
                continue

            result.total_rows_processed += 1

            if len(values) != len(EXPECTED_HEADERS):
                logger.warning(
                    "csv_row_malformed",
                    filename=filename,
                    row=row_number,
                    columns=len(values),
                )
                result.malformed.append(
                    RowDiagnostic(
                        row_number=row_number,
                        values=list(values),
                        errors=[RowError(field="row", message=MALFORMED_ROW_MESSAGE)],
                    )
                )
                result.row_states[row_number] = RowState.malformed
                continue

            result.rows.append(self._to_parsed_row(row_number, values))

        return result

    def _decode_content(self, file_content: bytes) -> str:
        """Decode bytes to string with encoding fallback."""
        if file_content.startswith(codecs.BOM_UTF8):
            file_content = file_content[len(codecs.BOM_UTF8) :]
        try:
            return file_content.decode("utf-8")
        except UnicodeDecodeError:
            return file_content.decode("latin-1")

    def _validate_header(self, header: list[str] | None, filename: str) -> None:
        if header is None:
            logger.warning("csv_empty", filename=filename)
            raise InvalidCsvFileError(EMPTY_FILE_MESSAGE)

        normalized = normalize_header(header)
        if tuple(normalized) != EXPECTED_HEADERS:
            logger.warning("csv_header_invalid", filename=filename, header=normalized)
            raise InvalidCsvHeaderError(INVALID_HEADER_MESSAGE)

    @staticmethod
    def _to_parsed_row(row_number: int, values: list[str]) -> ParsedRow:
        name, email, date_of_birth, annual_income = (value.strip() for value in values)
        return ParsedRow(
            row_number=row_number,
            name=name,
            email=email.lower(),
            date_of_birth=date_of_birth or None,
            annual_income=annual_income or None,
        )
