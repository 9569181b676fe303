from enum import StrEnum


class CustomerField(StrEnum):
    name = "name"
    email = "email"
    date_of_birth = "date_of_birth"
    annual_income = "annual_income"


EXPECTED_HEADERS: tuple[str, ...] = tuple(field.value for field in CustomerField)


class PersistencePolicy(StrEnum):
    per_row = "per_row"
    per_batch = "per_batch"


class RunState(StrEnum):
    running = "running"
    completed = "completed"
    aborted = "aborted"


class RowState(StrEnum):
    pending = "pending"
    skipped = "skipped"
    malformed = "malformed"
    rejected = "rejected"
    imported = "imported"
    aborted_unprocessed = "aborted_unprocessed"
