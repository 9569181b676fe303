"""Row validation rules for customer imports.

Every rule inspects one parsed row and returns a ``RowError`` or ``None``.
Duplicate rules are registered as *gated*: they only run when the row has a
non-empty email that passed its own format rule, so an invalid address is never
also reported as a duplicate.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from email_validator import EmailNotValidError, validate_email

from customer_import.customers.importers.csv_parser import ParsedRow
from customer_import.customers.importers.duplicates import DuplicateIndex
from customer_import.customers.importers.schemas import RowError
from customer_import.customers.models import CustomerField

DATE_FORMATS = [
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d.%m.%Y",
]

NAME_REQUIRED = "Name is required."
EMAIL_REQUIRED = "Email is required."
EMAIL_INVALID = "Email must be a valid email address."
DOB_INVALID = "Date of birth must be a valid date."
DOB_IN_FUTURE = "Date of birth must not be in the future."
INCOME_NOT_NUMBER = "Annual income must be a number."
INCOME_NOT_POSITIVE = "Annual income must be a positive number."
DUPLICATE_IN_FILE = "Duplicate email found within the same file."
DUPLICATE_IN_STORE = "Email already exists."


@dataclass(frozen=True)
class RuleContext:
    duplicates: DuplicateIndex
    today: date


RuleFn = Callable[[ParsedRow, RuleContext], RowError | None]


@dataclass(frozen=True)
class RowRule:
    rule_id: str
    field: CustomerField
    check_fn: RuleFn
    gated: bool = False


class RowRuleRegistry:
    """Ordered registry of row rules; registration order is reporting order."""

    def __init__(self) -> None:
        self._rules: dict[str, RowRule] = {}

    def register(
        self,
        rule_id: str,
        field: CustomerField,
        *,
        gated: bool = False,
    ) -> Callable[[RuleFn], RuleFn]:
        """Decorator to register a rule function."""

        def decorator(fn: RuleFn) -> RuleFn:
            self._rules[rule_id] = RowRule(rule_id=rule_id, field=field, check_fn=fn, gated=gated)
            return fn

        return decorator

    def get_rules(self, *, include_gated: bool = True) -> list[RowRule]:
        if include_gated:
            return list(self._rules.values())
        return [r for r in self._rules.values() if not r.gated]

    def run_all(self, row: ParsedRow, ctx: RuleContext) -> list[RowError]:
        """Evaluate ungated rules, then the gated ones if the email is usable."""
        errors: list[RowError] = []
        email_failed = False
        for rule in self.get_rules(include_gated=False):
            error = rule.check_fn(row, ctx)
            if error is None:
                continue
            errors.append(error)
            if rule.field == CustomerField.email:
                email_failed = True

        if row.email and not email_failed:
            for rule in self._rules.values():
                if not rule.gated:
                    continue
                error = rule.check_fn(row, ctx)
                if error is not None:
                    errors.append(error)

        return dedupe_errors(errors)


def dedupe_errors(errors: list[RowError]) -> list[RowError]:
    seen: set[tuple[str, str]] = set()
    unique: list[RowError] = []
    for error in errors:
        key = (error.field, error.message)
        if key in seen:
            continue
        seen.add(key)
        unique.append(error)
    return unique


def parse_date(raw: str) -> date | None:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def parse_income(raw: str) -> Decimal | None:
    # Decimal accepts digit-group underscores ("1_000"); a CSV amount must not.
    if "_" in raw:
        return None
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


registry = RowRuleRegistry()


@registry.register("name_required", CustomerField.name)
def name_required(row: ParsedRow, ctx: RuleContext) -> RowError | None:
    if not row.name:
        return RowError(field=CustomerField.name, message=NAME_REQUIRED)
    return None


@registry.register("email_format", CustomerField.email)
def email_format(row: ParsedRow, ctx: RuleContext) -> RowError | None:
    if not row.email:
        return RowError(field=CustomerField.email, message=EMAIL_REQUIRED)
    if not is_valid_email(row.email):
        return RowError(field=CustomerField.email, message=EMAIL_INVALID)
    return None


@registry.register("date_of_birth", CustomerField.date_of_birth)
def date_of_birth(row: ParsedRow, ctx: RuleContext) -> RowError | None:
    if row.date_of_birth is None:
        return None
    parsed = parse_date(row.date_of_birth)
    if parsed is None:
        return RowError(field=CustomerField.date_of_birth, message=DOB_INVALID)
    # Born today is allowed.
    if parsed > ctx.today:
        return RowError(field=CustomerField.date_of_birth, message=DOB_IN_FUTURE)
    return None


@registry.register("annual_income", CustomerField.annual_income)
def annual_income(row: ParsedRow, ctx: RuleContext) -> RowError | None:
    if row.annual_income is None:
        return None
    amount = parse_income(row.annual_income)
    if amount is None:
        return RowError(field=CustomerField.annual_income, message=INCOME_NOT_NUMBER)
    if amount <= 0:
        return RowError(field=CustomerField.annual_income, message=INCOME_NOT_POSITIVE)
    return None


@registry.register("duplicate_in_file", CustomerField.email, gated=True)
def duplicate_in_file(row: ParsedRow, ctx: RuleContext) -> RowError | None:
    if ctx.duplicates.is_in_file(row.email):
        return RowError(field=CustomerField.email, message=DUPLICATE_IN_FILE)
    return None


@registry.register("duplicate_in_store", CustomerField.email, gated=True)
def duplicate_in_store(row: ParsedRow, ctx: RuleContext) -> RowError | None:
    if ctx.duplicates.is_in_store(row.email):
        return RowError(field=CustomerField.email, message=DUPLICATE_IN_STORE)
    return None


def validate_row(row: ParsedRow, duplicates: DuplicateIndex, today: date | None = None) -> list[RowError]:
    """Return every diagnostic for the row; an empty list means it may be persisted."""
    ctx = RuleContext(duplicates=duplicates, today=today or date.today())
    return registry.run_all(row, ctx)
