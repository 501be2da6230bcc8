"""Validate and convert one uploaded account row into account column values."""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from app.schemas.bulk_upload import BulkUploadRowError

REQUIRED_FIELDS = (
    "accountNumber",
    "firstName",
    "lastName",
    "originalAmount",
    "currentBalance",
)

OPTIONAL_FIELDS = (
    "email",
    "address1",
    "address2",
    "city",
    "state",
    "zipCode",
    "country",
    "amountPaid",
    "interestRate",
    "lastPaymentDate",
    "lastPaymentAmount",
    "status",
    "priority",
    "preferredContactMethod",
    "bestTimeToCall",
    "timezone",
    "language",
    "daysPastDue",
    "lastContactDate",
    "nextContactDate",
    "doNotCall",
    "disputeFlag",
    "bankruptcyFlag",
    "deceasedFlag",
    "notes",
    "source",
)

# Column name -> accepted header spellings (first non-empty wins).
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "accountNumber": ("accountNumber", "account_number"),
    "firstName": ("firstName", "first_name"),
    "lastName": ("lastName", "last_name"),
    "originalAmount": ("originalAmount", "original_amount"),
    "currentBalance": ("currentBalance", "current_balance"),
    "email": ("email",),
    "address1": ("address1", "address"),
    "address2": ("address2",),
    "city": ("city",),
    "state": ("state",),
    "zipCode": ("zipCode", "zip_code", "zip"),
    "country": ("country",),
    "amountPaid": ("amountPaid", "amount_paid"),
    "interestRate": ("interestRate", "interest_rate"),
    "lastPaymentDate": ("lastPaymentDate", "last_payment_date"),
    "lastPaymentAmount": ("lastPaymentAmount", "last_payment_amount"),
    "status": ("status",),
    "priority": ("priority",),
    "preferredContactMethod": ("preferredContactMethod", "preferred_contact_method"),
    "bestTimeToCall": ("bestTimeToCall", "best_time_to_call"),
    "timezone": ("timezone",),
    "language": ("language",),
    "daysPastDue": ("daysPastDue", "days_past_due"),
    "lastContactDate": ("lastContactDate", "last_contact_date"),
    "nextContactDate": ("nextContactDate", "next_contact_date"),
    "doNotCall": ("doNotCall", "do_not_call"),
    "disputeFlag": ("disputeFlag", "dispute_flag"),
    "bankruptcyFlag": ("bankruptcyFlag", "bankruptcy_flag"),
    "deceasedFlag": ("deceasedFlag", "deceased_flag"),
    "notes": ("notes",),
    "source": ("source",),
}

ACCOUNT_STATUSES = ("NEW", "ASSIGNED", "ACTIVE", "PTP", "PAID", "CLOSED", "DELETED", "SKIP")
ACCOUNT_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
CONTACT_METHODS = ("PHONE", "EMAIL", "SMS", "MAIL")

ENUM_FIELDS: dict[str, tuple[str, ...]] = {
    "status": ACCOUNT_STATUSES,
    "priority": ACCOUNT_PRIORITIES,
    "preferredContactMethod": CONTACT_METHODS,
}

MONEY_FIELDS = ("originalAmount", "currentBalance", "amountPaid", "lastPaymentAmount")
DATE_FIELDS = ("lastPaymentDate", "lastContactDate", "nextContactDate")
BOOLEAN_FIELDS = ("doNotCall", "disputeFlag", "bankruptcyFlag", "deceasedFlag")

# Plain text columns and their maximum lengths (matching the accounts table).
TEXT_FIELDS: dict[str, int] = {
    "accountNumber": 64,
    "firstName": 100,
    "lastName": 100,
    "email": 255,
    "address1": 255,
    "address2": 255,
    "city": 100,
    "state": 64,
    "zipCode": 20,
    "country": 64,
    "bestTimeToCall": 64,
    "timezone": 32,
    "language": 16,
    "source": 64,
}

# Upload column -> Account attribute.
COLUMN_TO_ATTRIBUTE: dict[str, str] = {
    "accountNumber": "account_number",
    "firstName": "first_name",
    "lastName": "last_name",
    "originalAmount": "original_amount",
    "currentBalance": "current_balance",
    "email": "email",
    "address1": "address1",
    "address2": "address2",
    "city": "city",
    "state": "state",
    "zipCode": "zip_code",
    "country": "country",
    "amountPaid": "amount_paid",
    "interestRate": "interest_rate",
    "lastPaymentDate": "last_payment_date",
    "lastPaymentAmount": "last_payment_amount",
    "status": "status",
    "priority": "priority",
    "preferredContactMethod": "preferred_contact_method",
    "bestTimeToCall": "best_time_to_call",
    "timezone": "timezone",
    "language": "language",
    "daysPastDue": "days_past_due",
    "lastContactDate": "last_contact_date",
    "nextContactDate": "next_contact_date",
    "doNotCall": "do_not_call",
    "disputeFlag": "dispute_flag",
    "bankruptcyFlag": "bankruptcy_flag",
    "deceasedFlag": "deceased_flag",
    "notes": "notes",
    "source": "source",
}

# Applied on insert only; updates touch just the columns present in the row.
INSERT_DEFAULTS: dict[str, Any] = {
    "country": "US",
    "amount_paid": Decimal("0.00"),
    "status": "NEW",
    "priority": "MEDIUM",
    "preferred_contact_method": "PHONE",
    "timezone": "EST",
    "language": "EN",
    "days_past_due": 0,
    "do_not_call": False,
    "dispute_flag": False,
    "bankruptcy_flag": False,
    "deceased_flag": False,
    "source": "BULK_UPLOAD",
}

_CENTS = Decimal("0.01")
_RATE_PLACES = Decimal("0.0001")
_MAX_MONEY = Decimal("999999999999.99")
_MAX_DAYS_PAST_DUE = 2_147_483_647
_TRUE_VALUES = frozenset({"true", "yes", "y", "1"})
_FALSE_VALUES = frozenset({"false", "no", "n", "0"})
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_DATE_FORMATS = ("%m/%d/%Y",)

_LABELS = {
    "accountNumber": "Account number",
    "firstName": "First name",
    "lastName": "Last name",
    "originalAmount": "Original amount",
    "currentBalance": "Current balance",
}


@dataclass
class RowValidation:
    """Converted column values (Account attribute names) and the row's errors."""

    data: dict[str, Any] = field(default_factory=dict)
    errors: list[BulkUploadRowError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def get_value(row: dict[str, Any], column: str) -> str:
    """Trimmed value of `column`, trying each alias; empty string when absent."""
    for alias in FIELD_ALIASES.get(column, (column,)):
        raw = row.get(alias)
        if raw is None:
            continue
        value = str(raw).strip()
        if value:
            return value
    return ""


def is_blank_row(row: dict[str, Any]) -> bool:
    """True if every cell is empty or whitespace."""
    return all(v is None or not str(v).strip() for v in row.values())


def parse_decimal(raw: str) -> Decimal:
    """
    Parse a monetary string such as "1,000.00" or "$250" into a Decimal.
    Raises ValueError for non-numeric, non-finite or negative values.
    """
    cleaned = raw.strip().replace(",", "").replace("$", "").strip()
    if not cleaned:
        raise ValueError("empty")
    try:
        value = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"not a number: {raw!r}") from e
    if not value.is_finite():
        raise ValueError(f"not a finite number: {raw!r}")
    if value < 0:
        raise ValueError(f"negative: {raw!r}")
    return value


def parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def parse_date(raw: str) -> datetime:
    """Parse ISO dates/datetimes or MM/DD/YYYY; naive results are taken as UTC."""
    text = raw.strip()
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        raise ValueError(f"not a date: {raw!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def validate_row(row: dict[str, Any], row_number: int) -> RowValidation:
    """
    Check one row against the upload rules and convert it to Account values.

    Required columns must be non-empty, numeric columns non-negative decimals,
    enumerated columns members of their value sets. Every offending field gets
    its own error. `data` only contains columns present in the row (plus
    full_name), so an update never resets columns the file did not mention.
    """
    result = RowValidation()

    def fail(column: str, message: str) -> None:
        result.errors.append(BulkUploadRowError(row=row_number, field=column, message=message))

    for column in REQUIRED_FIELDS:
        if not get_value(row, column):
            fail(column, f"{_LABELS[column]} is required")

    for column, max_len in TEXT_FIELDS.items():
        value = get_value(row, column)
        if not value:
            continue
        if len(value) > max_len:
            fail(column, f"{column} must be at most {max_len} characters")
            continue
        result.data[COLUMN_TO_ATTRIBUTE[column]] = value

    for column in MONEY_FIELDS:
        value = get_value(row, column)
        if not value:
            continue
        try:
            amount = parse_decimal(value)
        except ValueError:
            fail(column, f"{column} must be a non-negative number")
            continue
        if amount > _MAX_MONEY:
            fail(column, f"{column} is too large")
            continue
        result.data[COLUMN_TO_ATTRIBUTE[column]] = amount.quantize(_CENTS, rounding=ROUND_HALF_UP)

    rate = get_value(row, "interestRate")
    if rate:
        try:
            parsed_rate = parse_decimal(rate.rstrip("%"))
        except ValueError:
            fail("interestRate", "interestRate must be a non-negative number")
        else:
            if parsed_rate >= 1000:
                fail("interestRate", "interestRate is too large")
            else:
                result.data["interest_rate"] = parsed_rate.quantize(
                    _RATE_PLACES, rounding=ROUND_HALF_UP
                )

    days = get_value(row, "daysPastDue")
    if days:
        try:
            parsed_days = int(days.replace(",", ""))
        except ValueError:
            parsed_days = -1
        if parsed_days < 0:
            fail("daysPastDue", "daysPastDue must be a non-negative whole number")
        elif parsed_days > _MAX_DAYS_PAST_DUE:
            fail("daysPastDue", "daysPastDue is too large")
        else:
            result.data["days_past_due"] = parsed_days

    for column, allowed in ENUM_FIELDS.items():
        value = get_value(row, column)
        if not value:
            continue
        normalized = value.upper()
        if normalized not in allowed:
            fail(column, f"{column} must be one of {', '.join(allowed)}")
            continue
        result.data[COLUMN_TO_ATTRIBUTE[column]] = normalized

    for column in BOOLEAN_FIELDS:
        value = get_value(row, column)
        if not value:
            continue
        try:
            result.data[COLUMN_TO_ATTRIBUTE[column]] = parse_bool(value)
        except ValueError:
            fail(column, f"{column} must be true or false")

    for column in DATE_FIELDS:
        value = get_value(row, column)
        if not value:
            continue
        try:
            result.data[COLUMN_TO_ATTRIBUTE[column]] = parse_date(value)
        except ValueError:
            fail(column, f"{column} must be a date (YYYY-MM-DD or MM/DD/YYYY)")

    email = result.data.get("email")
    if email is not None and not _EMAIL_PATTERN.match(email):
        fail("email", "email is not a valid email address")
        del result.data["email"]

    notes = get_value(row, "notes")
    if notes:
        result.data["notes"] = notes

    if "first_name" in result.data or "last_name" in result.data:
        result.data["full_name"] = " ".join(
            p for p in (result.data.get("first_name"), result.data.get("last_name")) if p
        )

    return result
