"""Unit tests for app.services.row_validation: required fields, numbers, enums, aliases."""

import unittest
from datetime import UTC, datetime
from decimal import Decimal

from app.services.row_validation import (
    get_value,
    is_blank_row,
    parse_bool,
    parse_date,
    parse_decimal,
    validate_row,
)


def _row(**overrides: str) -> dict[str, str]:
    row = {
        "accountNumber": "ACC001",
        "firstName": "John",
        "lastName": "Doe",
        "originalAmount": "1000.00",
        "currentBalance": "850.00",
    }
    row.update(overrides)
    return row


class TestParseDecimal(unittest.TestCase):
    """Money parsing."""

    def test_thousands_separators_and_currency_symbol(self) -> None:
        self.assertEqual(parse_decimal("1,000.00"), Decimal("1000.00"))
        self.assertEqual(parse_decimal("$250"), Decimal("250"))
        self.assertEqual(parse_decimal(" 0 "), Decimal("0"))

    def test_rejects_garbage_negative_and_non_finite(self) -> None:
        for raw in ("abc", "-1", "NaN", "Infinity", "", "1.2.3"):
            with self.subTest(raw=raw), self.assertRaises(ValueError):
                parse_decimal(raw)


class TestParseHelpers(unittest.TestCase):
    """Boolean, date and column alias helpers."""

    def test_bool(self) -> None:
        self.assertTrue(parse_bool("Yes"))
        self.assertTrue(parse_bool("1"))
        self.assertFalse(parse_bool("false"))
        with self.assertRaises(ValueError):
            parse_bool("maybe")

    def test_dates(self) -> None:
        self.assertEqual(parse_date("2024-03-05"), datetime(2024, 3, 5, tzinfo=UTC))
        self.assertEqual(parse_date("03/05/2024"), datetime(2024, 3, 5, tzinfo=UTC))
        self.assertEqual(parse_date("2024-03-05T10:00:00Z").hour, 10)
        with self.assertRaises(ValueError):
            parse_date("yesterday")

    def test_aliases_and_blank_rows(self) -> None:
        self.assertEqual(get_value({"account_number": " A1 "}, "accountNumber"), "A1")
        self.assertEqual(get_value({"accountNumber": "", "account_number": "A2"}, "accountNumber"), "A2")
        self.assertEqual(get_value({}, "accountNumber"), "")
        self.assertTrue(is_blank_row({"a": "", "b": "  ", "c": None}))
        self.assertFalse(is_blank_row({"a": "", "b": "x"}))


class TestValidateRow(unittest.TestCase):
    """Full row validation and conversion."""

    def test_valid_row_converts_values(self) -> None:
        result = validate_row(_row(originalAmount="1,000.00", status="active"), 1)
        self.assertTrue(result.ok)
        self.assertEqual(result.data["account_number"], "ACC001")
        self.assertEqual(result.data["original_amount"], Decimal("1000.00"))
        self.assertEqual(result.data["current_balance"], Decimal("850.00"))
        self.assertEqual(result.data["status"], "ACTIVE")
        self.assertEqual(result.data["full_name"], "John Doe")

    def test_missing_required_fields_each_reported(self) -> None:
        result = validate_row({"accountNumber": "ACC001"}, 4)
        self.assertFalse(result.ok)
        fields = [e.field for e in result.errors]
        self.assertEqual(fields, ["firstName", "lastName", "originalAmount", "currentBalance"])
        self.assertTrue(all(e.row == 4 for e in result.errors))
        self.assertEqual(result.errors[0].message, "First name is required")

    def test_non_numeric_and_negative_amounts(self) -> None:
        result = validate_row(_row(originalAmount="abc", currentBalance="-5"), 2)
        self.assertEqual(
            [(e.field, e.message) for e in result.errors],
            [
                ("originalAmount", "originalAmount must be a non-negative number"),
                ("currentBalance", "currentBalance must be a non-negative number"),
            ],
        )

    def test_zero_balance_is_valid(self) -> None:
        self.assertTrue(validate_row(_row(currentBalance="0"), 1).ok)

    def test_amounts_rounded_to_cents(self) -> None:
        result = validate_row(_row(currentBalance="10.005"), 1)
        self.assertEqual(result.data["current_balance"], Decimal("10.01"))

    def test_enum_values_checked(self) -> None:
        result = validate_row(_row(status="LOST", priority="urgent", preferredContactMethod="FAX"), 3)
        fields = {e.field for e in result.errors}
        self.assertEqual(fields, {"status", "preferredContactMethod"})
        self.assertEqual(result.data["priority"], "URGENT")

    def test_optional_fields(self) -> None:
        result = validate_row(
            _row(
                email="john@example.com",
                interestRate="5.5%",
                daysPastDue="30",
                doNotCall="yes",
                lastPaymentDate="01/15/2024",
                notes="called twice",
            ),
            1,
        )
        self.assertTrue(result.ok, result.errors)
        self.assertEqual(result.data["interest_rate"], Decimal("5.5000"))
        self.assertEqual(result.data["days_past_due"], 30)
        self.assertTrue(result.data["do_not_call"])
        self.assertEqual(result.data["last_payment_date"], datetime(2024, 1, 15, tzinfo=UTC))
        self.assertEqual(result.data["notes"], "called twice")

    def test_bad_optional_values(self) -> None:
        result = validate_row(
            _row(email="not-an-email", daysPastDue="-3", disputeFlag="sometimes", nextContactDate="soon"),
            6,
        )
        fields = {e.field for e in result.errors}
        self.assertEqual(fields, {"email", "daysPastDue", "disputeFlag", "nextContactDate"})
        self.assertNotIn("email", result.data)

    def test_days_past_due_must_fit_an_integer_column(self) -> None:
        self.assertTrue(validate_row(_row(daysPastDue="2147483647"), 1).ok)
        result = validate_row(_row(daysPastDue="99999999999999999999"), 2)
        self.assertEqual([(e.field, e.message) for e in result.errors], [("daysPastDue", "daysPastDue is too large")])
        self.assertNotIn("days_past_due", result.data)

    def test_only_provided_columns_in_data(self) -> None:
        result = validate_row(_row(), 1)
        self.assertNotIn("status", result.data)
        self.assertNotIn("email", result.data)
        self.assertNotIn("country", result.data)

    def test_overlong_text_rejected(self) -> None:
        result = validate_row(_row(accountNumber="A" * 65), 1)
        self.assertEqual([e.field for e in result.errors], ["accountNumber"])

    def test_snake_case_headers_accepted(self) -> None:
        row = {
            "account_number": "ACC009",
            "first_name": "Ann",
            "last_name": "Lee",
            "original_amount": "10",
            "current_balance": "5",
        }
        result = validate_row(row, 1)
        self.assertTrue(result.ok)
        self.assertEqual(result.data["account_number"], "ACC009")


if __name__ == "__main__":
    unittest.main()
