"""Unit tests for app.services.tabular: format detection, CSV and Excel row readers."""

import io
import unittest
from datetime import datetime

from openpyxl import Workbook

from app.services.tabular import (
    FileParseError,
    UnsupportedFileError,
    detect_format,
    is_allowed_upload,
    iter_csv_rows,
    iter_rows,
    iter_xlsx_rows,
    write_csv_rows,
)


def _xlsx_bytes(rows: list[list[object]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestDetectFormat(unittest.TestCase):
    """File format detection from name and MIME type."""

    def test_by_extension(self) -> None:
        self.assertEqual(detect_format("accounts.CSV", None), "csv")
        self.assertEqual(detect_format("accounts.xlsx", "application/octet-stream"), "xlsx")
        self.assertEqual(detect_format("legacy.xls", None), "xlsx")

    def test_by_mime_type(self) -> None:
        self.assertEqual(detect_format("upload", "text/csv; charset=utf-8"), "csv")
        self.assertEqual(
            detect_format(
                "upload",
                "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            ),
            "xlsx",
        )

    def test_unsupported(self) -> None:
        with self.assertRaises(UnsupportedFileError):
            detect_format("accounts.pdf", "application/pdf")
        self.assertFalse(is_allowed_upload("notes.txt", "text/plain"))
        self.assertTrue(is_allowed_upload("accounts.csv", "text/csv"))


class TestCsvRows(unittest.TestCase):
    """CSV row reader."""

    def test_header_keyed_rows(self) -> None:
        data = b"accountNumber, firstName \nA1,John\nA2,Jane\n"
        rows = list(iter_csv_rows(data))
        self.assertEqual(rows, [{"accountNumber": "A1", "firstName": "John"}, {"accountNumber": "A2", "firstName": "Jane"}])

    def test_quoted_fields(self) -> None:
        data = b'accountNumber,notes\nA1,"said ""call later"", then hung up"\nA2,"line one\nline two"\n'
        rows = list(iter_csv_rows(data))
        self.assertEqual(rows[0]["notes"], 'said "call later", then hung up')
        self.assertEqual(rows[1]["notes"], "line one\nline two")

    def test_escaping_survives_a_write_read_cycle(self) -> None:
        original = [{"accountNumber": "A1", "notes": 'comma, "quote"\nnewline'}]
        text = write_csv_rows(original, ["accountNumber", "notes"])
        self.assertEqual(list(iter_csv_rows(text.encode("utf-8"))), original)

    def test_short_rows_padded_and_bom_stripped(self) -> None:
        data = "\ufeffa,b,c\n1\n".encode("utf-8")
        self.assertEqual(list(iter_csv_rows(data)), [{"a": "1", "b": "", "c": ""}])

    def test_empty_file(self) -> None:
        self.assertEqual(list(iter_csv_rows(b"")), [])

    def test_invalid_utf8(self) -> None:
        with self.assertRaises(FileParseError):
            list(iter_csv_rows(b"a,b\n\xff\xfe,1\n"))

    def test_rows_are_lazy(self) -> None:
        rows = iter_csv_rows(b"a\n1\n2\n3\n")
        self.assertEqual(next(rows), {"a": "1"})


class TestXlsxRows(unittest.TestCase):
    """Excel row reader."""

    def test_reads_first_sheet(self) -> None:
        data = _xlsx_bytes(
            [
                ["accountNumber", "originalAmount", "lastPaymentDate", "doNotCall"],
                ["A1", 1000, datetime(2024, 1, 15), True],
                ["A2", 12.5, None, False],
            ]
        )
        rows = list(iter_xlsx_rows(data))
        self.assertEqual(
            rows[0],
            {"accountNumber": "A1", "originalAmount": "1000", "lastPaymentDate": "2024-01-15", "doNotCall": "true"},
        )
        self.assertEqual(rows[1]["originalAmount"], "12.5")
        self.assertEqual(rows[1]["lastPaymentDate"], "")

    def test_dispatch(self) -> None:
        data = _xlsx_bytes([["a"], ["x"]])
        self.assertEqual(list(iter_rows(data, "xlsx")), [{"a": "x"}])
        self.assertEqual(list(iter_rows(b"a\nx\n", "csv")), [{"a": "x"}])

    def test_corrupt_workbook(self) -> None:
        with self.assertRaises(FileParseError) as ctx:
            list(iter_xlsx_rows(b"definitely not a zip archive"))
        self.assertEqual(ctx.exception.message, "Failed to parse Excel file")


if __name__ == "__main__":
    unittest.main()
