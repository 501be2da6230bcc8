"""Parse uploaded CSV / Excel files into lazily produced header-keyed rows."""

import csv
import io
import zipfile
from collections.abc import Iterable, Iterator
from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

FileFormat = Literal["csv", "xlsx"]

CSV_EXTENSIONS = frozenset({".csv"})
SPREADSHEET_EXTENSIONS = frozenset({".xlsx", ".xls"})
ALLOWED_EXTENSIONS = CSV_EXTENSIONS | SPREADSHEET_EXTENSIONS

CSV_MIME_TYPES = frozenset({"text/csv", "application/csv"})
SPREADSHEET_MIME_TYPES = frozenset(
    {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
    }
)


class TabularFileError(Exception):
    """Base for problems with the uploaded file as a whole."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnsupportedFileError(TabularFileError):
    """The upload is neither CSV nor an Excel workbook."""


class FileParseError(TabularFileError):
    """The file has a supported type but its content cannot be read."""


def _extension(filename: str) -> str:
    name = (filename or "").strip().lower()
    dot = name.rfind(".")
    return name[dot:] if dot != -1 else ""


def detect_format(filename: str, content_type: str | None) -> FileFormat:
    """Pick a parser from the file extension, falling back to the MIME type."""
    ext = _extension(filename)
    if ext in CSV_EXTENSIONS:
        return "csv"
    if ext in SPREADSHEET_EXTENSIONS:
        return "xlsx"
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime in SPREADSHEET_MIME_TYPES:
        return "xlsx"
    if mime in CSV_MIME_TYPES:
        return "csv"
    raise UnsupportedFileError(
        "Unsupported file type. Please upload CSV or Excel files."
    )


def is_allowed_upload(filename: str, content_type: str | None) -> bool:
    """True if the upload boundary should accept this file for bulk ingestion."""
    try:
        detect_format(filename, content_type)
    except UnsupportedFileError:
        return False
    return True


def iter_csv_rows(data: bytes) -> Iterator[dict[str, str]]:
    """
    Yield one dict per CSV data row, keyed by the (stripped) header names.

    Quoted fields may contain commas, newlines and doubled quotes. Missing
    trailing cells become empty strings; surplus cells are dropped.
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise FileParseError(f"CSV file is not valid UTF-8: {e.reason}") from e

    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        header = next(reader)
    except StopIteration:
        return
    except csv.Error as e:
        raise FileParseError(f"Malformed CSV header: {e}") from e
    keys = [h.strip() for h in header]

    while True:
        try:
            cells = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            raise FileParseError(f"Malformed CSV at line {reader.line_num}: {e}") from e
        if len(cells) < len(keys):
            cells = cells + [""] * (len(keys) - len(cells))
        yield {k: v for k, v in zip(keys, cells) if k}


def _cell_to_str(value: object) -> str:
    """Render a spreadsheet cell the way it would appear in an equivalent CSV."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(Decimal(repr(value)))
    return str(value).strip()


def iter_xlsx_rows(data: bytes) -> Iterator[dict[str, str]]:
    """
    Yield one dict per row of the first worksheet, keyed by the header row.

    Formulas are read as their cached values.
    """
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise FileParseError("Failed to parse Excel file") from e
    try:
        sheets = workbook.worksheets
        if not sheets:
            return
        rows = sheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return
        keys = [_cell_to_str(h) for h in header]
        for values in rows:
            cells = [_cell_to_str(v) for v in values]
            if len(cells) < len(keys):
                cells = cells + [""] * (len(keys) - len(cells))
            yield {k: v for k, v in zip(keys, cells) if k}
    finally:
        workbook.close()


def iter_rows(data: bytes, file_format: FileFormat) -> Iterator[dict[str, str]]:
    """Dispatch to the reader for `file_format`."""
    if file_format == "csv":
        return iter_csv_rows(data)
    return iter_xlsx_rows(data)


def write_csv_rows(rows: Iterable[dict[str, object]], fieldnames: list[str]) -> str:
    """Serialize rows to CSV text with minimal quoting (header included)."""
    buffer = io.StringIO(newline="")
    writer = csv.DictWriter(buffer, fieldnames=fieldnames, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: "" if row.get(k) is None else row.get(k) for k in fieldnames})
    return buffer.getvalue()
