"""Spreadsheet reading for bulk imports (.xlsx via openpyxl, or .csv)."""

from __future__ import annotations

import csv
import io
import re
import zipfile
from typing import Any

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from hr_backoffice.errors import ParseFailureError

SUPPORTED_EXTENSIONS = (".xlsx", ".csv")


def _extension(filename: str) -> str:
    match = re.search(r"\.[a-z0-9]+$", (filename or "").lower().strip())
    return match.group(0) if match else ""


def _header(value: Any) -> str:
    """``" Employee Code "`` -> ``employee_code``."""
    if value is None:
        return ""
    return re.sub(r"\s+", "_", str(value).strip().lower())


def _is_empty(row: dict[str, Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in row.values())


def read_csv(data: bytes) -> list[dict[str, Any]]:
    """Rows of a UTF-8 (BOM tolerated) or Latin-1 CSV file."""
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = data.decode("latin-1")

    rows = []
    for raw in csv.DictReader(io.StringIO(text)):
        row = {
            _header(key): value.strip() if isinstance(value, str) else value
            for key, value in raw.items()
            if key is not None
        }
        if not _is_empty(row):
            rows.append(row)
    return rows


def read_xlsx(data: bytes) -> list[dict[str, Any]]:
    """Rows of the first worksheet; the first row holds the headers.

    Cell values keep their spreadsheet types, so dates may arrive as
    ``datetime`` objects or serial numbers and codes as floats.
    """
    workbook = openpyxl.load_workbook(io.BytesIO(data), data_only=True, read_only=True)
    try:
        sheet = workbook.worksheets[0]
        headers: list[str] = []
        rows = []
        for index, values in enumerate(sheet.iter_rows(values_only=True)):
            if index == 0:
                headers = [_header(value) for value in values]
                continue
            row = {
                headers[j] if j < len(headers) and headers[j] else f"col{j + 1}": value
                for j, value in enumerate(values)
            }
            if not _is_empty(row):
                rows.append(row)
        return rows
    finally:
        workbook.close()


def read_rows(filename: str, data: bytes) -> list[dict[str, Any]]:
    """Read an uploaded file by its extension.

    Raises:
        ParseFailureError: If the extension is not supported or the file is unreadable
    """
    extension = _extension(filename)
    if extension == ".csv":
        return read_csv(data)
    if extension == ".xlsx":
        try:
            return read_xlsx(data)
        except (zipfile.BadZipFile, InvalidFileException, OSError, KeyError) as exc:
            raise ParseFailureError("file", filename, f"not a readable workbook: {exc}") from exc
    raise ParseFailureError("file", filename, f"expected one of {', '.join(SUPPORTED_EXTENSIONS)}")
