"""Serial number loading from CSV and Excel files.

Reads one named column from a spreadsheet:

    | Serial Number | Owner |
    |---------------|-------|
    | 5CG1234ABC    | jdoe  |
    | 5CG5678DEF    |       |

- First row is the header; the column name must match exactly
- Values are trimmed; empty cells are skipped
- ``.csv`` (UTF-8, BOM tolerated, delimiter sniffed) and ``.xlsx`` (first sheet)
"""

import csv
import io
import logging
from pathlib import Path

from openpyxl import load_workbook

from ...api.exceptions import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SERIAL_COLUMN = "Serial Number"

SUPPORTED_EXTENSIONS = (".csv", ".xlsx")


def load_serial_numbers(path: str | Path, column: str = DEFAULT_SERIAL_COLUMN) -> list[str]:
    """Load serial numbers from one column of a CSV or XLSX file.

    Args:
        path: Spreadsheet path
        column: Header of the serial number column

    Returns:
        Serial numbers in file order

    Raises:
        ValidationError: If the file type is unsupported, unreadable, or the
            column is missing
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix not in SUPPORTED_EXTENSIONS:
        raise ValidationError(
            f"Unsupported file type {suffix or '(none)'}. Use a CSV or XLSX file.",
            field="file",
        )

    try:
        content = path.read_bytes()
    except OSError as e:
        raise ValidationError(f"Cannot read {path.name}: {e}", field="file", cause=e)

    if suffix == ".csv":
        serials = _parse_csv(content, column)
    else:
        serials = _parse_excel(content, column)

    logger.info(f"Loaded {len(serials)} serial(s) from {path.name}")
    return serials


def _missing_column(column: str, headers: list[str]) -> ValidationError:
    return ValidationError(
        f'Missing column "{column}"',
        field="column",
        details={"available_columns": headers},
    )


def _parse_csv(content: bytes, column: str) -> list[str]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("CSV file is not valid UTF-8", field="file", cause=e)

    try:
        dialect = csv.Sniffer().sniff(text[:1024], delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel

    reader = csv.reader(io.StringIO(text), dialect)
    try:
        headers = [h.strip() for h in next(reader)]
    except StopIteration:
        raise ValidationError("CSV file is empty", field="file")

    if column not in headers:
        raise _missing_column(column, headers)
    index = headers.index(column)

    serials = []
    for row in reader:
        if index >= len(row):
            continue
        value = row[index].strip()
        if value:
            serials.append(value)
    return serials


def _cell_to_text(value) -> str:
    if value is None:
        return ""
    # Numeric-only serials come back from Excel as numbers
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _parse_excel(content: bytes, column: str) -> list[str]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValidationError(f"Cannot open Excel file: {e}", field="file", cause=e)

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        try:
            headers = [_cell_to_text(h) for h in next(rows)]
        except StopIteration:
            raise ValidationError("Excel file is empty", field="file")

        if column not in headers:
            raise _missing_column(column, headers)
        index = headers.index(column)

        serials = []
        for row in rows:
            if row is None or index >= len(row):
                continue
            value = _cell_to_text(row[index])
            if value:
                serials.append(value)
        return serials
    finally:
        workbook.close()
