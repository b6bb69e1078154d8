"""Parse an uploaded spreadsheet into a header and row mappings."""
import csv
import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from errors import RequestValidationFailed

PREVIEW_ROWS = 5
ALLOWED_EXTENSIONS = {".xlsx", ".csv", ".txt"}


@dataclass
class ParsedSheet:
    columns: list[str]
    rows: list[dict[str, Any]]

    @property
    def preview(self) -> list[dict[str, Any]]:
        return self.rows[:PREVIEW_ROWS]


def _header(cells) -> list[str]:
    """Header names; blanks become col_<i>, repeats get a _<n> suffix."""
    names: list[str] = []
    seen: set[str] = set()
    for i, h in enumerate(cells):
        base = str(h).strip() if h is not None and str(h).strip() else f"col_{i}"
        name, n = base, 0
        while name in seen:
            n += 1
            name = f"{base}_{n}"
        seen.add(name)
        names.append(name)
    return names


def _to_rows(header: list[str], body) -> list[dict[str, Any]]:
    rows = []
    for raw in body:
        values = list(raw)
        if all(v is None for v in values):
            continue
        values += [None] * (len(header) - len(values))
        rows.append(dict(zip(header, values)))
    return rows


def _read_xlsx(content: bytes) -> list[list[Any]]:
    # Cell values keep their native type so numbers and booleans reach type inference
    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _read_csv(content: bytes) -> list[list[Any]]:
    text = content.decode("utf-8-sig", errors="replace")
    try:
        dialect = csv.Sniffer().sniff(text[:4096]) if len(text) >= 3 else csv.excel
    except csv.Error:
        dialect = csv.excel_tab if "\t" in text.split("\n", 1)[0] else csv.excel
    return [[v if v != "" else None for v in row] for row in csv.reader(io.StringIO(text), dialect)]


def parse_upload(filename: str, content: bytes) -> ParsedSheet:
    ext = Path(filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise RequestValidationFailed(f"Allowed: {sorted(ALLOWED_EXTENSIONS)}")
    try:
        table = _read_xlsx(content) if ext == ".xlsx" else _read_csv(content)
    except (zipfile.BadZipFile, InvalidFileException) as exc:
        raise RequestValidationFailed(f"Could not read {filename}: {exc}") from exc
    if not table:
        raise RequestValidationFailed("No data found in file")
    header = _header(table[0])
    rows = _to_rows(header, (r[:len(header)] for r in table[1:]))
    if not rows:
        raise RequestValidationFailed("No data found in file")
    return ParsedSheet(columns=header, rows=rows)
