"""Preview and full export of stored datasets."""
import csv
import io
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence
from urllib.parse import quote

from openpyxl import Workbook
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from errors import NotFound, UnsupportedFormat
from registry import find_by_file_name, find_by_table_name
from schema_engine import quote_table, table_exists

PREVIEW_ROWS = 20


class TablePreview(BaseModel):
    preview: list[dict[str, Any]]
    rowCount: int
    colCount: int


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"

    @property
    def media_type(self) -> str:
        if self is ExportFormat.CSV:
            return "text/csv"
        return "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass
class Export:
    filename: str
    media_type: str
    content: bytes

    @property
    def content_disposition(self) -> str:
        quoted = quote(self.filename)
        if quoted != self.filename:
            return f"attachment; filename*=utf-8''{quoted}"
        return f'attachment; filename="{self.filename}"'


def parse_format(value: str) -> ExportFormat:
    try:
        return ExportFormat(value)
    except ValueError:
        raise UnsupportedFormat(value) from None


def _from(engine: AsyncEngine, table_name: str) -> str:
    # colons inside the identifier must not be read as bind parameters
    return quote_table(engine.dialect, table_name).replace(":", r"\:")


def _select_all(engine: AsyncEngine, table_name: str, limit: Optional[int] = None):
    sql = f"SELECT * FROM {_from(engine, table_name)}"
    if limit is None:
        return text(sql)
    return text(sql + " LIMIT :limit").bindparams(limit=limit)


async def preview(engine: AsyncEngine, table_name: str) -> TablePreview:
    """First PREVIEW_ROWS rows, total row count and column count of a registered table.

    Three independent reads; they are not required to agree under concurrent writes.
    """
    if await find_by_table_name(engine, table_name) is None or not await table_exists(engine, table_name):
        raise NotFound("Table", table_name)
    async with engine.connect() as conn:
        rows = (await conn.execute(_select_all(engine, table_name, PREVIEW_ROWS))).mappings().all()
        count = (
            await conn.execute(text(f"SELECT COUNT(*) FROM {_from(engine, table_name)}"))
        ).scalar_one()
        probe = await conn.execute(_select_all(engine, table_name, 1))
        col_count = len(probe.keys())
    return TablePreview(preview=[dict(r) for r in rows], rowCount=count, colCount=col_count)


async def fetch_all(engine: AsyncEngine, table_name: str) -> tuple[list[str], list[tuple]]:
    """Every row of the table in storage order."""
    async with engine.connect() as conn:
        res = await conn.execute(_select_all(engine, table_name))
        columns = list(res.keys())
        return columns, [tuple(r) for r in res]


def to_csv(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(columns)
    writer.writerows(rows)  # None is written as an empty field
    return buf.getvalue().encode("utf-8")


def to_xlsx(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> bytes:
    wb = Workbook(write_only=True)
    ws = wb.create_sheet("Sheet1")
    ws.append(list(columns))
    for row in rows:
        ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


_SERIALIZERS = {ExportFormat.CSV: to_csv, ExportFormat.XLSX: to_xlsx}


async def export_file(engine: AsyncEngine, file_name: str, fmt: ExportFormat) -> Export:
    """Serialize the table registered for ``file_name``."""
    entry = await find_by_file_name(engine, file_name)
    if entry is None:
        raise NotFound("File", file_name)
    columns, rows = await fetch_all(engine, entry.table_name)
    return Export(
        filename=f"{file_name}.{fmt.value}",
        media_type=fmt.media_type,
        content=_SERIALIZERS[fmt](columns, rows),
    )
