"""Batched, idempotent ingestion of dataset rows into their generated table."""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Sequence

from pydantic import BaseModel, Field
from sqlalchemy import column, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from db import insert_or_ignore
from errors import IngestionFailed, RequestValidationFailed
from registry import register_file
from schema_engine import create_table_if_absent, ident
from type_inference import ColumnType, infer_types

logger = logging.getLogger("sheet2db.ingest")

BATCH_SIZE = 100

_NULLABLE_WHEN_EMPTY = (ColumnType.NUMERIC, ColumnType.BOOLEAN)
_MISSING = object()


class SaveDataRequest(BaseModel):
    tableName: str = Field(min_length=1)
    columns: list[str]
    primaryKey: str = Field(min_length=1)
    data: list[dict[str, Any]]
    fileName: Optional[str] = None


class IngestionStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"  # some batches committed before one failed
    FAILED = "failed"  # first batch failed, nothing written


@dataclass
class BatchOutcome:
    index: int
    attempted: int
    # None when the driver does not report a row count
    accepted: Optional[int]


@dataclass
class IngestionResult:
    table_name: str
    batches: list[BatchOutcome] = field(default_factory=list)
    failed_batch: Optional[int] = None

    @property
    def rows_attempted(self) -> int:
        return sum(b.attempted for b in self.batches)

    @property
    def rows_accepted(self) -> Optional[int]:
        if any(b.accepted is None for b in self.batches):
            return None
        return sum(b.accepted for b in self.batches)

    @property
    def status(self) -> IngestionStatus:
        if self.failed_batch is None:
            return IngestionStatus.COMPLETED
        return IngestionStatus.PARTIAL if self.batches else IngestionStatus.FAILED


def chunked(rows: Sequence[Any], size: int = BATCH_SIZE) -> Iterator[Sequence[Any]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def coerce_row(row: Mapping[str, Any], columns: Sequence[str], types: Mapping[str, ColumnType]) -> dict[str, Any]:
    """Values for the selected columns; empty numeric/boolean cells become NULL."""
    out = {}
    for col in columns:
        value = row.get(col, _MISSING)
        if types.get(col) in _NULLABLE_WHEN_EMPTY and (value is _MISSING or value == ""):
            value = None
        elif value is _MISSING:
            value = None
        out[col] = value
    return out


async def ingest(
    engine: AsyncEngine,
    table_name: str,
    columns: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    types: Mapping[str, ColumnType],
) -> IngestionResult:
    """Insert ``rows`` in batches of BATCH_SIZE, one transaction per batch.

    Batches run one after another. A row whose primary key already exists is
    skipped by the database. If a batch fails, the batches before it stay
    committed, the rest are not attempted, and IngestionFailed carries what
    was written so far.
    """
    target = table(ident(table_name), *(column(ident(c)) for c in columns))
    dialect_name = engine.dialect.name
    result = IngestionResult(table_name=table_name)

    for index, batch in enumerate(chunked(rows)):
        values = [coerce_row(row, columns, types) for row in batch]
        stmt = insert_or_ignore(target, dialect_name).values(values)
        try:
            async with engine.begin() as conn:
                res = await conn.execute(stmt)
        except SQLAlchemyError as exc:
            result.failed_batch = index
            logger.error(
                "Batch %d of %r failed (%s) after %d rows committed: %s",
                index, table_name, result.status.value, result.rows_accepted or 0, exc,
            )
            raise IngestionFailed(str(exc), result) from exc
        accepted = res.rowcount if res.rowcount is not None and res.rowcount >= 0 else None
        result.batches.append(BatchOutcome(index=index, attempted=len(batch), accepted=accepted))

    return result


async def save_dataset(engine: AsyncEngine, body: SaveDataRequest, client: Optional[str] = None) -> IngestionResult:
    """Infer types, create the table if absent, register the file, write the rows."""
    if any(not c.strip() for c in body.columns):
        raise RequestValidationFailed("columns must not contain blank names")
    duplicates = sorted({c for c in body.columns if body.columns.count(c) > 1})
    if duplicates:
        raise RequestValidationFailed(f"columns must be unique, repeated: {duplicates}")
    if body.primaryKey not in body.columns:
        raise RequestValidationFailed(f"primaryKey {body.primaryKey!r} must be one of the selected columns")

    types = infer_types(body.data, body.columns)
    await create_table_if_absent(engine, body.tableName, body.columns, types, body.primaryKey)
    await register_file(
        engine,
        file_name=body.fileName or body.tableName,
        table_name=body.tableName,
        primary_key=body.primaryKey,
        details={"columns": body.columns},
    )

    start = time.perf_counter()
    result = await ingest(engine, body.tableName, body.columns, body.data, types)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        'Ingestion %s: inserted %s/%d rows into "%s" in %d batches from %s in %.0f ms',
        result.status.value, result.rows_accepted, result.rows_attempted, body.tableName,
        len(result.batches), client or "unknown", elapsed_ms,
    )
    return result
