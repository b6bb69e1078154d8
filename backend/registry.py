"""File registry: which generated tables exist and which upload they came from."""
import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from db import insert_or_ignore
from models import FileMetadata

logger = logging.getLogger("sheet2db.registry")


class FileEntry(BaseModel):
    name: str
    tableName: str
    uploadedAt: datetime
    primaryKey: str
    details: Optional[dict[str, Any]] = None
    reports: list[Any] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row: FileMetadata) -> "FileEntry":
        return cls(
            name=row.file_name,
            tableName=row.table_name,
            uploadedAt=row.uploaded_at,
            primaryKey=row.primary_key,
            details=row.details,
        )


async def register_file(
    engine: AsyncEngine,
    file_name: str,
    table_name: str,
    primary_key: str,
    details: Optional[dict[str, Any]] = None,
) -> bool:
    """Record ``table_name`` unless it is already registered.

    Returns True when a new entry was written. An existing entry keeps its
    original file name, primary key and details.
    """
    stmt = insert_or_ignore(
        FileMetadata.__table__, engine.dialect.name, index_elements=["table_name"]
    ).values(file_name=file_name, table_name=table_name, primary_key=primary_key, details=details)
    async with engine.begin() as conn:
        res = await conn.execute(stmt)
    created = res.rowcount == 1
    if created:
        logger.info("Registered %r as table %r", file_name, table_name)
    else:
        logger.info("Table %r already registered, keeping existing entry", table_name)
    return created


async def _select(engine: AsyncEngine, stmt) -> list[FileMetadata]:
    async with AsyncSession(engine) as session:
        return list(await session.scalars(stmt))


async def list_files(engine: AsyncEngine) -> list[FileEntry]:
    """All entries, most recently uploaded first."""
    stmt = select(FileMetadata).order_by(
        FileMetadata.uploaded_at.desc(), FileMetadata.id.desc()
    )
    return [FileEntry.from_row(r) for r in await _select(engine, stmt)]


async def find_by_file_name(engine: AsyncEngine, file_name: str) -> Optional[FileMetadata]:
    """Newest entry for ``file_name``; file names are not unique."""
    stmt = (
        select(FileMetadata)
        .where(FileMetadata.file_name == file_name)
        .order_by(FileMetadata.uploaded_at.desc(), FileMetadata.id.desc())
        .limit(1)
    )
    rows = await _select(engine, stmt)
    return rows[0] if rows else None


async def find_by_table_name(engine: AsyncEngine, table_name: str) -> Optional[FileMetadata]:
    stmt = select(FileMetadata).where(FileMetadata.table_name == table_name)
    rows = await _select(engine, stmt)
    return rows[0] if rows else None
