"""Storage handle for the registry and the generated dataset tables."""
import logging
from typing import Optional, Sequence

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

logger = logging.getLogger("sheet2db.db")

Base = declarative_base()

UNIQUE_TABLE_NAME = "unique_table_name"


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False)


def get_engine(request: Request) -> AsyncEngine:
    """FastAPI dependency: the engine owned by the running app."""
    return request.app.state.engine


async def init_db(engine: AsyncEngine) -> None:
    """Create the registry table and make sure table_name is unique."""
    import models  # noqa: F401  (registers FileMetadata on Base)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await ensure_unique_constraint(engine)


async def ensure_unique_constraint(engine: AsyncEngine) -> None:
    """Add the uniqueness constraint on file_metadata.table_name.

    Registries created before the constraint existed get it here. When it is
    already present the database refuses; that is logged and ignored.
    """
    if engine.dialect.name == "sqlite":
        # SQLite has no ALTER TABLE ... ADD CONSTRAINT
        stmt = f"CREATE UNIQUE INDEX IF NOT EXISTS {UNIQUE_TABLE_NAME} ON file_metadata (table_name)"
    else:
        stmt = f"ALTER TABLE file_metadata ADD CONSTRAINT {UNIQUE_TABLE_NAME} UNIQUE (table_name)"
    try:
        async with engine.begin() as conn:
            await conn.execute(text(stmt))
    except DBAPIError as exc:
        if "already exists" in str(exc) or "Duplicate key name" in str(exc):
            logger.info("Unique constraint already exists on file_metadata.table_name")
            return
        raise
    logger.info("Unique constraint ensured on file_metadata.table_name")


def insert_or_ignore(table, dialect_name: str, index_elements: Optional[Sequence[str]] = None):
    """INSERT that skips rows violating a uniqueness constraint."""
    if dialect_name == "postgresql":
        return postgresql.insert(table).on_conflict_do_nothing(index_elements=index_elements)
    if dialect_name == "sqlite":
        return sqlite.insert(table).on_conflict_do_nothing(index_elements=index_elements)
    if dialect_name in ("mysql", "mariadb"):
        return mysql.insert(table).prefix_with("IGNORE")
    raise NotImplementedError(f"insert-or-ignore is not supported on {dialect_name}")
