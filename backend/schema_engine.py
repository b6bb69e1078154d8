"""Table creation for uploaded datasets."""
import logging
from typing import Mapping, Sequence

from sqlalchemy import Boolean, Column, MetaData, Numeric, PrimaryKeyConstraint, Table, Text, inspect
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.schema import CreateTable
from sqlalchemy.sql import quoted_name

from errors import SchemaCreationFailed
from type_inference import ColumnType

logger = logging.getLogger("sheet2db.schema")

_SQL_TYPES = {
    ColumnType.TEXT: Text,
    ColumnType.NUMERIC: lambda: Numeric(asdecimal=False),
    ColumnType.BOOLEAN: Boolean,
}


def ident(name: str) -> quoted_name:
    """User-supplied table/column name, always quoted by the dialect."""
    return quoted_name(name, quote=True)


def build_table(
    table_name: str,
    columns: Sequence[str],
    types: Mapping[str, ColumnType],
    primary_key: str,
) -> Table:
    """Table object for a dataset: one column per selected column, PK on ``primary_key``."""
    cols = [Column(ident(c), _SQL_TYPES.get(types.get(c), Text)()) for c in columns]
    return Table(
        ident(table_name),
        MetaData(),
        *cols,
        PrimaryKeyConstraint(ident(primary_key)),
    )


def build_create_table_statement(
    table_name: str,
    columns: Sequence[str],
    types: Mapping[str, ColumnType],
    primary_key: str,
) -> CreateTable:
    return CreateTable(build_table(table_name, columns, types, primary_key), if_not_exists=True)


def render_ddl(statement: CreateTable, dialect: Dialect) -> str:
    return str(statement.compile(dialect=dialect)).strip()


async def create_table_if_absent(
    engine: AsyncEngine,
    table_name: str,
    columns: Sequence[str],
    types: Mapping[str, ColumnType],
    primary_key: str,
) -> None:
    """Create the dataset table unless it exists. An existing table is left as is."""
    stmt = build_create_table_statement(table_name, columns, types, primary_key)
    logger.debug("Ensuring table %r: %s", table_name, render_ddl(stmt, engine.dialect))
    try:
        async with engine.begin() as conn:
            await conn.execute(stmt)
    except SQLAlchemyError as exc:
        logger.error("Creating table %r failed: %s", table_name, exc)
        raise SchemaCreationFailed(str(exc)) from exc
    logger.info('Table "%s" ensured', table_name)


async def table_exists(engine: AsyncEngine, table_name: str) -> bool:
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(table_name))


def quote_table(dialect: Dialect, table_name: str) -> str:
    """SQL text for a generated table's name, quoted the same way as at creation."""
    return dialect.identifier_preparer.quote(ident(table_name))
