import pytest

from db import init_db
from registry import find_by_file_name, find_by_table_name, list_files, register_file


@pytest.mark.asyncio
async def test_register_same_table_twice_keeps_first_entry(engine):
    created = await register_file(engine, "sales.xlsx", "sales", "id", {"columns": ["id", "total"]})
    again = await register_file(engine, "other.csv", "sales", "order_no", {"columns": ["order_no"]})

    assert created is True
    assert again is False
    [entry] = await list_files(engine)
    assert entry.name == "sales.xlsx"
    assert entry.primaryKey == "id"
    assert entry.details == {"columns": ["id", "total"]}
    assert entry.reports == []


@pytest.mark.asyncio
async def test_list_files_newest_first(engine):
    for name in ("a", "b", "c"):
        await register_file(engine, f"{name}.csv", name, "id")
    assert [f.tableName for f in await list_files(engine)] == ["c", "b", "a"]


@pytest.mark.asyncio
async def test_lookups(engine):
    await register_file(engine, "report.xlsx", "report_v1", "id")
    await register_file(engine, "report.xlsx", "report_v2", "id")

    assert (await find_by_file_name(engine, "report.xlsx")).table_name == "report_v2"
    assert await find_by_file_name(engine, "missing.xlsx") is None
    assert (await find_by_table_name(engine, "report_v1")).file_name == "report.xlsx"
    assert await find_by_table_name(engine, "nope") is None


@pytest.mark.asyncio
async def test_init_db_tolerates_existing_constraint(engine):
    await init_db(engine)
    await init_db(engine)
    await register_file(engine, "x.csv", "x", "id")
    assert len(await list_files(engine)) == 1
