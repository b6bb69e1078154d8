"""Shared fixtures: a fresh SQLite database per test."""
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from db import build_engine, init_db


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'sheet2db_test.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    engine = build_engine(database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def client(database_url):
    from main import create_app

    with TestClient(create_app(database_url)) as c:
        yield c
