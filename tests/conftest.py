"""Pytest configuration and fixtures for store tests.

Database Handling:
- SQLite tests run everywhere against a temporary database file
- PostgreSQL tests use TEST_DATABASE_* environment variables and are
  skipped when TEST_DATABASE_NAME is unset or the server is unreachable
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from gatekeeper.config import Config, DatabaseConfig
from gatekeeper.errors import DatabaseConnectionError
from gatekeeper.storage import PostgresTokenStore, SQLiteTokenStore, TokenStore

TEST_TOKEN_SIZE = 24
TEST_MASTER_ID = 1000


@pytest.fixture
def sqlite_config(tmp_path) -> Config:
    """Config pointing at a fresh SQLite file."""
    return Config(
        master_id=TEST_MASTER_ID,
        backend="sqlite",
        database=DatabaseConfig(sqlite_path=str(tmp_path / "data" / "gatekeeper.db")),
        token_size=TEST_TOKEN_SIZE,
    )


@pytest.fixture
def postgres_config() -> Config:
    """Config for the PostgreSQL test server, skipping when none is configured."""
    name = os.environ.get("TEST_DATABASE_NAME")
    if not name:
        pytest.skip("TEST_DATABASE_NAME not set")
    return Config(
        master_id=TEST_MASTER_ID,
        backend="postgres",
        database=DatabaseConfig(
            name=name,
            username=os.environ.get("TEST_DATABASE_USERNAME", "postgres"),
            password=os.environ.get("TEST_DATABASE_PASSWORD", "postgres"),
            host=os.environ.get("TEST_DATABASE_HOST", "localhost"),
            port=int(os.environ.get("TEST_DATABASE_PORT", "5432")),
        ),
        application_name="gatekeeper-tests",
        token_size=TEST_TOKEN_SIZE,
    )


async def _postgres_store(config: Config) -> PostgresTokenStore:
    try:
        store = await PostgresTokenStore.connect(config)
    except DatabaseConnectionError as e:
        pytest.skip(f"PostgreSQL not available: {e}")
    # Start every test from an empty schema
    await store._get_connection().execute(
        "DROP TABLE IF EXISTS tokens; DROP TABLE IF EXISTS banlist; DROP TYPE IF EXISTS permission;"
    )
    return store


@pytest_asyncio.fixture(
    params=["sqlite", pytest.param("postgres", marks=pytest.mark.postgres)],
)
async def store(request) -> AsyncGenerator[TokenStore, None]:
    """A connected store with the schema in place, for each backend."""
    if request.param == "sqlite":
        store = await SQLiteTokenStore.connect(request.getfixturevalue("sqlite_config"))
    else:
        store = await _postgres_store(request.getfixturevalue("postgres_config"))

    await store.ensure_schema()
    yield store
    await store.close()
