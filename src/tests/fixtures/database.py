"""Database fixtures for testing."""
import uuid
from collections.abc import AsyncGenerator

import asyncpg
import pytest
import pytest_asyncio

from quire.infrastructure.database import DatabasePool
from quire.infrastructure.schema import ensure_schema


@pytest_asyncio.fixture
async def test_db_pool() -> AsyncGenerator[DatabasePool, None]:
    """Create a database pool pinned to a fresh, uniquely named schema.

    Uses the configured DATABASE_URL. Each test gets its own schema, which is
    dropped afterwards. Tests are skipped when no database is reachable.
    """
    schema = f"test_{uuid.uuid4().hex[:8]}"
    pool = DatabasePool(schema=schema)
    try:
        await pool.initialize()
    except (OSError, asyncpg.PostgresError) as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    async with pool.acquire() as conn:
        await ensure_schema(conn, schema)

    yield pool

    # Cleanup
    async with pool.acquire() as conn:
        await conn.execute(f"DROP SCHEMA IF EXISTS {schema} CASCADE")
    await pool.close()
