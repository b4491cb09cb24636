"""Database connection pool and management."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
from asyncpg import Connection, Pool

from quire.config import settings
from quire.errors import Failure

logger = logging.getLogger(__name__)


def is_valid_schema_name(schema: str) -> bool:
    """Only allow alphanumeric and underscore in schema names."""
    return bool(schema) and schema.replace("_", "").isalnum()


class DatabasePool:
    """Manages database connection pool for the application.

    This class handles:
    - Connection pooling (reusing expensive connections)
    - Pinning every connection to the configured schema
    - Proper connection lifecycle management
    """

    def __init__(self, schema: str | None = None):
        self._pool: Pool | None = None
        self.schema = schema or settings.db_schema
        if not is_valid_schema_name(self.schema):
            raise ValueError(f"Invalid schema name: {self.schema}")

    async def initialize(self) -> None:
        """Initialize the connection pool.

        Called once at application startup.
        """
        logger.info(
            f"Initializing database pool with {settings.db_pool_min_size}-{settings.db_pool_max_size} connections"
        )

        self._pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )

        async with self._pool.acquire() as conn:
            version = await conn.fetchval("SELECT version()")
            logger.info(f"Connected to PostgreSQL: {version}")

    async def close(self) -> None:
        """Close all connections in the pool."""
        if self._pool:
            await self._pool.close()
            logger.info("Database pool closed")

    @property
    def pool(self) -> Pool:
        """Get the connection pool."""
        if not self._pool:
            raise RuntimeError(
                "Database pool not initialized. Call initialize() first."
            )
        return self._pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Connection]:
        """Acquire a connection with the configured schema on the search path.

        Usage:
            async with db_pool.acquire() as conn:
                await conn.fetch("SELECT * FROM posts")
        """
        async with self.pool.acquire() as conn:
            if self.schema != "public":
                await conn.execute(f"SET search_path TO {self.schema}, public")
            yield conn
            # search_path is reset when the connection returns to the pool


def failure_for(exc: asyncpg.PostgresError) -> Failure | None:
    """Map an integrity error to the failure it stands for.

    Returns None for errors that are not expected outcomes of a write.
    """
    if isinstance(exc, asyncpg.UniqueViolationError):
        # typically an email, title or slug that already exists
        return Failure.CONFLICT
    if isinstance(exc, asyncpg.ForeignKeyViolationError):
        # typically a post written for an account that does not exist
        return Failure.NOT_PERMITTED
    if isinstance(exc, asyncpg.StringDataRightTruncationError):
        return Failure.TOO_LONG
    return None


# Global pool instance
_db_pool: DatabasePool | None = None


def get_db_pool() -> DatabasePool:
    """Get the global database pool instance."""
    global _db_pool
    if _db_pool is None:
        _db_pool = DatabasePool()
    return _db_pool
