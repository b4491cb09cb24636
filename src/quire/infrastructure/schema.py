"""Database schema management."""

import logging

from asyncpg import Connection

from quire.infrastructure.database import is_valid_schema_name

logger = logging.getLogger(__name__)


async def ensure_schema(conn: Connection, schema: str = "public") -> None:
    """Ensure the schema exists with all required tables.

    This function is idempotent - safe to call multiple times.

    Args:
        conn: Database connection (NOT in a transaction)
        schema: Schema that will hold the tables
    """
    logger.info(f"Ensuring tables exist in schema: {schema}")

    if not is_valid_schema_name(schema):
        raise ValueError(f"Invalid schema name: {schema}")

    await conn.execute(f"CREATE SCHEMA IF NOT EXISTS {schema}")
    await conn.execute(f"SET search_path TO {schema}, public")

    await conn.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(256) NOT NULL,
            pass_argon2id VARCHAR(101) NOT NULL DEFAULT '',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),

            CONSTRAINT users_email_key UNIQUE (email)
        )
    """)

    # Title uniqueness is declared before slug uniqueness so that a duplicate
    # title is reported as a title violation.
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(250) NOT NULL,
            display_title VARCHAR(250) NOT NULL,
            contents TEXT NOT NULL,
            public BOOLEAN NOT NULL DEFAULT false,
            author_id UUID REFERENCES users (id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),

            CONSTRAINT posts_display_title_key UNIQUE (display_title),
            CONSTRAINT posts_slug_key UNIQUE (slug)
        )
    """)

    # For keyset-paginated listings
    await conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_posts_updated_at
        ON posts (updated_at DESC)
    """)

    # For owner-scoped listings
    await conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_posts_author_id
        ON posts (author_id)
    """)

    logger.info(f"Schema '{schema}' is ready")


async def get_content_stats(conn: Connection) -> dict:
    """Get statistics for the content store.

    Returns:
        Dict with post_count, public_count, user_count, newest_update
    """
    stats = await conn.fetchrow("""
        SELECT
            (SELECT COUNT(*) FROM posts) as post_count,
            (SELECT COUNT(*) FROM posts WHERE public) as public_count,
            (SELECT COUNT(*) FROM users) as user_count,
            (SELECT MAX(updated_at) FROM posts) as newest_update
    """)

    return (
        dict(stats)
        if stats
        else {
            "post_count": 0,
            "public_count": 0,
            "user_count": 0,
            "newest_update": None,
        }
    )
