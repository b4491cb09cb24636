"""Startup configuration checks and logging."""

import sys

import asyncpg
import structlog

from quire.config import settings

logger = structlog.get_logger()


async def check_database() -> bool:
    """Check PostgreSQL connectivity and that the tables exist."""
    print("  Checking PostgreSQL...", flush=True)

    try:
        conn = await asyncpg.connect(settings.database_url)
    except asyncpg.InvalidCatalogNameError:
        print("    ✗ Database does not exist", flush=True)
        print(f"      Create it with: createdb {settings.database_url.split('/')[-1]}", flush=True)
        return False
    except Exception as e:
        print(f"    ✗ Cannot connect to PostgreSQL: {e}", flush=True)
        print("      Check DATABASE_URL environment variable", flush=True)
        return False

    try:
        print("    ✓ Database connection established", flush=True)
        found = await conn.fetchval(
            """
            SELECT COUNT(*) FROM information_schema.tables
            WHERE table_schema = $1 AND table_name IN ('posts', 'users')
            """,
            settings.db_schema,
        )
        if found != 2:
            print(f"    ✗ Tables missing in schema '{settings.db_schema}'", flush=True)
            print("      Create them with: quire schema init", flush=True)
            return False
        print(f"    ✓ Tables present in schema '{settings.db_schema}'", flush=True)
        return True
    except Exception as e:
        print(f"    ✗ Error checking tables: {e}", flush=True)
        return False
    finally:
        await conn.close()


def check_configuration() -> bool:
    """Warn about settings that will make parts of the system unusable."""
    ok = True
    if not settings.loader_email or not settings.loader_password:
        logger.warning(
            "loader_account_not_configured",
            help="Set LOADER_EMAIL and LOADER_PASSWORD to use 'quire sync' without flags",
        )
    if settings.listing_page_size > settings.listing_max_page_size:
        logger.critical(
            "listing_page_size_too_large",
            page_size=settings.listing_page_size,
            max_page_size=settings.listing_max_page_size,
        )
        ok = False
    return ok


async def run_startup_checks() -> bool:
    """Run all vital sign checks and return success status."""
    print("\nStarting Quire - Checking vital signs...\n", flush=True)
    sys.stdout.flush()

    if not await check_database():
        return False
    if not check_configuration():
        return False

    print("\n✓ All vital signs normal - Quire is ready!\n", flush=True)
    sys.stdout.flush()
    return True
