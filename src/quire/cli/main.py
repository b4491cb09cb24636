"""Quire CLI main entry point."""

import asyncio
import sys

import click
import structlog

from quire.config import settings
from quire.domain import ContentRepository, Credentials, Failure, UserRepository
from quire.infrastructure.database import DatabasePool
from quire.infrastructure.schema import ensure_schema, get_content_stats
from quire.services.accounts import AccountError, AccountWorker
from quire.services.blog import BlogService
from quire.services.cache import CacheCoordinator, MemoryCacheBackend
from quire.services.markdown import MarkdownRenderer
from quire.services.sync import BulkSynchronizer, LocalFileProvider

# Configure logging for CLI
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@click.group()
@click.pass_context
def cli(ctx):
    """Quire - blog content repository.

    Administration tool for the schema, accounts and bulk loading.
    """
    ctx.ensure_object(dict)


@cli.group()
@click.pass_context
def schema(ctx):
    """Manage the database schema."""
    pass


@schema.command(name="init")
@click.pass_context
def schema_init(ctx):
    """Create the tables if they do not exist."""
    async def _init():
        pool = DatabasePool()
        try:
            await pool.initialize()
            async with pool.acquire() as conn:
                await ensure_schema(conn, pool.schema)
            click.echo(f"✓ Schema '{pool.schema}' is ready")
        finally:
            await pool.close()

    asyncio.run(_init())


@schema.command(name="stats")
@click.pass_context
def schema_stats(ctx):
    """Show post and account counts."""
    async def _stats():
        pool = DatabasePool()
        try:
            await pool.initialize()
            async with pool.acquire() as conn:
                stats = await get_content_stats(conn)
            click.echo(f"Posts:    {stats['post_count']} ({stats['public_count']} public)")
            click.echo(f"Accounts: {stats['user_count']}")
            click.echo(f"Last update: {stats['newest_update'] or 'never'}")
        finally:
            await pool.close()

    asyncio.run(_stats())


@cli.group()
@click.pass_context
def user(ctx):
    """Manage accounts."""
    pass


@user.command(name="create")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_context
def user_create(ctx, email: str, password: str):
    """Register a new account."""
    async def _create():
        pool = DatabasePool()
        try:
            await pool.initialize()
            users = UserRepository(pool)
            user_id = await users.create_user(Credentials(email=email, password=password))
            if isinstance(user_id, Failure):
                click.echo(f"Error: could not register '{email}': {user_id.name}", err=True)
                sys.exit(1)
            click.echo(f"✓ Registered {email} ({user_id})")
        finally:
            await pool.close()

    asyncio.run(_create())


@user.command(name="delete")
@click.argument("email")
@click.confirmation_option(prompt="Posts of this account will be kept without an owner. Continue?")
@click.pass_context
def user_delete(ctx, email: str):
    """Delete an account, orphaning its posts."""
    async def _delete():
        pool = DatabasePool()
        try:
            await pool.initialize()
            users = UserRepository(pool)
            user_id = await users.find_user_by_email(email)
            if isinstance(user_id, Failure):
                click.echo(f"Error: no account '{email}'", err=True)
                sys.exit(1)
            await users.delete_user(user_id)
            click.echo(f"✓ Deleted {email}")
        finally:
            await pool.close()

    asyncio.run(_delete())


@cli.command(name="sync")
@click.argument("path", required=False)
@click.option("--email", help="Account to load as (default: LOADER_EMAIL)")
@click.option("--password", help="Its password (default: LOADER_PASSWORD)")
@click.pass_context
def sync(ctx, path: str | None, email: str | None, password: str | None):
    """Load a directory tree of markdown files as public posts.

    A file only replaces a post when the file is newer than the stored copy,
    so running this repeatedly is safe. The account is registered if it does
    not exist yet.
    """
    path = path or settings.content_dir
    email = email or settings.loader_email
    password = password or settings.loader_password
    if not email or not password:
        click.echo("Error: set --email/--password or LOADER_EMAIL/LOADER_PASSWORD", err=True)
        sys.exit(1)

    async def _sync():
        pool = DatabasePool()
        try:
            await pool.initialize()
            users = UserRepository(pool)
            try:
                owner_id = await AccountWorker(users).login_or_register(email, password)
            except AccountError as e:
                click.echo(f"Error: {e}", err=True)
                sys.exit(1)

            renderer = MarkdownRenderer()
            service = BlogService(
                ContentRepository(pool),
                users,
                CacheCoordinator(
                    MemoryCacheBackend(max_entries=settings.cache_max_entries),
                    default_ttl=settings.cache_ttl_seconds,
                ),
                renderer,
            )
            synchronizer = BulkSynchronizer(service, renderer, owner_id, LocalFileProvider())

            logger.info("sync_started", path=path, owner=str(owner_id))
            report = await synchronizer.sync_directory(path)
            for file_path, result in report.results:
                click.echo(f"  {file_path}: {result}")
            click.echo(f"✓ {report.summary()}")
            if report.failed:
                sys.exit(1)
        finally:
            await pool.close()

    asyncio.run(_sync())


if __name__ == "__main__":
    cli()
