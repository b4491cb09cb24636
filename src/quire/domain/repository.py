"""Content repository for database operations."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg
from asyncpg import Connection, Record

from quire.infrastructure.database import DatabasePool, failure_for
from quire.metrics import conflict_resolutions, track_operation

from .base import (
    MAX_SLUG_LENGTH,
    MAX_TITLE_LENGTH,
    AccessLevel,
    Failure,
    InvariantViolation,
)
from .content import Contents, Entry, NewPost, resolve_conflict

logger = logging.getLogger(__name__)

OwnedRowAction = Callable[[Connection, Record], Awaitable[Any]]


class ContentRepository:
    """Repository for storing and retrieving posts.

    Every method runs as a single statement or a single transaction. Expected
    outcomes (missing post, wrong owner, uniqueness or length violations) come
    back as Failure values; nothing here raises them.
    """

    def __init__(self, db_pool: DatabasePool):
        """Initialize with database pool."""
        self.db_pool = db_pool

    @track_operation("get_permission")
    async def get_permission(
        self, viewer: UUID | None, slug: str, *, distinguish_public: bool = False
    ) -> AccessLevel | None:
        """Get the access level a viewer has to a post.

        Returns None if no such slug exists. With distinguish_public, an owner
        of a public post gets WRITE_PUBLIC instead of WRITE.
        """
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT author_id, public FROM posts WHERE slug = $1",
                slug,
            )
        if row is None:
            return None
        return self._access_level(viewer, row, distinguish_public)

    @track_operation("list_available")
    async def list_available(
        self, viewer: UUID | None, before_or_at: datetime, limit: int
    ) -> list[Entry]:
        """List posts the viewer may see, newest first.

        This is a keyset cursor: the next page is requested with the
        last_modified of the final entry returned.

        The cursor is strict, so posts sharing the updated_at of a page's
        final entry but sorted after it by slug are not on the next page.
        Timestamps have microsecond resolution, which makes such ties rare.
        """
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT slug, display_title, updated_at, author_id
                FROM posts
                WHERE (author_id = $1 OR public)
                AND updated_at < $2
                ORDER BY updated_at DESC, slug
                LIMIT $3
                """,
                viewer,
                before_or_at,
                limit,
            )

        return [
            Entry(
                slug=row["slug"],
                title=row["display_title"],
                last_modified=row["updated_at"],
                access_level=(
                    AccessLevel.WRITE
                    if viewer is not None and row["author_id"] == viewer
                    else AccessLevel.READ
                ),
            )
            for row in rows
        ]

    @track_operation("get_content")
    async def get_content(self, viewer: UUID | None, slug: str) -> Contents | Failure:
        """Fetch a post's title and body if the viewer may read it."""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT display_title, contents, author_id, public
                FROM posts
                WHERE slug = $1
                """,
                slug,
            )
        if row is None:
            return Failure.NOT_FOUND
        if not self._access_level(viewer, row, False).can_read:
            return Failure.NOT_PERMITTED
        return Contents(title=row["display_title"], body=row["contents"])

    @track_operation("create_content")
    async def create_content(self, owner: UUID, contents: Contents) -> str | Failure:
        """Create a private post and return its slug.

        On a slug or title conflict, a second attempt is made with a unique
        suffix. A conflict after that means the suffix source is broken.
        """
        post = NewPost.from_contents(contents)
        failure = post.check_validity()
        if failure is not None:
            return failure

        result = await self._try_insert(owner, post)
        if result is not Failure.CONFLICT:
            return result

        async with self.db_pool.acquire() as conn:
            title_taken = await conn.fetchval(
                "SELECT EXISTS (SELECT 1 FROM posts WHERE display_title = $1)",
                post.title,
            )
        post = resolve_conflict(post, title_taken=title_taken)
        conflict_resolutions.inc()
        logger.info(
            f"Slug conflict for '{contents.slug}', retrying as '{post.slug}' "
            f"(title_taken={title_taken})"
        )

        result = await self._try_insert(owner, post)
        if result is Failure.CONFLICT:
            raise InvariantViolation(
                "UNIQUE conflict after appending a time-ordered UUID. This should not happen."
            )
        if result is Failure.TOO_LONG:
            raise InvariantViolation(
                "String length conflict after appending a UUID. This should not happen."
            )
        return result

    async def _try_insert(self, owner: UUID, post: NewPost) -> str | Failure:
        """Insert a post, returning its slug or the failure the store reported."""
        try:
            async with self.db_pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO posts (slug, display_title, contents, author_id)
                    VALUES ($1, $2, $3, $4)
                    """,
                    post.slug,
                    post.title,
                    post.body,
                    owner,
                )
        except asyncpg.PostgresError as e:
            failure = failure_for(e)
            if failure is None:
                raise
            return failure
        return post.slug

    @track_operation("update_content")
    async def update_content(
        self, owner: UUID, slug: str, contents: Contents
    ) -> Failure | None:
        """Overwrite a post's title and body. Returns None on success."""
        result = await self._update_content(owner, slug, contents, None)
        return result if isinstance(result, Failure) else None

    @track_operation("update_content_if_newer")
    async def update_content_if_newer(
        self, owner: UUID, slug: str, contents: Contents, not_newer_than: datetime
    ) -> bool | Failure:
        """Overwrite a post only if the stored copy is older than not_newer_than.

        Returns False without writing when the stored post was updated at or
        after not_newer_than, so a repeated sync never clobbers a newer edit.
        The row is locked for the compare and the write.
        """
        return await self._update_content(owner, slug, contents, not_newer_than)

    async def _update_content(
        self,
        owner: UUID,
        slug: str,
        contents: Contents,
        not_newer_than: datetime | None,
    ) -> bool | Failure:
        if len(contents.title) > MAX_TITLE_LENGTH:
            return Failure.TOO_LONG

        async def apply(conn: Connection, row: Record) -> bool:
            if not_newer_than is not None and row["updated_at"] >= not_newer_than:
                return False
            await conn.execute(
                """
                UPDATE posts
                SET display_title = $2, contents = $3, updated_at = now()
                WHERE id = $1
                """,
                row["id"],
                contents.title,
                contents.body,
            )
            return True

        return await self._with_owned_row(owner, slug, apply)

    @track_operation("update_visibility")
    async def update_visibility(
        self, owner: UUID, slug: str, public: bool
    ) -> Failure | None:
        """Make a post public or private."""

        async def apply(conn: Connection, row: Record) -> None:
            await conn.execute(
                "UPDATE posts SET public = $2, updated_at = now() WHERE id = $1",
                row["id"],
                public,
            )

        return await self._with_owned_row(owner, slug, apply)

    @track_operation("rename_slug")
    async def rename_slug(
        self, owner: UUID, slug: str, new_slug: str
    ) -> Failure | None:
        """Move a post to a new slug."""
        if len(new_slug) > MAX_SLUG_LENGTH:
            return Failure.TOO_LONG

        async def apply(conn: Connection, row: Record) -> None:
            await conn.execute(
                "UPDATE posts SET slug = $2, updated_at = now() WHERE id = $1",
                row["id"],
                new_slug,
            )

        return await self._with_owned_row(owner, slug, apply)

    @track_operation("set_owner")
    async def set_owner(
        self, owner: UUID, slug: str, new_owner_email: str
    ) -> Failure | None:
        """Hand a post over to the account with the given email."""

        async def apply(conn: Connection, row: Record) -> Failure | None:
            new_owner = await conn.fetchval(
                "SELECT id FROM users WHERE email = $1", new_owner_email
            )
            if new_owner is None:
                return Failure.NOT_FOUND
            await conn.execute(
                "UPDATE posts SET author_id = $2, updated_at = now() WHERE id = $1",
                row["id"],
                new_owner,
            )
            return None

        return await self._with_owned_row(owner, slug, apply)

    @track_operation("delete_content")
    async def delete_content(self, owner: UUID, slug: str) -> Failure | None:
        """Delete a post."""

        async def apply(conn: Connection, row: Record) -> None:
            await conn.execute("DELETE FROM posts WHERE id = $1", row["id"])

        return await self._with_owned_row(owner, slug, apply)

    async def _with_owned_row(
        self, owner: UUID | None, slug: str, action: OwnedRowAction
    ) -> Any:
        """Lock a post, check ownership, then run action in the same transaction.

        Returns NOT_FOUND or NOT_PERMITTED without calling action, the failure
        for an integrity error raised by action, or whatever action returns.
        """
        try:
            async with self.db_pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        """
                        SELECT id, author_id, public, updated_at
                        FROM posts
                        WHERE slug = $1
                        FOR UPDATE
                        """,
                        slug,
                    )
                    if row is None:
                        return Failure.NOT_FOUND
                    if owner is None or row["author_id"] != owner:
                        return Failure.NOT_PERMITTED
                    return await action(conn, row)
        except asyncpg.PostgresError as e:
            failure = failure_for(e)
            if failure is None:
                raise
            return failure

    @staticmethod
    def _access_level(
        viewer: UUID | None, row: Record, distinguish_public: bool
    ) -> AccessLevel:
        """Derive the access level from ownership and visibility."""
        if viewer is not None and row["author_id"] == viewer:
            if distinguish_public and row["public"]:
                return AccessLevel.WRITE_PUBLIC
            return AccessLevel.WRITE
        if row["public"]:
            return AccessLevel.READ
        return AccessLevel.NONE
