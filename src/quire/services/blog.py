"""Cached blog reads and cache-coherent writes."""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime
from functools import wraps
from typing import TypeVar
from uuid import UUID

from quire.domain import (
    AccessLevel,
    ContentRepository,
    Contents,
    Entry,
    Failure,
    UserRepository,
)
from quire.metrics import content_mutations

from .cache import CacheCoordinator
from .cache_keys import (
    ACCESS_TAG,
    HTML_TAG,
    MARKDOWN_TAG,
    access_key,
    html_key,
    listing_key,
    listing_tags,
    markdown_key,
    owner_listing_tag,
)
from .markdown import MarkdownRenderer

logger = logging.getLogger(__name__)

R = TypeVar("R")


def runs_to_completion(
    method: Callable[..., Awaitable[R]],
) -> Callable[..., Awaitable[R]]:
    """Run a write in its own task so that cancelling the caller does not stop it.

    The task holds the slug lock from the database write until the cache has
    been refreshed. A cancelled caller gets CancelledError right away; the
    write and its cache refresh still finish in the background.
    """

    @wraps(method)
    async def wrapper(self: BlogService, *args, **kwargs) -> R:
        task = asyncio.ensure_future(method(self, *args, **kwargs))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)
        return await asyncio.shield(task)

    return wrapper


class BlogService:
    """Blog operations with a cache in front of the content repository.

    Reads go through the cache. Every successful write, before it returns:
    - overwrites the markdown and rendered entries for the slug (or removes
      them when the slug goes away)
    - evicts cached permissions when visibility, ownership, slug or existence
      changed
    - evicts the owner's listing pages, and the public listing pages when the
      post is or was public

    Listing pages not covered by a write's eviction may lag by the cache TTL.
    Writes to the same slug are serialized within the process so that cache
    updates land in the same order as the database writes.
    A write runs to completion even when its caller is cancelled, so a
    committed change is never left with stale cache entries.
    """

    def __init__(
        self,
        contents: ContentRepository,
        users: UserRepository,
        cache: CacheCoordinator,
        renderer: MarkdownRenderer,
    ):
        self.contents = contents
        self.users = users
        self.cache = cache
        self.renderer = renderer
        self._slug_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._writes: set[asyncio.Future] = set()

    # Reads

    async def get_permission(self, viewer: UUID | None, slug: str) -> AccessLevel | None:
        """Access level of viewer on slug, or None if there is no such post."""
        level = await self.cache.get_or_set(
            access_key(viewer, slug),
            lambda: self.contents.get_permission(viewer, slug),
            tags=[ACCESS_TAG],
        )
        if level is not None:
            AccessLevel.verify(level)
        return level

    async def get_content(self, viewer: UUID | None, slug: str) -> Contents | Failure:
        """Title and markdown body of a post the viewer may read."""
        failure = await self._check_read(viewer, slug)
        if failure is not None:
            return failure
        contents = await self.cache.get_or_set(
            markdown_key(slug),
            lambda: self._fetch_markdown(viewer, slug),
            tags=[MARKDOWN_TAG],
        )
        # None here means the post disappeared after the permission check
        return contents if contents is not None else Failure.NOT_FOUND

    async def get_rendered(self, viewer: UUID | None, slug: str) -> Contents | Failure:
        """Title and HTML body of a post the viewer may read."""
        failure = await self._check_read(viewer, slug)
        if failure is not None:
            return failure

        async def render() -> Contents | None:
            contents = await self.get_content(viewer, slug)
            if isinstance(contents, Failure):
                return None
            return self._render(contents)

        rendered = await self.cache.get_or_set(html_key(slug), render, tags=[HTML_TAG])
        return rendered if rendered is not None else Failure.NOT_FOUND

    async def list_available(
        self, viewer: UUID | None, before_or_at: datetime, limit: int
    ) -> list[Entry]:
        """A listing page. May lag writes that did not evict it by up to the TTL."""
        return await self.cache.get_or_set(
            listing_key(viewer, before_or_at, limit),
            lambda: self.contents.list_available(viewer, before_or_at, limit),
            tags=listing_tags(viewer, public=True),
        )

    # Writes

    @runs_to_completion
    async def create_content(self, owner: UUID, contents: Contents) -> str | Failure:
        """Create a private post and return its slug."""
        slug = await self.contents.create_content(owner, contents)
        self._record("create_content", slug if isinstance(slug, Failure) else None)
        if isinstance(slug, Failure):
            return slug

        async with self._locked(slug):
            # The stored title may carry a conflict suffix, so seed what was stored
            stored = await self.contents.get_content(owner, slug)
            await self._refresh(
                slug,
                seed=stored if isinstance(stored, Contents) else None,
                evict=[ACCESS_TAG, *listing_tags(owner, public=False)],
            )
        return slug

    @runs_to_completion
    async def update_content(
        self, owner: UUID, slug: str, contents: Contents
    ) -> Failure | None:
        """Overwrite a post's title and body."""
        async with self._locked(slug):
            failure = await self.contents.update_content(owner, slug, contents)
            self._record("update_content", failure)
            if failure is not None:
                return failure
            public = await self._is_public(slug)
            await self._refresh(slug, seed=contents, evict=listing_tags(owner, public=public))
        return None

    @runs_to_completion
    async def update_content_if_newer(
        self, owner: UUID, slug: str, contents: Contents, not_newer_than: datetime
    ) -> bool | Failure:
        """Overwrite a post unless the stored copy is at least as new."""
        async with self._locked(slug):
            applied = await self.contents.update_content_if_newer(
                owner, slug, contents, not_newer_than
            )
            if applied is False:
                self._record("update_content_if_newer", None, outcome="skipped")
                return False
            if isinstance(applied, Failure):
                self._record("update_content_if_newer", applied)
                return applied
            self._record("update_content_if_newer", None)
            public = await self._is_public(slug)
            await self._refresh(slug, seed=contents, evict=listing_tags(owner, public=public))
        return True

    @runs_to_completion
    async def update_visibility(
        self, owner: UUID, slug: str, public: bool
    ) -> Failure | None:
        """Make a post public or private."""
        async with self._locked(slug):
            failure = await self.contents.update_visibility(owner, slug, public)
            self._record("update_visibility", failure)
            if failure is not None:
                return failure
            await self._refresh(
                slug,
                evict=[ACCESS_TAG, *listing_tags(owner, public=True)],
                keep_content=True,
            )
        logger.info(f"Post '{slug}' is now {'public' if public else 'private'}")
        return None

    @runs_to_completion
    async def rename_slug(
        self, owner: UUID, slug: str, new_slug: str
    ) -> Failure | None:
        """Move a post to a new slug."""
        async with self._locked(slug, new_slug):
            failure = await self.contents.rename_slug(owner, slug, new_slug)
            self._record("rename_slug", failure)
            if failure is not None:
                return failure
            stored = await self.contents.get_content(owner, new_slug)
            public = await self._is_public(new_slug)
            await self._refresh(slug, evict=[])
            await self._refresh(
                new_slug,
                seed=stored if isinstance(stored, Contents) else None,
                evict=[ACCESS_TAG, *listing_tags(owner, public=public)],
            )
        logger.info(f"Post '{slug}' moved to '{new_slug}'")
        return None

    @runs_to_completion
    async def set_owner(
        self, owner: UUID, slug: str, new_owner_email: str
    ) -> Failure | None:
        """Hand a post over to another account."""
        async with self._locked(slug):
            failure = await self.contents.set_owner(owner, slug, new_owner_email)
            self._record("set_owner", failure)
            if failure is not None:
                return failure
            public = await self._is_public(slug)
            evict = [ACCESS_TAG, *listing_tags(owner, public=public)]
            new_owner = await self.users.find_user_by_email(new_owner_email)
            if isinstance(new_owner, UUID):
                evict.append(owner_listing_tag(new_owner))
            else:
                # The new owner went away right after the transfer; the post is orphaned
                logger.warning(f"New owner of '{slug}' not found after transfer: {new_owner}")
            await self._refresh(slug, evict=evict, keep_content=True)
        return None

    @runs_to_completion
    async def delete_content(self, owner: UUID, slug: str) -> Failure | None:
        """Delete a post."""
        async with self._locked(slug):
            was_public = await self._is_public(slug)
            failure = await self.contents.delete_content(owner, slug)
            self._record("delete_content", failure)
            if failure is not None:
                return failure
            await self._refresh(
                slug, evict=[ACCESS_TAG, *listing_tags(owner, public=was_public)]
            )
        logger.info(f"Post '{slug}' deleted")
        return None

    # Helpers

    async def _check_read(self, viewer: UUID | None, slug: str) -> Failure | None:
        level = await self.get_permission(viewer, slug)
        if level is None:
            return Failure.NOT_FOUND
        if not level.can_read:
            return Failure.NOT_PERMITTED
        return None

    async def _fetch_markdown(self, viewer: UUID | None, slug: str) -> Contents | None:
        contents = await self.contents.get_content(viewer, slug)
        if isinstance(contents, Failure):
            return None
        return contents

    async def _is_public(self, slug: str) -> bool:
        # Anonymous viewers get READ exactly when the post is public
        level = await self.contents.get_permission(None, slug)
        return level is AccessLevel.READ

    def _render(self, contents: Contents) -> Contents:
        return contents.with_body(self.renderer.render(contents.body))

    async def _refresh(
        self,
        slug: str,
        *,
        seed: Contents | None = None,
        evict: list[str],
        keep_content: bool = False,
    ) -> None:
        """Bring the cache in line with a committed write to slug.

        With seed, the markdown and rendered entries are overwritten; without
        one they are removed, unless keep_content says the content itself did
        not change.
        """
        if seed is not None:
            await self.cache.set(markdown_key(slug), seed, tags=[MARKDOWN_TAG])
            await self.cache.set(html_key(slug), self._render(seed), tags=[HTML_TAG])
        elif not keep_content:
            await self.cache.remove(markdown_key(slug))
            await self.cache.remove(html_key(slug))
        if evict:
            logger.debug(f"Post '{slug}' written, evicting {evict}")
            await self.cache.remove_by_tag(*evict)

    @asynccontextmanager
    async def _locked(self, *slugs: str) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for slug in sorted(set(slugs)):
                lock = self._slug_locks.get(slug)
                if lock is None:
                    lock = asyncio.Lock()
                    self._slug_locks[slug] = lock
                await stack.enter_async_context(lock)
            yield

    @staticmethod
    def _record(operation: str, failure: Failure | None, outcome: str = "ok") -> None:
        if failure is not None:
            outcome = failure.name.lower()
        content_mutations.labels(operation=operation, outcome=outcome).inc()
