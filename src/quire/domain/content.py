"""Post value types, slug rules and conflict resolution."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime

from uuid6 import uuid7

from .base import (
    MAX_SLUG_LENGTH,
    MAX_TITLE_LENGTH,
    AccessLevel,
    Failure,
    InvariantViolation,
)

_NON_WORD_RUN = re.compile(r"[^\w]+")

# Slugs produced by the conflict resolver end in "." + 32 hex digits
SLUG_PATTERN = r"^\w+(-\w+)*(\.[0-9a-f]{32})?$"


def derive_slug(title: str) -> str:
    """Derive a URL-safe slug from a title.

    Every run of non-word characters collapses to one hyphen, the result is
    lowercased and stripped of leading/trailing hyphens.
    """
    return _NON_WORD_RUN.sub("-", title).lower().strip("-")


def validate(title: str, slug: str) -> Failure | None:
    """Check a title and its derived slug against the length limits.

    A long title is the caller's fault. A long slug can only come from a
    broken derivation, so that one raises.
    """
    if len(title) > MAX_TITLE_LENGTH:
        return Failure.TOO_LONG
    if len(slug) > MAX_SLUG_LENGTH:
        raise InvariantViolation(
            "Slug is computed from the title and it ended up being too long."
        )
    return None


@dataclass(frozen=True)
class Contents:
    """Title and markdown body of a post."""

    title: str
    body: str

    @property
    def slug(self) -> str:
        return derive_slug(self.title)

    def with_body(self, body: str) -> Contents:
        return replace(self, body=body)


@dataclass(frozen=True)
class Entry:
    """A row of a listing page."""

    slug: str
    title: str
    last_modified: datetime
    access_level: AccessLevel


@dataclass(frozen=True)
class NewPost:
    """A post about to be inserted."""

    slug: str
    title: str
    body: str

    @classmethod
    def from_contents(cls, contents: Contents) -> NewPost:
        return cls(slug=contents.slug, title=contents.title, body=contents.body)

    def check_validity(self) -> Failure | None:
        return validate(self.title, self.slug)


def conflict_suffix() -> str:
    """Suffix drawn from a time-ordered UUID: a dot and 32 hex digits."""
    return f".{uuid7().hex}"


def resolve_conflict(post: NewPost, *, title_taken: bool, suffix: str | None = None) -> NewPost:
    """Return a copy of post with a unique suffix on its slug.

    The slug prefix is truncated so the result stays within the limit. When the
    title itself collided, the title gets the same identifier.
    """
    suffix = suffix or conflict_suffix()
    slug = post.slug[: MAX_SLUG_LENGTH - len(suffix)] + suffix
    title = post.title
    if title_taken:
        title_suffix = f" ({suffix[1:]})"
        title = title[: MAX_TITLE_LENGTH - len(title_suffix)] + title_suffix
    return replace(post, slug=slug, title=title)
