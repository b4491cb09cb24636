"""Domain models for Quire."""

from .base import (
    MAX_EMAIL_LENGTH,
    MAX_SLUG_LENGTH,
    MAX_TITLE_LENGTH,
    AccessLevel,
    Failure,
    InvariantViolation,
    UnexpectedAccessLevel,
)
from .content import Contents, Entry, NewPost, derive_slug, resolve_conflict, validate
from .repository import ContentRepository
from .users import Credentials, UserRepository

__all__ = [
    "MAX_EMAIL_LENGTH",
    "MAX_SLUG_LENGTH",
    "MAX_TITLE_LENGTH",
    "AccessLevel",
    "ContentRepository",
    "Contents",
    "Credentials",
    "Entry",
    "Failure",
    "InvariantViolation",
    "NewPost",
    "UnexpectedAccessLevel",
    "UserRepository",
    "derive_slug",
    "resolve_conflict",
    "validate",
]
