"""Base types shared by the content and account repositories."""

from enum import Enum

from quire.errors import Failure, InvariantViolation, UnexpectedAccessLevel

__all__ = [
    "MAX_EMAIL_LENGTH",
    "MAX_SLUG_LENGTH",
    "MAX_TITLE_LENGTH",
    "AccessLevel",
    "Failure",
    "InvariantViolation",
    "UnexpectedAccessLevel",
]


class AccessLevel(str, Enum):
    """Access a viewer has to a post. Derived per request, never stored."""

    NONE = "none"
    READ = "read"
    WRITE = "write"
    WRITE_PUBLIC = "write_public"  # permitted to modify and the post is public

    @property
    def can_read(self) -> bool:
        return self is not AccessLevel.NONE

    @property
    def can_write(self) -> bool:
        return self in (AccessLevel.WRITE, AccessLevel.WRITE_PUBLIC)

    @classmethod
    def verify(cls, value: object) -> "AccessLevel":
        """Return value if it is a defined access level, else fail loudly."""
        if isinstance(value, cls):
            return value
        raise UnexpectedAccessLevel(f"type: AccessLevel, value: {value!r}")


# Length limits (mirrored by the schema)
MAX_TITLE_LENGTH = 250
MAX_SLUG_LENGTH = 250
MAX_EMAIL_LENGTH = 256
