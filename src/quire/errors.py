"""Failure kinds and invariant errors shared by every layer."""

from enum import Enum


class InvariantViolation(RuntimeError):
    """Raised when a structural invariant is broken.

    These are programming or configuration bugs, not user errors. Nothing in
    the failure-handling paths catches them.
    """

    pass


class UnexpectedAccessLevel(InvariantViolation):
    """Raised when an access level outside the enumeration shows up."""

    pass


class Failure(str, Enum):
    """Recoverable failure kinds, returned as values rather than raised."""

    NOT_FOUND = "not_found"  # entry absent
    NOT_PERMITTED = "not_permitted"  # entry exists, caller lacks rights
    CONFLICT = "conflict"  # uniqueness violation on write
    TOO_LONG = "too_long"  # input exceeds a stored field's length limit
