"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from quire.domain import MAX_EMAIL_LENGTH, MAX_SLUG_LENGTH, Contents, Entry
from quire.domain.content import SLUG_PATTERN

# Request models


class PostRequest(BaseModel):
    """Title and markdown body of a post to create or overwrite."""

    title: str = Field(..., min_length=1)
    body: str = ""

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Titles must have something to derive a slug from."""
        if not v.strip():
            raise ValueError("Title cannot be empty or whitespace-only")
        return v

    def to_contents(self) -> Contents:
        return Contents(title=self.title, body=self.body)


class VisibilityRequest(BaseModel):
    """Request to make a post public or private."""

    public: bool


class RenameRequest(BaseModel):
    """Request to move a post to a new slug."""

    slug: str = Field(..., max_length=MAX_SLUG_LENGTH, pattern=SLUG_PATTERN)


class OwnerRequest(BaseModel):
    """Request to hand a post over to another account."""

    email: str = Field(..., min_length=1, max_length=MAX_EMAIL_LENGTH)


class CredentialsRequest(BaseModel):
    """Email and password for registration or account updates."""

    email: str = Field(..., min_length=1, max_length=MAX_EMAIL_LENGTH)
    password: str = Field(..., min_length=1)


# Response models


class EntryResponse(BaseModel):
    """A post in a listing."""

    slug: str
    title: str
    last_modified: datetime
    age: str
    can_manage: bool

    @classmethod
    def from_entry(cls, entry: Entry, age: str) -> "EntryResponse":
        return cls(
            slug=entry.slug,
            title=entry.title,
            last_modified=entry.last_modified,
            age=age,
            can_manage=entry.access_level.can_write,
        )


class ListingResponse(BaseModel):
    """A page of posts, newest first."""

    entries: list[EntryResponse]
    count: int
    next_before_or_at: datetime | None = None
    signed_in: bool


class PostResponse(BaseModel):
    """A single post, rendered or as markdown source."""

    slug: str
    title: str
    body: str
    can_edit: bool


class CreatedResponse(BaseModel):
    """Response after creating a post."""

    slug: str


class UserResponse(BaseModel):
    """An account."""

    id: UUID
    email: str


class HealthResponse(BaseModel):
    """Response for the health check."""

    status: str
    database: str
    cache_entries: int | None = None
    post_count: int | None = None
    public_count: int | None = None
    user_count: int | None = None
    newest_update: datetime | None = None
    version: str = "0.1.0"


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    request_id: str | None = None
    details: dict[str, Any] | None = None
