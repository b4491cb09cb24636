"""Cache keys and tags for blog reads."""

from datetime import datetime, timezone
from uuid import UUID

ACCESS_TAG = "access"
MARKDOWN_TAG = "md"
HTML_TAG = "html"
PUBLIC_LISTING_TAG = "listing"


def access_key(viewer: UUID | None, slug: str) -> str:
    return f"access/{viewer or ''}/{slug}"


def markdown_key(slug: str) -> str:
    return f"md/{slug}"


def html_key(slug: str) -> str:
    return f"html.body/{slug}"


def listing_key(viewer: UUID | None, before_or_at: datetime, limit: int) -> str:
    """Key for one listing page.

    The cursor must be timezone-aware; it is normalized to UTC so equal
    instants share a key.
    """
    if before_or_at.tzinfo is None:
        raise ValueError("Listing cursor must be timezone-aware")
    cursor = before_or_at.astimezone(timezone.utc).isoformat()
    return f"listing/{viewer or ''};{cursor};{limit}"


def owner_listing_tag(owner: UUID) -> str:
    return f"listing/{owner}"


def listing_tags(owner: UUID | None, *, public: bool) -> list[str]:
    """Tags covering the listings an item of owner's appears in.

    Used both to tag listing pages and to pick which pages to evict.
    """
    tags = []
    if public:
        tags.append(PUBLIC_LISTING_TAG)
    if owner is not None:
        tags.append(owner_listing_tag(owner))
    return tags
