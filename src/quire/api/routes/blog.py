"""Blog post API endpoints."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from quire.api.dependencies import (
    get_blog_service,
    get_viewer,
    raise_for_failure,
    require_user,
)
from quire.api.models import (
    CreatedResponse,
    EntryResponse,
    ListingResponse,
    OwnerRequest,
    PostRequest,
    PostResponse,
    RenameRequest,
    VisibilityRequest,
)
from quire.config import settings
from quire.domain import Contents, Failure
from quire.domain.content import SLUG_PATTERN
from quire.services.blog import BlogService
from quire.utils.time_service import TimeService

logger = structlog.get_logger()

router = APIRouter(
    prefix="/blog",
    tags=["blog"],
)

time_service = TimeService()

Slug = Annotated[str, Path(pattern=SLUG_PATTERN, description="Post slug")]


def default_cursor() -> datetime:
    """Cursor for the first listing page.

    Rounded up to the next minute so that first-page requests within the same
    minute share a cache entry.
    """
    return time_service.now().start_of("minute").add(minutes=1)


@router.get("", response_model=ListingResponse)
async def list_posts(
    limit: int | None = Query(default=None, ge=1),
    before_or_at: str | None = Query(default=None),
    viewer: UUID | None = Depends(get_viewer),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> ListingResponse:
    """List posts the viewer may see, newest first.

    Page through with next_before_or_at. Pages may lag edits by up to the
    cache TTL.
    """
    limit = min(limit or settings.listing_page_size, settings.listing_max_page_size)
    if before_or_at is None:
        cursor = default_cursor()
    else:
        try:
            cursor = time_service.parse_datetime(before_or_at)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            ) from e

    entries = await service.list_available(viewer, cursor, limit)
    now = time_service.now()

    logger.info("listing_served", limit=limit, count=len(entries))

    return ListingResponse(
        entries=[
            EntryResponse.from_entry(e, time_service.format_age(e.last_modified, now))
            for e in entries
        ],
        count=len(entries),
        next_before_or_at=entries[-1].last_modified if len(entries) == limit else None,
        signed_in=viewer is not None,
    )


@router.post("", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    post: PostRequest,
    owner: UUID = Depends(require_user),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> CreatedResponse:
    """Create a private post. A colliding title gets a unique suffix."""
    slug = await service.create_content(owner, post.to_contents())
    if isinstance(slug, Failure):
        logger.warning("create_failed", failure=slug.value)
        raise_for_failure(slug)

    logger.info("post_created", slug=slug)
    return CreatedResponse(slug=slug)


@router.get("/{slug}", response_model=PostResponse)
async def get_post(
    slug: Slug,
    viewer: UUID | None = Depends(get_viewer),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> PostResponse:
    """Get a post with its body rendered to HTML."""
    rendered = await service.get_rendered(viewer, slug)
    return await _post_response(service, viewer, slug, rendered)


@router.get("/{slug}/source", response_model=PostResponse)
async def get_post_source(
    slug: Slug,
    viewer: UUID | None = Depends(get_viewer),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> PostResponse:
    """Get a post with its markdown body."""
    contents = await service.get_content(viewer, slug)
    return await _post_response(service, viewer, slug, contents)


@router.put("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def update_post(
    slug: Slug,
    post: PostRequest,
    owner: UUID = Depends(require_user),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> Response:
    """Overwrite a post's title and body. The slug stays the same."""
    failure = await service.update_content(owner, slug, post.to_contents())
    if failure is not None:
        raise_for_failure(failure)
    logger.info("post_updated", slug=slug)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{slug}/visibility", status_code=status.HTTP_204_NO_CONTENT)
async def set_visibility(
    slug: Slug,
    request: VisibilityRequest,
    owner: UUID = Depends(require_user),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> Response:
    """Make a post public or private."""
    failure = await service.update_visibility(owner, slug, request.public)
    if failure is not None:
        raise_for_failure(failure)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{slug}/slug", response_model=CreatedResponse)
async def rename_post(
    slug: Slug,
    request: RenameRequest,
    owner: UUID = Depends(require_user),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> CreatedResponse:
    """Move a post to a new slug."""
    failure = await service.rename_slug(owner, slug, request.slug)
    if failure is not None:
        raise_for_failure(failure)
    return CreatedResponse(slug=request.slug)


@router.put("/{slug}/owner", status_code=status.HTTP_204_NO_CONTENT)
async def transfer_post(
    slug: Slug,
    request: OwnerRequest,
    owner: UUID = Depends(require_user),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> Response:
    """Hand a post over to the account with the given email."""
    failure = await service.set_owner(owner, slug, request.email)
    if failure is not None:
        raise_for_failure(failure)
    logger.info("post_transferred", slug=slug)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    slug: Slug,
    owner: UUID = Depends(require_user),  # noqa: B008
    service: BlogService = Depends(get_blog_service),  # noqa: B008
) -> Response:
    """Delete a post."""
    failure = await service.delete_content(owner, slug)
    if failure is not None:
        raise_for_failure(failure)
    logger.info("post_deleted", slug=slug)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _post_response(
    service: BlogService,
    viewer: UUID | None,
    slug: str,
    contents: Contents | Failure,
) -> PostResponse:
    if isinstance(contents, Failure):
        raise_for_failure(contents)
    level = await service.get_permission(viewer, slug)
    return PostResponse(
        slug=slug,
        title=contents.title,
        body=contents.body,
        can_edit=level is not None and level.can_write,
    )
