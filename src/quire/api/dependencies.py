"""Dependency injection for API endpoints."""

from uuid import UUID

from fastapi import HTTPException, Request, status

from quire.domain import Failure, UserRepository
from quire.infrastructure.database import DatabasePool
from quire.services.blog import BlogService
from quire.services.cache import CacheCoordinator

FAILURE_STATUS = {
    Failure.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    Failure.NOT_PERMITTED: status.HTTP_403_FORBIDDEN,
    Failure.CONFLICT: status.HTTP_400_BAD_REQUEST,
    Failure.TOO_LONG: status.HTTP_400_BAD_REQUEST,
}


async def get_db_pool(request: Request) -> DatabasePool:
    """Get database pool from app state."""
    return request.app.state.db_pool


async def get_blog_service(request: Request) -> BlogService:
    """Get the singleton blog service from app state."""
    return request.app.state.blog_service


async def get_user_repository(request: Request) -> UserRepository:
    """Get the singleton account repository from app state."""
    return request.app.state.user_repository


async def get_cache(request: Request) -> CacheCoordinator:
    """Get the cache coordinator from app state."""
    return request.app.state.cache


async def get_request_id(request: Request) -> str:
    """Get request ID from request state."""
    return getattr(request.state, "request_id", "unknown")


async def get_viewer(request: Request) -> UUID | None:
    """The signed-in account, or None for anonymous requests.

    The AuthenticationMiddleware has already rejected bad credentials.
    """
    return getattr(request.state, "user_id", None)


async def require_user(request: Request) -> UUID:
    """The signed-in account; anonymous requests get a 401."""
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in required",
            headers={"WWW-Authenticate": "Basic"},
        )
    return user_id


def raise_for_failure(failure: Failure) -> None:
    """Translate a failure value into the matching HTTP error."""
    raise HTTPException(
        status_code=FAILURE_STATUS[failure],
        detail=failure.value,
    )
