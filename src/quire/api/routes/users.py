"""Account API endpoints."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Response, status

from quire.api.dependencies import get_user_repository, raise_for_failure, require_user
from quire.api.models import CredentialsRequest, UserResponse
from quire.domain import Credentials, Failure, UserRepository

logger = structlog.get_logger()

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: CredentialsRequest,
    users: UserRepository = Depends(get_user_repository),  # noqa: B008
) -> UserResponse:
    """Register a new account. New accounts may create posts right away."""
    user_id = await users.create_user(Credentials(request.email, request.password))
    if isinstance(user_id, Failure):
        logger.warning("register_failed", failure=user_id.value)
        raise_for_failure(user_id)

    logger.info("account_registered", user_id=str(user_id))
    return UserResponse(id=user_id, email=request.email)


@router.get("/me", response_model=UserResponse)
async def get_me(
    user_id: UUID = Depends(require_user),  # noqa: B008
    users: UserRepository = Depends(get_user_repository),  # noqa: B008
) -> UserResponse:
    """Get the signed-in account."""
    email = await users.find_email_for_user(user_id)
    if email is None:
        raise_for_failure(Failure.NOT_FOUND)
    return UserResponse(id=user_id, email=email)


@router.put("/me", response_model=UserResponse)
async def update_me(
    request: CredentialsRequest,
    user_id: UUID = Depends(require_user),  # noqa: B008
    users: UserRepository = Depends(get_user_repository),  # noqa: B008
) -> UserResponse:
    """Replace the signed-in account's email and password."""
    failure = await users.update_user(user_id, Credentials(request.email, request.password))
    if failure is not None:
        raise_for_failure(failure)
    logger.info("account_updated", user_id=str(user_id))
    return UserResponse(id=user_id, email=request.email)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    user_id: UUID = Depends(require_user),  # noqa: B008
    users: UserRepository = Depends(get_user_repository),  # noqa: B008
) -> Response:
    """Delete the signed-in account. Its posts are kept, without an owner."""
    failure = await users.delete_user(user_id)
    if failure is not None:
        raise_for_failure(failure)
    logger.info("account_deleted", user_id=str(user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
