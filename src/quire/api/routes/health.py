"""Health check endpoints."""

import structlog
from fastapi import APIRouter, Depends, Request

from quire.api.dependencies import get_cache, get_db_pool
from quire.api.models import HealthResponse
from quire.infrastructure.database import DatabasePool
from quire.infrastructure.schema import get_content_stats
from quire.services.cache import CacheCoordinator

logger = structlog.get_logger()
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    request: Request,
    db_pool: DatabasePool = Depends(get_db_pool),  # noqa: B008
    cache: CacheCoordinator = Depends(get_cache),  # noqa: B008
) -> HealthResponse:
    """Health check - returns more detail to signed-in accounts.

    - Anonymous: database status only
    - Signed in: database status plus content and cache statistics
    """
    try:
        async with db_pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        db_status = "healthy"
    except Exception:
        db_status = "unhealthy"

    status = "healthy" if db_status == "healthy" else "degraded"
    user_id = getattr(request.state, "user_id", None)

    if user_id is None or db_status != "healthy":
        return HealthResponse(status=status, database=db_status)

    try:
        async with db_pool.acquire() as conn:
            stats = await get_content_stats(conn)
    except Exception as e:
        logger.exception("content_stats_error", error=str(e))
        return HealthResponse(status="degraded", database=db_status)

    backend = cache.backend
    logger.info(
        "detailed_health_check",
        post_count=stats["post_count"],
        user_count=stats["user_count"],
    )
    return HealthResponse(
        status=status,
        database=db_status,
        cache_entries=len(backend) if hasattr(backend, "__len__") else None,
        post_count=stats["post_count"],
        public_count=stats["public_count"],
        user_count=stats["user_count"],
        newest_update=stats["newest_update"],
    )
