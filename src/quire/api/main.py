"""Main FastAPI application."""

import sys
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.responses import RedirectResponse, Response
from prometheus_client import REGISTRY, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator

from quire.config import settings
from quire.domain import ContentRepository, UserRepository
from quire.infrastructure.database import DatabasePool
from quire.services.blog import BlogService
from quire.services.cache import CacheCoordinator, MemoryCacheBackend
from quire.services.markdown import MarkdownRenderer
from quire.startup_check import run_startup_checks

from .middleware import (
    AuthenticationMiddleware,
    ErrorHandlingMiddleware,
    LoggingMiddleware,
    RequestIDMiddleware,
)

# Configure structlog for our app only
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    if not await run_startup_checks():
        print("\nStartup failed. Exiting.\n", flush=True)
        sys.exit(1)

    logger.info("initializing_database_pool", schema=settings.db_schema)
    app.state.db_pool = DatabasePool()
    await app.state.db_pool.initialize()
    logger.info("database_pool_ready")

    # Built once and shared by everything that renders
    app.state.renderer = MarkdownRenderer()

    app.state.cache = CacheCoordinator(
        MemoryCacheBackend(max_entries=settings.cache_max_entries),
        default_ttl=settings.cache_ttl_seconds,
    )
    app.state.user_repository = UserRepository(app.state.db_pool)
    app.state.blog_service = BlogService(
        ContentRepository(app.state.db_pool),
        app.state.user_repository,
        app.state.cache,
        app.state.renderer,
    )
    logger.info("blog_service_ready", cache_ttl_seconds=settings.cache_ttl_seconds)

    yield

    logger.info("closing_database_pool")
    await app.state.db_pool.close()


# Create v1 API app
api_v1 = FastAPI(
    title="Quire API v1",
    description="Blog content repository with a coherent cache",
    version="1.0.0",
    docs_url="/docs",
    openapi_url="/openapi.json",
)

# Include v1 routes
from .routes import blog, health, users  # noqa: E402

api_v1.include_router(health.router)
api_v1.include_router(blog.router)
api_v1.include_router(users.router)

# Create main app and mount v1
app = FastAPI(
    title="Quire",
    description="Blog content repository with a coherent cache",
    lifespan=lifespan,
    docs_url=None,  # Disable docs at root
    openapi_url=None,  # Disable openapi at root
    redoc_url=None,  # Disable redoc at root
)

# Mount v1 API
# Share the main app's state with the sub-app
api_v1.state = app.state
app.mount("/api/v1", api_v1)

# Add middleware to main app
app.add_middleware(AuthenticationMiddleware)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

# Add Prometheus instrumentation for automatic HTTP metrics
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,  # Respects ENABLE_METRICS env var
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics"],  # Don't track metrics endpoint itself
    env_var_name="ENABLE_METRICS",
    inprogress_name="quire_http_requests_inprogress",
    inprogress_labels=True,
)

instrumentator.instrument(app)


@app.get("/metrics", include_in_schema=False)
async def get_metrics() -> Response:
    """Prometheus metrics endpoint."""
    metrics = generate_latest(REGISTRY)
    return Response(content=metrics, media_type="text/plain; version=0.0.4")


@app.get("/", include_in_schema=False)
async def root() -> RedirectResponse:
    """Send visitors to the listing."""
    return RedirectResponse("/api/v1/blog")
