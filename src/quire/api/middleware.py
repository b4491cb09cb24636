"""API middleware for auth, request tracking, and error handling."""

import base64
import binascii
import time
import uuid
from collections.abc import Callable
from typing import ClassVar

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from quire.domain import Credentials, Failure, InvariantViolation, UserRepository

logger = structlog.get_logger()

HEALTH_PATH = "/api/v1/health"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to all requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and add request ID."""
        request_id = str(uuid.uuid4())

        # Store in request state for other middleware/handlers
        request.state.request_id = request_id

        # Add to structlog context
        structlog.contextvars.bind_contextvars(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            # Clear context after request
            structlog.contextvars.clear_contextvars()


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request details and response status."""
        start_time = time.time()

        # Skip logging for health checks (too noisy)
        if request.url.path == HEALTH_PATH:
            return await call_next(request)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Global error handler for consistent error responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Catch exceptions and return consistent error format."""
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", "unknown")

            if isinstance(exc, InvariantViolation):
                # A broken invariant is a bug, not a bad request
                logger.critical(
                    "invariant_violation",
                    exc_type=type(exc).__name__,
                    exc_message=str(exc),
                    exc_info=True,
                )
            else:
                logger.exception(
                    "unhandled_exception",
                    exc_type=type(exc).__name__,
                    exc_message=str(exc),
                )

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "An internal error occurred",
                    "request_id": request_id,
                },
            )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Identify the viewer from HTTP Basic credentials.

    Requests without credentials are anonymous. Requests with credentials that
    do not check out are rejected, except on the health check.
    """

    # Paths that never look at credentials
    PUBLIC_PATHS: ClassVar[set[str]] = {
        "/api/v1/docs",
        "/api/v1/openapi.json",
        "/favicon.ico",  # Browser auto-requests this
        "/metrics",  # Prometheus endpoint must be public
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check credentials and store the account id on the request."""
        request.state.user_id = None

        if request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        authorization = request.headers.get("Authorization")
        if not authorization:
            return await call_next(request)

        credentials = self._parse_basic(authorization)
        user_id: object = Failure.NOT_PERMITTED
        if credentials is not None:
            users: UserRepository = request.app.state.user_repository
            user_id = await users.login_user(credentials)

        if isinstance(user_id, Failure):
            if request.url.path == HEALTH_PATH:
                # Invalid credentials still get the anonymous health check
                return await call_next(request)
            logger.info("authentication_failed", reason=user_id.value)
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Unauthorized"},
                headers={"WWW-Authenticate": "Basic"},
            )

        request.state.user_id = user_id
        structlog.contextvars.bind_contextvars(user_id=str(user_id))
        return await call_next(request)

    @staticmethod
    def _parse_basic(authorization: str) -> Credentials | None:
        scheme, _, param = authorization.partition(" ")
        if scheme.lower() != "basic":
            return None
        try:
            decoded = base64.b64decode(param.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None
        email, sep, password = decoded.partition(":")
        if not sep:
            return None
        return Credentials(email=email, password=password)
