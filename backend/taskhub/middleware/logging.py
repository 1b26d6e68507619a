"""Structured logging middleware."""

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

WORKSPACE_ID_HEADER = "X-Workspace-ID"

# Probe endpoints are polled constantly; log them at debug level
QUIET_PATH_SUFFIXES = ("/health", "/health/ready")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request and response with timing information."""
        start_time = time.perf_counter()
        request_id = getattr(request.state, "request_id", "unknown")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )
        workspace_id = request.headers.get(WORKSPACE_ID_HEADER)
        if workspace_id:
            structlog.contextvars.bind_contextvars(workspace_id=workspace_id)

        log = logger.debug if request.url.path.endswith(QUIET_PATH_SUFFIXES) else logger.info
        log("request_started")

        try:
            response = await call_next(request)
        except Exception as exc:
            process_time = time.perf_counter() - start_time
            logger.exception(
                "request_failed",
                error=str(exc),
                duration_ms=round(process_time * 1000, 2),
            )
            raise

        process_time = time.perf_counter() - start_time
        log(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(process_time * 1000, 2),
        )
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))
        return response
