"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from taskhub.api import router as api_router
from taskhub.config import get_settings
from taskhub.db.session import close_db, init_db
from taskhub.exceptions import (
    DependencyCycleError,
    RecurrenceConfigError,
    RuleAlreadyAdvancedError,
    SelfDependencyError,
    TaskBlockedError,
    TaskHubError,
    UnknownDependencyError,
)
from taskhub.logging_config import configure_logging
from taskhub.middleware.logging import LoggingMiddleware
from taskhub.middleware.request_id import RequestIDMiddleware

logger = structlog.get_logger()
settings = get_settings()

# Domain errors that escape a router; routers map the common cases themselves
ERROR_STATUS_CODES: dict[type[TaskHubError], int] = {
    RecurrenceConfigError: status.HTTP_400_BAD_REQUEST,
    SelfDependencyError: status.HTTP_400_BAD_REQUEST,
    UnknownDependencyError: status.HTTP_404_NOT_FOUND,
    DependencyCycleError: status.HTTP_409_CONFLICT,
    TaskBlockedError: status.HTTP_409_CONFLICT,
    RuleAlreadyAdvancedError: status.HTTP_409_CONFLICT,
}


def status_code_for(exc: TaskHubError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return status.HTTP_400_BAD_REQUEST


async def taskhub_error_handler(request: Request, exc: TaskHubError) -> ORJSONResponse:
    """Render an unhandled domain error as ``{"detail": {message, code}}``."""
    status_code = status_code_for(exc)
    logger.info("domain_error", code=exc.code, status_code=status_code)
    return ORJSONResponse(
        status_code=status_code,
        content={"detail": {"message": exc.message, "code": exc.code}},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Check the database on startup and release the pool on shutdown."""
    logger.info("Starting TaskHub API", version=settings.app_version)
    await init_db()
    logger.info("Database connection initialized")

    yield

    logger.info("Shutting down TaskHub API")
    await close_db()
    logger.info("Database connection closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Recurring workspace tasks and task dependency analysis",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Last added runs first: proxy headers, then request id, then logging
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    app.add_exception_handler(TaskHubError, taskhub_error_handler)
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()
