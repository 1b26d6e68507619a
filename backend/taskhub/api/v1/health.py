"""Liveness and readiness probes."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import ORJSONResponse

from taskhub.config import Settings, get_settings
from taskhub.db.session import DBSession, check_database

router = APIRouter()


@router.get("/health")
async def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, str]:
    """Process is up; touches nothing else."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(
    db: DBSession,
    settings: Annotated[Settings, Depends(get_settings)],
) -> ORJSONResponse:
    """Database reachable; also reports whether the scheduler trigger is enabled.

    Returns 503 while the database is down so load balancers stop routing.
    """
    checks: dict[str, Any] = {}

    error = await check_database(db)
    checks["database"] = "healthy" if error is None else f"unhealthy: {error}"

    # An unset secret only disables the HTTP trigger; Celery beat still runs
    checks["scheduler_trigger"] = (
        "configured" if settings.scheduler_secret.get_secret_value() else "disabled"
    )
    checks["recurring_batch_limit"] = settings.recurring_batch_limit

    healthy = error is None
    return ORJSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "version": settings.app_version,
            "checks": checks,
        },
    )
