"""Authentication for internal scheduler triggers."""

import secrets
from typing import Annotated

import structlog
from fastapi import Depends, Header, HTTPException, status

from taskhub.config import Settings, get_settings

logger = structlog.get_logger()

SCHEDULER_SECRET_HEADER = "X-Scheduler-Secret"


async def verify_scheduler_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    x_scheduler_secret: Annotated[str | None, Header(alias=SCHEDULER_SECRET_HEADER)] = None,
) -> None:
    """Allow the call only when the shared scheduler secret matches."""
    expected = settings.scheduler_secret.get_secret_value()
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduler trigger is not configured",
        )

    if not x_scheduler_secret or not secrets.compare_digest(
        x_scheduler_secret.encode(), expected.encode()
    ):
        logger.warning("scheduler_trigger_rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid scheduler secret",
        )


# Type alias for dependency injection
SchedulerAuth = Annotated[None, Depends(verify_scheduler_secret)]
