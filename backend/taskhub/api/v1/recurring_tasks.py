"""Recurring task API endpoints."""

from datetime import datetime
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from taskhub.api.v1.auth import SchedulerAuth
from taskhub.config import Settings, get_settings
from taskhub.db.session import DBSession
from taskhub.exceptions import RecurrenceConfigError
from taskhub.schemas.recurrence import RecurrenceType
from taskhub.services.recurrence import (
    RECURRENCE_PRESETS,
    describe_recurrence,
    parse_recurrence_config,
    preview_occurrences,
)
from taskhub.services.recurring_task import RecurringRuleRepository, RecurringTaskScheduler
from taskhub.services.rule_repository import SqlAlchemyRuleRepository

router = APIRouter()
logger = structlog.get_logger()


async def get_rule_repository(db: DBSession) -> RecurringRuleRepository:
    """Rule storage bound to the request's session."""
    return SqlAlchemyRuleRepository(db)


RuleRepository = Annotated[RecurringRuleRepository, Depends(get_rule_repository)]


# Request/Response Models
class SchedulerRunResponse(BaseModel):
    """Outcome of one scheduler run."""

    processed: int
    created: int
    deactivated: int
    errors: list[str]


class PreviewRequest(BaseModel):
    """Preview the occurrences a rule would produce."""

    start: datetime
    recurrence_type: RecurrenceType
    recurrence_config: dict[str, Any] = Field(default_factory=dict)
    count: int = Field(default=5, ge=1, le=50)


class PreviewResponse(BaseModel):
    occurrences: list[datetime]
    description: str


class PresetResponse(BaseModel):
    key: str
    label: str
    recurrence_type: RecurrenceType
    recurrence_config: dict[str, Any]


@router.post("/process", response_model=SchedulerRunResponse)
async def process_recurring_tasks(
    _: SchedulerAuth,
    repository: RuleRepository,
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    """
    Create tasks for every due recurring rule.

    Called by the external scheduler; requires the shared scheduler secret.
    Per-rule failures are reported in ``errors`` and do not fail the call.
    """
    scheduler = RecurringTaskScheduler(
        repository, batch_limit=settings.recurring_batch_limit
    )
    result = await scheduler.run_due_cycle()
    return result.to_dict()


@router.post("/preview", response_model=PreviewResponse)
async def preview_recurrence(request_data: PreviewRequest) -> dict:
    """Show the next occurrences for a recurrence before saving it."""
    try:
        config = parse_recurrence_config(
            request_data.recurrence_type,
            request_data.recurrence_config,
            strict=True,
        )
    except RecurrenceConfigError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return {
        "occurrences": preview_occurrences(
            request_data.start,
            request_data.recurrence_type,
            config,
            request_data.count,
        ),
        "description": describe_recurrence(request_data.recurrence_type, config),
    }


@router.get("/presets", response_model=list[PresetResponse])
async def list_recurrence_presets() -> list[dict]:
    """List the built-in recurrence presets."""
    return [
        {
            "key": preset.key,
            "label": preset.label,
            "recurrence_type": preset.recurrence_type,
            "recurrence_config": preset.recurrence_config,
        }
        for preset in RECURRENCE_PRESETS.values()
    ]
