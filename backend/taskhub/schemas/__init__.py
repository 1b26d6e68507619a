"""Pydantic schemas shared by services and API routers."""

from taskhub.schemas.recurrence import (
    CustomConfig,
    DailyConfig,
    MonthlyConfig,
    RecurrenceConfig,
    RecurrenceType,
    WeeklyConfig,
)
from taskhub.schemas.task import TaskSnapshot, TaskStatus

__all__ = [
    "CustomConfig",
    "DailyConfig",
    "MonthlyConfig",
    "RecurrenceConfig",
    "RecurrenceType",
    "TaskSnapshot",
    "TaskStatus",
    "WeeklyConfig",
]
