"""SQLAlchemy models package."""

from taskhub.models.task import RecurringTaskRule, WorkspaceTask

__all__ = [
    "RecurringTaskRule",
    "WorkspaceTask",
]
