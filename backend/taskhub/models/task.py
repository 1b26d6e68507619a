"""Workspace task and recurring task rule models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskhub.db.base import BaseModel, TaskFieldsMixin, WorkspaceScopedMixin


class WorkspaceTask(BaseModel, WorkspaceScopedMixin, TaskFieldsMixin):
    """Task within an event workspace."""

    __tablename__ = "workspace_tasks"

    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="NOT_STARTED", server_default="NOT_STARTED"
    )  # NOT_STARTED, IN_PROGRESS, BLOCKED, REVIEW_REQUIRED, COMPLETED

    assigned_to: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), nullable=True, index=True
    )

    # Ids of tasks this task waits on (stored as JSON array of strings)
    dependencies: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default="[]", default=list
    )

    tags: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, server_default="{}", default=list
    )
    estimated_hours: Mapped[float | None] = mapped_column(nullable=True)
    subtasks: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default="[]", default=list
    )

    # Set when the task was generated from a recurring rule
    source_rule_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("workspace_recurring_tasks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    occurrence_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    source_rule: Mapped["RecurringTaskRule | None"] = relationship(
        "RecurringTaskRule", back_populates="created_tasks"
    )

    def __repr__(self) -> str:
        try:
            return f"<WorkspaceTask {self.title[:30]}>"
        except Exception:
            return "<WorkspaceTask detached>"


class RecurringTaskRule(BaseModel, WorkspaceScopedMixin, TaskFieldsMixin):
    """Rule for automatically creating recurring workspace tasks.

    The title and descriptive fields are the template copied onto every
    generated task.
    """

    __tablename__ = "workspace_recurring_tasks"
    __table_args__ = (
        Index("ix_recurring_tasks_active_next", "is_active", "next_occurrence"),
        CheckConstraint(
            "max_occurrences IS NULL OR occurrence_count <= max_occurrences",
            name="ck_recurring_tasks_occurrence_limit",
        ),
    )

    assigned_to: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    # Free-form template: tags, estimated_hours, subtasks
    template_data: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}", default=dict
    )

    # Recurrence pattern
    recurrence_type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # daily, weekly, monthly, custom
    recurrence_config: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}", default=dict
    )

    # Schedule and tracking
    next_occurrence: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    occurrence_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    max_occurrences: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    created_by: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)

    created_tasks: Mapped[list["WorkspaceTask"]] = relationship(
        "WorkspaceTask", back_populates="source_rule", lazy="noload"
    )

    def __repr__(self) -> str:
        try:
            return f"<RecurringTaskRule {self.title[:30]}>"
        except Exception:
            return "<RecurringTaskRule detached>"
