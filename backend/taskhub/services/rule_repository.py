"""SQLAlchemy-backed storage for the recurring task scheduler."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.models.task import RecurringTaskRule, WorkspaceTask
from taskhub.services.recurring_task import (
    DueRule,
    NewTaskInstance,
    RecurringRuleRepository,
)


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class SqlAlchemyRuleRepository(RecurringRuleRepository):
    """Rule and task persistence over an async session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_due_rules(
        self, now: datetime, limit: int | None = None
    ) -> Sequence[DueRule]:
        query = (
            select(RecurringTaskRule)
            .where(
                and_(
                    RecurringTaskRule.is_active == True,  # noqa: E712
                    RecurringTaskRule.next_occurrence <= now,
                )
            )
            .order_by(RecurringTaskRule.next_occurrence, RecurringTaskRule.id)
        )
        if limit:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return [DueRule.from_model(rule) for rule in result.scalars().all()]

    async def insert_task(self, task: NewTaskInstance) -> str:
        row = WorkspaceTask(
            workspace_id=_as_uuid(task.workspace_id),
            title=task.title,
            description=task.description,
            priority=task.priority,
            category=task.category,
            role_scope=task.role_scope,
            assigned_to=_as_uuid(task.assigned_to) if task.assigned_to else None,
            status=task.status.value,
            dependencies=list(task.dependencies),
            tags=list(task.tags),
            estimated_hours=task.estimated_hours,
            subtasks=list(task.subtasks),
            source_rule_id=_as_uuid(task.source_rule_id),
            occurrence_number=task.occurrence_number,
        )
        self.db.add(row)
        await self.db.flush()  # Get task ID
        return str(row.id)

    async def advance_rule(
        self,
        rule_id: UUID | str,
        *,
        expected_next_occurrence: datetime,
        next_occurrence: datetime,
        last_created_at: datetime,
        occurrence_count: int,
    ) -> bool:
        result = await self.db.execute(
            update(RecurringTaskRule)
            .where(
                and_(
                    RecurringTaskRule.id == _as_uuid(rule_id),
                    RecurringTaskRule.next_occurrence == expected_next_occurrence,
                    RecurringTaskRule.is_active == True,  # noqa: E712
                )
            )
            .values(
                next_occurrence=next_occurrence,
                last_created_at=last_created_at,
                occurrence_count=occurrence_count,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def deactivate_rule(self, rule_id: UUID | str) -> None:
        await self.db.execute(
            update(RecurringTaskRule)
            .where(RecurringTaskRule.id == _as_uuid(rule_id))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[None]:
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
