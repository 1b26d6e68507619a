"""Recurring task scheduler: turns due recurrence rules into workspace tasks."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Sequence
from uuid import UUID

import structlog

from taskhub.exceptions import RuleAlreadyAdvancedError
from taskhub.schemas.task import TaskPriority, TaskStatus
from taskhub.services.recurrence import compute_next_occurrence

logger = structlog.get_logger()

RuleOutcome = Literal["created", "deactivated"]


@dataclass
class DueRule:
    """Snapshot of a recurring rule as read at the start of a run.

    ``next_occurrence`` keeps the value that was read so the update can be
    made conditional on it.
    """

    id: UUID | str
    workspace_id: UUID | str
    title: str
    recurrence_type: str
    recurrence_config: dict[str, Any]
    next_occurrence: datetime
    description: str | None = None
    priority: str = TaskPriority.MEDIUM.value
    category: str | None = None
    role_scope: str | None = None
    assigned_to: UUID | str | None = None
    template_data: dict[str, Any] = field(default_factory=dict)
    last_created_at: datetime | None = None
    end_date: datetime | None = None
    occurrence_count: int = 0
    max_occurrences: int | None = None
    is_active: bool = True

    @classmethod
    def from_model(cls, rule: Any) -> "DueRule":
        return cls(
            id=rule.id,
            workspace_id=rule.workspace_id,
            title=rule.title,
            description=rule.description,
            priority=rule.priority,
            category=rule.category,
            role_scope=rule.role_scope,
            assigned_to=rule.assigned_to,
            template_data=dict(rule.template_data or {}),
            recurrence_type=rule.recurrence_type,
            recurrence_config=dict(rule.recurrence_config or {}),
            next_occurrence=rule.next_occurrence,
            last_created_at=rule.last_created_at,
            end_date=rule.end_date,
            occurrence_count=rule.occurrence_count or 0,
            max_occurrences=rule.max_occurrences,
            is_active=rule.is_active,
        )

    @property
    def max_occurrences_reached(self) -> bool:
        return (
            self.max_occurrences is not None
            and self.occurrence_count >= self.max_occurrences
        )

    def has_ended(self, now: datetime) -> bool:
        return self.end_date is not None and self.end_date < now


@dataclass
class NewTaskInstance:
    """Task to be inserted for one occurrence of a rule."""

    workspace_id: UUID | str
    title: str
    source_rule_id: UUID | str
    occurrence_number: int
    description: str | None = None
    priority: str = TaskPriority.MEDIUM.value
    category: str | None = None
    role_scope: str | None = None
    assigned_to: UUID | str | None = None
    status: TaskStatus = TaskStatus.NOT_STARTED
    tags: list[str] = field(default_factory=list)
    estimated_hours: float | None = None
    subtasks: list[Any] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


@dataclass
class SchedulerRunResult:
    """Counters for one scheduler invocation."""

    processed: int = 0
    created: int = 0
    deactivated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "created": self.created,
            "deactivated": self.deactivated,
            "errors": list(self.errors),
        }


class RecurringRuleRepository(ABC):
    """Storage the scheduler reads rules from and writes tasks to.

    All writes for one rule happen inside ``unit_of_work()``, which commits
    when the block exits normally and rolls back when it raises.
    """

    @abstractmethod
    async def list_due_rules(
        self, now: datetime, limit: int | None = None
    ) -> Sequence[DueRule]:
        """Active rules whose next occurrence is at or before ``now``."""

    @abstractmethod
    async def insert_task(self, task: NewTaskInstance) -> str:
        """Insert a task and return its id."""

    @abstractmethod
    async def advance_rule(
        self,
        rule_id: UUID | str,
        *,
        expected_next_occurrence: datetime,
        next_occurrence: datetime,
        last_created_at: datetime,
        occurrence_count: int,
    ) -> bool:
        """Advance the rule only if ``next_occurrence`` still equals the expected value.

        Returns False when another run got there first.
        """

    @abstractmethod
    async def deactivate_rule(self, rule_id: UUID | str) -> None:
        """Mark the rule inactive."""

    @abstractmethod
    def unit_of_work(self) -> AbstractAsyncContextManager[None]:
        """Transaction scope for one rule."""


def _template_value(template: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in template:
            return template[key]
    return None


class RecurringTaskScheduler:
    """Processes due recurring rules; meant to be run once per trigger."""

    def __init__(
        self,
        repository: RecurringRuleRepository,
        batch_limit: int | None = None,
    ):
        self.repository = repository
        self.batch_limit = batch_limit

    @staticmethod
    def build_task_instance(rule: DueRule) -> NewTaskInstance:
        """Create the task for the rule's next occurrence from its template."""
        template = rule.template_data or {}
        return NewTaskInstance(
            workspace_id=rule.workspace_id,
            title=rule.title,
            description=rule.description,
            priority=rule.priority,
            category=rule.category,
            role_scope=rule.role_scope,
            assigned_to=rule.assigned_to,
            source_rule_id=rule.id,
            occurrence_number=rule.occurrence_count + 1,
            tags=list(_template_value(template, "tags") or []),
            estimated_hours=_template_value(template, "estimatedHours", "estimated_hours"),
            subtasks=list(_template_value(template, "subtasks") or []),
        )

    async def run_due_cycle(self, now: datetime | None = None) -> SchedulerRunResult:
        """Process every due rule once.

        A failure reading the due rules propagates. Failures on individual
        rules are recorded in ``errors`` and the batch continues.
        """
        now = now or datetime.now(timezone.utc)
        rules = await self.repository.list_due_rules(now, self.batch_limit)

        result = SchedulerRunResult(processed=len(rules))
        for rule in rules:
            try:
                outcome = await self._process_rule(rule, now)
            except RuleAlreadyAdvancedError:
                result.skipped += 1
                logger.info(
                    "recurring_rule_already_advanced",
                    rule_id=str(rule.id),
                    expected_next_occurrence=rule.next_occurrence.isoformat(),
                )
                continue
            except Exception as e:
                result.errors.append(f"{rule.id}: {e}")
                logger.error(
                    "recurring_rule_failed",
                    rule_id=str(rule.id),
                    error=str(e),
                )
                continue

            if outcome == "created":
                result.created += 1
            else:
                result.deactivated += 1

        logger.info(
            "recurring_rules_processed",
            rules_processed=result.processed,
            tasks_created=result.created,
            rules_deactivated=result.deactivated,
            rules_skipped=result.skipped,
            errors=len(result.errors),
        )
        return result

    async def _process_rule(self, rule: DueRule, now: datetime) -> RuleOutcome:
        async with self.repository.unit_of_work():
            if rule.max_occurrences_reached:
                await self.repository.deactivate_rule(rule.id)
                logger.info(
                    "recurring_rule_deactivated",
                    rule_id=str(rule.id),
                    reason="max_occurrences_reached",
                    occurrence_count=rule.occurrence_count,
                )
                return "deactivated"

            if rule.has_ended(now):
                await self.repository.deactivate_rule(rule.id)
                logger.info(
                    "recurring_rule_deactivated",
                    rule_id=str(rule.id),
                    reason="end_date_passed",
                    end_date=rule.end_date.isoformat(),
                )
                return "deactivated"

            instance = self.build_task_instance(rule)
            next_occurrence = compute_next_occurrence(
                now, rule.recurrence_type, rule.recurrence_config
            )

            task_id = await self.repository.insert_task(instance)
            advanced = await self.repository.advance_rule(
                rule.id,
                expected_next_occurrence=rule.next_occurrence,
                next_occurrence=next_occurrence,
                last_created_at=now,
                occurrence_count=instance.occurrence_number,
            )
            if not advanced:
                raise RuleAlreadyAdvancedError(str(rule.id))

        logger.info(
            "recurring_task_created",
            task_id=task_id,
            rule_id=str(rule.id),
            workspace_id=str(rule.workspace_id),
            occurrence_number=instance.occurrence_number,
            next_occurrence=next_occurrence.isoformat(),
        )
        return "created"
