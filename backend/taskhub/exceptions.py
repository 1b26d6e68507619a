"""Domain exceptions for recurring tasks and task dependencies.

Each error carries a machine-readable ``code`` so API handlers can map it
to a response without string matching.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from taskhub.services.dependency_graph import BlockingStatus


class TaskHubError(Exception):
    """Base exception for task domain errors."""

    def __init__(self, message: str, code: str = "TASKHUB_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class RecurrenceConfigError(TaskHubError):
    """Recurrence configuration does not match its recurrence type.

    Only raised by strict parsing of user input. The recurrence engine
    itself falls back to a one-day step instead of raising.
    """

    def __init__(self, recurrence_type: str, message: str):
        self.recurrence_type = recurrence_type
        super().__init__(
            message=f"Invalid {recurrence_type} recurrence config: {message}",
            code="INVALID_RECURRENCE_CONFIG",
        )


class RuleAlreadyAdvancedError(TaskHubError):
    """Another scheduler run advanced the rule first.

    Raised when the compare-and-swap on ``next_occurrence`` matches no row,
    which rolls back the task created in the same unit of work.
    """

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(
            message=f"Recurring rule {rule_id} was already advanced by another run",
            code="RULE_ALREADY_ADVANCED",
        )


class DependencyError(TaskHubError):
    """Base class for rejected dependency edits."""


class SelfDependencyError(DependencyError):
    """A task cannot depend on itself."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(
            message=f"Task {task_id} cannot depend on itself",
            code="SELF_DEPENDENCY",
        )


class UnknownDependencyError(DependencyError):
    """The referenced task does not exist in the collection."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(
            message=f"Task {task_id} not found",
            code="UNKNOWN_TASK",
        )


class DependencyCycleError(DependencyError):
    """Adding the dependency would close a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(
            message="Adding this dependency would create a cycle: " + " -> ".join(cycle),
            code="DEPENDENCY_CYCLE",
        )


class TaskBlockedError(TaskHubError):
    """A status transition was refused because dependencies are unfinished."""

    def __init__(
        self,
        task_id: str,
        target_status: str,
        blocking_status: Optional["BlockingStatus"] = None,
    ):
        self.task_id = task_id
        self.target_status = target_status
        self.blocking_status = blocking_status
        pending = ""
        if blocking_status is not None:
            remaining = blocking_status.blocked_by - blocking_status.blocked_by_completed
            pending = f" ({remaining} unfinished dependencies)"
        super().__init__(
            message=f"Task {task_id} cannot move to {target_status}{pending}",
            code="TASK_BLOCKED",
        )
