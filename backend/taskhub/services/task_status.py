"""Status transition gate for workspace tasks.

The task status state machine lives outside this service; it calls
``ensure_can_transition`` before applying a change so a task cannot start
while any of its dependencies is unfinished.
"""

from typing import Any, Sequence

import structlog

from taskhub.exceptions import TaskBlockedError
from taskhub.schemas.task import TaskStatus
from taskhub.services.dependency_graph import BlockingStatus, get_blocking_status

logger = structlog.get_logger()

# Leaving these states for IN_PROGRESS requires all dependencies completed
GATED_STATES = frozenset({TaskStatus.NOT_STARTED, TaskStatus.BLOCKED})


def ensure_can_transition(
    task: Any,
    new_status: TaskStatus | str,
    all_tasks: Sequence[Any],
) -> BlockingStatus:
    """Return the task's blocking status, raising if the transition is gated."""
    target = TaskStatus(new_status)
    blocking_status = get_blocking_status(task, all_tasks)

    try:
        current = TaskStatus(task.status)
    except ValueError:
        current = None

    if current in GATED_STATES and target is TaskStatus.IN_PROGRESS and blocking_status.is_blocked:
        logger.info(
            "task_transition_blocked",
            task_id=str(task.id),
            from_status=current.value,
            to_status=target.value,
            blocked_by=blocking_status.blocked_by,
            blocked_by_completed=blocking_status.blocked_by_completed,
        )
        raise TaskBlockedError(str(task.id), target.value, blocking_status)

    return blocking_status
