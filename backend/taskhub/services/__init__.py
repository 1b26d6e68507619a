"""Services package."""

from taskhub.services.dependency_graph import (
    BlockingStatus,
    DependencyGraph,
    LayoutOptions,
    analyze,
    build_dependency_graph,
    compute_layout,
    find_critical_path,
    find_cycles,
    get_blocking_status,
    validate_new_dependency,
)
from taskhub.services.recurrence import (
    RECURRENCE_PRESETS,
    compute_next_occurrence,
    describe_recurrence,
    preview_occurrences,
)
from taskhub.services.recurring_task import (
    RecurringRuleRepository,
    RecurringTaskScheduler,
    SchedulerRunResult,
)
from taskhub.services.task_status import ensure_can_transition

__all__ = [
    "BlockingStatus",
    "DependencyGraph",
    "LayoutOptions",
    "RECURRENCE_PRESETS",
    "RecurringRuleRepository",
    "RecurringTaskScheduler",
    "SchedulerRunResult",
    "analyze",
    "build_dependency_graph",
    "compute_layout",
    "compute_next_occurrence",
    "describe_recurrence",
    "ensure_can_transition",
    "find_critical_path",
    "find_cycles",
    "get_blocking_status",
    "preview_occurrences",
    "validate_new_dependency",
]
