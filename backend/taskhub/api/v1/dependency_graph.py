"""Task dependency graph API endpoints.

Callers post a snapshot of a workspace's tasks; nothing here reads or
writes storage.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from taskhub.config import Settings, get_settings
from taskhub.exceptions import (
    DependencyCycleError,
    TaskBlockedError,
    UnknownDependencyError,
    SelfDependencyError,
)
from taskhub.schemas.task import TaskSnapshot, TaskStatus
from taskhub.services.dependency_graph import (
    LayoutOptions,
    analyze,
    get_blocking_status,
    validate_new_dependency,
)
from taskhub.services.task_status import ensure_can_transition

router = APIRouter()
logger = structlog.get_logger()


def get_layout_options(
    settings: Annotated[Settings, Depends(get_settings)],
) -> LayoutOptions:
    return LayoutOptions(
        node_width=settings.graph_node_width,
        node_height=settings.graph_node_height,
        horizontal_gap=settings.graph_horizontal_gap,
        vertical_gap=settings.graph_vertical_gap,
    )


# Request/Response Models
class TaskCollection(BaseModel):
    """Snapshot of the tasks to analyse."""

    tasks: list[TaskSnapshot] = Field(default_factory=list)


class BlockingStatusRequest(TaskCollection):
    task_id: str


class DependencyValidationRequest(TaskCollection):
    task_id: str
    dependency_id: str


class TransitionCheckRequest(TaskCollection):
    task_id: str
    new_status: TaskStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GraphNodeResponse(_CamelModel):
    id: str
    task: TaskSnapshot
    x: float
    y: float
    depth: int
    column: int


class GraphEdgeResponse(_CamelModel):
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    status: str


class GraphAnalysisResponse(_CamelModel):
    nodes: list[GraphNodeResponse]
    edges: list[GraphEdgeResponse]
    max_depth: int = Field(alias="maxDepth")
    max_column: int = Field(alias="maxColumn")
    cycles: list[list[str]]
    critical_path: list[str] = Field(alias="criticalPath")


class BlockingStatusResponse(_CamelModel):
    blocked_by: int = Field(alias="blockedBy")
    blocking: int
    is_blocked: bool = Field(alias="isBlocked")
    blocked_by_completed: int = Field(alias="blockedByCompleted")


class DependencyValidationResponse(BaseModel):
    valid: bool


def _find_task(tasks: list[TaskSnapshot], task_id: str) -> TaskSnapshot:
    for task in tasks:
        if task.id == task_id:
            return task
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Task not found",
    )


@router.post("/analyze", response_model=GraphAnalysisResponse)
async def analyze_dependency_graph(
    request_data: TaskCollection,
    layout: Annotated[LayoutOptions, Depends(get_layout_options)],
) -> GraphAnalysisResponse:
    """Layout, cycles and critical path for a set of tasks."""
    result = analyze(request_data.tasks, layout)
    return GraphAnalysisResponse.model_validate(result.to_dict())


@router.post("/blocking-status", response_model=BlockingStatusResponse)
async def get_task_blocking_status(
    request_data: BlockingStatusRequest,
) -> BlockingStatusResponse:
    """Counters of blocking and blocked tasks for one task."""
    task = _find_task(request_data.tasks, request_data.task_id)
    blocking_status = get_blocking_status(task, request_data.tasks)
    return BlockingStatusResponse.model_validate(blocking_status.to_dict())


@router.post("/validate-dependency", response_model=DependencyValidationResponse)
async def validate_dependency(
    request_data: DependencyValidationRequest,
) -> dict:
    """Check a new dependency before it is saved on the task."""
    try:
        validate_new_dependency(
            request_data.task_id,
            request_data.dependency_id,
            request_data.tasks,
        )
    except SelfDependencyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
    except UnknownDependencyError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )
    except DependencyCycleError as e:
        logger.info(
            "dependency_rejected",
            task_id=request_data.task_id,
            dependency_id=request_data.dependency_id,
            cycle=e.cycle,
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": e.message, "code": e.code, "cycle": e.cycle},
        )

    return {"valid": True}


@router.post("/transition-check", response_model=BlockingStatusResponse)
async def check_status_transition(
    request_data: TransitionCheckRequest,
) -> BlockingStatusResponse:
    """Ask whether a task may move to a new status given its dependencies."""
    task = _find_task(request_data.tasks, request_data.task_id)
    try:
        blocking_status = ensure_can_transition(
            task, request_data.new_status, request_data.tasks
        )
    except TaskBlockedError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": e.message, "code": e.code},
        )
    return BlockingStatusResponse.model_validate(blocking_status.to_dict())
