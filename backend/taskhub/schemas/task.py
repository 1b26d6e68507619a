"""Task schemas used by the dependency graph engine."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    """Workspace task status, shared with the task-status state machine."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    REVIEW_REQUIRED = "REVIEW_REQUIRED"
    COMPLETED = "COMPLETED"


class TaskPriority(str, Enum):
    """Task priority levels."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskSnapshot(BaseModel):
    """In-memory view of a task as seen by the graph algorithms.

    Ids are normalised to strings so UUIDs from the database and ids stored
    in the JSON dependency list compare equal.
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    title: str = ""
    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: TaskPriority | None = None
    category: str | None = None
    dependencies: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("dependencies", mode="before")
    @classmethod
    def stringify_dependencies(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, (str, bytes)):
            raise ValueError("dependencies must be a list of task ids")
        return [str(dep) for dep in v]
