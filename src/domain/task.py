"""Task domain models: a closed union of group and personal tasks."""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from src.domain.schedule import Schedule, parse_schedule


class TaskScope(StrEnum):
    """Ownership context of a task."""

    GROUP = "group"
    PERSONAL = "personal"


class TaskVisibility(StrEnum):
    """Whether a personal task shows up on the owner's public profile."""

    PUBLIC = "public"
    PRIVATE = "private"


class _TaskBase(BaseModel):
    id: str = Field(..., description="Unique task ID from database")
    created: str = Field(..., description="Creation timestamp (ISO format)")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    schedule: Schedule = Field(..., description="When the task is due")
    coins: int = Field(default=0, ge=0, description="Reward per completion")

    @field_validator("schedule", mode="before")
    @classmethod
    def parse_stored_schedule(cls, v: Any) -> Any:
        return parse_schedule(v)


class GroupTask(_TaskBase):
    """Task shared by every member of a group; pays gold coins."""

    scope: Literal["group"] = "group"
    group_id: str = Field(..., description="Owning group ID")


class PersonalTask(_TaskBase):
    """Task owned by a single user; pays silver coins."""

    scope: Literal["personal"] = "personal"
    owner_id: str = Field(..., description="Owning user ID")
    visibility: TaskVisibility = Field(default=TaskVisibility.PRIVATE)


Task = Annotated[GroupTask | PersonalTask, Field(discriminator="scope")]

_task_adapter: TypeAdapter[Task] = TypeAdapter(Task)


def task_from_record(record: dict[str, Any]) -> Task:
    """Build the matching task variant from a database record."""
    return _task_adapter.validate_python(record)
