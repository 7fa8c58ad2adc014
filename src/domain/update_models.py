"""Update models for task operations."""

from pydantic import BaseModel, Field


class TaskAssign(BaseModel):
    """Payload for assigning a task to a specific staff member."""

    staff_id: str = Field(..., min_length=1)
    notes: str | None = None


class TaskStatusUpdate(BaseModel):
    """Payload for a status change."""

    status: str = Field(..., description="Target status name or alias")
    notes: str | None = None
    actual_duration: int | None = Field(default=None, description="Minutes; overrides the computed duration")
    handoff_department: str | None = Field(default=None, description="Required when moving to handoff_pending")


class HandoffRequest(BaseModel):
    """Payload for handing a task to another department."""

    target_department: str = Field(..., description="Department name or alias")
    reason: str | None = None


class NoteCreate(BaseModel):
    """Payload for adding a note to a task."""

    content: str = Field(..., min_length=1)


class BulkAssignRequest(BaseModel):
    """Payload for assigning all pending tasks."""

    departments: list[str] | None = Field(default=None, description="Restrict to these departments")
