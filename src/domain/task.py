"""Task domain models and enums."""

from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class Department(StrEnum):
    """Operational department owning a task."""

    HOUSEKEEPING = "Housekeeping"
    KITCHEN = "Kitchen"
    MAINTENANCE = "Maintenance"
    SERVICE = "Service"


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    HANDOFF_PENDING = "handoff_pending"
    HANDOFF_ACCEPTED = "handoff_accepted"


class TaskPriority(StrEnum):
    """Task priority, ordered from least to most pressing."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskCategory(StrEnum):
    """Kind of work a task represents."""

    # Maintenance
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    HVAC = "hvac"
    APPLIANCE = "appliance"
    STRUCTURAL = "structural"
    GENERAL = "general"
    # Kitchen
    FOOD_PREPARATION = "food_preparation"
    COOKING = "cooking"
    CLEANING = "cleaning"
    INVENTORY = "inventory"
    EQUIPMENT = "equipment"
    # Service
    GUEST_REQUEST = "guest_request"
    ROOM_SERVICE = "room_service"
    CONCIERGE = "concierge"
    TRANSPORTATION = "transportation"
    EVENT = "event"
    # Housekeeping
    LAUNDRY = "laundry"
    RESTOCKING = "restocking"
    INSPECTION = "inspection"
    DEEP_CLEANING = "deep_cleaning"


class TaskLocation(StrEnum):
    """Where on the property the work happens."""

    ROOM = "room"
    KITCHEN = "kitchen"
    LOBBY = "lobby"
    GYM = "gym"
    POOL = "pool"
    PARKING = "parking"
    OTHER = "other"


class AssignmentSource(StrEnum):
    """Who made an assignment."""

    USER = "user"
    SYSTEM = "system"


OPEN_STATUSES: frozenset[TaskStatus] = frozenset(
    {
        TaskStatus.PENDING,
        TaskStatus.ASSIGNED,
        TaskStatus.IN_PROGRESS,
        TaskStatus.HANDOFF_PENDING,
        TaskStatus.HANDOFF_ACCEPTED,
    }
)

HANDOFF_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.HANDOFF_PENDING, TaskStatus.HANDOFF_ACCEPTED})

DEFAULT_CATEGORY_BY_DEPARTMENT: dict[Department, TaskCategory] = {
    Department.KITCHEN: TaskCategory.FOOD_PREPARATION,
    Department.HOUSEKEEPING: TaskCategory.CLEANING,
    Department.MAINTENANCE: TaskCategory.GENERAL,
    Department.SERVICE: TaskCategory.GUEST_REQUEST,
}


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_task_id() -> str:
    return uuid4().hex


class SkillRequirement(BaseModel):
    """A skill a task needs, with the minimum useful proficiency."""

    skill: str = Field(..., description="Skill name (e.g., 'plumbing')")
    level: int = Field(default=1, ge=1, le=5, description="Required proficiency from 1 to 5")


class AssignmentEntry(BaseModel):
    """One change of assignee, appended to the task's assignment history."""

    assigned_to: str | None = Field(..., description="Staff ID the task was assigned to")
    assigned_by: str = Field(..., description="Actor ID that made the assignment")
    source: AssignmentSource = Field(..., description="Whether a user or the allocator assigned")
    status: TaskStatus = Field(..., description="Task status after the assignment")
    notes: str | None = Field(default=None, description="Free-text notes")
    timestamp: datetime = Field(default_factory=utc_now, description="When the assignment happened")


class StatusChange(BaseModel):
    """One accepted status transition, appended to the task's status history."""

    from_status: TaskStatus
    to_status: TaskStatus
    changed_by: str
    changed_at: datetime = Field(default_factory=utc_now)
    reason: str | None = None


class TaskNote(BaseModel):
    """A free-text note attached to a task."""

    content: str = Field(..., min_length=1, description="Note text")
    added_by: str = Field(..., description="Actor ID that wrote the note")
    added_at: datetime = Field(default_factory=utc_now, description="When the note was added")


class Task(BaseModel):
    """Canonical task record as persisted by the task store."""

    id: str = Field(default_factory=new_task_id, description="Opaque task ID")
    title: str = Field(..., min_length=1, description="Short task title")
    description: str = Field(default="", description="Detailed task description")
    department: Department = Field(..., description="Owning department (canonical)")
    category: TaskCategory = Field(..., description="Kind of work")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current lifecycle state")
    location: TaskLocation | None = Field(default=None, description="Where the work happens")
    room_number: str | None = Field(default=None, description="Room number for in-room work")

    assigned_to: str | None = Field(default=None, description="Assigned staff ID")
    assigned_by: str | None = Field(default=None, description="Actor ID of the latest assignment")
    created_by: str = Field(..., description="Actor ID that created the task")
    assignment_source: AssignmentSource | None = Field(default=None, description="Source of latest assignment")
    assigned_at: datetime | None = Field(default=None, description="Time of latest assignment")
    accepted_by: str | None = Field(default=None, description="Staff ID that accepted the task")
    accepted_at: datetime | None = Field(default=None, description="When the task was accepted")
    assignment_history: list[AssignmentEntry] = Field(default_factory=list)
    status_history: list[StatusChange] = Field(default_factory=list)
    notes: list[TaskNote] = Field(default_factory=list)

    skill_requirements: list[SkillRequirement] = Field(default_factory=list)
    due_date: datetime | None = Field(default=None, description="When the task should be done")
    estimated_duration: int | None = Field(default=None, ge=0, description="Estimated minutes")
    actual_duration: int | None = Field(default=None, ge=0, description="Actual minutes, set on completion")
    completed_at: datetime | None = Field(default=None)
    completed_by: str | None = Field(default=None)

    is_urgent: bool = Field(default=False)
    auto_create_follow_up: bool = Field(default=True, description="Spawn the department follow-up on completion")
    parent_task_id: str | None = Field(default=None, description="Task whose completion spawned this one")
    follow_up_task_id: str | None = Field(default=None, description="Task spawned by this one's completion")
    workflow_type: str | None = Field(default=None, description="Chaining rule that produced this task")
    tags: list[str] = Field(default_factory=list)

    handoff_department: Department | None = Field(default=None)
    handoff_reason: str | None = Field(default=None)
    handoff_from: str | None = Field(default=None)
    handoff_to: str | None = Field(default=None)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("title")
    @classmethod
    def validate_title_not_blank(cls, v: str) -> str:
        """Validate title has visible characters."""
        v = v.strip()
        if not v:
            msg = "Title cannot be empty"
            raise ValueError(msg)
        return v


class TaskView(Task):
    """Task as returned to callers, with the derived edit-window fields."""

    can_edit: bool = Field(..., description="Whether the task may still be modified")
    remaining_seconds: int = Field(..., description="Seconds left in the post-completion edit window")
