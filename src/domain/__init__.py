"""Domain models and DTOs."""

from src.domain.create_models import StaffCreate, TaskCreate
from src.domain.staff import Actor, ActorRole, StaffCandidate, StaffMember, StaffRecommendation
from src.domain.task import (
    AssignmentEntry,
    AssignmentSource,
    Department,
    StatusChange,
    Task,
    TaskCategory,
    TaskLocation,
    TaskNote,
    TaskPriority,
    TaskStatus,
    TaskView,
)
from src.domain.update_models import BulkAssignRequest, HandoffRequest, NoteCreate, TaskAssign, TaskStatusUpdate


__all__ = [
    "Actor",
    "ActorRole",
    "AssignmentEntry",
    "AssignmentSource",
    "BulkAssignRequest",
    "Department",
    "HandoffRequest",
    "NoteCreate",
    "StaffCandidate",
    "StaffCreate",
    "StaffMember",
    "StaffRecommendation",
    "StatusChange",
    "Task",
    "TaskAssign",
    "TaskCategory",
    "TaskCreate",
    "TaskLocation",
    "TaskNote",
    "TaskPriority",
    "TaskStatus",
    "TaskStatusUpdate",
    "TaskView",
]
