"""Staff and actor domain models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from src.domain.task import Department


MAX_NAME_LENGTH = 80


class ActorRole(StrEnum):
    """Role of whoever is calling into the engine."""

    STAFF = "staff"
    MANAGER = "manager"
    ADMIN = "admin"
    SYSTEM = "system"


PRIVILEGED_ROLES: frozenset[ActorRole] = frozenset({ActorRole.MANAGER, ActorRole.ADMIN, ActorRole.SYSTEM})


class Actor(BaseModel):
    """Identity performing an operation."""

    id: str = Field(..., min_length=1, description="Actor ID")
    role: ActorRole = Field(default=ActorRole.STAFF, description="Actor role")

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


SYSTEM_ACTOR = Actor(id="system", role=ActorRole.SYSTEM)


class StaffMember(BaseModel):
    """Staff directory entry."""

    id: str = Field(..., description="Staff ID")
    name: str = Field(..., description="Display name")
    department: Department = Field(..., description="Home department")
    role: ActorRole = Field(default=ActorRole.STAFF, description="Staff role")
    is_active: bool = Field(default=True, description="Whether the staff member can take work")
    skills: dict[str, int] = Field(default_factory=dict, description="Skill name to level (1-5)")

    @field_validator("name")
    @classmethod
    def validate_name_usable(cls, v: str) -> str:
        """Validate name is non-empty and reasonably short."""
        v = v.strip()

        if not v:
            raise ValueError("Name cannot be empty")

        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")

        return v


class StaffCandidate(BaseModel):
    """Transient view of a staff member being considered for a task."""

    staff_id: str
    name: str
    department: Department
    current_open_task_count: int = Field(default=0, ge=0)
    recent_completion_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    skills: dict[str, int] = Field(default_factory=dict)
    last_assigned_at: datetime | None = None


class StaffRecommendation(BaseModel):
    """Scored candidate returned by staff recommendations."""

    staff_id: str
    name: str
    department: Department
    score: float
    current_open_task_count: int
    recent_completion_rate: float
    skill_match: float
