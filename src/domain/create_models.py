"""Pydantic models for creating tasks and staff records.

These are the raw inbound shapes. Department, category, priority and
status strings are canonicalized by the task normalizer before a `Task`
is built from them.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.core.config import constants
from src.domain.task import SkillRequirement, TaskLocation


class TaskCreate(BaseModel):
    """Pydantic model for creating a task."""

    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    department: str | None = Field(default=None, description="Department name or alias")
    category: str | None = Field(default=None, description="Category; inferred from department if absent")
    priority: str | None = Field(default=None, description="Priority; defaults to medium")
    location: TaskLocation | None = Field(default=None, description="Where the work happens")
    room_number: str | None = Field(default=None, description="Room number")
    assigned_to: str | None = Field(default=None, description="Staff ID to assign directly")
    skill_requirements: list[SkillRequirement] = Field(default_factory=list)
    due_date: datetime | None = Field(default=None)
    estimated_duration: int | None = Field(default=None, ge=0, description="Estimated minutes")
    is_urgent: bool = Field(default=False)
    auto_create_follow_up: bool = Field(default=True)
    tags: list[str] = Field(default_factory=list)
    auto_assign: bool | None = Field(default=None, description="Override the auto-assign-on-create setting")

    @field_validator("title")
    @classmethod
    def validate_title_not_blank(cls, v: str) -> str:
        """Validate title has visible characters."""
        v = v.strip()
        if not v:
            msg = "Title cannot be empty"
            raise ValueError(msg)
        return v


class StaffCreate(BaseModel):
    """Pydantic model for registering a staff member in the directory."""

    id: str = Field(..., min_length=1, description="Staff ID")
    name: str = Field(..., min_length=1, description="Display name")
    department: str = Field(..., description="Department name or alias")
    role: str = Field(default="staff", description="Staff role")
    skills: dict[str, int] = Field(default_factory=dict, description="Skill name to level (1-5)")

    @field_validator("skills")
    @classmethod
    def validate_skill_levels(cls, v: dict[str, int]) -> dict[str, int]:
        """Validate skill levels are between 1 and 5."""
        for skill, level in v.items():
            if not constants.SKILL_LEVEL_MIN <= level <= constants.SKILL_LEVEL_MAX:
                msg = (
                    f"Skill level for {skill} must be between "
                    f"{constants.SKILL_LEVEL_MIN} and {constants.SKILL_LEVEL_MAX}"
                )
                raise ValueError(msg)
        return v
