"""Canonicalization of department, category, priority and status strings.

Raw strings from callers are folded (case-insensitive, hyphens and spaces
become underscores) and looked up in an alias table. Every boundary
entry point goes through these functions exactly once; the rest of the
engine works on the enums only.
"""

from enum import StrEnum
from typing import TypeVar

from src.core.errors import TaskValidationError
from src.domain.task import (
    DEFAULT_CATEGORY_BY_DEPARTMENT,
    Department,
    TaskCategory,
    TaskPriority,
    TaskStatus,
)


E = TypeVar("E", bound=StrEnum)

_STATUS_ALIASES: dict[str, TaskStatus] = {
    "inprogress": TaskStatus.IN_PROGRESS,
    "started": TaskStatus.IN_PROGRESS,
    "done": TaskStatus.COMPLETED,
    "complete": TaskStatus.COMPLETED,
    "canceled": TaskStatus.CANCELLED,
    "open": TaskStatus.PENDING,
}

_PRIORITY_ALIASES: dict[str, TaskPriority] = {
    "normal": TaskPriority.MEDIUM,
    "critical": TaskPriority.URGENT,
}

_DEPARTMENT_ALIASES: dict[str, Department] = {
    "cleaning": Department.HOUSEKEEPING,
    "food": Department.KITCHEN,
    "food_service": Department.KITCHEN,
    "engineering": Department.MAINTENANCE,
    "front_desk": Department.SERVICE,
    "concierge": Department.SERVICE,
    "guest_services": Department.SERVICE,
    "room_service": Department.SERVICE,
}

_CATEGORY_ALIASES: dict[str, TaskCategory] = {
    "food_prep": TaskCategory.FOOD_PREPARATION,
    "ac": TaskCategory.HVAC,
}


def _fold(value: str) -> str:
    return "_".join(value.strip().lower().replace("-", " ").split())


def _lookup(raw: str | StrEnum, enum_type: type[E], aliases: dict[str, E], label: str) -> E:
    if isinstance(raw, enum_type):
        return raw
    if not isinstance(raw, str):
        msg = f"Invalid {label}: {raw!r}"
        raise TaskValidationError(msg)

    folded = _fold(raw)
    for member in enum_type:
        if _fold(member.value) == folded:
            return member
    if folded in aliases:
        return aliases[folded]

    msg = f"Unknown {label}: {raw!r}"
    raise TaskValidationError(msg)


def normalize_status(raw: str | TaskStatus) -> TaskStatus:
    """Canonicalize a status string (e.g. 'In Progress', 'done', 'canceled')."""
    return _lookup(raw, TaskStatus, _STATUS_ALIASES, "status")


def normalize_priority(raw: str | TaskPriority | None) -> TaskPriority:
    """Canonicalize a priority string; None means medium."""
    if raw is None:
        return TaskPriority.MEDIUM
    return _lookup(raw, TaskPriority, _PRIORITY_ALIASES, "priority")


def normalize_department(raw: str | Department | None) -> Department:
    """Canonicalize a department name or alias (e.g. 'engineering', 'front desk')."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        msg = "Department is required"
        raise TaskValidationError(msg)
    return _lookup(raw, Department, _DEPARTMENT_ALIASES, "department")


def normalize_category(raw: str | TaskCategory | None, *, department: Department) -> TaskCategory:
    """Canonicalize a category, inferring it from the department when absent."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return DEFAULT_CATEGORY_BY_DEPARTMENT[department]
    return _lookup(raw, TaskCategory, _CATEGORY_ALIASES, "category")
