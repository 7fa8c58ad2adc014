"""Staff directory: who can take work in a department, and how loaded they are."""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Protocol

from src.core import db_client
from src.core.config import settings
from src.core.logging import span
from src.core.task_normalizer import normalize_department
from src.domain.create_models import StaffCreate
from src.domain.staff import ActorRole, StaffCandidate, StaffMember
from src.domain.task import OPEN_STATUSES, Department, TaskStatus, utc_now


logger = logging.getLogger(__name__)

STAFF = "staff"


class DirectoryService(Protocol):
    """Source of staff members and their current workload."""

    async def find_eligible_staff(self, department: Department) -> list[StaffCandidate]: ...

    async def get_staff(self, staff_id: str) -> StaffMember | None: ...


def _staff_from_record(record: dict[str, Any]) -> StaffMember:
    return StaffMember(
        id=record["id"],
        name=record["name"],
        department=record["department"],
        role=record["role"],
        is_active=bool(record["is_active"]),
        skills=json.loads(record["skills"] or "{}"),
    )


def completion_rate(*, completed: int, assigned: int, default: float) -> float:
    """Share of recently assigned tasks that were completed; default when nothing was assigned."""
    if assigned <= 0:
        return default
    return min(1.0, completed / assigned)


_OPEN_PLACEHOLDERS = ", ".join("?" for _ in OPEN_STATUSES)

# Least-recently-assigned staff come first (never-assigned before everyone),
# so equal scores rotate work through the department.
_ELIGIBLE_STAFF_QUERY = f"""
    SELECT
        s.id, s.name, s.department, s.skills,
        COALESCE(SUM(CASE WHEN t.status IN ({_OPEN_PLACEHOLDERS}) THEN 1 ELSE 0 END), 0) AS open_count,
        COALESCE(SUM(CASE WHEN t.assigned_at >= ? THEN 1 ELSE 0 END), 0) AS assigned_recent,
        COALESCE(SUM(CASE WHEN t.assigned_at >= ? AND t.status = ? THEN 1 ELSE 0 END), 0) AS completed_recent,
        MAX(t.assigned_at) AS last_assigned_at
    FROM staff s
    LEFT JOIN tasks t ON t.assigned_to = s.id
    WHERE s.department = ? AND s.is_active = 1 AND s.role = ?
    GROUP BY s.id
    ORDER BY last_assigned_at IS NOT NULL, last_assigned_at ASC, s.id ASC
"""  # noqa: S608 - only placeholders are interpolated


class SqliteDirectoryService:
    """DirectoryService computing workload and completion rates in SQL."""

    def __init__(self, *, db_path: str | None = None) -> None:
        self._db_path = db_path

    async def register_staff(self, staff: StaffCreate) -> StaffMember:
        """Add or replace a staff member in the directory."""
        with span("directory_service.register_staff"):
            member = StaffMember(
                id=staff.id,
                name=staff.name,
                department=normalize_department(staff.department),
                role=ActorRole(staff.role.strip().lower()),
                skills=staff.skills,
            )
            await db_client.upsert_record(
                collection=STAFF,
                data={
                    "id": member.id,
                    "name": member.name,
                    "department": member.department,
                    "role": member.role,
                    "is_active": 1,
                    "skills": member.skills,
                },
                db_path=self._db_path,
            )
            logger.info("Registered staff member", extra={"staff_id": member.id, "department": member.department})
            return member

    async def set_active(self, staff_id: str, *, is_active: bool) -> None:
        conn = await db_client.get_connection(db_path=self._db_path)
        await conn.execute("UPDATE staff SET is_active = ? WHERE id = ?", (1 if is_active else 0, staff_id))
        await conn.commit()

    async def get_staff(self, staff_id: str) -> StaffMember | None:
        try:
            record = await db_client.get_record(collection=STAFF, record_id=staff_id, db_path=self._db_path)
        except db_client.RecordNotFoundError:
            return None
        return _staff_from_record(record)

    async def find_eligible_staff(self, department: Department, *, now: datetime | None = None) -> list[StaffCandidate]:
        """Active staff-role members of a department with their current workload."""
        with span("directory_service.find_eligible_staff"):
            cutoff = ((now or utc_now()) - timedelta(days=settings.completion_rate_window_days)).isoformat()
            params = [
                *(status.value for status in OPEN_STATUSES),
                cutoff,
                cutoff,
                TaskStatus.COMPLETED.value,
                department.value,
                ActorRole.STAFF.value,
            ]
            rows = await db_client.fetch_all(_ELIGIBLE_STAFF_QUERY, params, db_path=self._db_path)

            candidates = [
                StaffCandidate(
                    staff_id=row["id"],
                    name=row["name"],
                    department=row["department"],
                    current_open_task_count=row["open_count"],
                    recent_completion_rate=completion_rate(
                        completed=row["completed_recent"],
                        assigned=row["assigned_recent"],
                        default=settings.default_completion_rate,
                    ),
                    skills=json.loads(row["skills"] or "{}"),
                    last_assigned_at=row["last_assigned_at"],
                )
                for row in rows
            ]
            logger.debug("Found %d eligible staff in %s", len(candidates), department)
            return candidates
