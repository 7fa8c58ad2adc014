"""Task persistence behind a versioned repository interface."""

import logging
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from src.core import db_client
from src.core.config import constants
from src.core.errors import TaskNotFound
from src.domain.task import Department, Task, TaskPriority, TaskStatus


logger = logging.getLogger(__name__)

TASKS = "tasks"


class TaskFilter(BaseModel):
    """Criteria for finding tasks. All set criteria must match."""

    statuses: list[TaskStatus] | None = None
    departments: list[Department] | None = None
    priority: TaskPriority | None = None
    assigned_to: str | None = None
    unassigned: bool = False
    created_before: datetime | None = None
    visible_to: str | None = Field(default=None, description="Staff ID whose own assignments are visible")
    visible_department: Department | None = Field(
        default=None, description="Department also visible to that staff member"
    )
    limit: int = Field(default=constants.DEFAULT_PER_PAGE_LIMIT, ge=1)

    def matches(self, task: Task) -> bool:
        """Evaluate the filter against a task in memory."""
        checks = [
            self.statuses is None or task.status in self.statuses,
            self.departments is None or task.department in self.departments,
            self.priority is None or task.priority == self.priority,
            self.assigned_to is None or task.assigned_to == self.assigned_to,
            not self.unassigned or task.assigned_to is None,
            self.created_before is None or task.created_at < self.created_before,
        ]
        if self.visible_to is not None:
            checks.append(task.assigned_to == self.visible_to or task.department == self.visible_department)
        return all(checks)


class TaskStore(Protocol):
    """Versioned task repository.

    Every stored task carries an integer version; `conditional_update`
    succeeds only while the stored version equals the one the caller read.
    """

    async def get(self, task_id: str) -> tuple[Task, int]: ...

    async def conditional_update(self, task: Task, version: int) -> int | None: ...

    async def insert(self, task: Task) -> str: ...

    async def find(self, task_filter: TaskFilter) -> list[Task]: ...

    async def delete(self, task_id: str) -> None: ...


def _or_group(field: str, values: list[str]) -> str:
    if len(values) == 1:
        return f'{field} = "{values[0]}"'
    return "(" + " || ".join(f'{field} = "{v}"' for v in values) + ")"


def build_filter_query(task_filter: TaskFilter) -> tuple[str, str, list[db_client.SqlParam]]:
    """Translate a TaskFilter for `db_client.list_records`.

    Closed enum values and timestamps go through the filter syntax. Staff
    IDs are free-form text, so their conditions are returned as SQL with
    bound parameters instead.

    Returns:
        (filter_query, where, where_params)
    """
    parts = []
    if task_filter.statuses:
        parts.append(_or_group("status", [s.value for s in task_filter.statuses]))
    if task_filter.departments:
        parts.append(_or_group("department", [d.value for d in task_filter.departments]))
    if task_filter.priority:
        parts.append(f'priority = "{task_filter.priority.value}"')
    if task_filter.created_before:
        parts.append(f'created_at < "{task_filter.created_before.isoformat()}"')

    conditions = []
    params: list[db_client.SqlParam] = []
    if task_filter.assigned_to:
        conditions.append("assigned_to = ?")
        params.append(task_filter.assigned_to)
    if task_filter.unassigned:
        conditions.append("assigned_to IS NULL")
    if task_filter.visible_to:
        if task_filter.visible_department:
            conditions.append("(assigned_to = ? OR department = ?)")
            params.extend([task_filter.visible_to, task_filter.visible_department.value])
        else:
            conditions.append("assigned_to = ?")
            params.append(task_filter.visible_to)

    return " && ".join(parts), " AND ".join(conditions), params


def _task_to_row(task: Task) -> dict[str, object]:
    return {
        "department": task.department,
        "category": task.category,
        "status": task.status,
        "priority": task.priority,
        "assigned_to": task.assigned_to,
        "assigned_at": task.assigned_at,
        "completed_at": task.completed_at,
        "due_date": task.due_date,
        "parent_task_id": task.parent_task_id,
        "follow_up_task_id": task.follow_up_task_id,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
        "data": task.model_dump_json(),
    }


class SqliteTaskStore:
    """TaskStore backed by the aiosqlite client."""

    def __init__(self, *, db_path: str | None = None) -> None:
        self._db_path = db_path

    async def get(self, task_id: str) -> tuple[Task, int]:
        try:
            record = await db_client.get_record(collection=TASKS, record_id=task_id, db_path=self._db_path)
        except db_client.RecordNotFoundError as e:
            msg = f"Task not found: {task_id}"
            raise TaskNotFound(msg) from e
        return Task.model_validate_json(record["data"]), record["version"]

    async def conditional_update(self, task: Task, version: int) -> int | None:
        return await db_client.update_record_if_version(
            collection=TASKS,
            record_id=task.id,
            expected_version=version,
            data=_task_to_row(task),
            db_path=self._db_path,
        )

    async def insert(self, task: Task) -> str:
        await db_client.create_record(
            collection=TASKS,
            data={"id": task.id, "version": 1, **_task_to_row(task)},
            db_path=self._db_path,
        )
        logger.info("Inserted task", extra={"task_id": task.id, "department": task.department})
        return task.id

    async def find(self, task_filter: TaskFilter) -> list[Task]:
        filter_query, where, where_params = build_filter_query(task_filter)
        records = await db_client.list_records(
            collection=TASKS,
            filter_query=filter_query,
            where=where,
            where_params=where_params,
            sort="created_at ASC",
            per_page=task_filter.limit,
            db_path=self._db_path,
        )
        return [Task.model_validate_json(record["data"]) for record in records]

    async def delete(self, task_id: str) -> None:
        try:
            await db_client.delete_record(collection=TASKS, record_id=task_id, db_path=self._db_path)
        except db_client.RecordNotFoundError as e:
            msg = f"Task not found: {task_id}"
            raise TaskNotFound(msg) from e
