"""Workflow chaining: follow-up tasks spawned by completed tasks.

A completed task whose department and category match a rule spawns one
follow-up task in another department (kitchen food goes to service for
delivery, maintenance work goes to housekeeping for cleanup). Chains are
one hop deep: follow-ups never spawn follow-ups of their own.
"""

import logging
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from src.core.config import constants
from src.core.errors import ConcurrentModification
from src.core.logging import span
from src.domain.task import (
    AssignmentSource,
    Department,
    Task,
    TaskCategory,
    TaskLocation,
    TaskPriority,
    TaskStatus,
)
from src.services.task_store import TaskStore


logger = logging.getLogger(__name__)


class WorkflowType:
    """Names of the built-in chaining rules."""

    KITCHEN_TO_SERVICE = "kitchen_to_service"
    MAINTENANCE_TO_CLEANING = "maintenance_to_cleaning"


class FollowUpRule(BaseModel):
    """Maps a completed task to the follow-up it should spawn."""

    workflow_type: str
    source_department: Department
    source_categories: frozenset[TaskCategory] | None = Field(
        default=None, description="Categories that trigger the rule; None matches any"
    )
    target_department: Department
    target_category: TaskCategory
    due_in_minutes: int
    estimated_duration: int
    title_template: str
    description_template: str

    def matches(self, task: Task) -> bool:
        if task.department != self.source_department:
            return False
        return self.source_categories is None or task.category in self.source_categories


FOLLOW_UP_RULES: list[FollowUpRule] = [
    FollowUpRule(
        workflow_type=WorkflowType.KITCHEN_TO_SERVICE,
        source_department=Department.KITCHEN,
        source_categories=frozenset({TaskCategory.FOOD_PREPARATION, TaskCategory.COOKING}),
        target_department=Department.SERVICE,
        target_category=TaskCategory.ROOM_SERVICE,
        due_in_minutes=constants.KITCHEN_FOLLOW_UP_DUE_MINUTES,
        estimated_duration=constants.KITCHEN_FOLLOW_UP_ESTIMATE_MINUTES,
        title_template="Serve Food - {place}",
        description_template="Deliver the food prepared for: {parent_title}",
    ),
    FollowUpRule(
        workflow_type=WorkflowType.MAINTENANCE_TO_CLEANING,
        source_department=Department.MAINTENANCE,
        target_department=Department.HOUSEKEEPING,
        target_category=TaskCategory.CLEANING,
        due_in_minutes=constants.MAINTENANCE_FOLLOW_UP_DUE_MINUTES,
        estimated_duration=constants.MAINTENANCE_FOLLOW_UP_ESTIMATE_MINUTES,
        title_template="Clean After Maintenance - {place}",
        description_template="Clean the area after maintenance work: {parent_title}",
    ),
]


def find_rule(task: Task) -> FollowUpRule | None:
    return next((rule for rule in FOLLOW_UP_RULES if rule.matches(task)), None)


def should_chain(task: Task) -> bool:
    """Whether a task, as committed, is due to spawn its follow-up."""
    return (
        task.status == TaskStatus.COMPLETED
        and task.auto_create_follow_up
        and task.follow_up_task_id is None
        and find_rule(task) is not None
    )


def _place(task: Task, rule: FollowUpRule) -> str:
    if task.room_number:
        return task.room_number
    if rule.workflow_type == WorkflowType.KITCHEN_TO_SERVICE:
        return "Guest Request"
    return task.location.value if task.location else "Area"


def build_follow_up(parent: Task, rule: FollowUpRule, *, now: datetime) -> Task:
    """Synthesize the unassigned follow-up task for a completed parent."""
    priority = TaskPriority.URGENT if parent.is_urgent else parent.priority
    return Task(
        title=rule.title_template.format(place=_place(parent, rule)),
        description=rule.description_template.format(parent_title=parent.title),
        department=rule.target_department,
        category=rule.target_category,
        priority=priority,
        status=TaskStatus.PENDING,
        location=parent.location or TaskLocation.ROOM,
        room_number=parent.room_number,
        created_by=parent.completed_by or "system",
        assignment_source=AssignmentSource.SYSTEM,
        due_date=now + timedelta(minutes=rule.due_in_minutes),
        estimated_duration=rule.estimated_duration,
        is_urgent=parent.is_urgent,
        auto_create_follow_up=False,
        parent_task_id=parent.id,
        workflow_type=rule.workflow_type,
        tags=list(parent.tags),
        created_at=now,
        updated_at=now,
    )


async def chain_follow_up(*, store: TaskStore, parent_id: str, now: datetime) -> Task | None:
    """Create and link the follow-up of a completed task, at most once.

    The follow-up is inserted first; the parent is then linked with a
    conditional write that only succeeds while its `follow_up_task_id` is
    still empty. If another writer linked a follow-up first, or the link
    write loses twice, the inserted follow-up is deleted again.

    Returns:
        The linked follow-up, or None if no follow-up is due

    Raises:
        ConcurrentModification: The parent kept changing while linking
    """
    with span("workflow_service.chain_follow_up"):
        parent, version = await store.get(parent_id)
        rule = find_rule(parent)
        if rule is None or not should_chain(parent):
            return None

        child = build_follow_up(parent, rule, now=now)
        await store.insert(child)

        for attempt in range(constants.MAX_WRITE_ATTEMPTS):
            if attempt > 0:
                parent, version = await store.get(parent_id)
            if not should_chain(parent):
                logger.info("Parent %s no longer needs a follow-up; discarding %s", parent_id, child.id)
                await store.delete(child.id)
                return None

            linked = parent.model_copy(update={"follow_up_task_id": child.id, "updated_at": now})
            if await store.conditional_update(linked, version) is not None:
                logger.info(
                    "Created %s follow-up %s for task %s",
                    rule.workflow_type,
                    child.id,
                    parent_id,
                    extra={"task_id": parent_id, "follow_up_task_id": child.id},
                )
                return child

        await store.delete(child.id)
        msg = f"Could not link follow-up for task {parent_id}"
        raise ConcurrentModification(msg)
