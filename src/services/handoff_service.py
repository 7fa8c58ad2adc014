"""Cross-department handoffs and priority escalation."""

import logging
from datetime import datetime

from src.core.errors import InvalidTransition, PermissionDenied, TaskValidationError
from src.domain.staff import Actor, ActorRole
from src.domain.task import Department, Task, TaskPriority, TaskStatus
from src.services.directory_service import DirectoryService
from src.services.task_state_machine import apply_transition, ensure_editable, reject_if_locked_or_cancelled


logger = logging.getLogger(__name__)

HANDOFF_SOURCE_STATUSES: frozenset[TaskStatus] = frozenset(
    {TaskStatus.PENDING, TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS, TaskStatus.HANDOFF_ACCEPTED}
)

PRIORITY_LADDER: list[TaskPriority] = [
    TaskPriority.LOW,
    TaskPriority.MEDIUM,
    TaskPriority.HIGH,
    TaskPriority.URGENT,
]


def next_priority(priority: TaskPriority) -> TaskPriority:
    """One step up the priority ladder, saturating at urgent."""
    index = PRIORITY_LADDER.index(priority)
    return PRIORITY_LADDER[min(index + 1, len(PRIORITY_LADDER) - 1)]


def request_handoff(
    task: Task,
    *,
    target_department: Department,
    actor: Actor,
    reason: str | None,
    now: datetime,
    grace_seconds: int | None = None,
) -> Task:
    """Move a task to handoff_pending towards another department.

    Raises:
        GracePeriodExpired: The task is completed and locked
        InvalidTransition: The task's status does not allow a handoff
        PermissionDenied: The actor is neither the assignee nor a manager
        TaskValidationError: The target is the task's own department
    """
    if task.status not in HANDOFF_SOURCE_STATUSES:
        if task.status == TaskStatus.COMPLETED:
            ensure_editable(task, now, grace_seconds=grace_seconds)
        msg = f"Cannot hand off task {task.id} in status {task.status}"
        raise InvalidTransition(msg)

    if actor.id != task.assigned_to and not actor.is_privileged:
        msg = f"Only the assignee or a manager can hand off task {task.id}"
        raise PermissionDenied(msg)

    if target_department == task.department:
        msg = f"Task {task.id} already belongs to {target_department}"
        raise TaskValidationError(msg)

    return apply_transition(
        task,
        TaskStatus.HANDOFF_PENDING,
        actor=actor,
        now=now,
        notes=reason,
        handoff_department=target_department,
        grace_seconds=grace_seconds,
    )


async def check_handoff_acceptor(*, directory: DirectoryService, task: Task, actor: Actor) -> None:
    """Ensure the actor may accept a pending handoff.

    Managers and admins always may; staff must be active members of the
    target department.

    Raises:
        InvalidTransition: The task is not awaiting a handoff
        PermissionDenied: The actor is not eligible in the target department
    """
    if task.status != TaskStatus.HANDOFF_PENDING:
        msg = f"Task {task.id} has no pending handoff"
        raise InvalidTransition(msg)

    if actor.is_privileged:
        return

    member = await directory.get_staff(actor.id)
    eligible = (
        member is not None
        and member.is_active
        and member.role == ActorRole.STAFF
        and member.department == task.handoff_department
    )
    if not eligible:
        msg = f"Only {task.handoff_department} staff can accept the handoff of task {task.id}"
        raise PermissionDenied(msg)


def accept_handoff(task: Task, *, actor: Actor, now: datetime) -> Task:
    """Apply an accepted handoff: the actor owns the task in the target department."""
    return apply_transition(task, TaskStatus.HANDOFF_ACCEPTED, actor=actor, now=now)


def escalate(task: Task, *, actor: Actor, now: datetime, grace_seconds: int | None = None) -> Task:
    """Raise priority one step and mark the task urgent once it reaches urgent.

    Escalating an urgent task leaves its priority unchanged.

    Raises:
        InvalidTransition: The task is cancelled
        GracePeriodExpired: The task is completed and locked
    """
    reject_if_locked_or_cancelled(task, now, grace_seconds=grace_seconds)

    priority = next_priority(task.priority)
    logger.info(
        "Escalating task %s from %s to %s",
        task.id,
        task.priority,
        priority,
        extra={"task_id": task.id, "actor_id": actor.id},
    )
    return task.model_copy(
        update={
            "priority": priority,
            "is_urgent": task.is_urgent or priority == TaskPriority.URGENT,
            "updated_at": now,
        }
    )
