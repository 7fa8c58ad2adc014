"""Pure state transition functions for the task lifecycle.

Nothing here performs I/O. Each function takes the task as read from the
store and returns a new task to be written with a conditional update;
the input task is never mutated.
"""

import math
from datetime import datetime

from src.core.config import settings
from src.core.errors import GracePeriodExpired, InvalidTransition, PermissionDenied, TaskValidationError
from src.domain.staff import Actor
from src.domain.task import (
    HANDOFF_STATUSES,
    AssignmentEntry,
    AssignmentSource,
    Department,
    StatusChange,
    Task,
    TaskStatus,
)


ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset(
        {TaskStatus.ASSIGNED, TaskStatus.COMPLETED, TaskStatus.HANDOFF_PENDING, TaskStatus.CANCELLED}
    ),
    TaskStatus.ASSIGNED: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.HANDOFF_PENDING, TaskStatus.CANCELLED}
    ),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.HANDOFF_PENDING, TaskStatus.CANCELLED}),
    TaskStatus.HANDOFF_PENDING: frozenset({TaskStatus.HANDOFF_ACCEPTED, TaskStatus.CANCELLED}),
    TaskStatus.HANDOFF_ACCEPTED: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.HANDOFF_PENDING, TaskStatus.CANCELLED}
    ),
    # Only while the post-completion grace period is running
    TaskStatus.COMPLETED: frozenset(
        {TaskStatus.PENDING, TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}
    ),
    TaskStatus.CANCELLED: frozenset(),
}

ASSIGNABLE_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.PENDING, TaskStatus.ASSIGNED})


def grace_period_seconds() -> int:
    return settings.completion_grace_period_minutes * 60


def remaining_seconds(task: Task, now: datetime, *, grace_seconds: int | None = None) -> int:
    """Seconds left in the post-completion edit window; 0 for tasks that are not completed."""
    if task.status != TaskStatus.COMPLETED or task.completed_at is None:
        return 0
    window = grace_period_seconds() if grace_seconds is None else grace_seconds
    elapsed = (now - task.completed_at).total_seconds()
    return max(0, math.ceil(window - elapsed))


def can_edit(task: Task, now: datetime, *, grace_seconds: int | None = None) -> tuple[bool, int]:
    """Whether the task may still be modified, and the seconds left in its edit window."""
    remaining = remaining_seconds(task, now, grace_seconds=grace_seconds)
    return task.status != TaskStatus.COMPLETED or remaining > 0, remaining


def ensure_editable(task: Task, now: datetime, *, grace_seconds: int | None = None) -> None:
    """Raise GracePeriodExpired if the task is completed and its edit window has closed."""
    editable, _ = can_edit(task, now, grace_seconds=grace_seconds)
    if not editable:
        msg = f"Task {task.id} was completed more than the grace period ago and can no longer be edited"
        raise GracePeriodExpired(msg)


def _clear_handoff(update: dict[str, object]) -> None:
    update.update(handoff_department=None, handoff_reason=None, handoff_from=None, handoff_to=None)


def apply_transition(
    task: Task,
    new_status: TaskStatus,
    *,
    actor: Actor,
    now: datetime,
    notes: str | None = None,
    actual_duration: int | None = None,
    handoff_department: Department | None = None,
    grace_seconds: int | None = None,
) -> Task:
    """Validate and apply a status change.

    Raises:
        InvalidTransition: Same status, a transition not in the table, or a
            missing precondition (e.g. `assigned` without an assignee)
        GracePeriodExpired: Leaving `completed` after the edit window closed
        PermissionDenied: Accepting a task assigned to someone else
        TaskValidationError: Handoff without a target department
    """
    current = task.status
    if new_status == current:
        msg = f"Task {task.id} is already {current}"
        raise InvalidTransition(msg)

    if current == TaskStatus.COMPLETED:
        ensure_editable(task, now, grace_seconds=grace_seconds)

    if new_status not in ALLOWED_TRANSITIONS[current]:
        msg = f"Cannot move task {task.id} from {current} to {new_status}"
        raise InvalidTransition(msg)

    update: dict[str, object] = {"status": new_status, "updated_at": now}
    assignment_history = list(task.assignment_history)

    if new_status == TaskStatus.ASSIGNED and task.assigned_to is None:
        msg = f"Cannot move task {task.id} to assigned without an assignee"
        raise InvalidTransition(msg)

    if current == TaskStatus.ASSIGNED and new_status == TaskStatus.IN_PROGRESS:
        if actor.id != task.assigned_to and not actor.is_privileged:
            msg = f"Only the assignee or a manager can accept task {task.id}"
            raise PermissionDenied(msg)
        update.update(accepted_by=actor.id, accepted_at=now)

    if new_status == TaskStatus.COMPLETED:
        if actual_duration is None:
            actual_duration = math.floor((now - task.created_at).total_seconds() / 60)
        update.update(completed_at=now, completed_by=actor.id, actual_duration=max(0, actual_duration))
    elif current == TaskStatus.COMPLETED:
        update.update(completed_at=None, completed_by=None)

    if new_status == TaskStatus.HANDOFF_PENDING:
        target = handoff_department or task.handoff_department
        if target is None:
            msg = "A target department is required to hand off a task"
            raise TaskValidationError(msg)
        update.update(
            handoff_department=target,
            handoff_reason=notes,
            handoff_from=actor.id,
            handoff_to=None,
        )
    elif new_status == TaskStatus.HANDOFF_ACCEPTED:
        update.update(
            assigned_to=actor.id,
            assigned_by=actor.id,
            assignment_source=AssignmentSource.USER,
            assigned_at=now,
            handoff_to=actor.id,
            department=task.handoff_department,
        )
        assignment_history.append(
            AssignmentEntry(
                assigned_to=actor.id,
                assigned_by=actor.id,
                source=AssignmentSource.USER,
                status=new_status,
                notes=notes or f"Accepted handoff from {task.department}",
                timestamp=now,
            )
        )
    elif current in HANDOFF_STATUSES:
        _clear_handoff(update)

    update["assignment_history"] = assignment_history
    update["status_history"] = [
        *task.status_history,
        StatusChange(from_status=current, to_status=new_status, changed_by=actor.id, changed_at=now, reason=notes),
    ]
    return task.model_copy(update=update)


def apply_assignment(
    task: Task,
    staff_id: str,
    *,
    actor: Actor,
    source: AssignmentSource,
    now: datetime,
    notes: str | None = None,
    grace_seconds: int | None = None,
) -> Task:
    """Assign (or reassign) a pending or assigned task; the result is `assigned`.

    Raises:
        GracePeriodExpired: The task is completed and locked
        InvalidTransition: Any other status, or the task is already assigned to staff_id
    """
    if task.status not in ASSIGNABLE_STATUSES:
        if task.status == TaskStatus.COMPLETED:
            ensure_editable(task, now, grace_seconds=grace_seconds)
        msg = f"Cannot assign task {task.id} in status {task.status}"
        raise InvalidTransition(msg)

    if task.status == TaskStatus.ASSIGNED and task.assigned_to == staff_id:
        msg = f"Task {task.id} is already assigned to {staff_id}"
        raise InvalidTransition(msg)

    status_history = list(task.status_history)
    if task.status != TaskStatus.ASSIGNED:
        status_history.append(
            StatusChange(
                from_status=task.status,
                to_status=TaskStatus.ASSIGNED,
                changed_by=actor.id,
                changed_at=now,
                reason=notes,
            )
        )

    return task.model_copy(
        update={
            "status": TaskStatus.ASSIGNED,
            "assigned_to": staff_id,
            "assigned_by": actor.id,
            "assignment_source": source,
            "assigned_at": now,
            "updated_at": now,
            "assignment_history": [
                *task.assignment_history,
                AssignmentEntry(
                    assigned_to=staff_id,
                    assigned_by=actor.id,
                    source=source,
                    status=TaskStatus.ASSIGNED,
                    notes=notes,
                    timestamp=now,
                ),
            ],
            "status_history": status_history,
        }
    )


def reject_if_locked_or_cancelled(task: Task, now: datetime, *, grace_seconds: int | None = None) -> None:
    """Guard for edits that are not status changes (escalation, notes)."""
    if task.status == TaskStatus.CANCELLED:
        msg = f"Task {task.id} is cancelled"
        raise InvalidTransition(msg)
    ensure_editable(task, now, grace_seconds=grace_seconds)


