"""Centralized message templates for task notifications.

All user-facing notification strings are defined here so the wording
can be changed in one place.
"""

from enum import StrEnum

from src.domain.task import Task


class TaskEvent(StrEnum):
    """Notification event emitted after a committed task change."""

    TASK_CREATED = "task_created"
    TASK_ASSIGNED = "task_assigned"
    TASK_ACCEPTED = "task_accepted"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    TASK_HANDOFF = "task_handoff"
    HANDOFF_ACCEPTED = "handoff_accepted"


def notification_title(*, event: TaskEvent, task: Task) -> str:
    match event:
        case TaskEvent.TASK_CREATED:
            return f"New Task: {task.title}"
        case TaskEvent.TASK_ASSIGNED:
            return f"New Task Assigned: {task.title}"
        case TaskEvent.TASK_ACCEPTED:
            return f"Task Accepted: {task.title}"
        case TaskEvent.TASK_UPDATED:
            return f"Task Updated: {task.title}"
        case TaskEvent.TASK_COMPLETED:
            return f"Task Completed: {task.title}"
        case TaskEvent.TASK_HANDOFF:
            return f"Task Handoff: {task.title}"
        case TaskEvent.HANDOFF_ACCEPTED:
            return f"Handoff Accepted: {task.title}"
    return f"Task Notification: {task.title}"


def notification_message(*, event: TaskEvent, task: Task) -> str:
    """Build the notification body for an event."""
    where = task.room_number and f"room {task.room_number}" or (task.location or "an unspecified location")
    match event:
        case TaskEvent.TASK_CREATED:
            return f'A new {task.priority} priority {task.department} task was created: "{task.title}".'
        case TaskEvent.TASK_ASSIGNED:
            return f'You have been assigned a new {task.priority} priority task: "{task.title}" in {where}.'
        case TaskEvent.TASK_ACCEPTED:
            return f'Task "{task.title}" has been accepted and is now in progress.'
        case TaskEvent.TASK_UPDATED:
            return f'Task "{task.title}" has been updated. Current status: {task.status}.'
        case TaskEvent.TASK_COMPLETED:
            return f'Task "{task.title}" has been marked as completed.'
        case TaskEvent.TASK_HANDOFF:
            return f'Task "{task.title}" has been handed off to {task.handoff_department} department.'
        case TaskEvent.HANDOFF_ACCEPTED:
            return f"The handoff for task {task.title} has been accepted."
    return f'Task "{task.title}" notification.'
