"""Notifier gateways that deliver task events to staff."""

import logging
from typing import Protocol

import httpx
from pydantic import BaseModel, Field

from src.core.config import Settings, constants, settings
from src.core.logging import span
from src.core.message_templates import TaskEvent, notification_message, notification_title
from src.domain.task import Task


logger = logging.getLogger(__name__)


class TaskNotification(BaseModel):
    """Payload delivered to staff for a task event."""

    event_type: TaskEvent = Field(..., description="Event that triggered the notification")
    task_id: str = Field(..., description="Task the event refers to")
    title: str = Field(..., description="Short notification title")
    message: str = Field(..., description="Notification body")
    priority: str = Field(..., description="Task priority at the time of the event")
    recipients: list[str] = Field(default_factory=list, description="Staff IDs to notify")
    room_number: str | None = None
    location: str | None = None
    estimated_duration: int | None = None


def build_notification(*, event_type: TaskEvent, task: Task, recipients: list[str]) -> TaskNotification:
    return TaskNotification(
        event_type=event_type,
        task_id=task.id,
        title=notification_title(event=event_type, task=task),
        message=notification_message(event=event_type, task=task),
        priority=task.priority,
        recipients=recipients,
        room_number=task.room_number,
        location=task.location,
        estimated_duration=task.estimated_duration,
    )


class NotifierGateway(Protocol):
    """Delivers task events. Implementations may raise; callers count and log failures."""

    async def notify(self, event_type: TaskEvent, task: Task, recipients: list[str]) -> None: ...


class LoggingNotifier:
    """Notifier that only records notifications in the application log."""

    async def notify(self, event_type: TaskEvent, task: Task, recipients: list[str]) -> None:
        notification = build_notification(event_type=event_type, task=task, recipients=recipients)
        logger.info(
            "Task notification: %s",
            notification.title,
            extra={"event_type": event_type, "task_id": task.id, "recipients": recipients},
        )


class WebhookNotifier:
    """Notifier that POSTs each notification as JSON to a configured endpoint."""

    def __init__(self, *, url: str, token: str | None = None, client: httpx.AsyncClient | None = None) -> None:
        self._url = url
        self._token = token
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def notify(self, event_type: TaskEvent, task: Task, recipients: list[str]) -> None:
        """Send one notification.

        Raises:
            httpx.HTTPError: If the endpoint is unreachable or answers with an error status
        """
        with span("notification_service.webhook_notify"):
            notification = build_notification(event_type=event_type, task=task, recipients=recipients)
            payload = notification.model_dump(mode="json")

            if self._client is not None:
                response = await self._client.post(self._url, json=payload, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                    response = await client.post(self._url, json=payload, headers=self._headers())

            response.raise_for_status()
            logger.info(
                "Delivered %s notification for task %s to %d recipient(s)",
                event_type,
                task.id,
                len(recipients),
            )


def create_notifier(config: Settings | None = None) -> NotifierGateway:
    """Build the notifier selected by configuration.

    Raises:
        ValueError: A production webhook is configured without a token
    """
    config = config or settings
    if config.notifier_webhook_url:
        token = config.notifier_webhook_token
        if config.is_production:
            token = config.require_credential("notifier_webhook_token", "Notifier webhook")
        logger.info("Using webhook notifier", extra={"url": config.notifier_webhook_url})
        return WebhookNotifier(url=config.notifier_webhook_url, token=token)
    return LoggingNotifier()
