from src.services import (
    allocation_service,
    directory_service,
    handoff_service,
    notification_service,
    scoring_service,
    task_state_machine,
    task_store,
    workflow_service,
)


__all__ = [
    "allocation_service",
    "directory_service",
    "handoff_service",
    "notification_service",
    "scoring_service",
    "task_state_machine",
    "task_store",
    "workflow_service",
]
