"""HTTP interface for the task engine."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from src.core.errors import TaskEngineError, classify_error_with_response
from src.domain.create_models import TaskCreate
from src.domain.staff import Actor, ActorRole, StaffRecommendation
from src.domain.task import TaskView
from src.domain.update_models import BulkAssignRequest, HandoffRequest, NoteCreate, TaskAssign, TaskStatusUpdate
from src.models.service_models import BulkAssignmentResult
from src.services.task_engine import TaskEngine


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_engine(request: Request) -> TaskEngine:
    """Engine built during application startup."""
    engine: TaskEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Task engine not ready")
    return engine


def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Actor identity forwarded by the trusted upstream gateway."""
    if not x_actor_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Actor-Id header")
    try:
        role = ActorRole((x_actor_role or ActorRole.STAFF).strip().lower())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role: {x_actor_role}") from e
    return Actor(id=x_actor_id, role=role)


EngineDep = Annotated[TaskEngine, Depends(get_engine)]
ActorDep = Annotated[Actor, Depends(get_actor)]


async def task_engine_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Map engine errors to their HTTP status with a structured body."""
    http_status = exc.http_status if isinstance(exc, TaskEngineError) else status.HTTP_500_INTERNAL_SERVER_ERROR
    response = classify_error_with_response(exc)
    logger.info("task_engine_error", extra={"code": response.code, "status": http_status})
    return JSONResponse(status_code=http_status, content=response.model_dump(mode="json"))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreate, engine: EngineDep, actor: ActorDep) -> TaskView:
    return await engine.create_task(payload, actor)


@router.get("")
async def list_tasks(
    engine: EngineDep,
    actor: ActorDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    department: str | None = None,
    priority: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[TaskView]:
    return await engine.list_tasks(actor, status=status_filter, department=department, priority=priority, limit=limit)


@router.post("/assign-pending")
async def assign_pending_tasks(
    engine: EngineDep,
    actor: ActorDep,
    payload: BulkAssignRequest | None = None,
) -> BulkAssignmentResult:
    if not actor.is_privileged:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only managers can bulk assign tasks")
    departments = payload.departments if payload else None
    return await engine.assign_pending_tasks(departments)


@router.get("/{task_id}")
async def get_task(task_id: str, engine: EngineDep, _actor: ActorDep) -> TaskView:
    return await engine.get_task(task_id)


@router.post("/{task_id}/assign")
async def assign_task(task_id: str, payload: TaskAssign, engine: EngineDep, actor: ActorDep) -> TaskView:
    return await engine.assign_task(task_id, payload.staff_id, actor, payload.notes)


@router.post("/{task_id}/allocate")
async def allocate_task(task_id: str, engine: EngineDep, _actor: ActorDep) -> TaskView:
    return await engine.allocate(task_id)


@router.post("/{task_id}/status")
async def update_status(task_id: str, payload: TaskStatusUpdate, engine: EngineDep, actor: ActorDep) -> TaskView:
    return await engine.update_status(
        task_id,
        payload.status,
        actor,
        payload.notes,
        payload.actual_duration,
        handoff_department=payload.handoff_department,
    )


@router.post("/{task_id}/handoff")
async def request_handoff(task_id: str, payload: HandoffRequest, engine: EngineDep, actor: ActorDep) -> TaskView:
    return await engine.request_handoff(task_id, payload.target_department, actor, payload.reason)


@router.post("/{task_id}/handoff/accept")
async def accept_handoff(task_id: str, engine: EngineDep, actor: ActorDep) -> TaskView:
    return await engine.accept_handoff(task_id, actor)


@router.post("/{task_id}/escalate")
async def escalate_task(task_id: str, engine: EngineDep, actor: ActorDep) -> TaskView:
    return await engine.escalate(task_id, actor)


@router.post("/{task_id}/notes")
async def add_note(task_id: str, payload: NoteCreate, engine: EngineDep, actor: ActorDep) -> TaskView:
    return await engine.add_note(task_id, payload.content, actor)


@router.get("/{task_id}/recommendations")
async def recommend_staff(
    task_id: str,
    engine: EngineDep,
    _actor: ActorDep,
    limit: Annotated[int | None, Query(ge=1, le=50)] = None,
) -> list[StaffRecommendation]:
    return await engine.recommend_staff(task_id, limit)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, engine: EngineDep, actor: ActorDep) -> None:
    await engine.delete_task(task_id, actor)
