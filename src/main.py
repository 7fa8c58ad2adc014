"""Staff task engine - assignment, lifecycle and workflow chaining for hotel operations."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.db_client import close_connection, init_db
from src.core.errors import TaskEngineError
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.scheduler import JOB_NAMES, start_scheduler, stop_scheduler
from src.core.scheduler_tracker import job_tracker
from src.interface.task_router import router as task_router
from src.interface.task_router import task_engine_error_handler
from src.services.directory_service import SqliteDirectoryService
from src.services.notification_service import create_notifier
from src.services.task_engine import TaskEngine
from src.services.task_store import SqliteTaskStore


logger = logging.getLogger(__name__)


def build_engine() -> TaskEngine:
    """Wire the engine to the SQLite store and directory and the configured notifier."""
    return TaskEngine(
        store=SqliteTaskStore(),
        directory=SqliteDirectoryService(),
        notifier=create_notifier(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    engine = build_engine()
    app.state.engine = engine
    start_scheduler(engine)
    yield
    # Shutdown
    stop_scheduler()
    await engine.outbox.drain()
    await close_connection()


app = FastAPI(
    title="staff-task-engine",
    description="Staff task assignment and workflow engine",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(task_router)
app.add_exception_handler(TaskEngineError, task_engine_error_handler)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    job_statuses = {}
    for job_name in JOB_NAMES:
        job_statuses[job_name] = await job_tracker.get_job_status(job_name)

    dlq = job_tracker.get_dead_letter_queue()

    has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())

    overall_status = "degraded" if has_failures else "healthy"
    if len(dlq) > 0:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "jobs": job_statuses,
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )


@app.get("/health/effects")
async def effects_health_check() -> JSONResponse:
    """Background effect counters (notifications, workflow chaining)."""
    engine: TaskEngine | None = getattr(app.state, "engine", None)
    if engine is None:
        return JSONResponse(content={"status": "starting"}, status_code=503)

    stats = engine.outbox.stats()
    failed = sum(counters.failed for counters in stats.effects.values())
    return JSONResponse(
        content={"status": "degraded" if failed else "healthy", **stats.model_dump(mode="json")},
        status_code=200,
    )
