"""Scheduler for automated jobs (stale task auto-assignment)."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.core.config import settings
from src.core.scheduler_tracker import retry_job_with_backoff
from src.services.task_engine import TaskEngine


logger = logging.getLogger(__name__)

AUTO_ASSIGN_JOB = "auto_assign_stale_tasks"

# Jobs reported on the scheduler health endpoint
JOB_NAMES = [AUTO_ASSIGN_JOB]

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def auto_assign_stale_tasks(engine: TaskEngine) -> None:
    """Allocate pending tasks nobody picked up within the stale threshold.

    Runs every `auto_assign_interval_minutes`.
    """
    logger.debug("Running stale task auto-assignment job")
    result = await engine.auto_assign_stale_tasks(older_than_minutes=settings.stale_task_minutes)
    logger.info(
        "Completed stale task auto-assignment: %d assigned, %d failed",
        result.assigned_count,
        len(result.failed),
    )


async def run_auto_assign_job(engine: TaskEngine) -> None:
    """Scheduled entry point wrapping the job with retries and tracking."""
    await retry_job_with_backoff(lambda: auto_assign_stale_tasks(engine), AUTO_ASSIGN_JOB)


def start_scheduler(engine: TaskEngine) -> None:
    """Start the scheduler and register all jobs.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    if settings.enable_auto_assign_job:
        scheduler.add_job(
            run_auto_assign_job,
            args=[engine],
            trigger=IntervalTrigger(minutes=settings.auto_assign_interval_minutes),
            id=AUTO_ASSIGN_JOB,
            name="Auto-Assign Stale Tasks",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled stale task job: every %d minute(s)", settings.auto_assign_interval_minutes)

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    logger.info("Stopping scheduler")
    if scheduler.running:
        scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
