"""Tests for the scheduled stale task job."""

from unittest.mock import AsyncMock, patch

import pytest

from src.core import scheduler
from src.domain.task import Department, TaskStatus
from src.models.service_models import BulkAssignmentResult


@pytest.mark.unit
class TestAutoAssignStaleTasks:
    @pytest.mark.asyncio
    async def test_calls_engine_with_configured_threshold(self):
        engine = AsyncMock()
        engine.auto_assign_stale_tasks.return_value = BulkAssignmentResult(assigned=["t1", "t2"])

        with patch.object(scheduler.settings, "stale_task_minutes", 7):
            await scheduler.auto_assign_stale_tasks(engine)

        engine.auto_assign_stale_tasks.assert_awaited_once_with(older_than_minutes=7)

    @pytest.mark.asyncio
    async def test_run_job_records_success(self):
        engine = AsyncMock()
        engine.auto_assign_stale_tasks.return_value = BulkAssignmentResult()

        with patch("src.core.scheduler.retry_job_with_backoff", new=AsyncMock()) as mock_retry:
            await scheduler.run_auto_assign_job(engine)

        job_func, job_name = mock_retry.await_args.args
        assert job_name == scheduler.AUTO_ASSIGN_JOB
        await job_func()
        engine.auto_assign_stale_tasks.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_assigns_stale_pending_tasks_end_to_end(self, engine, store, directory, make_task, clock):
        directory.add("alice", Department.MAINTENANCE)
        stale = make_task(title="Old leak")
        store.put(stale)
        clock.advance(minutes=30)
        fresh = make_task(title="New leak")
        store.put(fresh)

        with patch.object(scheduler.settings, "stale_task_minutes", 5):
            await scheduler.auto_assign_stale_tasks(engine)

        assert (await store.get(stale.id))[0].status == TaskStatus.ASSIGNED
        assert (await store.get(fresh.id))[0].status == TaskStatus.PENDING
