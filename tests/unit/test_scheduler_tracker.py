"""Tests for scheduler job tracking and retry functionality."""

from unittest.mock import AsyncMock, patch

import pytest

from src.core.scheduler_tracker import JobTracker, retry_job_with_backoff


@pytest.fixture
def job_tracker() -> JobTracker:
    """Create a fresh in-memory job tracker for testing."""
    return JobTracker()


@pytest.fixture(autouse=True)
def no_backoff_sleep():
    """Skip the real backoff delays between retries."""
    with patch("src.core.scheduler_tracker.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        yield mock_sleep


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_job_start(job_tracker: JobTracker) -> None:
    """Test recording job start."""
    await job_tracker.record_job_start("test_job")

    status = await job_tracker.get_job_status("test_job")
    assert status["currently_running"] is True
    assert status["current_run_started"] is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_job_success(job_tracker: JobTracker) -> None:
    """Test recording successful job execution."""
    await job_tracker.record_job_start("test_job")
    await job_tracker.record_job_success("test_job")

    status = await job_tracker.get_job_status("test_job")
    assert status["last_success"] is not None
    assert status["consecutive_failures"] == 0
    assert status["success_count"] == 1
    assert status["currently_running"] is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_job_has_empty_status(job_tracker: JobTracker) -> None:
    status = await job_tracker.get_job_status("never_ran")

    assert status["last_success"] is None
    assert status["consecutive_failures"] == 0
    assert status["currently_running"] is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_consecutive_failures_tracking(job_tracker: JobTracker) -> None:
    """Test that consecutive failures are tracked and reset by a success."""
    for error in ("Error 1", "Error 2"):
        await job_tracker.record_job_start("test_job")
        await job_tracker.record_job_failure("test_job", error)

    status = await job_tracker.get_job_status("test_job")
    assert status["consecutive_failures"] == 2
    assert status["last_error"] == "Error 2"

    await job_tracker.record_job_start("test_job")
    await job_tracker.record_job_success("test_job")
    status = await job_tracker.get_job_status("test_job")
    assert status["consecutive_failures"] == 0
    assert status["failure_count"] == 2  # Total failures still tracked


@pytest.mark.unit
@pytest.mark.asyncio
async def test_long_errors_are_truncated(job_tracker: JobTracker) -> None:
    await job_tracker.record_job_failure("test_job", "x" * 2000)

    status = await job_tracker.get_job_status("test_job")
    assert len(status["last_error"]) == 500


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dead_letter_queue_max_size(job_tracker: JobTracker) -> None:
    """Test that dead letter queue keeps only the most recent entries."""
    for i in range(150):
        await job_tracker.add_to_dead_letter_queue(f"job_{i}", f"error_{i}", "context")

    dlq = job_tracker.get_dead_letter_queue()
    assert len(dlq) == 100
    assert dlq[-1]["job_name"] == "job_149"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_retry_job_with_backoff_success_after_retry(job_tracker: JobTracker) -> None:
    """Test successful job execution after retries."""
    mock_job = AsyncMock(side_effect=[Exception("Error 1"), Exception("Error 2"), None])

    await retry_job_with_backoff(mock_job, "test_job", max_retries=3, tracker=job_tracker)

    assert mock_job.call_count == 3
    status = await job_tracker.get_job_status("test_job")
    assert status["success_count"] == 1
    assert status["failure_count"] == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_retry_job_with_backoff_all_retries_exhausted(job_tracker: JobTracker) -> None:
    """Test job failure is recorded once all retries are exhausted."""
    mock_job = AsyncMock(side_effect=Exception("Persistent error"))

    await retry_job_with_backoff(mock_job, "test_job", max_retries=3, tracker=job_tracker)

    assert mock_job.call_count == 3
    status = await job_tracker.get_job_status("test_job")
    assert status["consecutive_failures"] == 1
    assert "Persistent error" in status["last_error"]
    assert job_tracker.get_dead_letter_queue() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_retry_job_with_backoff_adds_to_dlq_after_consecutive_failures(job_tracker: JobTracker) -> None:
    """Test that the job lands in the DLQ after 3 consecutive failed runs."""
    mock_job = AsyncMock(side_effect=Exception("Persistent error"))

    for _ in range(3):
        await retry_job_with_backoff(mock_job, "test_job", max_retries=2, tracker=job_tracker)

    dlq = job_tracker.get_dead_letter_queue()
    assert len(dlq) == 1
    assert dlq[0]["job_name"] == "test_job"
    assert dlq[0]["context"] == "Failed 3 consecutive times"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_retry_uses_global_tracker_by_default() -> None:
    mock_job = AsyncMock()

    with patch("src.core.scheduler_tracker.job_tracker") as mock_tracker:
        mock_tracker.record_job_start = AsyncMock()
        mock_tracker.record_job_success = AsyncMock()

        await retry_job_with_backoff(mock_job, "test_job")

        mock_tracker.record_job_start.assert_called_once_with("test_job")
        mock_tracker.record_job_success.assert_called_once_with("test_job")
