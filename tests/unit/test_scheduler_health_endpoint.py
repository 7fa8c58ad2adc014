"""Tests for the health check endpoints."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from src.main import app
from src.services.outbox import EffectOutbox


def _job_status(consecutive_failures: int = 0) -> dict:
    return {
        "job_name": "auto_assign_stale_tasks",
        "last_success": "2024-01-01T00:00:00Z",
        "last_failure": "2024-01-01T01:00:00Z" if consecutive_failures else None,
        "last_error": "Store unavailable" if consecutive_failures else None,
        "consecutive_failures": consecutive_failures,
        "success_count": 10,
        "failure_count": consecutive_failures,
        "currently_running": False,
        "current_run_started": None,
    }


@pytest.fixture
def client() -> TestClient:
    """Create a test client for FastAPI app (lifespan not started)."""
    return TestClient(app)


@pytest.fixture
def engine_stub():
    """Expose an engine with a fresh outbox on the app state."""
    stub = SimpleNamespace(outbox=EffectOutbox(max_attempts=1, base_delay=0))
    app.state.engine = stub
    yield stub
    del app.state.engine


@pytest.mark.unit
def test_health_endpoint_returns_healthy(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.unit
def test_scheduler_health_endpoint_all_jobs_healthy(client: TestClient) -> None:
    with patch("src.main.job_tracker") as mock_tracker:
        mock_tracker.get_job_status = AsyncMock(return_value=_job_status())
        mock_tracker.get_dead_letter_queue = lambda: []

        response = client.get("/health/scheduler")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "auto_assign_stale_tasks" in data["jobs"]
    assert data["dead_letter_queue_size"] == 0


@pytest.mark.unit
def test_scheduler_health_endpoint_degraded_with_failures(client: TestClient) -> None:
    with patch("src.main.job_tracker") as mock_tracker:
        mock_tracker.get_job_status = AsyncMock(return_value=_job_status(consecutive_failures=2))
        mock_tracker.get_dead_letter_queue = lambda: []

        response = client.get("/health/scheduler")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"


@pytest.mark.unit
def test_scheduler_health_endpoint_critical_with_dlq(client: TestClient) -> None:
    dlq = [
        {"job_name": "auto_assign_stale_tasks", "error": "Persistent error", "context": "Failed 3 consecutive times"}
    ]

    with patch("src.main.job_tracker") as mock_tracker:
        mock_tracker.get_job_status = AsyncMock(return_value=_job_status(consecutive_failures=3))
        mock_tracker.get_dead_letter_queue = lambda: dlq

        response = client.get("/health/scheduler")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "critical"
    assert data["dead_letter_queue_size"] == 1
    assert data["dead_letter_queue"] == dlq


@pytest.mark.unit
def test_effects_health_before_startup(client: TestClient) -> None:
    response = client.get("/health/effects")

    assert response.status_code == 503
    assert response.json() == {"status": "starting"}


@pytest.mark.unit
def test_effects_health_reports_counters(client: TestClient, engine_stub) -> None:
    engine_stub.outbox.record_success("task_assigned")
    engine_stub.outbox.record_success("task_assigned")

    response = client.get("/health/effects")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["pending"] == 0
    assert data["effects"]["task_assigned"] == {"succeeded": 2, "failed": 0}


@pytest.mark.unit
def test_effects_health_degraded_after_failures(client: TestClient, engine_stub) -> None:
    engine_stub.outbox.record_failure("workflow_chain", RuntimeError("conflict"))

    response = client.get("/health/effects")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["effects"]["workflow_chain"]["failed"] == 1
