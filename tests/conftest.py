"""Pytest configuration and shared fixtures."""

import pytest

from src.core.config import Settings


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        sqlite_db_path=str(tmp_path / "tasks.db"),
        completion_grace_period_minutes=15,
        auto_assign_on_create=True,
        stale_task_minutes=5,
        enable_auto_assign_job=False,
        notifier_webhook_url=None,
        notification_max_attempts=3,
        notification_retry_base_delay=0.0,
    )
