"""Pytest configuration and fixtures for integration tests against a real SQLite file."""

from collections.abc import AsyncIterator

import pytest

from src.core import db_client
from src.core.config import Settings
from src.services.directory_service import SqliteDirectoryService
from src.services.outbox import EffectOutbox
from src.services.task_engine import TaskEngine
from src.services.task_store import SqliteTaskStore
from tests.unit.mocks import RecordingNotifier


@pytest.fixture
async def db_path(test_settings: Settings) -> AsyncIterator[str]:
    """Initialized database file, closed again after the test."""
    path = test_settings.sqlite_db_path
    await db_client.init_db(db_path=path)
    yield path
    await db_client.close_connection(db_path=path)


@pytest.fixture
def sqlite_store(db_path: str) -> SqliteTaskStore:
    return SqliteTaskStore(db_path=db_path)


@pytest.fixture
def sqlite_directory(db_path: str) -> SqliteDirectoryService:
    return SqliteDirectoryService(db_path=db_path)


@pytest.fixture
async def sqlite_engine(
    sqlite_store: SqliteTaskStore,
    sqlite_directory: SqliteDirectoryService,
    test_settings: Settings,
) -> AsyncIterator[TaskEngine]:
    outbox = EffectOutbox(max_attempts=1, base_delay=0)
    engine = TaskEngine(
        store=sqlite_store,
        directory=sqlite_directory,
        notifier=RecordingNotifier(),
        outbox=outbox,
        config=test_settings,
    )
    yield engine
    await outbox.drain()
