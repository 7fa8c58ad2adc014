"""Pytest configuration and fixtures for unit tests."""

from collections.abc import AsyncIterator

import pytest

from src.core.config import Settings
from src.domain.staff import Actor, ActorRole
from src.domain.task import Department, Task, TaskCategory
from src.services.outbox import EffectOutbox
from src.services.task_engine import TaskEngine
from tests.unit.mocks import FakeClock, InMemoryDirectory, InMemoryTaskStore, RecordingNotifier


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryTaskStore:
    """Provides a fresh InMemoryTaskStore for each test."""
    return InMemoryTaskStore()


@pytest.fixture
def directory(store: InMemoryTaskStore) -> InMemoryDirectory:
    """Directory whose workload is derived from the test's task store."""
    return InMemoryDirectory(store)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def outbox() -> EffectOutbox:
    """Outbox retrying without delay so failing effects settle quickly."""
    return EffectOutbox(max_attempts=3, base_delay=0)


@pytest.fixture
async def engine(
    store: InMemoryTaskStore,
    directory: InMemoryDirectory,
    notifier: RecordingNotifier,
    outbox: EffectOutbox,
    clock: FakeClock,
    test_settings: Settings,
) -> AsyncIterator[TaskEngine]:
    """Engine over the in-memory fakes; background effects are drained after each test."""
    engine = TaskEngine(
        store=store,
        directory=directory,
        notifier=notifier,
        outbox=outbox,
        clock=clock,
        config=test_settings,
    )
    yield engine
    await outbox.drain()


@pytest.fixture
def manager() -> Actor:
    return Actor(id="mgr-1", role=ActorRole.MANAGER)


@pytest.fixture
def make_task(clock: FakeClock):
    """Factory for tasks stamped with the fake clock."""

    def _make_task(**overrides) -> Task:
        fields = {
            "title": "Fix leaking tap",
            "department": Department.MAINTENANCE,
            "category": TaskCategory.PLUMBING,
            "created_by": "mgr-1",
            "created_at": clock.now,
            "updated_at": clock.now,
        }
        fields.update(overrides)
        return Task(**fields)

    return _make_task
