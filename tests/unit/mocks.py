"""In-memory fakes of the engine's ports for unit testing."""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from src.core.errors import TaskNotFound
from src.core.message_templates import TaskEvent
from src.domain.staff import ActorRole, StaffCandidate, StaffMember
from src.domain.task import OPEN_STATUSES, Department, Task
from src.services.task_store import TaskFilter


class FakeClock:
    """Controllable clock returning timezone-aware UTC datetimes."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 6, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class InMemoryTaskStore:
    """Versioned task store kept in a dict.

    Conflicts can be injected: each pending entry in `fail_next_updates`
    makes the next conditional update lose, as if another writer had
    bumped the version first. `fail_inserts` makes every insert raise,
    `fail_next_inserts` only the next N. `before_update` runs right before
    each conditional write and may itself modify the store.
    """

    def __init__(self):
        self._tasks: dict[str, tuple[Task, int]] = {}
        self.fail_next_updates = 0
        self.before_update: Callable[[Task], Awaitable[None]] | None = None
        self.update_calls = 0
        self.fail_inserts = False
        self.fail_next_inserts = 0

    def all_tasks(self) -> list[Task]:
        return [task for task, _ in self._tasks.values()]

    def version_of(self, task_id: str) -> int:
        return self._tasks[task_id][1]

    def put(self, task: Task) -> None:
        """Seed a task directly, bypassing insert bookkeeping."""
        self._tasks[task.id] = (task.model_copy(deep=True), 1)

    async def get(self, task_id: str) -> tuple[Task, int]:
        if task_id not in self._tasks:
            raise TaskNotFound(f"Task not found: {task_id}")
        task, version = self._tasks[task_id]
        return task.model_copy(deep=True), version

    async def conditional_update(self, task: Task, version: int) -> int | None:
        self.update_calls += 1
        if self.before_update is not None:
            await self.before_update(task)

        if task.id not in self._tasks:
            return None

        stored, current = self._tasks[task.id]
        if self.fail_next_updates > 0:
            self.fail_next_updates -= 1
            self._tasks[task.id] = (stored, current + 1)
            return None

        if current != version:
            return None

        self._tasks[task.id] = (task.model_copy(deep=True), current + 1)
        return current + 1

    async def insert(self, task: Task) -> str:
        if self.fail_inserts or self.fail_next_inserts > 0:
            self.fail_next_inserts = max(0, self.fail_next_inserts - 1)
            raise ConnectionError("store unavailable")
        self._tasks[task.id] = (task.model_copy(deep=True), 1)
        return task.id

    async def find(self, task_filter: TaskFilter) -> list[Task]:
        matches = [task for task in self.all_tasks() if task_filter.matches(task)]
        matches.sort(key=lambda t: t.created_at)
        return [task.model_copy(deep=True) for task in matches[: task_filter.limit]]

    async def delete(self, task_id: str) -> None:
        if task_id not in self._tasks:
            raise TaskNotFound(f"Task not found: {task_id}")
        del self._tasks[task_id]


class InMemoryDirectory:
    """Directory whose workload figures come from the task store unless overridden.

    Candidates are ordered least recently assigned first (never assigned
    first of all, then by ID), matching the SQLite directory.
    """

    def __init__(self, store: InMemoryTaskStore | None = None):
        self._store = store
        self._members: dict[str, StaffMember] = {}
        self.open_count_overrides: dict[str, int] = {}
        self.completion_rates: dict[str, float] = {}
        self.calls = 0

    def add(
        self,
        staff_id: str,
        department: Department,
        *,
        name: str | None = None,
        role: ActorRole = ActorRole.STAFF,
        skills: dict[str, int] | None = None,
        is_active: bool = True,
        open_count: int | None = None,
        completion_rate: float | None = None,
    ) -> StaffMember:
        member = StaffMember(
            id=staff_id,
            name=name or staff_id.title(),
            department=department,
            role=role,
            is_active=is_active,
            skills=skills or {},
        )
        self._members[staff_id] = member
        if open_count is not None:
            self.open_count_overrides[staff_id] = open_count
        if completion_rate is not None:
            self.completion_rates[staff_id] = completion_rate
        return member

    def deactivate(self, staff_id: str) -> None:
        self._members[staff_id] = self._members[staff_id].model_copy(update={"is_active": False})

    def _assigned_tasks(self, staff_id: str) -> list[Task]:
        if self._store is None:
            return []
        return [task for task in self._store.all_tasks() if task.assigned_to == staff_id]

    def _candidate(self, member: StaffMember) -> StaffCandidate:
        tasks = self._assigned_tasks(member.id)
        open_count = sum(1 for task in tasks if task.status in OPEN_STATUSES)
        assigned_times = [task.assigned_at for task in tasks if task.assigned_at is not None]
        return StaffCandidate(
            staff_id=member.id,
            name=member.name,
            department=member.department,
            current_open_task_count=self.open_count_overrides.get(member.id, open_count),
            recent_completion_rate=self.completion_rates.get(member.id, 1.0),
            skills=member.skills,
            last_assigned_at=max(assigned_times) if assigned_times else None,
        )

    async def find_eligible_staff(self, department: Department) -> list[StaffCandidate]:
        self.calls += 1
        candidates = [
            self._candidate(member)
            for member in self._members.values()
            if member.department == department and member.is_active and member.role == ActorRole.STAFF
        ]
        candidates.sort(
            key=lambda c: (
                c.last_assigned_at is not None,
                c.last_assigned_at or datetime.min.replace(tzinfo=UTC),
                c.staff_id,
            )
        )
        return candidates

    async def get_staff(self, staff_id: str) -> StaffMember | None:
        return self._members.get(staff_id)


class FixedDirectory:
    """Directory returning a fixed, ordered candidate list."""

    def __init__(self, candidates: list[StaffCandidate]):
        self.candidates = candidates

    async def find_eligible_staff(self, department: Department) -> list[StaffCandidate]:
        return [c for c in self.candidates if c.department == department]

    async def get_staff(self, staff_id: str) -> StaffMember | None:
        for c in self.candidates:
            if c.staff_id == staff_id:
                return StaffMember(id=c.staff_id, name=c.name, department=c.department, skills=c.skills)
        return None


class RecordingNotifier:
    """Notifier that records deliveries and can be told to fail."""

    def __init__(self, *, failures: int = 0):
        self.sent: list[tuple[TaskEvent, str, list[str]]] = []
        self.failures = failures
        self.attempts = 0

    async def notify(self, event_type: TaskEvent, task: Task, recipients: list[str]) -> None:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("notifier unreachable")
        self.sent.append((event_type, task.id, list(recipients)))

    def events(self) -> list[TaskEvent]:
        return [event for event, _, _ in self.sent]

    def events_for(self, task_id: str) -> list[TaskEvent]:
        return [event for event, sent_task_id, _ in self.sent if sent_task_id == task_id]
