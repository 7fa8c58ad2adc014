"""Task engine: the caller-facing API for task lifecycle, allocation and chaining.

Every mutation follows the same path: read the task with its version, run
a pure transition, write it back with a conditional update (retrying the
whole cycle once on a version conflict), then enqueue notifications on
the outbox. Errors raised before the write leave the task untouched.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from src.core.config import Settings, constants, settings
from src.core.errors import (
    ConcurrentModification,
    GracePeriodExpired,
    InvalidTransition,
    NoEligibleStaff,
    PermissionDenied,
    StaffNotFound,
    TaskEngineError,
    TaskInUse,
    TaskValidationError,
)
from src.core.logging import log_with_task_context, span
from src.core.message_templates import TaskEvent
from src.core.task_normalizer import (
    normalize_category,
    normalize_department,
    normalize_priority,
    normalize_status,
)
from src.domain.create_models import TaskCreate
from src.domain.staff import Actor, StaffRecommendation
from src.domain.task import (
    AssignmentSource,
    Department,
    Task,
    TaskNote,
    TaskPriority,
    TaskStatus,
    TaskView,
    utc_now,
)
from src.models.service_models import BulkAssignmentFailure, BulkAssignmentResult
from src.services import handoff_service, task_state_machine, workflow_service
from src.services.allocation_service import Allocator
from src.services.directory_service import DirectoryService
from src.services.notification_service import NotifierGateway
from src.services.outbox import EffectOutbox
from src.services.scoring_service import ScoringWeights
from src.services.task_store import TaskFilter, TaskStore


logger = logging.getLogger(__name__)

Mutation = Callable[[Task], Awaitable[Task]]

WORKFLOW_CHAIN_EFFECT = "workflow_chain"


def _sort_for_assignment(tasks: list[Task]) -> list[Task]:
    """Oldest due date first; tasks without a due date last, oldest created first."""
    return sorted(tasks, key=lambda t: (t.due_date is None, t.due_date or t.created_at, t.created_at))


class TaskEngine:
    """Facade over the store, directory, allocator, state machine and chainer."""

    def __init__(
        self,
        *,
        store: TaskStore,
        directory: DirectoryService,
        notifier: NotifierGateway,
        outbox: EffectOutbox | None = None,
        weights: ScoringWeights | None = None,
        clock: Callable[[], datetime] = utc_now,
        config: Settings | None = None,
    ) -> None:
        self._config = config or settings
        self._store = store
        self._directory = directory
        self._notifier = notifier
        self._outbox = outbox or EffectOutbox(
            max_attempts=self._config.notification_max_attempts,
            base_delay=self._config.notification_retry_base_delay,
        )
        self._clock = clock
        self._grace_seconds = self._config.completion_grace_period_minutes * 60
        self._allocator = Allocator(
            store=store,
            directory=directory,
            weights=weights or ScoringWeights.from_settings(self._config),
            clock=clock,
            grace_seconds=self._grace_seconds,
        )

    @property
    def outbox(self) -> EffectOutbox:
        return self._outbox

    # Derived views

    def can_edit(self, task: Task, now: datetime | None = None) -> tuple[bool, int]:
        """Whether a task may still be edited, and the seconds left in its grace window."""
        return task_state_machine.can_edit(task, now or self._clock(), grace_seconds=self._grace_seconds)

    def view(self, task: Task, now: datetime | None = None) -> TaskView:
        editable, remaining = self.can_edit(task, now)
        return TaskView.model_validate({**task.model_dump(), "can_edit": editable, "remaining_seconds": remaining})

    # Internal plumbing

    async def _mutate(self, task_id: str, mutation: Mutation) -> tuple[Task, Task]:
        """Read, transform and conditionally write a task, retrying once on conflict.

        Returns:
            (task as read, task as written)
        """
        for attempt in range(constants.MAX_WRITE_ATTEMPTS):
            before, version = await self._store.get(task_id)
            after = await mutation(before)
            if await self._store.conditional_update(after, version) is not None:
                return before, after
            logger.info("Write conflict on task %s (attempt %d)", task_id, attempt + 1)

        msg = f"Task {task_id} was modified concurrently; please retry"
        raise ConcurrentModification(msg)

    async def _recipients(self, task: Task) -> list[str]:
        if task.assigned_to:
            return [task.assigned_to]
        candidates = await self._directory.find_eligible_staff(task.department)
        return [candidate.staff_id for candidate in candidates]

    def _notify(self, event: TaskEvent, task: Task) -> None:
        """Queue a post-commit notification; delivery failures never reach the caller."""

        async def deliver() -> None:
            recipients = await self._recipients(task)
            await self._notifier.notify(event, task, recipients)

        self._outbox.enqueue(event.value, deliver)

    async def _check_active_staff(self, staff_id: str) -> None:
        member = await self._directory.get_staff(staff_id)
        if member is None or not member.is_active:
            msg = f"Staff member not found or inactive: {staff_id}"
            raise StaffNotFound(msg)

    async def _try_allocate(self, task_id: str, *, allow_reassign: bool) -> Task | None:
        """Allocate after a committed write, treating every allocator refusal as non-fatal.

        Besides an empty or contended department, a concurrent writer may have
        moved the task out of an allocatable state between our write and the
        allocator's read. The earlier write stands either way.
        """
        try:
            result = await self._allocator.allocate(task_id, allow_reassign=allow_reassign)
        except (NoEligibleStaff, ConcurrentModification, InvalidTransition, GracePeriodExpired) as e:
            log_with_task_context(logger, "warning", "Allocation skipped", task_id=task_id, reason=e.code)
            return None
        if result.changed:
            self._notify(TaskEvent.TASK_ASSIGNED, result.task)
        return result.task

    async def _chain_once(self, task_id: str, now: datetime) -> None:
        child = await workflow_service.chain_follow_up(store=self._store, parent_id=task_id, now=now)
        if child is not None:
            self._notify(TaskEvent.TASK_CREATED, child)

    async def _chain(self, task_id: str) -> None:
        """Spawn the follow-up of a completed task.

        A failed inline attempt is handed to the outbox, which retries it with
        backoff and counts the outcome. Chaining re-checks the parent, so a
        retry after a partial success never creates a second follow-up.
        """
        now = self._clock()
        try:
            await self._chain_once(task_id, now)
        except Exception as e:
            log_with_task_context(logger, "warning", "Follow-up creation deferred", task_id=task_id, error=str(e))
            self._outbox.enqueue(WORKFLOW_CHAIN_EFFECT, lambda: self._chain_once(task_id, now))
            return
        self._outbox.record_success(WORKFLOW_CHAIN_EFFECT)

    # Public operations

    async def get_task(self, task_id: str) -> TaskView:
        task, _ = await self._store.get(task_id)
        return self.view(task)

    async def create_task(self, data: TaskCreate, actor: Actor) -> TaskView:
        """Create a task, assigning it directly or through the allocator.

        With no explicit assignee and auto-assign on, an empty department
        leaves the task pending rather than failing the creation.

        Raises:
            TaskValidationError: Missing or unknown department/category/priority
            StaffNotFound: The explicit assignee is unknown or inactive
        """
        with span("task_engine.create_task"):
            department = normalize_department(data.department)
            category = normalize_category(data.category, department=department)
            priority = normalize_priority(data.priority)
            now = self._clock()

            task = Task(
                title=data.title,
                description=data.description,
                department=department,
                category=category,
                priority=priority,
                location=data.location,
                room_number=data.room_number,
                created_by=actor.id,
                skill_requirements=data.skill_requirements,
                due_date=data.due_date,
                estimated_duration=data.estimated_duration,
                is_urgent=data.is_urgent or priority == TaskPriority.URGENT,
                auto_create_follow_up=data.auto_create_follow_up,
                tags=data.tags,
                created_at=now,
                updated_at=now,
            )

            if data.assigned_to:
                await self._check_active_staff(data.assigned_to)
                task = task_state_machine.apply_assignment(
                    task,
                    data.assigned_to,
                    actor=actor,
                    source=AssignmentSource.USER,
                    now=now,
                    notes="Assigned on creation",
                )

            await self._store.insert(task)
            log_with_task_context(
                logger, "info", "Task created", task_id=task.id, department=department, actor_id=actor.id
            )

            if task.assigned_to:
                self._notify(TaskEvent.TASK_ASSIGNED, task)
                return self.view(task)

            self._notify(TaskEvent.TASK_CREATED, task)
            auto_assign = self._config.auto_assign_on_create if data.auto_assign is None else data.auto_assign
            if auto_assign:
                allocated = await self._try_allocate(task.id, allow_reassign=False)
                if allocated is not None:
                    return self.view(allocated)

            return await self.get_task(task.id)

    async def assign_task(self, task_id: str, staff_id: str, actor: Actor, notes: str | None = None) -> TaskView:
        """Assign a task to a specific staff member.

        Staff may only assign tasks to themselves; managers may assign to anyone.

        Raises:
            PermissionDenied: A staff actor assigning to someone else
            StaffNotFound: Unknown or inactive staff member
            InvalidTransition / GracePeriodExpired: The task is not assignable
        """
        with span("task_engine.assign_task"):
            if not actor.is_privileged and actor.id != staff_id:
                msg = "Staff can only assign tasks to themselves"
                raise PermissionDenied(msg)
            await self._check_active_staff(staff_id)

            async def mutation(task: Task) -> Task:
                return task_state_machine.apply_assignment(
                    task,
                    staff_id,
                    actor=actor,
                    source=AssignmentSource.USER,
                    now=self._clock(),
                    notes=notes,
                    grace_seconds=self._grace_seconds,
                )

            _, task = await self._mutate(task_id, mutation)
            self._notify(TaskEvent.TASK_ASSIGNED, task)
            return self.view(task)

    async def allocate(self, task_id: str) -> TaskView:
        """Run the allocator on an unassigned pending task.

        Raises:
            NoEligibleStaff: Nobody eligible in the task's department
            ConcurrentModification: Lost the conditional write twice
        """
        with span("task_engine.allocate"):
            result = await self._allocator.allocate(task_id)
            if result.changed:
                self._notify(TaskEvent.TASK_ASSIGNED, result.task)
            return self.view(result.task)

    async def update_status(
        self,
        task_id: str,
        new_status: str | TaskStatus,
        actor: Actor,
        notes: str | None = None,
        actual_duration: int | None = None,
        *,
        handoff_department: str | Department | None = None,
    ) -> TaskView:
        """Move a task to a new status.

        Moving to handoff_pending needs `handoff_department` and is routed
        through `request_handoff`; moving to handoff_accepted is routed
        through `accept_handoff`. Completing a task may spawn its follow-up.
        """
        with span("task_engine.update_status"):
            status = normalize_status(new_status)
            if status == TaskStatus.HANDOFF_PENDING:
                if handoff_department is None:
                    msg = "handoff_department is required to hand off a task"
                    raise TaskValidationError(msg)
                return await self.request_handoff(task_id, handoff_department, actor, notes)
            if status == TaskStatus.HANDOFF_ACCEPTED:
                return await self.accept_handoff(task_id, actor)

            async def mutation(task: Task) -> Task:
                return task_state_machine.apply_transition(
                    task,
                    status,
                    actor=actor,
                    now=self._clock(),
                    notes=notes,
                    actual_duration=actual_duration,
                    grace_seconds=self._grace_seconds,
                )

            before, task = await self._mutate(task_id, mutation)
            log_with_task_context(
                logger,
                "info",
                "Task status changed",
                task_id=task_id,
                from_status=before.status,
                to_status=status,
                actor_id=actor.id,
            )

            if status == TaskStatus.COMPLETED:
                self._notify(TaskEvent.TASK_COMPLETED, task)
                if workflow_service.should_chain(task):
                    await self._chain(task_id)
                    return await self.get_task(task_id)
            elif status == TaskStatus.IN_PROGRESS and before.status == TaskStatus.ASSIGNED:
                self._notify(TaskEvent.TASK_ACCEPTED, task)
            elif status == TaskStatus.ASSIGNED:
                self._notify(TaskEvent.TASK_ASSIGNED, task)
            else:
                self._notify(TaskEvent.TASK_UPDATED, task)

            return self.view(task)

    async def request_handoff(
        self,
        task_id: str,
        target_department: str | Department,
        actor: Actor,
        reason: str | None = None,
    ) -> TaskView:
        """Offer a task to another department; it waits in handoff_pending until accepted or cancelled."""
        with span("task_engine.request_handoff"):
            department = normalize_department(target_department)

            async def mutation(task: Task) -> Task:
                return handoff_service.request_handoff(
                    task,
                    target_department=department,
                    actor=actor,
                    reason=reason,
                    now=self._clock(),
                    grace_seconds=self._grace_seconds,
                )

            _, task = await self._mutate(task_id, mutation)
            self._notify(TaskEvent.TASK_HANDOFF, task)
            return self.view(task)

    async def accept_handoff(self, task_id: str, actor: Actor) -> TaskView:
        """Take over a pending handoff; the actor becomes the owner in the target department."""
        with span("task_engine.accept_handoff"):

            async def mutation(task: Task) -> Task:
                await handoff_service.check_handoff_acceptor(directory=self._directory, task=task, actor=actor)
                return handoff_service.accept_handoff(task, actor=actor, now=self._clock())

            _, task = await self._mutate(task_id, mutation)
            self._notify(TaskEvent.HANDOFF_ACCEPTED, task)
            return self.view(task)

    async def escalate(self, task_id: str, actor: Actor) -> TaskView:
        """Raise a task's priority; urgent pending/assigned tasks are re-allocated.

        If re-allocation finds nobody, the escalation still stands.
        """
        with span("task_engine.escalate"):

            async def mutation(task: Task) -> Task:
                return handoff_service.escalate(task, actor=actor, now=self._clock(), grace_seconds=self._grace_seconds)

            _, task = await self._mutate(task_id, mutation)
            self._notify(TaskEvent.TASK_UPDATED, task)

            if task.priority == TaskPriority.URGENT and task.status in task_state_machine.ASSIGNABLE_STATUSES:
                allocated = await self._try_allocate(task_id, allow_reassign=True)
                if allocated is not None:
                    return self.view(allocated)
                return await self.get_task(task_id)

            return self.view(task)

    async def add_note(self, task_id: str, content: str, actor: Actor) -> TaskView:
        """Append a note; completed tasks accept notes only during the grace period."""
        with span("task_engine.add_note"):
            if not content.strip():
                msg = "Note cannot be empty"
                raise TaskValidationError(msg)

            async def mutation(task: Task) -> Task:
                now = self._clock()
                task_state_machine.ensure_editable(task, now, grace_seconds=self._grace_seconds)
                note = TaskNote(content=content.strip(), added_by=actor.id, added_at=now)
                return task.model_copy(update={"notes": [*task.notes, note], "updated_at": now})

            _, task = await self._mutate(task_id, mutation)
            self._notify(TaskEvent.TASK_UPDATED, task)
            return self.view(task)

    async def list_tasks(
        self,
        actor: Actor,
        *,
        status: str | None = None,
        department: str | None = None,
        priority: str | None = None,
        limit: int = constants.DEFAULT_PER_PAGE_LIMIT,
    ) -> list[TaskView]:
        """List tasks visible to the actor.

        Staff see tasks assigned to them plus tasks of their own department;
        managers and admins see everything.
        """
        with span("task_engine.list_tasks"):
            task_filter = TaskFilter(
                statuses=[normalize_status(status)] if status else None,
                departments=[normalize_department(department)] if department else None,
                priority=normalize_priority(priority) if priority else None,
                limit=limit,
            )
            if not actor.is_privileged:
                member = await self._directory.get_staff(actor.id)
                task_filter.visible_to = actor.id
                task_filter.visible_department = member.department if member else None

            now = self._clock()
            return [self.view(task, now) for task in await self._store.find(task_filter)]

    async def delete_task(self, task_id: str, actor: Actor) -> None:
        """Remove a task. Tasks linked into a workflow chain cannot be deleted.

        Raises:
            PermissionDenied: The actor is not a manager or admin
            TaskInUse: The task has a parent or a follow-up
        """
        with span("task_engine.delete_task"):
            if not actor.is_privileged:
                msg = "Only managers can delete tasks"
                raise PermissionDenied(msg)

            task, _ = await self._store.get(task_id)
            if task.parent_task_id or task.follow_up_task_id:
                msg = f"Task {task_id} is part of a workflow chain"
                raise TaskInUse(msg)

            await self._store.delete(task_id)
            log_with_task_context(logger, "info", "Task deleted", task_id=task_id, actor_id=actor.id)

    async def recommend_staff(self, task_id: str, limit: int | None = None) -> list[StaffRecommendation]:
        """Best-scoring staff for a task, without assigning it."""
        with span("task_engine.recommend_staff"):
            return await self._allocator.recommend(task_id, limit=limit or self._config.recommendation_limit)

    async def _assign_batch(self, tasks: list[Task]) -> BulkAssignmentResult:
        result = BulkAssignmentResult()
        for task in _sort_for_assignment(tasks):
            try:
                allocation = await self._allocator.allocate(task.id)
            except TaskEngineError as e:
                result.failed.append(BulkAssignmentFailure(task_id=task.id, code=e.code, message=e.message))
                continue
            if allocation.changed:
                self._notify(TaskEvent.TASK_ASSIGNED, allocation.task)
                result.assigned.append(task.id)
        return result

    async def assign_pending_tasks(self, departments: list[str] | None = None) -> BulkAssignmentResult:
        """Allocate every unassigned pending task, oldest due date first.

        Per-task failures are collected rather than aborting the batch.
        """
        with span("task_engine.assign_pending_tasks"):
            task_filter = TaskFilter(
                statuses=[TaskStatus.PENDING],
                departments=[normalize_department(d) for d in departments] if departments else None,
                unassigned=True,
                limit=constants.BULK_ASSIGN_LIMIT,
            )
            result = await self._assign_batch(await self._store.find(task_filter))
            logger.info("Bulk assignment: %d assigned, %d failed", result.assigned_count, len(result.failed))
            return result

    async def auto_assign_stale_tasks(self, older_than_minutes: int | None = None) -> BulkAssignmentResult:
        """Allocate unassigned pending tasks created more than `older_than_minutes` ago."""
        with span("task_engine.auto_assign_stale_tasks"):
            minutes = self._config.stale_task_minutes if older_than_minutes is None else older_than_minutes
            task_filter = TaskFilter(
                statuses=[TaskStatus.PENDING],
                unassigned=True,
                created_before=self._clock() - timedelta(minutes=minutes),
                limit=constants.BULK_ASSIGN_LIMIT,
            )
            result = await self._assign_batch(await self._store.find(task_filter))
            if result.assigned or result.failed:
                logger.info(
                    "Stale task sweep: %d assigned, %d failed", result.assigned_count, len(result.failed)
                )
            return result
