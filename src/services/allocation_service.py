"""Allocation of tasks to the best available staff member."""

import logging
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel

from src.core.config import constants
from src.core.errors import ConcurrentModification, InvalidTransition, NoEligibleStaff
from src.core.logging import log_with_task_context, span
from src.domain.staff import SYSTEM_ACTOR, StaffCandidate, StaffRecommendation
from src.domain.task import AssignmentSource, Task, TaskStatus, utc_now
from src.services.directory_service import DirectoryService
from src.services.scoring_service import ScoredCandidate, ScoringWeights, rank_candidates
from src.services.task_state_machine import ASSIGNABLE_STATUSES, apply_assignment, ensure_editable
from src.services.task_store import TaskStore


logger = logging.getLogger(__name__)


class AllocationResult(BaseModel):
    task: Task
    changed: bool


def _to_recommendation(scored: ScoredCandidate) -> StaffRecommendation:
    return StaffRecommendation(
        staff_id=scored.candidate.staff_id,
        name=scored.candidate.name,
        department=scored.candidate.department,
        score=round(scored.score, 4),
        current_open_task_count=scored.candidate.current_open_task_count,
        recent_completion_rate=scored.candidate.recent_completion_rate,
        skill_match=round(scored.skill_match, 4),
    )


class Allocator:
    """Picks the top-scoring eligible staff member and assigns with a conditional write."""

    def __init__(
        self,
        *,
        store: TaskStore,
        directory: DirectoryService,
        weights: ScoringWeights | None = None,
        clock: Callable[[], datetime] = utc_now,
        grace_seconds: int | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._weights = weights or ScoringWeights.from_settings()
        self._clock = clock
        self._grace_seconds = grace_seconds

    def _check_allocatable(self, task: Task, *, allow_reassign: bool) -> None:
        if allow_reassign and task.status in ASSIGNABLE_STATUSES:
            return
        if task.status == TaskStatus.PENDING and task.assigned_to is None:
            return
        if task.status == TaskStatus.COMPLETED:
            ensure_editable(task, self._clock(), grace_seconds=self._grace_seconds)
        msg = f"Task {task.id} is {task.status} and cannot be allocated"
        raise InvalidTransition(msg)

    async def _ranked(self, task: Task) -> list[ScoredCandidate]:
        candidates = await self._directory.find_eligible_staff(task.department)
        return rank_candidates(candidates, task, self._weights)

    async def allocate(self, task_id: str, *, allow_reassign: bool = False) -> AllocationResult:
        """Assign a task to the best eligible candidate of its department.

        The read-score-write cycle is retried once if another writer changes
        the task in between; cancelling the coroutine before the write leaves
        the task untouched.

        Raises:
            NoEligibleStaff: The department has no eligible staff
            ConcurrentModification: The conditional write lost twice
            InvalidTransition / GracePeriodExpired: The task cannot be allocated
        """
        with span("allocation_service.allocate"):
            for attempt in range(constants.MAX_WRITE_ATTEMPTS):
                task, version = await self._store.get(task_id)
                self._check_allocatable(task, allow_reassign=allow_reassign)

                ranked = await self._ranked(task)
                if not ranked:
                    msg = f"No eligible staff in {task.department} for task {task_id}"
                    raise NoEligibleStaff(msg)

                best = ranked[0]
                if task.status == TaskStatus.ASSIGNED and task.assigned_to == best.candidate.staff_id:
                    return AllocationResult(task=task, changed=False)

                updated = apply_assignment(
                    task,
                    best.candidate.staff_id,
                    actor=SYSTEM_ACTOR,
                    source=AssignmentSource.SYSTEM,
                    now=self._clock(),
                    notes=f"Auto-assigned (score {best.score:.2f})",
                    grace_seconds=self._grace_seconds,
                )
                if await self._store.conditional_update(updated, version) is not None:
                    log_with_task_context(
                        logger,
                        "info",
                        "Task allocated",
                        task_id=task_id,
                        staff_id=best.candidate.staff_id,
                        score=best.score,
                    )
                    return AllocationResult(task=updated, changed=True)

                logger.info("Allocation of task %s lost a write race (attempt %d)", task_id, attempt + 1)

            msg = f"Task {task_id} was modified concurrently during allocation"
            raise ConcurrentModification(msg)

    async def recommend(self, task_id: str, *, limit: int) -> list[StaffRecommendation]:
        """Top candidates for a task without assigning it.

        An already-assigned task yields just its assignee.
        """
        with span("allocation_service.recommend"):
            task, _ = await self._store.get(task_id)
            ranked = await self._ranked(task)

            if task.assigned_to is not None:
                for scored in ranked:
                    if scored.candidate.staff_id == task.assigned_to:
                        return [_to_recommendation(scored)]
                member = await self._directory.get_staff(task.assigned_to)
                if member is None:
                    return []
                candidate = StaffCandidate(
                    staff_id=member.id,
                    name=member.name,
                    department=member.department,
                    skills=member.skills,
                )
                return [_to_recommendation(rank_candidates([candidate], task, self._weights)[0])]

            return [_to_recommendation(scored) for scored in ranked[:limit]]
