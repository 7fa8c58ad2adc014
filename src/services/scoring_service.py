"""Pure candidate scoring for task allocation."""

from pydantic import BaseModel, Field

from src.core.config import Settings, settings
from src.domain.staff import StaffCandidate
from src.domain.task import SkillRequirement, Task, TaskPriority


BOOSTED_PRIORITIES: frozenset[TaskPriority] = frozenset({TaskPriority.HIGH, TaskPriority.URGENT})


class ScoringWeights(BaseModel):
    """Weights of the allocation score terms."""

    workload_base: float = Field(default=10.0, description="Open task count at which the workload term is zero")
    workload_weight: float = Field(default=0.4)
    completion_weight: float = Field(default=0.4)
    skill_weight: float = Field(default=0.0)
    priority_boost: float = Field(default=2.0, description="Added for high and urgent tasks")

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "ScoringWeights":
        config = config or settings
        return cls(
            workload_base=config.scoring_workload_base,
            workload_weight=config.scoring_workload_weight,
            completion_weight=config.scoring_completion_weight,
            skill_weight=config.scoring_skill_weight,
            priority_boost=config.scoring_priority_boost,
        )


class ScoredCandidate(BaseModel):
    candidate: StaffCandidate
    score: float
    skill_match: float


def skill_match(candidate: StaffCandidate, requirements: list[SkillRequirement]) -> float:
    """Mean fraction of each required level the candidate covers; 1.0 with no requirements.

    A skill the candidate lacks counts as level 0.
    """
    if not requirements:
        return 1.0
    total = 0.0
    for requirement in requirements:
        level = candidate.skills.get(requirement.skill, 0)
        total += min(level, requirement.level) / requirement.level
    return total / len(requirements)


def score(candidate: StaffCandidate, task: Task, weights: ScoringWeights | None = None) -> float:
    """Score a candidate for a task. Higher is better."""
    weights = weights or ScoringWeights()
    value = (weights.workload_base - candidate.current_open_task_count) * weights.workload_weight
    value += candidate.recent_completion_rate * weights.completion_weight
    value += skill_match(candidate, task.skill_requirements) * weights.skill_weight
    if task.priority in BOOSTED_PRIORITIES:
        value += weights.priority_boost
    return value


def rank_candidates(
    candidates: list[StaffCandidate],
    task: Task,
    weights: ScoringWeights | None = None,
) -> list[ScoredCandidate]:
    """Score every candidate and order them best first.

    The sort is stable: candidates with equal scores keep their input order.
    """
    weights = weights or ScoringWeights()
    scored = [
        ScoredCandidate(
            candidate=candidate,
            score=score(candidate, task, weights),
            skill_match=skill_match(candidate, task.skill_requirements),
        )
        for candidate in candidates
    ]
    return sorted(scored, key=lambda item: item.score, reverse=True)
