"""Unit tests for candidate scoring."""

import pytest

from src.domain.staff import StaffCandidate
from src.domain.task import Department, SkillRequirement, Task, TaskCategory, TaskPriority
from src.services.scoring_service import ScoringWeights, rank_candidates, score, skill_match


def _candidate(staff_id: str, *, open_count: int = 0, rate: float = 1.0, skills: dict[str, int] | None = None):
    return StaffCandidate(
        staff_id=staff_id,
        name=staff_id,
        department=Department.MAINTENANCE,
        current_open_task_count=open_count,
        recent_completion_rate=rate,
        skills=skills or {},
    )


def _task(priority: TaskPriority = TaskPriority.MEDIUM, skills: list[SkillRequirement] | None = None) -> Task:
    return Task(
        title="Replace bulb",
        department=Department.MAINTENANCE,
        category=TaskCategory.ELECTRICAL,
        priority=priority,
        created_by="mgr-1",
        skill_requirements=skills or [],
    )


@pytest.mark.unit
class TestScore:
    def test_default_formula(self):
        """(10 - open) * 0.4 + rate * 0.4 with no priority boost."""
        assert score(_candidate("a", open_count=2, rate=0.5), _task()) == pytest.approx(8 * 0.4 + 0.5 * 0.4)

    def test_fewer_open_tasks_score_higher(self):
        task = _task()
        assert score(_candidate("a", open_count=1), task) > score(_candidate("b", open_count=4), task)

    def test_higher_completion_rate_scores_higher(self):
        task = _task()
        assert score(_candidate("a", rate=0.9), task) > score(_candidate("b", rate=0.2), task)

    @pytest.mark.parametrize("priority", [TaskPriority.HIGH, TaskPriority.URGENT])
    def test_priority_boost(self, priority):
        candidate = _candidate("a", open_count=3)
        assert score(candidate, _task(priority)) == pytest.approx(score(candidate, _task()) + 2.0)

    def test_low_priority_gets_no_boost(self):
        candidate = _candidate("a")
        assert score(candidate, _task(TaskPriority.LOW)) == score(candidate, _task(TaskPriority.MEDIUM))

    def test_overloaded_candidate_scores_negative_workload_term(self):
        """Above the workload base the workload term goes negative."""
        assert score(_candidate("a", open_count=12, rate=0.0), _task()) == pytest.approx(-0.8)

    def test_skill_weight_is_off_by_default(self):
        task = _task(skills=[SkillRequirement(skill="electrical", level=3)])
        assert score(_candidate("a"), task) == score(_candidate("b", skills={"electrical": 5}), task)

    def test_skill_weight_applies_when_configured(self):
        weights = ScoringWeights(skill_weight=1.0)
        task = _task(skills=[SkillRequirement(skill="electrical", level=4)])
        skilled = score(_candidate("a", skills={"electrical": 4}), task, weights)
        unskilled = score(_candidate("b"), task, weights)
        assert skilled - unskilled == pytest.approx(1.0)


@pytest.mark.unit
class TestSkillMatch:
    def test_no_requirements_is_full_match(self):
        assert skill_match(_candidate("a"), []) == 1.0

    def test_partial_levels_are_averaged(self):
        requirements = [SkillRequirement(skill="plumbing", level=4), SkillRequirement(skill="hvac", level=2)]
        candidate = _candidate("a", skills={"plumbing": 2, "hvac": 5})
        assert skill_match(candidate, requirements) == pytest.approx((0.5 + 1.0) / 2)

    def test_missing_skill_counts_as_zero(self):
        assert skill_match(_candidate("a"), [SkillRequirement(skill="plumbing", level=3)]) == 0.0


@pytest.mark.unit
class TestRankCandidates:
    def test_best_first(self):
        ranked = rank_candidates([_candidate("busy", open_count=6), _candidate("free", open_count=0)], _task())
        assert [r.candidate.staff_id for r in ranked] == ["free", "busy"]

    def test_ties_keep_input_order(self):
        candidates = [_candidate("x", open_count=5), _candidate("y", open_count=2), _candidate("z", open_count=2)]
        ranked = rank_candidates(candidates, _task())
        assert [r.candidate.staff_id for r in ranked] == ["y", "z", "x"]

    def test_repeated_ranking_is_identical(self):
        candidates = [_candidate(f"s{i}", open_count=i % 3, rate=0.5) for i in range(6)]
        task = _task()
        first = [r.candidate.staff_id for r in rank_candidates(candidates, task)]
        for _ in range(5):
            assert [r.candidate.staff_id for r in rank_candidates(candidates, task)] == first

    def test_empty_list(self):
        assert rank_candidates([], _task()) == []

    def test_weights_from_settings(self, test_settings):
        test_settings.scoring_priority_boost = 5.0
        weights = ScoringWeights.from_settings(test_settings)
        assert weights.priority_boost == 5.0
        assert weights.workload_weight == pytest.approx(0.4)
