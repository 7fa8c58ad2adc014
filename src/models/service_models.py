"""Pydantic models for service layer return types.

These models provide type safety at service boundaries for results that
are not themselves tasks.
"""

from pydantic import BaseModel, Field


class BulkAssignmentFailure(BaseModel):
    """A task the bulk assigner could not place."""

    task_id: str
    code: str
    message: str


class BulkAssignmentResult(BaseModel):
    """Outcome of assigning a batch of pending tasks."""

    assigned: list[str] = Field(default_factory=list, description="IDs of tasks that were assigned")
    failed: list[BulkAssignmentFailure] = Field(default_factory=list)

    @property
    def assigned_count(self) -> int:
        return len(self.assigned)


class EffectCounters(BaseModel):
    """Success and failure counts for one kind of background effect."""

    succeeded: int = 0
    failed: int = 0


class EffectStats(BaseModel):
    """Background effect counters, keyed by effect kind."""

    pending: int = 0
    effects: dict[str, EffectCounters] = Field(default_factory=dict)
