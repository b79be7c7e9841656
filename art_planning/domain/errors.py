"""
Error taxonomy for the planning engine.

Only truly invalid input is fatal (PlanningValidationError). Scoring
failures are collected per story, and allocation problems are recorded as
AllocationWarning entries on the plan instead of being raised.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence


class PlanningError(Exception):
    """Base class for planning engine errors."""
    pass


class PlanningValidationError(PlanningError, ValueError):
    """Raised for invalid input: malformed PI dates, null arguments, bad graph references."""

    def __init__(self, message: str, item_ids: Optional[Sequence[str]] = None):
        self.item_ids = list(item_ids or [])
        super().__init__(message)


class ScoringError(PlanningError):
    """A single story could not be scored. Never aborts a batch."""

    def __init__(
        self,
        message: str,
        story_id: Optional[str] = None,
        phase: str = "individual-scoring",
    ):
        self.story_id = story_id
        self.phase = phase
        super().__init__(message)

    def __repr__(self) -> str:
        return f"ScoringError(story_id={self.story_id!r}, phase={self.phase!r}, message={str(self)!r})"


@dataclass(frozen=True)
class AllocationWarning:
    """A work item that could not be placed within capacity/dependency constraints."""
    item_id: str
    reason: str
    blockers: tuple[str, ...] = field(default_factory=tuple)
    suggestions: tuple[str, ...] = field(default_factory=tuple)
