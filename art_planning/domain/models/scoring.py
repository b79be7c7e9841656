"""WSJF scoring records."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

from pydantic import Field

from art_planning.domain.errors import ScoringError
from art_planning.domain.models.work_items import PlanningWorkItem


class PriorityTier(IntEnum):
    """Tracker priority levels; lower value is more urgent."""
    URGENT = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4


class ScoredStory(PlanningWorkItem):
    """A work item augmented with WSJF sub-scores. Built fresh per scoring run."""

    business_value: float = Field(..., ge=0, le=100)
    time_criticality: float = Field(..., ge=0, le=100)
    risk_reduction: float = Field(..., ge=0, le=100)
    job_size: float = Field(..., ge=0)
    wsjf_score: float = Field(..., ge=0)
    priority_score: float = Field(..., ge=0, le=100)
    recommended_priority: PriorityTier
    scoring_version: str


@dataclass
class PriorityUpdate:
    """Suggested priority change for one story."""
    story_id: str
    current_priority: int
    recommended_priority: PriorityTier
    wsjf_score: float
    rationale: str

    @property
    def changes_priority(self) -> bool:
        return int(self.current_priority) != int(self.recommended_priority)


@dataclass
class ValueOptimizationRecommendation:
    recommendation_type: str  # "PRIORITIZE" | "SPLIT" | "DELAY" | "COMBINE"
    affected_stories: list[str]
    rationale: str
    expected_impact: str
    confidence: float


@dataclass
class ScoringSummary:
    total_stories: int = 0
    average_wsjf_score: float = 0.0
    high_priority_count: int = 0
    recommendations_count: int = 0
    error_count: int = 0


@dataclass
class ScoringResult:
    """Outcome of a batch scoring call. Errors never abort the batch."""
    scored_stories: list[ScoredStory] = field(default_factory=list)
    priority_updates: list[PriorityUpdate] = field(default_factory=list)
    recommendations: list[ValueOptimizationRecommendation] = field(default_factory=list)
    summary: ScoringSummary = field(default_factory=ScoringSummary)
    processing_time_ms: float = 0.0
    errors: list[ScoringError] = field(default_factory=list)

    def wsjf_by_id(self) -> dict[str, float]:
        return {s.id: s.wsjf_score for s in self.scored_stories}

    def get(self, story_id: str) -> Optional[ScoredStory]:
        for story in self.scored_stories:
            if story.id == story_id:
                return story
        return None
