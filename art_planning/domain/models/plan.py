"""
ART plan output structures.

Everything here is created fresh by the planner for a single call and
returned by value. No timestamps are recorded so that identical inputs
produce identical plans.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from art_planning.domain.errors import AllocationWarning
from art_planning.domain.models.graph import DependencyGraph
from art_planning.domain.models.work_items import PlanningWorkItem, ProgramIncrement


@dataclass
class TeamCapacity:
    """Capacity of one team inside one iteration."""
    team_id: str
    team_name: str
    available_capacity: float  # velocity * capacity_factor * (1 - buffer)
    allocation_ceiling: float  # available_capacity * max_capacity_utilization
    allocated_points: int = 0

    @property
    def remaining(self) -> float:
        return self.allocation_ceiling - self.allocated_points

    @property
    def utilization(self) -> float:
        if self.available_capacity <= 0:
            return 0.0
        return self.allocated_points / self.available_capacity

    def can_fit(self, points: int) -> bool:
        return self.allocated_points + points <= self.allocation_ceiling


@dataclass
class Iteration:
    """A delivery window inside the PI (dates inclusive)."""
    index: int
    id: str
    name: str
    start_date: date
    end_date: date
    duration_days: int
    is_partial: bool = False
    team_capacities: list[TeamCapacity] = field(default_factory=list)
    allocated_item_ids: list[str] = field(default_factory=list)

    def capacity_for(self, team_id: str) -> Optional[TeamCapacity]:
        for cap in self.team_capacities:
            if cap.team_id == team_id:
                return cap
        return None

    @property
    def total_capacity(self) -> float:
        return sum(c.available_capacity for c in self.team_capacities)

    @property
    def total_points(self) -> int:
        return sum(c.allocated_points for c in self.team_capacities)


@dataclass
class AllocatedWorkItem:
    """Placement of one work item. unplanned items sit in the final iteration with no team."""
    work_item: PlanningWorkItem
    iteration_index: int
    iteration_id: str
    team_id: Optional[str]
    allocated_points: int
    wsjf_score: float = 0.0
    unplanned: bool = False
    confidence: float = 0.0
    rationale: str = ""
    blocked_by: list[str] = field(default_factory=list)
    enables: list[str] = field(default_factory=list)

    @property
    def item_id(self) -> str:
        return self.work_item.id


@dataclass
class Blocker:
    """Something that stops the plan from being executable as-is."""
    code: str  # "CIRCULAR_DEPENDENCY" | "UNPLANNED_WORK_ITEM"
    message: str
    item_ids: list[str] = field(default_factory=list)


@dataclass
class ARTReadiness:
    readiness_score: float
    dependency_integrity: float
    capacity_balance: float
    value_delivery_confidence: float
    is_ready: bool = False
    critical_blockers: list[Blocker] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def blocked_item_ids(self) -> set[str]:
        return {item_id for b in self.critical_blockers for item_id in b.item_ids}


@dataclass
class PlanMetrics:
    planning_confidence: float = 0.0
    properly_sized_stories: float = 1.0
    dependency_resolution: float = 1.0
    iterations_with_value: float = 0.0
    capacity_balance: float = 1.0


@dataclass
class ARTPlanSummary:
    total_iterations: int = 0
    total_work_items: int = 0
    planned_work_items: int = 0
    unplanned_work_items: int = 0
    total_story_points: int = 0
    average_capacity_utilization: float = 0.0
    total_dependencies: int = 0
    critical_path_length: int = 0
    value_delivery_confidence: float = 0.0
    risk_level: str = "low"  # "low" | "medium" | "high"
    metrics: PlanMetrics = field(default_factory=PlanMetrics)


@dataclass
class ARTPlanMetadata:
    algorithm_version: str
    configuration: dict[str, Any]
    warnings: list[AllocationWarning] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


@dataclass
class ARTPlan:
    """The sole output of plan_art."""
    program_increment: ProgramIncrement
    iterations: list[Iteration]
    work_items: list[AllocatedWorkItem]
    dependencies: DependencyGraph
    art_readiness: ARTReadiness
    summary: ARTPlanSummary
    metadata: ARTPlanMetadata

    def allocation_for(self, item_id: str) -> Optional[AllocatedWorkItem]:
        for alloc in self.work_items:
            if alloc.item_id == item_id:
                return alloc
        return None

    def iteration_index_of(self, item_id: str) -> Optional[int]:
        alloc = self.allocation_for(item_id)
        return alloc.iteration_index if alloc else None

    @property
    def unplanned_items(self) -> list[AllocatedWorkItem]:
        return [a for a in self.work_items if a.unplanned]
