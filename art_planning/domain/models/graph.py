"""
Dependency graph snapshot and its analysis records.

Plain data only. Traversal lives in
art_planning.domain.services.dependency_analyzer.
"""

from dataclasses import dataclass, field
from typing import Optional

from art_planning.domain.models.work_items import DependencyEdge, PlanningWorkItem


@dataclass
class ValidationIssue:
    """A single validation finding (error, warning or info)."""
    code: str  # e.g. "DANGLING_REFERENCE", "SELF_REFERENCE", "CIRCULAR_DEPENDENCY"
    message: str
    affected_items: list[str] = field(default_factory=list)


@dataclass
class GraphValidation:
    """Result of graph validation."""
    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    info: list[ValidationIssue] = field(default_factory=list)


@dataclass
class CircularDependency:
    """A detected cycle of HARD dependencies."""
    cycle: list[str]  # e.g. ["A", "B", "C"]: A requires B, B requires C, C requires A
    edge_ids: list[str] = field(default_factory=list)
    severity: str = "critical"  # "critical" | "warning" | "info"
    resolution_suggestions: list[str] = field(default_factory=list)


@dataclass
class GraphStatistics:
    node_count: int = 0
    edge_count: int = 0
    hard_dependencies: int = 0
    soft_dependencies: int = 0
    average_dependencies: float = 0.0
    independent_items: int = 0
    high_dependency_items: list[str] = field(default_factory=list)
    longest_path: int = 0
    estimated_duration: int = 0


@dataclass
class DependencyImpact:
    """Who is affected if an item slips."""
    item_id: str
    direct_impacts: list[str] = field(default_factory=list)
    indirect_impacts: list[str] = field(default_factory=list)
    timeline_impact: int = 0  # story points of everything downstream
    risk_level: str = "low"  # "low" | "medium" | "high" | "critical"


@dataclass
class DependencyGraph:
    """
    Read-only snapshot of work items and dependency edges.

    validation is None for a graph assembled by hand; the planner then
    runs the analyzer before using it.
    """
    nodes: list[PlanningWorkItem]
    edges: list[DependencyEdge]
    critical_path: list[str] = field(default_factory=list)
    circular_dependencies: list[CircularDependency] = field(default_factory=list)
    validation: Optional[GraphValidation] = None
    statistics: GraphStatistics = field(default_factory=GraphStatistics)
    excluded_edge_ids: list[str] = field(default_factory=list)

    @property
    def is_validated(self) -> bool:
        return self.validation is not None

    @property
    def ordering_edges(self) -> list[DependencyEdge]:
        """HARD edges the planner must honor (dangling, self and cycle-breaking edges removed)."""
        excluded = set(self.excluded_edge_ids)
        return [e for e in self.edges if e.is_hard and e.id not in excluded]

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]
