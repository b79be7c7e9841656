"""Domain models for ART planning."""

from .work_items import (
    ARTTeam,
    DependencyEdge,
    DependencyStrength,
    DependencyType,
    EnablerType,
    PIStatus,
    PlanningWorkItem,
    ProgramIncrement,
    WorkItemType,
)
from .graph import (
    CircularDependency,
    DependencyGraph,
    DependencyImpact,
    GraphStatistics,
    GraphValidation,
    ValidationIssue,
)
from .scoring import (
    PriorityTier,
    PriorityUpdate,
    ScoredStory,
    ScoringResult,
    ScoringSummary,
    ValueOptimizationRecommendation,
)
from .plan import (
    AllocatedWorkItem,
    ARTPlan,
    ARTPlanMetadata,
    ARTPlanSummary,
    ARTReadiness,
    Blocker,
    Iteration,
    PlanMetrics,
    TeamCapacity,
)

__all__ = [
    "ARTTeam",
    "DependencyEdge",
    "DependencyStrength",
    "DependencyType",
    "EnablerType",
    "PIStatus",
    "PlanningWorkItem",
    "ProgramIncrement",
    "WorkItemType",
    "CircularDependency",
    "DependencyGraph",
    "DependencyImpact",
    "GraphStatistics",
    "GraphValidation",
    "ValidationIssue",
    "PriorityTier",
    "PriorityUpdate",
    "ScoredStory",
    "ScoringResult",
    "ScoringSummary",
    "ValueOptimizationRecommendation",
    "AllocatedWorkItem",
    "ARTPlan",
    "ARTPlanMetadata",
    "ARTPlanSummary",
    "ARTReadiness",
    "Blocker",
    "Iteration",
    "PlanMetrics",
    "TeamCapacity",
]
