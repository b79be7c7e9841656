"""
ART planning engine.

Dependency-aware, capacity-constrained PI planning on top of WSJF
scoring. Entry points:

- score_stories(stories, config=None) -> ScoringResult
- plan_art(pi, work_items, dependency_graph, teams, config=None, wsjf_scores=None) -> ARTPlan
"""

from art_planning.core.config import PlanningConfig, ScoringConfig
from art_planning.domain.errors import (
    AllocationWarning,
    PlanningError,
    PlanningValidationError,
    ScoringError,
)
from art_planning.domain.models import (
    ARTPlan,
    ARTTeam,
    DependencyEdge,
    DependencyGraph,
    DependencyStrength,
    DependencyType,
    PlanningWorkItem,
    ProgramIncrement,
    ScoredStory,
    ScoringResult,
    WorkItemType,
)
from art_planning.domain.services import (
    ARTPlanner,
    StoryScorer,
    build_graph,
    build_iterations,
    plan_art,
    score_stories,
)

__version__ = "0.1.0"

__all__ = [
    "PlanningConfig",
    "ScoringConfig",
    "AllocationWarning",
    "PlanningError",
    "PlanningValidationError",
    "ScoringError",
    "ARTPlan",
    "ARTTeam",
    "DependencyEdge",
    "DependencyGraph",
    "DependencyStrength",
    "DependencyType",
    "PlanningWorkItem",
    "ProgramIncrement",
    "ScoredStory",
    "ScoringResult",
    "WorkItemType",
    "ARTPlanner",
    "StoryScorer",
    "build_graph",
    "build_iterations",
    "plan_art",
    "score_stories",
]
