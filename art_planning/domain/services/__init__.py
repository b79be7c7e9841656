"""
Pure planning services.

No I/O beyond loading the packaged scoring tables. Every call is a
function of its arguments.
"""

from art_planning.domain.services.art_planner import ARTPlanner, plan_art
from art_planning.domain.services.dependency_analyzer import (
    analyze_dependency_impact,
    analyze_graph,
    build_graph,
    require_valid_graph,
)
from art_planning.domain.services.iteration_builder import build_iterations
from art_planning.domain.services.story_scorer import StoryScorer, score_stories

__all__ = [
    "ARTPlanner",
    "plan_art",
    "analyze_dependency_impact",
    "analyze_graph",
    "build_graph",
    "require_valid_graph",
    "build_iterations",
    "StoryScorer",
    "score_stories",
]
