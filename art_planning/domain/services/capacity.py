"""
Team capacity arithmetic, validation and utilization metrics.

All functions are pure. Capacity per iteration is
velocity * capacity_factor * (1 - buffer_capacity); teams without
velocity or capacity factor count as zero-capacity.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

from art_planning.core.config import PlanningConfig
from art_planning.domain.models.plan import Iteration, TeamCapacity
from art_planning.domain.models.work_items import ARTTeam

logger = logging.getLogger(__name__)

# Velocity above this many points per member is treated as suspicious
MAX_VELOCITY_PER_MEMBER = 10
LOW_UTILIZATION = 0.5
NO_BUFFER_UTILIZATION = 0.95
HIGH_OVERALL_UTILIZATION = 0.9
IMBALANCE_DEVIATION = 0.3


@dataclass
class CapacityMetrics:
    """Utilization across team-iteration slots that have capacity."""
    average_utilization: float = 0.0
    max_utilization: float = 0.0
    min_utilization: float = 0.0
    utilization_std_dev: float = 0.0
    slots_at_ceiling: int = 0
    total_available: float = 0.0
    total_allocated: int = 0
    team_utilization: dict[str, float] = field(default_factory=dict)


def validate_team(team: ARTTeam) -> list[str]:
    """Return human-readable capacity problems for a team (empty when fine)."""
    issues: list[str] = []
    name = team.display_name

    if team.average_velocity is None or team.capacity_factor is None:
        issues.append(f"Team {name} is missing capacity data (velocity or capacity factor)")
    if team.average_velocity is not None and team.average_velocity <= 0:
        issues.append(f"Team {name} has non-positive velocity {team.average_velocity}")
    if team.member_count <= 0:
        issues.append(f"Team {name} has no members")
    if team.capacity_factor is not None and not 0.0 <= team.capacity_factor <= 1.0:
        issues.append(f"Team {name} capacity factor {team.capacity_factor} is outside 0..1")
    if (
        team.average_velocity is not None
        and team.member_count > 0
        and team.average_velocity > team.member_count * MAX_VELOCITY_PER_MEMBER
    ):
        issues.append(
            f"Team {name} velocity {team.average_velocity} is unusually high "
            f"for {team.member_count} members"
        )

    return issues


def available_capacity(team: ARTTeam, buffer_capacity: float) -> float:
    """Points a team can take per iteration after the buffer. 0 when data is missing."""
    if not team.has_capacity_data:
        return 0.0
    factor = min(1.0, max(0.0, team.capacity_factor))
    return max(0.0, team.average_velocity * factor * (1 - buffer_capacity))


def team_capacity(team: ARTTeam, config: PlanningConfig) -> TeamCapacity:
    available = available_capacity(team, config.buffer_capacity)
    return TeamCapacity(
        team_id=team.id,
        team_name=team.display_name,
        available_capacity=available,
        allocation_ceiling=available * config.max_capacity_utilization,
    )


def _slots(iterations: Sequence[Iteration]) -> list[TeamCapacity]:
    return [cap for it in iterations for cap in it.team_capacities if cap.available_capacity > 0]


def capacity_metrics(iterations: Sequence[Iteration]) -> CapacityMetrics:
    slots = _slots(iterations)
    if not slots:
        return CapacityMetrics(
            total_allocated=sum(c.allocated_points for it in iterations for c in it.team_capacities),
        )

    utils = [c.utilization for c in slots]
    mean = sum(utils) / len(utils)
    variance = sum((u - mean) ** 2 for u in utils) / len(utils)

    per_team: dict[str, list[float]] = {}
    for cap in slots:
        per_team.setdefault(cap.team_id, []).append(cap.utilization)

    return CapacityMetrics(
        average_utilization=mean,
        max_utilization=max(utils),
        min_utilization=min(utils),
        utilization_std_dev=math.sqrt(variance),
        slots_at_ceiling=sum(1 for c in slots if c.allocated_points > 0 and c.remaining < 1),
        total_available=sum(c.available_capacity for c in slots),
        total_allocated=sum(c.allocated_points for it in iterations for c in it.team_capacities),
        team_utilization={tid: sum(v) / len(v) for tid, v in per_team.items()},
    )


def capacity_recommendations(
    iterations: Sequence[Iteration],
    config: PlanningConfig,
) -> list[str]:
    """Recommendations from capacity threshold breaches, in a stable order."""
    recommendations: list[str] = []
    if not iterations:
        return recommendations

    for iteration in iterations:
        for cap in iteration.team_capacities:
            if cap.available_capacity > 0 and cap.allocated_points > 0 and cap.remaining < 1:
                recommendations.append(
                    f"{iteration.name} at capacity for {cap.team_name} "
                    f"({cap.allocated_points}/{cap.allocation_ceiling:.1f} points)"
                )

    for cap in iterations[0].team_capacities:
        if cap.available_capacity <= 0:
            recommendations.append(
                f"Team {cap.team_name} has no available capacity; "
                f"provide velocity and capacity factor"
            )

    metrics = capacity_metrics(iterations)
    names = {cap.team_id: cap.team_name for cap in iterations[0].team_capacities}
    for team_id, utilization in metrics.team_utilization.items():
        if utilization < LOW_UTILIZATION:
            recommendations.append(
                f"Team {names[team_id]} is under-utilized ({utilization:.0%} average utilization)"
            )
        elif utilization > NO_BUFFER_UTILIZATION:
            recommendations.append(
                f"Team {names[team_id]} has no buffer left ({utilization:.0%} average utilization)"
            )

    if len(metrics.team_utilization) > 1:
        team_mean = sum(metrics.team_utilization.values()) / len(metrics.team_utilization)
        deviation = max(abs(u - team_mean) for u in metrics.team_utilization.values())
        if deviation > IMBALANCE_DEVIATION:
            recommendations.append(
                "Rebalance work across teams: utilization differs by more than "
                f"{IMBALANCE_DEVIATION:.0%} from the train average"
            )

    if metrics.average_utilization > HIGH_OVERALL_UTILIZATION:
        recommendations.append(
            f"Overall utilization {metrics.average_utilization:.0%} leaves little room "
            f"for unplanned work; reduce scope"
        )
    elif metrics.total_available > 0 and metrics.average_utilization < LOW_UTILIZATION:
        recommendations.append(
            f"Overall utilization {metrics.average_utilization:.0%} is below "
            f"{LOW_UTILIZATION:.0%}; consider pulling in more work"
        )

    return recommendations
