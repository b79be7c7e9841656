"""
ART planner: dependency-ordered, capacity-bounded PI allocation.

Algorithm:
1. Validate inputs and analyze the dependency graph
2. Topological sort over HARD ordering edges; ready items are taken by
   WSJF DESC, then input order
3. Build iterations with per-team capacity
4. Greedy allocation: earliest iteration strictly after every HARD
   dependency, on a team whose allocation stays within its ceiling.
   Anything that cannot be placed goes to the final iteration, unplanned
5. Readiness, blockers, recommendations, summary

Same input always produces the same plan. Inputs are never mutated.
"""

import heapq
from typing import Mapping, Optional, Sequence, Union

from art_planning.core.config import PlanningConfig
from art_planning.core.logging import get_logger
from art_planning.domain.errors import AllocationWarning, PlanningValidationError
from art_planning.domain.models.graph import DependencyGraph
from art_planning.domain.models.plan import (
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
from art_planning.domain.models.scoring import ScoredStory
from art_planning.domain.models.work_items import (
    ARTTeam,
    DependencyEdge,
    PlanningWorkItem,
    ProgramIncrement,
    WorkItemType,
)
from art_planning.domain.services.capacity import (
    capacity_metrics,
    capacity_recommendations,
    validate_team,
)
from art_planning.domain.services.dependency_analyzer import (
    analyze_graph,
    build_graph,
    require_valid_graph,
)
from art_planning.domain.services.iteration_builder import (
    build_iterations,
    validate_program_increment,
)
from art_planning.domain.services.story_scorer import StoryScorer

logger = get_logger(__name__)

ALGORITHM_VERSION = "1.0.0"
UNASSIGNED_TEAM_ID = "unassigned"

# Allocation confidence
BASE_CONFIDENCE = 0.8
PER_DEPENDENCY_PENALTY = 0.05
LARGE_ITEM_POINTS = 5
SMALL_ITEM_POINTS = 2

# Summary risk thresholds
HIGH_UTILIZATION = 0.9
LOW_VALUE_CONFIDENCE = 0.7
DEPENDENCY_DENSITY = 0.5

GraphInput = Union[DependencyGraph, Sequence[DependencyEdge]]


class ARTPlanner:
    """Builds an ARTPlan for one PI. Holds only configuration between calls."""

    def __init__(self, config: Optional[PlanningConfig] = None, scorer: Optional[StoryScorer] = None):
        self.config = config or PlanningConfig()
        self._scorer = scorer

    @property
    def scorer(self) -> StoryScorer:
        if self._scorer is None:
            self._scorer = StoryScorer(self.config)
        return self._scorer

    def plan_art(
        self,
        pi: ProgramIncrement,
        work_items: Sequence[PlanningWorkItem],
        dependency_graph: GraphInput,
        teams: Sequence[ARTTeam],
        wsjf_scores: Optional[Mapping[str, float]] = None,
    ) -> ARTPlan:
        """
        Plan work items into the PI's iterations.

        Raises:
            PlanningValidationError: for None arguments, a PI that does not
                end after it starts, or (with strict_dependency_validation)
                an invalid dependency graph
        """
        self._validate_arguments(pi, work_items, dependency_graph, teams)
        log = logger.with_context(pi_id=pi.id)
        notes: list[str] = []

        items = _unique_items(work_items, notes)
        graph = self._resolve_graph(items, dependency_graph)
        if self.config.strict_dependency_validation:
            require_valid_graph(graph)

        log.info(
            f"[PLANNER] Planning {len(items)} work items across {len(teams)} teams",
            work_items=len(items),
            teams=len(teams),
        )

        wsjf = self._wsjf_scores(items, wsjf_scores, notes)

        item_ids = {item.id for item in items}
        ordering = [
            e for e in graph.ordering_edges
            if e.source_id in item_ids and e.target_id in item_ids
        ]
        prerequisites: dict[str, set[str]] = {item.id: set() for item in items}
        dependents: dict[str, set[str]] = {item.id: set() for item in items}
        for edge in ordering:
            prerequisites[edge.source_id].add(edge.target_id)
            dependents[edge.target_id].add(edge.source_id)

        order = _topological_order(items, prerequisites, dependents, wsjf)

        planning_teams = list(teams)
        for team in planning_teams:
            notes.extend(validate_team(team))
        if not planning_teams:
            notes.append("No teams supplied; planning against a zero-capacity placeholder team")
            planning_teams = [ARTTeam(
                id=UNASSIGNED_TEAM_ID,
                name="Unassigned",
                average_velocity=0.0,
                capacity_factor=0.0,
            )]

        iterations = build_iterations(pi, planning_teams, self.config)

        allocations, warnings = self._allocate(
            order, iterations, prerequisites, dependents, wsjf, planning_teams,
        )

        readiness = self._readiness(items, graph, allocations, iterations)
        summary = self._summary(items, graph, allocations, iterations, readiness)

        planned = summary.planned_work_items
        log.info(
            f"[PLANNER] Planned {planned}/{len(items)} items, "
            f"readiness {readiness.readiness_score:.2f}",
            planned=planned,
            unplanned=summary.unplanned_work_items,
        )
        for warning in warnings:
            log.warning(f"[PLANNER] {warning.item_id} unplanned: {warning.reason}", item_id=warning.item_id)

        return ARTPlan(
            program_increment=pi,
            iterations=iterations,
            work_items=allocations,
            dependencies=graph,
            art_readiness=readiness,
            summary=summary,
            metadata=ARTPlanMetadata(
                algorithm_version=ALGORITHM_VERSION,
                configuration=self.config.to_dict(),
                warnings=warnings,
                notes=notes,
            ),
        )

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def _validate_arguments(self, pi, work_items, dependency_graph, teams) -> None:
        missing = [
            name for name, value in (
                ("pi", pi),
                ("work_items", work_items),
                ("dependency_graph", dependency_graph),
                ("teams", teams),
            )
            if value is None
        ]
        if missing:
            raise PlanningValidationError(f"plan_art requires {', '.join(missing)} (got None)")
        validate_program_increment(pi)

    def _resolve_graph(self, items: list[PlanningWorkItem], dependency_graph: GraphInput) -> DependencyGraph:
        if isinstance(dependency_graph, DependencyGraph):
            return analyze_graph(dependency_graph, self.config)
        return build_graph(items, list(dependency_graph), self.config)

    def _wsjf_scores(
        self,
        items: list[PlanningWorkItem],
        supplied: Optional[Mapping[str, float]],
        notes: list[str],
    ) -> dict[str, float]:
        if supplied is not None:
            return {item.id: float(supplied.get(item.id, 0.0)) for item in items}
        if not self.config.score_work_items:
            return {item.id: 0.0 for item in items}

        # Pre-scored items keep their WSJF
        by_id = {item.id: item.wsjf_score for item in items if isinstance(item, ScoredStory)}
        unscored = [item for item in items if item.id not in by_id]
        if unscored:
            result = self.scorer.score_stories(unscored)
            for error in result.errors:
                notes.append(f"Scoring failed for {error.story_id}; treated as WSJF 0: {error}")
            by_id.update(result.wsjf_by_id())
        return {item.id: by_id.get(item.id, 0.0) for item in items}

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def _allocate(
        self,
        order: list[PlanningWorkItem],
        iterations: list[Iteration],
        prerequisites: dict[str, set[str]],
        dependents: dict[str, set[str]],
        wsjf: dict[str, float],
        teams: list[ARTTeam],
    ) -> tuple[list[AllocatedWorkItem], list[AllocationWarning]]:
        team_ids = {team.id for team in teams}
        final = iterations[-1]
        placed: dict[str, int] = {}
        allocations: list[AllocatedWorkItem] = []
        warnings: list[AllocationWarning] = []

        for item in order:
            prereqs = sorted(prerequisites[item.id])
            blocked_by_unplanned = [p for p in prereqs if p not in placed]
            reason = ""
            slot: Optional[tuple[Iteration, TeamCapacity]] = None

            if blocked_by_unplanned:
                reason = f"Depends on unplanned work item(s): {', '.join(blocked_by_unplanned)}"
                suggestions = ("Resolve the blocking dependencies or plan them first",)
            else:
                earliest = max((placed[p] for p in prereqs), default=-1) + 1
                preferred = item.team_id if item.team_id in team_ids else None
                slot = _find_slot(iterations, earliest, item.points, preferred)
                if slot is None:
                    if earliest >= len(iterations):
                        reason = "Dependencies complete in the final iteration; no later iteration available"
                    else:
                        team_label = f"team {preferred}" if preferred else "any team"
                        reason = (
                            f"No capacity for {item.points} points on {team_label} "
                            f"from {iterations[earliest].name} onwards"
                        )
                    suggestions = (
                        "Split the work item into smaller stories",
                        "Increase team capacity or descope lower-priority work",
                    )

            if slot is None:
                final.allocated_item_ids.append(item.id)
                warnings.append(AllocationWarning(
                    item_id=item.id,
                    reason=reason,
                    blockers=tuple(blocked_by_unplanned),
                    suggestions=suggestions,
                ))
                allocations.append(AllocatedWorkItem(
                    work_item=item,
                    iteration_index=final.index,
                    iteration_id=final.id,
                    team_id=None,
                    allocated_points=item.points,
                    wsjf_score=wsjf[item.id],
                    unplanned=True,
                    confidence=0.0,
                    rationale=reason,
                    blocked_by=prereqs,
                    enables=sorted(dependents[item.id]),
                ))
                continue

            iteration, capacity = slot
            capacity.allocated_points += item.points
            iteration.allocated_item_ids.append(item.id)
            placed[item.id] = iteration.index
            allocations.append(AllocatedWorkItem(
                work_item=item,
                iteration_index=iteration.index,
                iteration_id=iteration.id,
                team_id=capacity.team_id,
                allocated_points=item.points,
                wsjf_score=wsjf[item.id],
                unplanned=False,
                confidence=_allocation_confidence(item, len(prereqs)),
                rationale=(
                    f"Allocated to {iteration.name} based on dependency ordering "
                    f"and team {capacity.team_name} capacity"
                ),
                blocked_by=prereqs,
                enables=sorted(dependents[item.id]),
            ))

        return allocations, warnings

    # ------------------------------------------------------------------
    # Readiness and summary
    # ------------------------------------------------------------------

    def _readiness(
        self,
        items: list[PlanningWorkItem],
        graph: DependencyGraph,
        allocations: list[AllocatedWorkItem],
        iterations: list[Iteration],
    ) -> ARTReadiness:
        integrity = _dependency_integrity(items, graph, allocations)
        metrics = capacity_metrics(iterations)
        balance = _capacity_balance(metrics.average_utilization, self.config.target_utilization)
        value = _value_delivery(items, allocations)

        blockers: list[Blocker] = []
        for cycle in graph.circular_dependencies:
            blockers.append(Blocker(
                code="CIRCULAR_DEPENDENCY",
                message=f"Circular dependency: {' -> '.join(cycle.cycle + cycle.cycle[:1])}",
                item_ids=list(cycle.cycle),
            ))
        for alloc in allocations:
            if alloc.unplanned:
                blockers.append(Blocker(
                    code="UNPLANNED_WORK_ITEM",
                    message=f"{alloc.item_id} could not be planned: {alloc.rationale}",
                    item_ids=[alloc.item_id],
                ))

        if items:
            w = self.config.readiness_weights
            total_weight = w.dependency_integrity + w.capacity_balance + w.value_delivery
            score = (
                integrity * w.dependency_integrity
                + balance * w.capacity_balance
                + value * w.value_delivery
            ) / total_weight
        else:
            score = 0.0

        recommendations = capacity_recommendations(iterations, self.config)
        recommendations.extend(self._graph_recommendations(graph, allocations))
        if items and integrity < 1.0:
            recommendations.append(
                f"Dependency integrity is {integrity:.0%}; sequence prerequisites into earlier iterations"
            )
        if items and value < self.config.min_value_delivery_threshold:
            recommendations.append(
                f"Value delivery confidence is {value:.0%}; add acceptance criteria "
                f"and plan the remaining work items"
            )

        return ARTReadiness(
            readiness_score=score,
            dependency_integrity=integrity,
            capacity_balance=balance,
            value_delivery_confidence=value,
            is_ready=not blockers and score >= self.config.min_readiness_score,
            critical_blockers=blockers,
            recommendations=recommendations,
        )

    def _graph_recommendations(
        self,
        graph: DependencyGraph,
        allocations: list[AllocatedWorkItem],
    ) -> list[str]:
        recommendations: list[str] = []

        unplanned = [a.item_id for a in allocations if a.unplanned]
        if unplanned:
            recommendations.append(
                f"{len(unplanned)} work item(s) could not be planned within the PI; "
                f"split or descope: {', '.join(unplanned)}"
            )

        for cycle in graph.circular_dependencies:
            recommendations.append(
                f"Break circular dependency {' -> '.join(cycle.cycle + cycle.cycle[:1])}"
            )

        validation = graph.validation
        if validation is not None:
            dangling = [
                item_id
                for issue in validation.errors if issue.code == "DANGLING_REFERENCE"
                for item_id in issue.affected_items
            ]
            if dangling:
                recommendations.append(
                    f"Fix dependencies referencing missing work items: {', '.join(sorted(set(dangling)))}"
                )

        if graph.statistics.high_dependency_items:
            recommendations.append(
                "Reduce coupling of high-dependency items: "
                f"{', '.join(graph.statistics.high_dependency_items)}"
            )

        return recommendations

    def _summary(
        self,
        items: list[PlanningWorkItem],
        graph: DependencyGraph,
        allocations: list[AllocatedWorkItem],
        iterations: list[Iteration],
        readiness: ARTReadiness,
    ) -> ARTPlanSummary:
        metrics = capacity_metrics(iterations)
        planned = sum(1 for a in allocations if not a.unplanned)
        planned_fraction = planned / len(items) if items else 0.0
        value = readiness.value_delivery_confidence

        high_utilization = metrics.average_utilization > HIGH_UTILIZATION
        low_value = value < LOW_VALUE_CONFIDENCE
        if high_utilization and low_value:
            risk_level = "high"
        elif high_utilization or low_value or len(graph.edges) > len(items) * DEPENDENCY_DENSITY:
            risk_level = "medium"
        else:
            risk_level = "low"

        stories = [i for i in items if i.type == WorkItemType.STORY]
        properly_sized = (
            sum(1 for s in stories if 1 <= s.points <= 5) / len(stories) if stories else 1.0
        )
        with_value = sum(
            1 for it in iterations
            if any(a.iteration_index == it.index and not a.unplanned for a in allocations)
        )

        return ARTPlanSummary(
            total_iterations=len(iterations),
            total_work_items=len(items),
            planned_work_items=planned,
            unplanned_work_items=len(items) - planned,
            total_story_points=sum(i.points for i in items),
            average_capacity_utilization=metrics.average_utilization,
            total_dependencies=len(graph.edges),
            critical_path_length=len(graph.critical_path),
            value_delivery_confidence=value,
            risk_level=risk_level,
            metrics=PlanMetrics(
                planning_confidence=0.5 * readiness.readiness_score + 0.5 * planned_fraction,
                properly_sized_stories=properly_sized,
                dependency_resolution=readiness.dependency_integrity,
                iterations_with_value=with_value / len(iterations) if iterations else 0.0,
                capacity_balance=max(0.0, 1.0 - metrics.utilization_std_dev),
            ),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _unique_items(work_items: Sequence[PlanningWorkItem], notes: list[str]) -> list[PlanningWorkItem]:
    seen: set[str] = set()
    unique: list[PlanningWorkItem] = []
    for item in work_items:
        if item.id in seen:
            notes.append(f"Duplicate work item {item.id} ignored")
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def _topological_order(
    items: list[PlanningWorkItem],
    prerequisites: dict[str, set[str]],
    dependents: dict[str, set[str]],
    wsjf: dict[str, float],
) -> list[PlanningWorkItem]:
    """
    Kahn's algorithm; among ready items the highest WSJF goes first,
    then the earliest in input order.

    Items left on a residual cycle are appended in the same key order;
    allocation then marks them unplanned.
    """
    index = {item.id: i for i, item in enumerate(items)}
    items_by_id = {item.id: item for item in items}
    in_degree = {item.id: len(prerequisites[item.id]) for item in items}

    def key(item_id: str) -> tuple[float, int]:
        return (-wsjf[item_id], index[item_id])

    ready = [key(nid) + (nid,) for nid, d in in_degree.items() if d == 0]
    heapq.heapify(ready)
    result: list[str] = []

    while ready:
        *_, nid = heapq.heappop(ready)
        result.append(nid)
        for dep in dependents[nid]:
            in_degree[dep] -= 1
            if in_degree[dep] == 0:
                heapq.heappush(ready, key(dep) + (dep,))

    if len(result) != len(items):
        done = set(result)
        leftover = sorted((nid for nid in in_degree if nid not in done), key=key)
        logger.warning(
            f"[PLANNER] {len(leftover)} work items remain on a dependency cycle",
            item_ids=leftover,
        )
        result.extend(leftover)

    return [items_by_id[nid] for nid in result]


def _find_slot(
    iterations: list[Iteration],
    earliest: int,
    points: int,
    preferred_team: Optional[str],
) -> Optional[tuple[Iteration, TeamCapacity]]:
    """Earliest iteration from `earliest` with a team that can take `points`.

    The preferred team is the only candidate when given; otherwise the
    team with the most remaining headroom wins, ties by team order.
    """
    for iteration in iterations[earliest:]:
        candidates = [
            cap for cap in iteration.team_capacities
            if preferred_team is None or cap.team_id == preferred_team
        ]
        fitting = [cap for cap in candidates if cap.can_fit(points)]
        if fitting:
            return iteration, max(fitting, key=lambda cap: cap.remaining)
    return None


def _allocation_confidence(item: PlanningWorkItem, dependency_count: int) -> float:
    confidence = BASE_CONFIDENCE - PER_DEPENDENCY_PENALTY * dependency_count
    if item.points > LARGE_ITEM_POINTS:
        confidence -= 0.1
    elif item.points <= SMALL_ITEM_POINTS:
        confidence += 0.1
    return round(min(1.0, max(0.1, confidence)), 4)


def _dependency_integrity(
    items: list[PlanningWorkItem],
    graph: DependencyGraph,
    allocations: list[AllocatedWorkItem],
) -> float:
    """Share of HARD edges between work items whose target is planned before the planned source."""
    item_ids = {item.id for item in items}
    planned_at = {a.item_id: a.iteration_index for a in allocations if not a.unplanned}
    relevant = [
        e for e in graph.edges
        if e.is_hard
        and e.source_id != e.target_id
        and e.source_id in item_ids
        and e.target_id in item_ids
    ]
    if not relevant:
        return 1.0

    satisfied = sum(
        1 for e in relevant
        if e.source_id in planned_at
        and e.target_id in planned_at
        and planned_at[e.target_id] < planned_at[e.source_id]
    )
    return satisfied / len(relevant)


def _capacity_balance(average_utilization: float, target: float) -> float:
    spread = max(target, 1.0 - target)
    balance = 1.0 - abs(average_utilization - target) / spread
    return min(1.0, max(0.0, balance))


def _value_delivery(items: list[PlanningWorkItem], allocations: list[AllocatedWorkItem]) -> float:
    if not items:
        return 0.0
    delivered = sum(
        1 for a in allocations
        if not a.unplanned and a.work_item.acceptance_criteria
    )
    return delivered / len(items)


def plan_art(
    pi: ProgramIncrement,
    work_items: Sequence[PlanningWorkItem],
    dependency_graph: GraphInput,
    teams: Sequence[ARTTeam],
    config: Optional[PlanningConfig] = None,
    wsjf_scores: Optional[Mapping[str, float]] = None,
) -> ARTPlan:
    """Plan a PI with a fresh ARTPlanner."""
    return ARTPlanner(config).plan_art(pi, work_items, dependency_graph, teams, wsjf_scores)
