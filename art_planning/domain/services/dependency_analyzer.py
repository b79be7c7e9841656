"""
Dependency graph construction and analysis.

Builds a DependencyGraph snapshot from flat nodes + edges: reference
validation, cycle detection over HARD edges, cycle breaking, critical path
and statistics. All functions are pure; inputs are never mutated.

Edge direction: source depends on target, so target must be scheduled
first. Traversals follow source -> target.
"""

import logging
from collections import deque
from typing import Iterable, Iterator, Optional, Sequence

from art_planning.core.config import PlanningConfig
from art_planning.domain.errors import PlanningValidationError
from art_planning.domain.models.graph import (
    CircularDependency,
    DependencyGraph,
    DependencyImpact,
    GraphStatistics,
    GraphValidation,
    ValidationIssue,
)
from art_planning.domain.models.work_items import DependencyEdge, PlanningWorkItem

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------

def build_graph(
    nodes: Sequence[PlanningWorkItem],
    edges: Sequence[DependencyEdge],
    config: Optional[PlanningConfig] = None,
) -> DependencyGraph:
    """
    Build and validate a dependency graph.

    Never raises for graph problems: dangling and self references are
    reported as errors and excluded, cycles are reported and broken by
    dropping their weakest edge. Only None arguments are rejected.
    """
    if nodes is None or edges is None:
        raise PlanningValidationError("build_graph requires nodes and edges (got None)")

    config = config or PlanningConfig()
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    info: list[ValidationIssue] = []

    unique_nodes = _dedupe_nodes(nodes, warnings)
    node_ids = {n.id for n in unique_nodes}
    unique_edges = _dedupe_edges(edges, errors, warnings)

    excluded: list[str] = []
    valid_edges: list[DependencyEdge] = []
    for edge in unique_edges:
        if edge.source_id == edge.target_id:
            errors.append(ValidationIssue(
                code="SELF_REFERENCE",
                message=f"Dependency {edge.id}: {edge.source_id} depends on itself",
                affected_items=[edge.source_id],
            ))
            excluded.append(edge.id)
            continue

        missing = [nid for nid in (edge.source_id, edge.target_id) if nid not in node_ids]
        if missing:
            errors.append(ValidationIssue(
                code="DANGLING_REFERENCE",
                message=(
                    f"Dependency {edge.id} references {', '.join(missing)} "
                    f"which does not exist in the graph"
                ),
                affected_items=missing,
            ))
            excluded.append(edge.id)
            continue

        valid_edges.append(edge)

    hard_edges = [e for e in valid_edges if e.is_hard]

    cycles = detect_cycles(node_ids, hard_edges)
    if cycles:
        logger.warning(f"[GRAPH] {len(cycles)} circular dependencies detected")
    for cycle in cycles:
        errors.append(ValidationIssue(
            code="CIRCULAR_DEPENDENCY",
            message=f"Circular dependency detected: {' -> '.join(cycle.cycle + cycle.cycle[:1])}",
            affected_items=list(cycle.cycle),
        ))

    dropped = break_cycles(node_ids, hard_edges)
    if dropped:
        excluded.extend(dropped)
        info.append(ValidationIssue(
            code="CYCLE_EDGE_DROPPED",
            message=(
                f"Dropped {len(dropped)} dependency edge(s) to break cycles: "
                f"{', '.join(dropped)}"
            ),
            affected_items=list(dropped),
        ))

    excluded_set = set(excluded)
    ordering = [e for e in hard_edges if e.id not in excluded_set]

    critical_path, duration = compute_critical_path(unique_nodes, ordering)
    statistics = compute_statistics(
        unique_nodes,
        unique_edges,
        hard_edges,
        critical_path,
        duration,
        config.high_dependency_threshold,
    )

    if statistics.high_dependency_items:
        warnings.append(ValidationIssue(
            code="HIGH_DEPENDENCY_ITEMS",
            message=(
                f"{len(statistics.high_dependency_items)} item(s) have more than "
                f"{config.high_dependency_threshold} hard dependencies"
            ),
            affected_items=list(statistics.high_dependency_items),
        ))

    isolated = _isolated_ids(unique_nodes, hard_edges)
    if isolated and len(isolated) < len(unique_nodes):
        info.append(ValidationIssue(
            code="ISOLATED_NODES",
            message=f"{len(isolated)} item(s) have no hard dependencies in either direction",
            affected_items=isolated,
        ))

    validation = GraphValidation(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        info=info,
    )

    logger.info(
        f"[GRAPH] Built graph: {len(unique_nodes)} nodes, {len(unique_edges)} edges, "
        f"{len(cycles)} cycles, {len(excluded)} excluded edges"
    )

    return DependencyGraph(
        nodes=unique_nodes,
        edges=unique_edges,
        critical_path=critical_path,
        circular_dependencies=cycles,
        validation=validation,
        statistics=statistics,
        excluded_edge_ids=excluded,
    )


def analyze_graph(graph: DependencyGraph, config: Optional[PlanningConfig] = None) -> DependencyGraph:
    """Return graph unchanged if already validated, otherwise a freshly analyzed copy."""
    if graph.is_validated:
        return graph
    return build_graph(graph.nodes, graph.edges, config)


def require_valid_graph(graph: DependencyGraph) -> None:
    """Raise PlanningValidationError if the graph carries validation errors."""
    if graph.validation is None:
        raise PlanningValidationError("Dependency graph has not been validated")
    if graph.validation.is_valid:
        return

    affected: list[str] = []
    for issue in graph.validation.errors:
        for item_id in issue.affected_items:
            if item_id not in affected:
                affected.append(item_id)

    codes = sorted({issue.code for issue in graph.validation.errors})
    raise PlanningValidationError(
        f"Dependency graph is invalid ({', '.join(codes)}): {', '.join(affected)}",
        item_ids=affected,
    )


def _dedupe_nodes(
    nodes: Iterable[PlanningWorkItem],
    warnings: list[ValidationIssue],
) -> list[PlanningWorkItem]:
    seen: set[str] = set()
    unique: list[PlanningWorkItem] = []
    for node in nodes:
        if node.id in seen:
            warnings.append(ValidationIssue(
                code="DUPLICATE_NODE",
                message=f"Duplicate work item id {node.id}; keeping the first occurrence",
                affected_items=[node.id],
            ))
            continue
        seen.add(node.id)
        unique.append(node)
    return unique


def _dedupe_edges(
    edges: Iterable[DependencyEdge],
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> list[DependencyEdge]:
    """
    Keep the first edge for each id.

    A verbatim repeat is a warning. A different edge reusing an id is an
    error, since exclusions are tracked by edge id.
    """
    first: dict[str, DependencyEdge] = {}
    unique: list[DependencyEdge] = []
    for edge in edges:
        kept = first.get(edge.id)
        if kept is None:
            first[edge.id] = edge
            unique.append(edge)
        elif kept == edge:
            warnings.append(ValidationIssue(
                code="DUPLICATE_EDGE",
                message=f"Dependency {edge.id} listed more than once; keeping the first occurrence",
                affected_items=[edge.source_id, edge.target_id],
            ))
        else:
            errors.append(ValidationIssue(
                code="DUPLICATE_EDGE",
                message=(
                    f"Dependency id {edge.id} is reused for {edge.source_id} -> {edge.target_id}; "
                    f"keeping {kept.source_id} -> {kept.target_id}"
                ),
                affected_items=[edge.source_id, edge.target_id],
            ))
    return unique


def _adjacency(node_ids: Iterable[str], edges: Iterable[DependencyEdge]) -> dict[str, list[str]]:
    adj: dict[str, list[str]] = {nid: [] for nid in node_ids}
    for edge in edges:
        if edge.source_id in adj and edge.target_id in adj:
            adj[edge.source_id].append(edge.target_id)
    return adj


def _isolated_ids(nodes: Sequence[PlanningWorkItem], hard_edges: Sequence[DependencyEdge]) -> list[str]:
    touched = {e.source_id for e in hard_edges} | {e.target_id for e in hard_edges}
    return [n.id for n in nodes if n.id not in touched]


# ---------------------------------------------------------------------------
# Cycle detection and breaking
# ---------------------------------------------------------------------------

def detect_cycles(node_ids: Iterable[str], hard_edges: Sequence[DependencyEdge]) -> list[CircularDependency]:
    """
    Detect cycles over HARD edges using DFS colouring.

    Deterministic: nodes and neighbours are visited in sorted id order.
    Each cycle is reported once, rotated to start at its smallest id,
    without repeating the closing node.
    """
    adj = _adjacency(node_ids, hard_edges)

    WHITE, GRAY, BLACK = 0, 1, 2
    color: dict[str, int] = {nid: WHITE for nid in adj}
    parent_map: dict[str, Optional[str]] = {nid: None for nid in adj}
    raw_cycles: list[list[str]] = []

    def dfs(start: str) -> None:
        # Iterative so deep chains do not hit the recursion limit
        stack: list[tuple[str, Iterator[str]]] = [(start, iter(sorted(set(adj[start]))))]
        color[start] = GRAY
        while stack:
            node, neighbors = stack[-1]
            advanced = False
            for neighbor in neighbors:
                if color[neighbor] == GRAY:
                    # Back edge: walk parents from node back to neighbor
                    cycle = [node]
                    current = node
                    while current != neighbor:
                        current = parent_map[current]
                        cycle.append(current)
                    cycle.reverse()
                    raw_cycles.append(cycle)
                elif color[neighbor] == WHITE:
                    parent_map[neighbor] = node
                    color[neighbor] = GRAY
                    stack.append((neighbor, iter(sorted(set(adj[neighbor])))))
                    advanced = True
                    break
            if not advanced:
                color[node] = BLACK
                stack.pop()

    for nid in sorted(adj):
        if color[nid] == WHITE:
            dfs(nid)

    cycles: list[CircularDependency] = []
    seen: set[tuple[str, ...]] = set()
    for raw in raw_cycles:
        normalized = _rotate_to_min(raw)
        key = tuple(normalized)
        if key in seen:
            continue
        seen.add(key)
        cycles.append(CircularDependency(
            cycle=normalized,
            edge_ids=_cycle_edge_ids(normalized, hard_edges),
            severity="critical",
            resolution_suggestions=_resolution_suggestions(normalized),
        ))

    return cycles


def break_cycles(node_ids: Iterable[str], hard_edges: Sequence[DependencyEdge]) -> list[str]:
    """
    Drop edges until the HARD subgraph is acyclic.

    Policy: for each remaining cycle drop its weakest edge, the lowest
    confidence, ties broken by greatest edge id. Returns dropped edge ids
    in the order they were dropped.
    """
    node_ids = list(node_ids)
    remaining = list(hard_edges)
    dropped: list[str] = []

    while True:
        cycles = detect_cycles(node_ids, remaining)
        if not cycles:
            break
        cycle = cycles[0].cycle
        members = set(zip(cycle, cycle[1:] + cycle[:1]))
        candidates = [e for e in remaining if (e.source_id, e.target_id) in members]
        candidates.sort(key=lambda e: e.id, reverse=True)
        weakest = min(candidates, key=lambda e: e.confidence)
        dropped.append(weakest.id)
        remaining = [e for e in remaining if e.id != weakest.id]
        logger.info(
            f"[GRAPH] Dropped edge {weakest.id} ({weakest.source_id} -> {weakest.target_id}, "
            f"confidence {weakest.confidence}) to break cycle {cycle}"
        )

    return dropped


def _rotate_to_min(cycle: list[str]) -> list[str]:
    pivot = cycle.index(min(cycle))
    return cycle[pivot:] + cycle[:pivot]


def _cycle_edge_ids(cycle: list[str], edges: Sequence[DependencyEdge]) -> list[str]:
    ids: list[str] = []
    for source, target in zip(cycle, cycle[1:] + cycle[:1]):
        matching = sorted(e.id for e in edges if e.source_id == source and e.target_id == target)
        if matching:
            ids.append(matching[0])
    return ids


def _resolution_suggestions(cycle: list[str]) -> list[str]:
    suggestions = [
        "Review the necessity of each dependency in the cycle",
        "Consider downgrading one of the dependencies to SOFT",
        "Reorder work items to create a linear dependency chain",
    ]
    if len(cycle) > 3:
        suggestions.append("Split large work items to reduce dependency complexity")
    return suggestions


# ---------------------------------------------------------------------------
# Critical path
# ---------------------------------------------------------------------------

def _weight(item: PlanningWorkItem) -> int:
    return item.points if item.points > 0 else 1


def compute_critical_path(
    nodes: Sequence[PlanningWorkItem],
    ordering_edges: Sequence[DependencyEdge],
) -> tuple[list[str], int]:
    """
    Longest chain of ordering edges weighted by story points (weight 1 when 0 or absent).

    Precondition: ordering_edges are acyclic. Returns (path listed
    dependency-first, cumulative weight). Ties resolve to smaller ids.
    """
    if not nodes:
        return [], 0

    items_by_id = {n.id: n for n in nodes}
    deps = _adjacency(items_by_id, ordering_edges)  # source -> targets it depends on
    dependents: dict[str, list[str]] = {nid: [] for nid in items_by_id}
    in_degree: dict[str, int] = {nid: 0 for nid in items_by_id}
    for source, targets in deps.items():
        for target in targets:
            dependents[target].append(source)
            in_degree[source] += 1

    # Kahn: dependencies come out before their dependents
    order: list[str] = []
    ready = deque(sorted(nid for nid, d in in_degree.items() if d == 0))
    while ready:
        nid = ready.popleft()
        order.append(nid)
        for dep in sorted(dependents[nid]):
            in_degree[dep] -= 1
            if in_degree[dep] == 0:
                ready.append(dep)

    if len(order) != len(items_by_id):
        raise ValueError(
            f"Cycle detected during critical path computation: "
            f"processed {len(order)} of {len(items_by_id)} items"
        )

    dist: dict[str, int] = {}
    prev: dict[str, Optional[str]] = {}
    for nid in order:
        best: Optional[str] = None
        for target in sorted(set(deps[nid])):
            if best is None or dist[target] > dist[best]:
                best = target
        dist[nid] = _weight(items_by_id[nid]) + (dist[best] if best is not None else 0)
        prev[nid] = best

    end = min(dist, key=lambda nid: (-dist[nid], nid))
    path: list[str] = []
    current: Optional[str] = end
    while current is not None:
        path.append(current)
        current = prev[current]

    # Walked from the dependent end back to the root dependency
    path.reverse()
    return path, dist[end]


# ---------------------------------------------------------------------------
# Statistics and impact
# ---------------------------------------------------------------------------

def compute_statistics(
    nodes: Sequence[PlanningWorkItem],
    edges: Sequence[DependencyEdge],
    hard_edges: Sequence[DependencyEdge],
    critical_path: list[str],
    estimated_duration: int,
    high_dependency_threshold: int = 3,
) -> GraphStatistics:
    """Derived graph statistics. Degree counts use valid HARD edges."""
    degree: dict[str, int] = {n.id: 0 for n in nodes}
    for edge in hard_edges:
        degree[edge.source_id] = degree.get(edge.source_id, 0) + 1
        degree[edge.target_id] = degree.get(edge.target_id, 0) + 1

    hard_count = sum(1 for e in edges if e.is_hard)
    return GraphStatistics(
        node_count=len(nodes),
        edge_count=len(edges),
        hard_dependencies=hard_count,
        soft_dependencies=len(edges) - hard_count,
        average_dependencies=len(edges) / max(len(nodes), 1),
        independent_items=sum(1 for n in nodes if degree[n.id] == 0),
        high_dependency_items=[
            n.id for n in nodes if degree[n.id] > high_dependency_threshold
        ],
        longest_path=len(critical_path),
        estimated_duration=estimated_duration,
    )


def analyze_dependency_impact(graph: DependencyGraph, item_id: str) -> DependencyImpact:
    """
    Everything downstream of item_id if it slips.

    Direct impacts depend on the item through an ordering edge; indirect
    impacts depend on it transitively. Ids are returned in sorted order.
    """
    items_by_id = {n.id: n for n in graph.nodes}
    if item_id not in items_by_id:
        raise PlanningValidationError(f"Work item {item_id} is not in the graph", item_ids=[item_id])

    dependents: dict[str, set[str]] = {nid: set() for nid in items_by_id}
    for edge in graph.ordering_edges:
        if edge.target_id in dependents and edge.source_id in items_by_id:
            dependents[edge.target_id].add(edge.source_id)

    direct = sorted(dependents[item_id])
    seen: set[str] = set(direct)
    queue = deque(direct)
    while queue:
        current = queue.popleft()
        for nxt in sorted(dependents[current]):
            if nxt not in seen and nxt != item_id:
                seen.add(nxt)
                queue.append(nxt)

    indirect = sorted(seen - set(direct))
    affected = len(direct) + len(indirect)
    timeline = sum(items_by_id[nid].points for nid in seen)

    if affected == 0:
        risk = "low"
    elif item_id in graph.critical_path:
        risk = "critical"
    elif affected > 5:
        risk = "high"
    else:
        risk = "medium"

    return DependencyImpact(
        item_id=item_id,
        direct_impacts=direct,
        indirect_impacts=indirect,
        timeline_impact=timeline,
        risk_level=risk,
    )
