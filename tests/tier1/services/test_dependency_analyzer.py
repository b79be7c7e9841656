"""
Tier-1 tests for dependency_analyzer.py.

Pure in-memory, no I/O.
Tests build_graph (references, cycles, cycle breaking, critical path,
statistics), analyze_dependency_impact, require_valid_graph.
"""

import pytest

from art_planning.core.config import PlanningConfig
from art_planning.domain.errors import PlanningValidationError
from art_planning.domain.models import (
    DependencyEdge,
    DependencyGraph,
    DependencyStrength,
    PlanningWorkItem,
)
from art_planning.domain.services.dependency_analyzer import (
    analyze_dependency_impact,
    analyze_graph,
    build_graph,
    compute_critical_path,
    detect_cycles,
    require_valid_graph,
)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def item(id, points=None, **kwargs):
    return PlanningWorkItem(id=id, title=f"Item {id}", story_points=points, **kwargs)


def requires(id, source, target, strength=DependencyStrength.HARD, confidence=1.0):
    """source requires target."""
    return DependencyEdge(
        id=id,
        source_id=source,
        target_id=target,
        strength=strength,
        confidence=confidence,
    )


def codes(issues):
    return [issue.code for issue in issues]


# ===========================================================================
# Reference validation
# ===========================================================================

class TestReferenceValidation:

    def test_valid_graph(self):
        graph = build_graph(
            [item("A"), item("B")],
            [requires("e1", "B", "A")],
        )
        assert graph.validation.is_valid is True
        assert graph.validation.errors == []
        assert graph.excluded_edge_ids == []
        assert [e.id for e in graph.ordering_edges] == ["e1"]

    def test_dangling_reference_is_error_not_exception(self):
        graph = build_graph(
            [item("A")],
            [requires("e1", "A", "ZZZ")],
        )
        assert graph.validation.is_valid is False
        assert codes(graph.validation.errors) == ["DANGLING_REFERENCE"]
        error = graph.validation.errors[0]
        assert "e1" in error.message
        assert "ZZZ" in error.message
        assert error.affected_items == ["ZZZ"]

    def test_dangling_edge_excluded_from_ordering(self):
        graph = build_graph(
            [item("A"), item("B")],
            [requires("e1", "B", "A"), requires("e2", "A", "missing")],
        )
        assert graph.excluded_edge_ids == ["e2"]
        assert [e.id for e in graph.ordering_edges] == ["e1"]
        assert graph.critical_path == ["A", "B"]

    def test_self_reference(self):
        graph = build_graph([item("A")], [requires("e1", "A", "A")])
        assert codes(graph.validation.errors) == ["SELF_REFERENCE"]
        assert graph.excluded_edge_ids == ["e1"]
        assert graph.circular_dependencies == []

    def test_duplicate_node_keeps_first(self):
        graph = build_graph(
            [item("A", points=3), item("A", points=8)],
            [],
        )
        assert len(graph.nodes) == 1
        assert graph.nodes[0].story_points == 3
        assert codes(graph.validation.warnings) == ["DUPLICATE_NODE"]
        assert graph.validation.is_valid is True

    def test_reused_edge_id_keeps_first_edge(self):
        """A dangling edge reusing a valid edge's id must not knock the valid one out."""
        graph = build_graph(
            [item("A"), item("B")],
            [requires("e1", "A", "B"), requires("e1", "A", "GHOST")],
        )
        assert codes(graph.validation.errors) == ["DUPLICATE_EDGE"]
        assert graph.validation.errors[0].affected_items == ["A", "GHOST"]
        assert [(e.source_id, e.target_id) for e in graph.edges] == [("A", "B")]
        assert graph.excluded_edge_ids == []
        assert [(e.source_id, e.target_id) for e in graph.ordering_edges] == [("A", "B")]

    def test_repeated_edge_is_warning(self):
        graph = build_graph(
            [item("A"), item("B")],
            [requires("e1", "A", "B"), requires("e1", "A", "B")],
        )
        assert graph.validation.is_valid is True
        assert codes(graph.validation.warnings) == ["DUPLICATE_EDGE"]
        assert graph.statistics.edge_count == 1

    def test_reused_edge_id_fails_strict_validation(self):
        graph = build_graph(
            [item("A"), item("B"), item("C")],
            [requires("e1", "A", "B"), requires("e1", "C", "B")],
        )
        with pytest.raises(PlanningValidationError, match="DUPLICATE_EDGE") as exc_info:
            require_valid_graph(graph)
        assert exc_info.value.item_ids == ["C", "B"]

    def test_none_arguments_rejected(self):
        with pytest.raises(PlanningValidationError, match="requires nodes and edges"):
            build_graph(None, [])

    def test_inputs_not_mutated(self):
        nodes = [item("A"), item("B")]
        edges = [requires("e1", "A", "B"), requires("e2", "B", "A")]
        build_graph(nodes, edges)
        assert [n.id for n in nodes] == ["A", "B"]
        assert [e.id for e in edges] == ["e1", "e2"]


# ===========================================================================
# Cycle detection
# ===========================================================================

class TestCycleDetection:

    def test_three_node_cycle_reported(self):
        """A→B→C→A yields [A, B, C]."""
        graph = build_graph(
            [item("A"), item("B"), item("C")],
            [
                requires("e1", "A", "B"),
                requires("e2", "B", "C"),
                requires("e3", "C", "A"),
            ],
        )
        assert len(graph.circular_dependencies) == 1
        cycle = graph.circular_dependencies[0]
        assert cycle.cycle == ["A", "B", "C"]
        assert cycle.edge_ids == ["e1", "e2", "e3"]
        assert cycle.severity == "critical"
        assert "CIRCULAR_DEPENDENCY" in codes(graph.validation.errors)
        assert graph.validation.is_valid is False

    def test_cycle_rotated_to_smallest_id(self):
        graph = build_graph(
            [item("C"), item("B"), item("A")],
            [
                requires("e1", "C", "A"),
                requires("e2", "B", "C"),
                requires("e3", "A", "B"),
            ],
        )
        assert graph.circular_dependencies[0].cycle == ["A", "B", "C"]

    def test_soft_edges_do_not_form_cycles(self):
        graph = build_graph(
            [item("A"), item("B")],
            [
                requires("e1", "A", "B"),
                requires("e2", "B", "A", strength=DependencyStrength.SOFT),
            ],
        )
        assert graph.circular_dependencies == []
        assert graph.validation.is_valid is True

    def test_two_disjoint_cycles(self):
        cycles = detect_cycles(
            ["A", "B", "X", "Y"],
            [
                requires("e1", "A", "B"),
                requires("e2", "B", "A"),
                requires("e3", "X", "Y"),
                requires("e4", "Y", "X"),
            ],
        )
        assert [c.cycle for c in cycles] == [["A", "B"], ["X", "Y"]]

    def test_long_cycle_suggests_splitting(self):
        cycles = detect_cycles(
            ["A", "B", "C", "D"],
            [
                requires("e1", "A", "B"),
                requires("e2", "B", "C"),
                requires("e3", "C", "D"),
                requires("e4", "D", "A"),
            ],
        )
        assert len(cycles) == 1
        assert any("Split" in s for s in cycles[0].resolution_suggestions)

    def test_acyclic_graph_has_no_cycles(self):
        cycles = detect_cycles(
            ["A", "B", "C"],
            [requires("e1", "C", "B"), requires("e2", "B", "A"), requires("e3", "C", "A")],
        )
        assert cycles == []


# ===========================================================================
# Cycle breaking
# ===========================================================================

class TestCycleBreaking:

    def test_lowest_confidence_edge_dropped(self):
        graph = build_graph(
            [item("A"), item("B"), item("C")],
            [
                requires("e1", "A", "B", confidence=0.9),
                requires("e2", "B", "C", confidence=0.4),
                requires("e3", "C", "A", confidence=0.8),
            ],
        )
        assert graph.excluded_edge_ids == ["e2"]
        assert "CYCLE_EDGE_DROPPED" in codes(graph.validation.info)
        assert sorted(e.id for e in graph.ordering_edges) == ["e1", "e3"]

    def test_confidence_tie_drops_greatest_edge_id(self):
        graph = build_graph(
            [item("A"), item("B"), item("C")],
            [
                requires("e1", "A", "B"),
                requires("e2", "B", "C"),
                requires("e3", "C", "A"),
            ],
        )
        assert graph.excluded_edge_ids == ["e3"]
        # A requires B requires C
        assert graph.critical_path == ["C", "B", "A"]

    def test_cycle_still_reported_after_breaking(self):
        graph = build_graph(
            [item("A"), item("B")],
            [requires("e1", "A", "B"), requires("e2", "B", "A")],
        )
        assert graph.circular_dependencies[0].cycle == ["A", "B"]
        assert graph.excluded_edge_ids == ["e2"]


# ===========================================================================
# Critical path
# ===========================================================================

class TestCriticalPath:

    def test_chain_weighted_by_points(self):
        path, duration = compute_critical_path(
            [item("a", 3), item("b", 5), item("c", 0)],
            [requires("e1", "b", "a"), requires("e2", "c", "b")],
        )
        assert path == ["a", "b", "c"]
        # zero points weigh 1
        assert duration == 9

    def test_heaviest_branch_wins(self):
        graph = build_graph(
            [
                item("enabler-1", 0),
                item("story-1", 5),
                item("story-2", 3),
                item("story-3", 4),
            ],
            [
                requires("d1", "story-1", "enabler-1"),
                requires("d2", "story-2", "story-1"),
                requires("d3", "story-3", "story-1"),
            ],
        )
        assert graph.critical_path == ["enabler-1", "story-1", "story-3"]
        assert graph.statistics.longest_path == 3
        assert graph.statistics.estimated_duration == 10

    def test_no_edges_picks_heaviest_single_item(self):
        path, duration = compute_critical_path(
            [item("a", 2), item("b", 2)],
            [],
        )
        # No edges: heaviest single node, ties by smallest id
        assert path == ["a"]
        assert duration == 2

    def test_empty_graph(self):
        assert compute_critical_path([], []) == ([], 0)


# ===========================================================================
# Statistics
# ===========================================================================

class TestStatistics:

    def test_counts(self):
        graph = build_graph(
            [item("A"), item("B"), item("C"), item("D")],
            [
                requires("e1", "B", "A"),
                requires("e2", "C", "A", strength=DependencyStrength.SOFT),
            ],
        )
        stats = graph.statistics
        assert stats.node_count == 4
        assert stats.edge_count == 2
        assert stats.hard_dependencies == 1
        assert stats.soft_dependencies == 1
        assert stats.average_dependencies == 0.5
        # C and D have no HARD edges
        assert stats.independent_items == 2

    def test_empty_graph_no_division_by_zero(self):
        graph = build_graph([], [])
        assert graph.statistics.average_dependencies == 0.0
        assert graph.statistics.node_count == 0
        assert graph.critical_path == []

    def test_high_dependency_threshold_is_strict(self):
        nodes = [item("hub")] + [item(f"s{i}") for i in range(4)]
        edges = [requires(f"e{i}", f"s{i}", "hub") for i in range(3)]
        graph = build_graph(nodes, edges)
        assert graph.statistics.high_dependency_items == []

        edges.append(requires("e3", "s3", "hub"))
        graph = build_graph(nodes, edges)
        assert graph.statistics.high_dependency_items == ["hub"]
        assert "HIGH_DEPENDENCY_ITEMS" in codes(graph.validation.warnings)

    def test_high_dependency_threshold_configurable(self):
        graph = build_graph(
            [item("A"), item("B"), item("C")],
            [requires("e1", "B", "A"), requires("e2", "C", "A")],
            PlanningConfig(high_dependency_threshold=1),
        )
        assert graph.statistics.high_dependency_items == ["A"]

    def test_isolated_nodes_info(self):
        graph = build_graph(
            [item("A"), item("B"), item("lonely")],
            [requires("e1", "B", "A")],
        )
        isolated = [i for i in graph.validation.info if i.code == "ISOLATED_NODES"]
        assert len(isolated) == 1
        assert isolated[0].affected_items == ["lonely"]


# ===========================================================================
# Impact analysis
# ===========================================================================

class TestDependencyImpact:

    def _chain(self):
        return build_graph(
            [item("a", 3), item("b", 2), item("c", 5), item("x", 1)],
            [requires("e1", "b", "a"), requires("e2", "c", "b")],
        )

    def test_direct_and_indirect(self):
        impact = analyze_dependency_impact(self._chain(), "a")
        assert impact.direct_impacts == ["b"]
        assert impact.indirect_impacts == ["c"]
        assert impact.timeline_impact == 7
        assert impact.risk_level == "critical"

    def test_leaf_has_low_risk(self):
        impact = analyze_dependency_impact(self._chain(), "c")
        assert impact.direct_impacts == []
        assert impact.indirect_impacts == []
        assert impact.risk_level == "low"

    def test_unknown_item_raises(self):
        with pytest.raises(PlanningValidationError, match="not in the graph"):
            analyze_dependency_impact(self._chain(), "nope")


# ===========================================================================
# Strict validation helpers
# ===========================================================================

class TestRequireValidGraph:

    def test_valid_graph_passes(self):
        require_valid_graph(build_graph([item("A")], []))

    def test_invalid_graph_raises_with_ids(self):
        graph = build_graph([item("A")], [requires("e1", "A", "ghost")])
        with pytest.raises(PlanningValidationError, match="DANGLING_REFERENCE") as exc_info:
            require_valid_graph(graph)
        assert exc_info.value.item_ids == ["ghost"]

    def test_unvalidated_graph_raises(self):
        with pytest.raises(PlanningValidationError, match="not been validated"):
            require_valid_graph(DependencyGraph(nodes=[item("A")], edges=[]))

    def test_analyze_graph_validates_hand_built_graph(self):
        raw = DependencyGraph(
            nodes=[item("A"), item("B")],
            edges=[requires("e1", "B", "A")],
        )
        analyzed = analyze_graph(raw)
        assert raw.validation is None
        assert analyzed.is_validated
        assert analyzed.critical_path == ["A", "B"]

    def test_analyze_graph_returns_validated_graph_unchanged(self):
        graph = build_graph([item("A")], [])
        assert analyze_graph(graph) is graph
