"""Tests for graph models."""

from code_graph.graph.models import (
    DependencyEdge,
    DependencyResult,
    EngineState,
    GraphStats,
    TraversalResult,
)
from code_graph.parsing.models import Edge, EdgeType


class TestDependencyResult:
    """Tests for DependencyResult."""

    def test_targets_and_dict(self) -> None:
        result = DependencyResult(
            "a",
            [DependencyEdge("b", EdgeType.CALLS), DependencyEdge("./m", EdgeType.IMPORTS)],
        )
        assert result.targets == ["b", "./m"]
        assert result.to_dict() == {
            "from": "a",
            "edges": [{"to": "b", "type": "CALLS"}, {"to": "./m", "type": "IMPORTS"}],
        }


class TestTraversalResult:
    """Tests for TraversalResult."""

    def test_to_dict(self) -> None:
        result = TraversalResult(nodes=["a", "b"], edges=[Edge("a", "b", EdgeType.CALLS)])
        assert result.to_dict() == {
            "nodes": ["a", "b"],
            "edges": [{"from": "a", "to": "b", "type": "CALLS"}],
        }


class TestGraphStats:
    """Tests for GraphStats."""

    def test_to_dict(self) -> None:
        stats = GraphStats(EngineState.READY, node_count=2, edge_count=1, edges_by_type={"CALLS": 1})
        assert stats.to_dict()["state"] == "ready"
        assert stats.to_dict()["edges_by_type"] == {"CALLS": 1}
