"""Graph models for the dependency graph engine.

Defines engine lifecycle states, dependency lookups, traversal results and
statistics returned by the graph engine and the durable graph store.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from code_graph.parsing.models import Edge, EdgeType


class EngineState(str, Enum):
    """Lifecycle of the graph engine's in-memory projection."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class Direction(str, Enum):
    """Direction followed by store-side graph queries."""

    OUTBOUND = "outbound"
    INBOUND = "inbound"
    BOTH = "both"


@dataclass(frozen=True)
class DependencyEdge:
    """One adjacent reference of a dependency lookup.

    Attributes:
        to: The adjacent reference (target for dependencies, source for
            reverse dependencies).
        type: Edge type.
    """

    to: str
    type: EdgeType

    def to_dict(self) -> dict[str, Any]:
        return {"to": self.to, "type": self.type.value}


@dataclass
class DependencyResult:
    """Adjacent references of one symbol."""

    from_id: str
    edges: list[DependencyEdge] = field(default_factory=list)

    @property
    def targets(self) -> list[str]:
        """Adjacent references in lookup order."""
        return [edge.to for edge in self.edges]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {"from": self.from_id, "edges": [e.to_dict() for e in self.edges]}


@dataclass
class TraversalResult:
    """Visited nodes and traversed edges of a bounded traversal.

    Attributes:
        nodes: De-duplicated visited references, start first.
        edges: Every traversed edge, including edges into already
            visited nodes.
    """

    nodes: list[str]
    edges: list[Edge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "nodes": list(self.nodes),
            "edges": [
                {"from": e.from_id, "to": e.to_id, "type": e.type.value} for e in self.edges
            ],
        }


@dataclass(frozen=True)
class RelatedSymbol:
    """A symbol reached from a full-text seed.

    Attributes:
        symbol_id: Symbol id, or the raw target when it could not be resolved.
        path_length: 0 for the seed itself, 1 for a direct dependency.
    """

    symbol_id: str
    path_length: int


@dataclass
class GraphStats:
    """Statistics about the in-memory adjacency.

    Attributes:
        state: Engine lifecycle state.
        node_count: Distinct references with any incident edge.
        edge_count: Distinct (from, to, type) edges.
        edges_by_type: Edge count per edge type.
    """

    state: EngineState
    node_count: int
    edge_count: int
    edges_by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "state": self.state.value,
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "edges_by_type": self.edges_by_type,
        }
