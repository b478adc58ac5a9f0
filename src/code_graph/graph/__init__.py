"""Graph module for code dependency analysis.

Provides dependency edge extraction, the in-memory graph engine and the
durable RustworkX-backed graph store.
"""

from code_graph.graph.builder import DependencyGraphBuilder, FileIdentity, ScopeIndex
from code_graph.graph.engine import GraphEngine
from code_graph.graph.models import (
    DependencyEdge,
    DependencyResult,
    Direction,
    EngineState,
    GraphStats,
    RelatedSymbol,
    TraversalResult,
)
from code_graph.graph.persistence import GraphPersistence
from code_graph.graph.store import GraphStore, LocalGraphStore

__all__ = [
    # Engine
    "GraphEngine",
    # Models
    "EngineState",
    "Direction",
    "DependencyEdge",
    "DependencyResult",
    "TraversalResult",
    "RelatedSymbol",
    "GraphStats",
    # Builder
    "DependencyGraphBuilder",
    "FileIdentity",
    "ScopeIndex",
    # Store
    "GraphStore",
    "LocalGraphStore",
    "GraphPersistence",
]
