"""Dependency graph engine.

Keeps a bidirectional adjacency projection of the durable edge store in
memory: ``out[ref][type] -> {targets}`` and ``in[ref][type] -> {sources}``.
The projection is rebuilt from the store by ``init()`` and kept current by
write-through mutations. A crash between the in-memory update and the
durable write leaves the two out of sync until the next ``init()``.
"""

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Any

from code_graph.core.exceptions import GraphNotInitializedError, GraphStoreError
from code_graph.graph.models import (
    DependencyEdge,
    DependencyResult,
    Direction,
    EngineState,
    GraphStats,
    RelatedSymbol,
    TraversalResult,
)
from code_graph.graph.store import GraphStore
from code_graph.parsing.models import Edge, EdgeType
from code_graph.utils.logging import get_logger

if TYPE_CHECKING:
    from code_graph.search.meilisearch_client import FullTextStore
    from code_graph.search.models import SearchFilters

logger = get_logger(__name__)

DEFAULT_RELATED_LIMIT = 5

Adjacency = dict[str, dict[EdgeType, set[str]]]


class GraphEngine:
    """In-memory dependency graph backed by a durable graph store.

    Reads (dependency lookups, traversal) never touch the store. Mutations
    require the engine to be ready, are serialized by an asyncio lock, and
    update the in-memory maps before writing through to the store.
    """

    def __init__(
        self,
        store: GraphStore,
        full_text: "FullTextStore | None" = None,
        related_limit: int = DEFAULT_RELATED_LIMIT,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Durable edge and symbol store.
            full_text: Full-text store used to seed ``search_related``.
            related_limit: Number of full-text seeds for ``search_related``.
        """
        self._store = store
        self._full_text = full_text
        self.related_limit = related_limit
        self._out: Adjacency = {}
        self._in: Adjacency = {}
        self._state = EngineState.UNINITIALIZED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == EngineState.READY

    async def init(self) -> None:
        """Load every edge type from the store into the adjacency maps.

        A failing edge-type query is logged and skipped so one broken
        table cannot keep the engine from starting.
        """
        self._state = EngineState.INITIALIZING
        logger.info("Loading dependency graph from store")
        out: Adjacency = {}
        inbound: Adjacency = {}

        for edge_type in EdgeType:
            try:
                pairs = await self._store.query_by_edge_type(edge_type)
            except Exception as e:
                logger.warning(
                    "Failed to load edges",
                    edge_type=edge_type.value,
                    error=str(e),
                )
                continue
            for from_id, to_id in pairs:
                _link(out, inbound, from_id, to_id, edge_type)
            logger.debug("Loaded edges", edge_type=edge_type.value, count=len(pairs))

        self._out, self._in = out, inbound
        self._state = EngineState.READY
        logger.info("Dependency graph loaded", nodes=len(out), in_nodes=len(inbound))

    def _require_ready(self, operation: str) -> None:
        if self._state != EngineState.READY:
            raise GraphNotInitializedError(operation)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def add_edge(
        self,
        from_id: str,
        to_id: str,
        edge_type: EdgeType,
        confidence: float = 1.0,
    ) -> Edge:
        """Add one edge and write it through to the store.

        Raises:
            GraphNotInitializedError: If called before ``init()`` completed.
            GraphStoreError: If the durable write fails. The in-memory edge
                is kept.
        """
        self._require_ready("add_edge")
        edge = Edge(from_id, to_id, edge_type, confidence)
        async with self._lock:
            _link(self._out, self._in, edge.from_id, edge.to_id, edge.type)
            try:
                await self._store.create_edge(edge)
            except Exception as e:
                raise GraphStoreError("create_edge", cause=e) from e
        return edge

    async def batch_add_edges(self, edges: list[Edge]) -> None:
        """Add many edges and write them through in one store call.

        Raises:
            GraphNotInitializedError: If called before ``init()`` completed.
            GraphStoreError: If the durable write fails.
        """
        self._require_ready("batch_add_edges")
        if not edges:
            return
        async with self._lock:
            for edge in edges:
                _link(self._out, self._in, edge.from_id, edge.to_id, edge.type)
            try:
                await self._store.batch_create_edges(edges)
            except Exception as e:
                raise GraphStoreError("batch_create_edges", cause=e) from e
        logger.debug("Added edges", count=len(edges))

    def clear(self) -> None:
        """Drop the in-memory projection; the store is untouched."""
        self._out = {}
        self._in = {}

    # =========================================================================
    # Reads
    # =========================================================================

    def get_dependencies(self, symbol_id: str, edge_type: EdgeType | None = None) -> DependencyResult:
        """Outgoing neighbors of a reference, optionally of one edge type."""
        return DependencyResult(symbol_id, _lookup(self._out, symbol_id, edge_type))

    def get_reverse_dependencies(
        self, symbol_id: str, edge_type: EdgeType | None = None
    ) -> DependencyResult:
        """Incoming neighbors of a reference, optionally of one edge type."""
        return DependencyResult(symbol_id, _lookup(self._in, symbol_id, edge_type))

    def traverse(
        self,
        start: str,
        depth: int,
        edge_type: EdgeType | None = None,
    ) -> TraversalResult:
        """Breadth-first traversal along outgoing edges.

        Args:
            start: Start reference.
            depth: Maximum number of hops; 0 returns only ``start``.
            edge_type: Only follow edges of this type.

        Returns:
            Visited nodes (each once, start first) and every traversed
            edge, including edges into nodes that were already visited.
        """
        visited = {start}
        result = TraversalResult(nodes=[start])
        queue: deque[tuple[str, int]] = deque([(start, 0)])

        while queue:
            node, level = queue.popleft()
            if level >= depth:
                continue
            for dependency in self.get_dependencies(node, edge_type).edges:
                if dependency.to not in visited:
                    visited.add(dependency.to)
                    result.nodes.append(dependency.to)
                    queue.append((dependency.to, level + 1))
                result.edges.append(Edge(node, dependency.to, dependency.type))
        return result

    async def query_graph_from_db(
        self,
        symbol_id: str,
        depth: int = 2,
        edge_type: EdgeType | None = None,
        direction: Direction = Direction.OUTBOUND,
    ) -> TraversalResult:
        """Store-side multi-hop query; degrades to the bare start node."""
        try:
            return await self._store.query_graph(symbol_id, depth, edge_type, direction)
        except Exception as e:
            logger.error("Failed to query graph from store", symbol_id=symbol_id, error=str(e))
            return TraversalResult(nodes=[symbol_id])

    async def get_symbol(self, symbol_id: str) -> dict[str, Any] | None:
        return await self._store.get_symbol(symbol_id)

    async def search_related(
        self,
        query: str,
        workspace_id: str,
        limit: int | None = None,
        filters: "SearchFilters | None" = None,
    ) -> list[RelatedSymbol]:
        """Full-text seeds plus their direct dependencies.

        Seeds get path length 0 and each direct dependency path length 1.
        Dependency targets are resolved to symbol ids through the store by
        reference first, then by qualified name within the workspace;
        targets that resolve to nothing are returned as-is. With non-empty
        ``filters`` the seeds are searched under them, and a dependency is
        kept only when it resolves to a symbol that passes them.
        """
        if self._full_text is None:
            return []

        if filters is not None and filters.is_empty:
            filters = None
        hits = await self._full_text.search(
            query,
            workspace_id=workspace_id,
            filters=filters,
            limit=limit or self.related_limit,
        )
        related: list[RelatedSymbol] = []
        for hit in hits:
            related.append(RelatedSymbol(hit.symbol_id, 0))
            ref = hit.fields.get("symbol_ref") or hit.symbol_id
            for target in self.get_dependencies(ref).targets:
                for symbol_id, document in await self._resolve(target, workspace_id):
                    if filters is not None and (document is None or not filters.matches(document, workspace_id)):
                        continue
                    related.append(RelatedSymbol(symbol_id, 1))
        return related

    async def _resolve(self, target: str, workspace_id: str) -> list[tuple[str, dict[str, Any] | None]]:
        document = await self._store.get_symbol(target)
        if document is not None:
            return [(document["id"], document)]
        matches = await self._store.find_symbols_by_name(workspace_id, target)
        if matches:
            return [(doc["id"], doc) for doc in matches]
        return [(target, None)]

    def stats(self) -> GraphStats:
        """Node and edge counts of the in-memory projection."""
        edges_by_type: dict[str, int] = {}
        edge_count = 0
        for by_type in self._out.values():
            for edge_type, targets in by_type.items():
                edges_by_type[edge_type.value] = edges_by_type.get(edge_type.value, 0) + len(targets)
                edge_count += len(targets)
        return GraphStats(
            state=self._state,
            node_count=len(self._out.keys() | self._in.keys()),
            edge_count=edge_count,
            edges_by_type=edges_by_type,
        )


def _link(out: Adjacency, inbound: Adjacency, from_id: str, to_id: str, edge_type: EdgeType) -> None:
    out.setdefault(from_id, {}).setdefault(edge_type, set()).add(to_id)
    inbound.setdefault(to_id, {}).setdefault(edge_type, set()).add(from_id)


def _lookup(adjacency: Adjacency, symbol_id: str, edge_type: EdgeType | None) -> list[DependencyEdge]:
    by_type = adjacency.get(symbol_id)
    if not by_type:
        return []
    return [
        DependencyEdge(neighbor, kind)
        for kind, neighbors in by_type.items()
        if edge_type is None or kind == edge_type
        for neighbor in sorted(neighbors)
    ]
