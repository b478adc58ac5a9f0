"""Durable graph and symbol document store.

``GraphStore`` is the interface the graph engine and the indexing pipeline
program against. ``LocalGraphStore`` keeps edges in a RustworkX directed
multigraph, symbol documents and the per-file index ledger in dictionaries,
and persists everything as gzip JSON snapshots.
"""

import asyncio
from collections import deque
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import rustworkx as rx

from code_graph.graph.models import Direction, TraversalResult
from code_graph.graph.persistence import GraphPersistence
from code_graph.parsing.models import Edge, EdgeType, IndexMetadata
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SNAPSHOT_NAME = "code_graph"


@runtime_checkable
class GraphStore(Protocol):
    """Durable store for symbol documents, edges and the index ledger."""

    async def upsert_symbol(self, document: dict[str, Any]) -> None: ...

    async def batch_upsert_symbols(self, documents: list[dict[str, Any]]) -> None: ...

    async def get_symbol(self, symbol_id: str) -> dict[str, Any] | None: ...

    async def find_symbols_by_name(self, workspace_id: str, name: str) -> list[dict[str, Any]]: ...

    async def create_edge(self, edge: Edge) -> None: ...

    async def batch_create_edges(self, edges: list[Edge]) -> None: ...

    async def query_by_edge_type(self, edge_type: EdgeType) -> list[tuple[str, str]]: ...

    async def query_graph(
        self,
        symbol_id: str,
        depth: int,
        edge_type: EdgeType | None = None,
        direction: Direction = Direction.OUTBOUND,
    ) -> TraversalResult: ...

    async def find_by_path_and_hash(
        self, repo_id: str, file_path: str, content_hash: str
    ) -> IndexMetadata | None: ...

    async def upsert_index_metadata(self, metadata: IndexMetadata) -> None: ...

    async def get_index_metadata(self, repo_id: str, file_path: str) -> IndexMetadata | None: ...

    async def delete_by_file(self, repo_id: str, file_path: str) -> int: ...

    async def delete_by_repo(self, repo_id: str) -> int: ...

    async def delete_by_workspace(self, workspace_id: str) -> int: ...

    async def close(self) -> None: ...


class LocalGraphStore:
    """In-process graph store with optional snapshot persistence.

    Nodes of the RustworkX graph are references (symbol references, module
    paths or unresolved names); edge payloads are ``EdgeType`` values.
    Edge creation is idempotent per (from, to, type).
    """

    def __init__(
        self,
        persistence: GraphPersistence | None = None,
        snapshot_name: str = DEFAULT_SNAPSHOT_NAME,
    ) -> None:
        self._persistence = persistence
        self._snapshot_name = snapshot_name
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=True)
        self._node_index: dict[str, int] = {}
        self._edge_keys: set[tuple[str, str, EdgeType]] = set()
        self._symbols: dict[str, dict[str, Any]] = {}
        self._ref_to_id: dict[str, str] = {}
        self._metadata: dict[tuple[str, str], IndexMetadata] = {}
        self._repo_workspace: dict[str, str] = {}

    @property
    def symbol_count(self) -> int:
        return len(self._symbols)

    @property
    def edge_count(self) -> int:
        return len(self._edge_keys)

    # =========================================================================
    # Symbols
    # =========================================================================

    async def upsert_symbol(self, document: dict[str, Any]) -> None:
        """Insert or replace a symbol document keyed by its ``id``."""
        self._put_symbol(document)

    async def batch_upsert_symbols(self, documents: list[dict[str, Any]]) -> None:
        for document in documents:
            self._put_symbol(document)
        logger.debug("Upserted symbols", count=len(documents))

    async def get_symbol(self, symbol_id: str) -> dict[str, Any] | None:
        """Get a symbol document by id or by symbol reference."""
        document = self._symbols.get(symbol_id)
        if document is None and symbol_id in self._ref_to_id:
            document = self._symbols.get(self._ref_to_id[symbol_id])
        return dict(document) if document is not None else None

    async def find_symbols_by_name(self, workspace_id: str, name: str) -> list[dict[str, Any]]:
        """Symbols of a workspace whose qualified name equals ``name``."""
        return [
            dict(doc)
            for doc in self._symbols.values()
            if doc.get("workspace_id") == workspace_id and doc.get("symbol_name") == name
        ]

    def _put_symbol(self, document: dict[str, Any]) -> None:
        symbol_id = document["id"]
        previous = self._symbols.get(symbol_id)
        if previous is not None and previous.get("symbol_ref"):
            self._ref_to_id.pop(previous["symbol_ref"], None)

        self._symbols[symbol_id] = dict(document)
        if document.get("symbol_ref"):
            self._ref_to_id[document["symbol_ref"]] = symbol_id
        if document.get("repo_id") and document.get("workspace_id"):
            self._repo_workspace[document["repo_id"]] = document["workspace_id"]

    # =========================================================================
    # Edges
    # =========================================================================

    async def create_edge(self, edge: Edge) -> None:
        self._put_edge(edge.from_id, edge.to_id, edge.type)

    async def batch_create_edges(self, edges: list[Edge]) -> None:
        for edge in edges:
            self._put_edge(edge.from_id, edge.to_id, edge.type)
        logger.debug("Created edges", count=len(edges))

    async def query_by_edge_type(self, edge_type: EdgeType) -> list[tuple[str, str]]:
        """All (from, to) pairs of one edge type."""
        return [
            (self._graph[source], self._graph[target])
            for source, target, payload in self._graph.weighted_edge_list()
            if payload == edge_type
        ]

    async def query_graph(
        self,
        symbol_id: str,
        depth: int,
        edge_type: EdgeType | None = None,
        direction: Direction = Direction.OUTBOUND,
    ) -> TraversalResult:
        """Breadth-first multi-hop query over the stored edges.

        Args:
            symbol_id: Start reference.
            depth: Maximum number of hops.
            edge_type: Only follow edges of this type.
            direction: Follow outgoing edges, incoming edges or both.

        Returns:
            Visited references and traversed edges.
        """
        result = TraversalResult(nodes=[symbol_id])
        start = self._node_index.get(symbol_id)
        if start is None:
            return result

        visited = {start}
        queue: deque[tuple[int, int]] = deque([(start, 0)])
        while queue:
            index, level = queue.popleft()
            if level >= depth:
                continue

            for source, target, payload in self._incident_edges(index, direction):
                if edge_type is not None and payload != edge_type:
                    continue
                result.edges.append(Edge(self._graph[source], self._graph[target], payload))
                neighbor = target if source == index else source
                if neighbor not in visited:
                    visited.add(neighbor)
                    result.nodes.append(self._graph[neighbor])
                    queue.append((neighbor, level + 1))
        return result

    def _incident_edges(self, index: int, direction: Direction) -> list[tuple[int, int, EdgeType]]:
        edges: list[tuple[int, int, EdgeType]] = []
        if direction in (Direction.OUTBOUND, Direction.BOTH):
            edges.extend(self._graph.out_edges(index))
        if direction in (Direction.INBOUND, Direction.BOTH):
            edges.extend(self._graph.in_edges(index))
        return edges

    def _node(self, ref: str) -> int:
        index = self._node_index.get(ref)
        if index is None:
            index = self._graph.add_node(ref)
            self._node_index[ref] = index
        return index

    def _put_edge(self, from_id: str, to_id: str, edge_type: EdgeType) -> None:
        key = (from_id, to_id, edge_type)
        if key in self._edge_keys:
            return
        self._graph.add_edge(self._node(from_id), self._node(to_id), edge_type)
        self._edge_keys.add(key)

    def _remove_edges_from(self, refs: set[str]) -> int:
        removed = 0
        for edge_index, (source, target, payload) in list(self._graph.edge_index_map().items()):
            from_id = self._graph[source]
            if from_id in refs:
                self._graph.remove_edge_from_index(edge_index)
                self._edge_keys.discard((from_id, self._graph[target], payload))
                removed += 1
        for ref in refs:
            index = self._node_index.get(ref)
            if index is not None and self._graph.in_degree(index) == 0 and self._graph.out_degree(index) == 0:
                self._graph.remove_node(index)
                del self._node_index[ref]
        return removed

    # =========================================================================
    # Index ledger
    # =========================================================================

    async def find_by_path_and_hash(
        self, repo_id: str, file_path: str, content_hash: str
    ) -> IndexMetadata | None:
        """Ledger row of a file already indexed with the same content."""
        metadata = self._metadata.get((repo_id, file_path))
        if metadata is not None and metadata.content_hash == content_hash:
            return metadata
        return None

    async def upsert_index_metadata(self, metadata: IndexMetadata) -> None:
        self._metadata[(metadata.repo_id, metadata.file_path)] = metadata

    async def get_index_metadata(self, repo_id: str, file_path: str) -> IndexMetadata | None:
        return self._metadata.get((repo_id, file_path))

    def reset_index_metadata(self) -> int:
        """Forget every ledger row so the next run re-indexes all files.

        Returns:
            Number of rows dropped.
        """
        dropped = len(self._metadata)
        self._metadata.clear()
        return dropped

    # =========================================================================
    # Deletion
    # =========================================================================

    async def delete_by_file(self, repo_id: str, file_path: str) -> int:
        """Remove the symbol documents of one file.

        Edges are left in place; they are removed only with their
        repository or workspace.

        Returns:
            Number of symbols removed.
        """
        removed = self._drop_symbols(
            lambda doc: doc.get("repo_id") == repo_id and doc.get("file_path") == file_path
        )
        return len(removed)

    async def delete_by_repo(self, repo_id: str) -> int:
        """Remove symbols, outgoing edges and ledger rows of a repository."""
        refs = self._drop_symbols(lambda doc: doc.get("repo_id") == repo_id)
        edges = self._remove_edges_from(refs)
        for key in [k for k in self._metadata if k[0] == repo_id]:
            del self._metadata[key]
        self._repo_workspace.pop(repo_id, None)
        logger.info("Deleted repository data", repo_id=repo_id, symbols=len(refs), edges=edges)
        return len(refs)

    async def delete_by_workspace(self, workspace_id: str) -> int:
        """Remove everything stored for a workspace's repositories."""
        repo_ids = {repo for repo, ws in self._repo_workspace.items() if ws == workspace_id}
        refs = self._drop_symbols(lambda doc: doc.get("workspace_id") == workspace_id)
        edges = self._remove_edges_from(refs)
        for key in [k for k in self._metadata if k[0] in repo_ids]:
            del self._metadata[key]
        for repo_id in repo_ids:
            del self._repo_workspace[repo_id]
        logger.info(
            "Deleted workspace data",
            workspace_id=workspace_id,
            symbols=len(refs),
            edges=edges,
        )
        return len(refs)

    def _drop_symbols(self, predicate: Callable[[dict[str, Any]], bool]) -> set[str]:
        """Remove matching symbol documents and return their references."""
        refs: set[str] = set()
        for symbol_id in [sid for sid, doc in self._symbols.items() if predicate(doc)]:
            document = self._symbols.pop(symbol_id)
            ref = document.get("symbol_ref")
            if ref:
                refs.add(ref)
                self._ref_to_id.pop(ref, None)
        return refs

    # =========================================================================
    # Snapshots
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize the store contents."""
        return {
            "symbols": list(self._symbols.values()),
            "edges": [
                {"from": f, "to": t, "type": edge_type.value}
                for f, t, edge_type in sorted(self._edge_keys)
            ],
            "metadata": [m.to_dict() for m in self._metadata.values()],
        }

    def load_dict(self, data: dict[str, Any]) -> None:
        """Replace the store contents with serialized data."""
        self.clear()
        for document in data.get("symbols", []):
            self._put_symbol(document)
        for edge in data.get("edges", []):
            self._put_edge(edge["from"], edge["to"], EdgeType(edge["type"]))
        for row in data.get("metadata", []):
            metadata = IndexMetadata.from_dict(row)
            self._metadata[(metadata.repo_id, metadata.file_path)] = metadata

    async def save(self) -> None:
        """Write a snapshot when persistence is configured."""
        if self._persistence is None:
            return
        await asyncio.to_thread(self._persistence.save, self._snapshot_name, self.to_dict())

    async def load(self) -> bool:
        """Load the snapshot, if any.

        Returns:
            True if a snapshot was loaded.
        """
        if self._persistence is None:
            return False
        data = await asyncio.to_thread(self._persistence.load, self._snapshot_name)
        if data is None:
            return False
        self.load_dict(data)
        return True

    def clear(self) -> None:
        self._graph = rx.PyDiGraph(multigraph=True)
        self._node_index.clear()
        self._edge_keys.clear()
        self._symbols.clear()
        self._ref_to_id.clear()
        self._metadata.clear()
        self._repo_workspace.clear()

    async def close(self) -> None:
        await self.save()

