"""Tests for the dependency graph engine."""

import pytest

from code_graph.core.exceptions import GraphNotInitializedError, GraphStoreError
from code_graph.graph.engine import GraphEngine
from code_graph.graph.models import Direction, EngineState
from code_graph.graph.store import LocalGraphStore
from code_graph.parsing.models import Edge, EdgeType
from code_graph.search.meilisearch_client import InMemoryFullTextStore
from code_graph.search.models import SearchFilters


class FailingStore(LocalGraphStore):
    """Store whose writes and graph queries always fail."""

    async def create_edge(self, edge: Edge) -> None:
        raise OSError("disk full")

    async def batch_create_edges(self, edges: list[Edge]) -> None:
        raise OSError("disk full")

    async def query_graph(self, symbol_id, depth, edge_type=None, direction=Direction.OUTBOUND):
        raise OSError("store offline")


class PartiallyBrokenStore(LocalGraphStore):
    """Store that cannot load CALLS edges."""

    async def query_by_edge_type(self, edge_type: EdgeType) -> list[tuple[str, str]]:
        if edge_type == EdgeType.CALLS:
            raise OSError("table missing")
        return await super().query_by_edge_type(edge_type)


def symbol_doc(symbol_id: str, name: str, ref: str, workspace_id: str = "ws") -> dict:
    return {
        "id": symbol_id,
        "workspace_id": workspace_id,
        "repo_id": "repo",
        "file_path": ref.split("#")[0],
        "symbol_name": name,
        "symbol_ref": ref,
        "signature": None,
        "code": "",
    }


class TestGraphEngineLifecycle:
    """Tests for init and state handling."""

    async def test_starts_uninitialized(self) -> None:
        engine = GraphEngine(LocalGraphStore())
        assert engine.state == EngineState.UNINITIALIZED
        assert not engine.is_ready

    async def test_mutation_before_init_raises(self) -> None:
        engine = GraphEngine(LocalGraphStore())

        with pytest.raises(GraphNotInitializedError):
            await engine.add_edge("a", "b", EdgeType.CALLS)
        with pytest.raises(GraphNotInitializedError):
            await engine.batch_add_edges([Edge("a", "b", EdgeType.CALLS)])

    async def test_init_loads_store_edges(self) -> None:
        store = LocalGraphStore()
        await store.batch_create_edges(
            [
                Edge("a", "b", EdgeType.CALLS),
                Edge("file", "./b", EdgeType.IMPORTS),
            ]
        )
        engine = GraphEngine(store)
        await engine.init()

        assert engine.state == EngineState.READY
        assert engine.get_dependencies("a").targets == ["b"]
        assert engine.get_dependencies("file", EdgeType.IMPORTS).targets == ["./b"]

    async def test_init_skips_failing_edge_type(self) -> None:
        store = PartiallyBrokenStore()
        await store.batch_create_edges(
            [
                Edge("a", "b", EdgeType.CALLS),
                Edge("a", "./m", EdgeType.IMPORTS),
            ]
        )
        engine = GraphEngine(store)
        await engine.init()

        assert engine.is_ready
        assert engine.get_dependencies("a").targets == ["./m"]


class TestGraphEngineMutations:
    """Tests for write-through mutations."""

    @pytest.fixture
    async def engine(self) -> GraphEngine:
        engine = GraphEngine(LocalGraphStore())
        await engine.init()
        return engine

    async def test_add_edge_writes_through(self) -> None:
        store = LocalGraphStore()
        engine = GraphEngine(store)
        await engine.init()

        edge = await engine.add_edge("a", "b", EdgeType.CALLS, confidence=0.8)

        assert edge.confidence == 0.8
        assert store.edge_count == 1
        assert await store.query_by_edge_type(EdgeType.CALLS) == [("a", "b")]

    async def test_forward_and_reverse_lookup(self, engine: GraphEngine) -> None:
        await engine.batch_add_edges(
            [
                Edge("a", "b", EdgeType.CALLS),
                Edge("c", "b", EdgeType.CALLS),
                Edge("a", "./m", EdgeType.IMPORTS),
            ]
        )

        assert set(engine.get_dependencies("a").targets) == {"b", "./m"}
        assert engine.get_dependencies("a", EdgeType.CALLS).targets == ["b"]
        assert engine.get_reverse_dependencies("b").targets == ["a", "c"]
        assert engine.get_dependencies("unknown").targets == []

    async def test_duplicate_edges_counted_once(self, engine: GraphEngine) -> None:
        await engine.add_edge("a", "b", EdgeType.CALLS)
        await engine.add_edge("a", "b", EdgeType.CALLS)

        assert engine.stats().edge_count == 1

    async def test_store_failure_raises_graph_store_error(self) -> None:
        engine = GraphEngine(FailingStore())
        await engine.init()

        with pytest.raises(GraphStoreError):
            await engine.add_edge("a", "b", EdgeType.CALLS)
        with pytest.raises(GraphStoreError):
            await engine.batch_add_edges([Edge("c", "d", EdgeType.CALLS)])

        # The in-memory projection is updated before the durable write
        assert engine.get_dependencies("a").targets == ["b"]

    async def test_empty_batch_is_noop(self, engine: GraphEngine) -> None:
        await engine.batch_add_edges([])
        assert engine.stats().edge_count == 0

    async def test_clear_drops_projection_only(self) -> None:
        store = LocalGraphStore()
        engine = GraphEngine(store)
        await engine.init()
        await engine.add_edge("a", "b", EdgeType.CALLS)

        engine.clear()

        assert engine.get_dependencies("a").targets == []
        assert store.edge_count == 1

    async def test_stats(self, engine: GraphEngine) -> None:
        await engine.batch_add_edges(
            [
                Edge("a", "b", EdgeType.CALLS),
                Edge("b", "c", EdgeType.CALLS),
                Edge("file", "./m", EdgeType.IMPORTS),
            ]
        )
        stats = engine.stats()

        assert stats.state == EngineState.READY
        assert stats.edge_count == 3
        assert stats.node_count == 5
        assert stats.edges_by_type == {"CALLS": 2, "IMPORTS": 1}


class TestTraverse:
    """Tests for bounded breadth-first traversal."""

    @pytest.fixture
    async def engine(self) -> GraphEngine:
        engine = GraphEngine(LocalGraphStore())
        await engine.init()
        await engine.batch_add_edges(
            [
                Edge("a", "b", EdgeType.CALLS),
                Edge("b", "c", EdgeType.CALLS),
                Edge("c", "a", EdgeType.CALLS),
                Edge("c", "d", EdgeType.CALLS),
                Edge("a", "./m", EdgeType.IMPORTS),
            ]
        )
        return engine

    async def test_depth_zero(self, engine: GraphEngine) -> None:
        result = engine.traverse("a", 0)
        assert result.nodes == ["a"]
        assert result.edges == []

    async def test_depth_limits_reach(self, engine: GraphEngine) -> None:
        result = engine.traverse("a", 1, EdgeType.CALLS)
        assert result.nodes == ["a", "b"]

    async def test_cycle_terminates(self, engine: GraphEngine) -> None:
        result = engine.traverse("a", 10, EdgeType.CALLS)

        assert sorted(result.nodes) == ["a", "b", "c", "d"]
        assert len(result.nodes) == len(set(result.nodes))
        # The back edge into the visited start is still reported
        assert any(e.from_id == "c" and e.to_id == "a" for e in result.edges)

    async def test_all_edge_types(self, engine: GraphEngine) -> None:
        result = engine.traverse("a", 1)
        assert set(result.nodes) == {"a", "b", "./m"}

    async def test_unknown_start(self, engine: GraphEngine) -> None:
        result = engine.traverse("missing", 3)
        assert result.nodes == ["missing"]
        assert result.edges == []


class TestStoreQueries:
    """Tests for store-backed reads."""

    async def test_query_graph_from_db(self) -> None:
        store = LocalGraphStore()
        await store.batch_create_edges([Edge("a", "b", EdgeType.CALLS), Edge("b", "c", EdgeType.CALLS)])
        engine = GraphEngine(store)
        await engine.init()

        result = await engine.query_graph_from_db("a", depth=2)
        assert result.nodes == ["a", "b", "c"]

        inbound = await engine.query_graph_from_db("c", depth=1, direction=Direction.INBOUND)
        assert inbound.nodes == ["c", "b"]

    async def test_query_graph_from_db_degrades(self) -> None:
        engine = GraphEngine(FailingStore())
        await engine.init()

        result = await engine.query_graph_from_db("a", depth=3)
        assert result.nodes == ["a"]
        assert result.edges == []


class TestSearchRelated:
    """Tests for full-text seeded related-symbol lookup."""

    @pytest.fixture
    async def setup(self) -> tuple[GraphEngine, LocalGraphStore]:
        store = LocalGraphStore()
        full_text = InMemoryFullTextStore()
        foo = symbol_doc("id-foo", "foo", "ws/repo/a.ts#foo")
        bar = symbol_doc("id-bar", "bar", "ws/repo/b.ts#bar")
        foo["code"] = "function foo() { return bar(); }"
        await store.batch_upsert_symbols([foo, bar])
        await full_text.add_documents([foo])

        engine = GraphEngine(store, full_text=full_text)
        await engine.init()
        await engine.batch_add_edges(
            [
                Edge("ws/repo/a.ts#foo", "bar", EdgeType.CALLS),
                Edge("ws/repo/a.ts#foo", "unresolved.call", EdgeType.CALLS),
            ]
        )
        return engine, store

    async def test_seeds_and_dependencies(self, setup) -> None:
        engine, _ = setup
        related = await engine.search_related("foo", "ws")

        by_id = {r.symbol_id: r.path_length for r in related}
        assert by_id["id-foo"] == 0
        assert by_id["id-bar"] == 1
        assert by_id["unresolved.call"] == 1

    async def test_filters_drop_unresolved_targets(self, setup) -> None:
        engine, _ = setup
        related = await engine.search_related("foo", "ws", filters=SearchFilters(repo_ids=["repo"]))

        assert [(r.symbol_id, r.path_length) for r in related] == [("id-foo", 0), ("id-bar", 1)]

    async def test_filters_drop_dependencies_outside_scope(self) -> None:
        store = LocalGraphStore()
        full_text = InMemoryFullTextStore()
        foo = symbol_doc("id-foo", "foo", "ws/repo/a.ts#foo")
        bar = symbol_doc("id-bar", "bar", "ws/lib/b.ts#bar")
        bar["repo_id"] = "lib"
        await store.batch_upsert_symbols([foo, bar])
        await full_text.add_documents([foo])
        engine = GraphEngine(store, full_text=full_text)
        await engine.init()
        await engine.add_edge("ws/repo/a.ts#foo", "bar", EdgeType.CALLS)

        unfiltered = await engine.search_related("foo", "ws")
        assert {r.symbol_id for r in unfiltered} == {"id-foo", "id-bar"}

        filtered = await engine.search_related("foo", "ws", filters=SearchFilters(repo_ids=["repo"]))
        assert [r.symbol_id for r in filtered] == ["id-foo"]

    async def test_empty_filters_keep_unresolved_targets(self, setup) -> None:
        engine, _ = setup
        related = await engine.search_related("foo", "ws", filters=SearchFilters())
        assert "unresolved.call" in {r.symbol_id for r in related}

    async def test_other_workspace_finds_nothing(self, setup) -> None:
        engine, _ = setup
        assert await engine.search_related("foo", "other-ws") == []

    async def test_resolves_by_reference(self) -> None:
        store = LocalGraphStore()
        full_text = InMemoryFullTextStore()
        foo = symbol_doc("id-foo", "foo", "ws/repo/a.ts#foo")
        target = symbol_doc("id-helper", "Main.helper", "ws/repo/a.ts#Main.helper")
        await store.batch_upsert_symbols([foo, target])
        await full_text.add_documents([foo])
        engine = GraphEngine(store, full_text=full_text)
        await engine.init()
        await engine.add_edge("ws/repo/a.ts#foo", "ws/repo/a.ts#Main.helper", EdgeType.CALLS)

        related = await engine.search_related("foo", "ws")
        assert [(r.symbol_id, r.path_length) for r in related] == [("id-foo", 0), ("id-helper", 1)]

    async def test_without_full_text_store(self) -> None:
        engine = GraphEngine(LocalGraphStore())
        await engine.init()
        assert await engine.search_related("anything", "ws") == []
