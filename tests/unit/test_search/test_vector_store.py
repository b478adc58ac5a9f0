"""Tests for the vector stores."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from code_graph.core.exceptions import VectorStoreError
from code_graph.graph.persistence import GraphPersistence
from code_graph.search.models import SearchFilters
from code_graph.search.vector_store import (
    InMemoryVectorStore,
    MeilisearchVectorStore,
    VectorPoint,
    VectorStore,
)


def point(point_id: str, vector: list[float], **payload) -> VectorPoint:
    defaults = {"workspace_id": "ws", "repo_id": "repo", "file_path": "a.ts", "language": "typescript"}
    return VectorPoint(point_id, vector, {**defaults, **payload})


class TestInMemoryVectorStore:
    """Tests for InMemoryVectorStore class."""

    @pytest.fixture
    async def store(self) -> InMemoryVectorStore:
        store = InMemoryVectorStore(3)
        await store.upsert_batch(
            [
                point("x", [1.0, 0.0, 0.0]),
                point("xy", [1.0, 1.0, 0.0]),
                point("z", [0.0, 0.0, 1.0], file_path="b.ts"),
                point("other", [1.0, 0.0, 0.0], workspace_id="ws2"),
            ]
        )
        return store

    def test_implements_protocol(self) -> None:
        assert isinstance(InMemoryVectorStore(), VectorStore)

    async def test_cosine_ranking(self, store: InMemoryVectorStore) -> None:
        hits = await store.search([1.0, 0.0, 0.0], workspace_id="ws")

        assert [h.symbol_id for h in hits] == ["x", "xy", "z"]
        assert hits[0].score == pytest.approx(1.0)
        assert hits[1].score == pytest.approx(2 ** -0.5)
        assert hits[2].score == pytest.approx(0.0)

    async def test_workspace_scope(self, store: InMemoryVectorStore) -> None:
        hits = await store.search([1.0, 0.0, 0.0], workspace_id="ws2")
        assert [h.symbol_id for h in hits] == ["other"]

    async def test_limit_and_filters(self, store: InMemoryVectorStore) -> None:
        assert len(await store.search([1.0, 0.0, 0.0], workspace_id="ws", limit=1)) == 1
        assert await store.search([1.0, 0.0, 0.0], workspace_id="ws", limit=0) == []

        hits = await store.search(
            [1.0, 0.0, 0.0],
            workspace_id="ws",
            filters=SearchFilters(language="python"),
        )
        assert hits == []

    async def test_upsert_replaces(self, store: InMemoryVectorStore) -> None:
        await store.upsert_batch([point("x", [0.0, 0.0, 1.0])])

        hits = await store.search([0.0, 0.0, 1.0], workspace_id="ws", limit=2)
        assert len(store) == 4
        assert {h.symbol_id for h in hits} == {"x", "z"}

    async def test_dimension_mismatch(self, store: InMemoryVectorStore) -> None:
        with pytest.raises(VectorStoreError):
            await store.upsert_batch([point("bad", [1.0, 2.0])])
        with pytest.raises(VectorStoreError):
            await store.search([1.0, 2.0], workspace_id="ws")

    async def test_zero_vector_query(self, store: InMemoryVectorStore) -> None:
        hits = await store.search([0.0, 0.0, 0.0], workspace_id="ws")
        assert all(h.score == 0.0 for h in hits)

    async def test_delete(self, store: InMemoryVectorStore) -> None:
        assert await store.delete_by_file("repo", "b.ts") == 1
        assert await store.delete_by_workspace("ws2") == 1
        assert await store.delete_by_repo("repo") == 2
        assert len(store) == 0
        assert await store.search([1.0, 0.0, 0.0], workspace_id="ws") == []

    async def test_dimensions_inferred(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_batch([point("a", [1.0, 0.0])])
        assert store.dimensions == 2

    async def test_snapshot_round_trip(self, store: InMemoryVectorStore, tmp_path: Path) -> None:
        """Closing writes the points that a new store loads."""
        store._persistence = GraphPersistence(tmp_path)
        await store.close()

        restored = InMemoryVectorStore(persistence=GraphPersistence(tmp_path))
        assert await restored.load() is True
        assert len(restored) == 4
        assert restored.dimensions == 3
        hits = await restored.search([0.0, 0.0, 1.0], workspace_id="ws", limit=1)
        assert hits[0].symbol_id == "z"
        assert hits[0].payload["file_path"] == "b.ts"

    async def test_load_without_snapshot(self, tmp_path: Path) -> None:
        assert await InMemoryVectorStore().load() is False
        assert await InMemoryVectorStore(persistence=GraphPersistence(tmp_path)).load() is False


class TestMeilisearchVectorStore:
    """Tests for MeilisearchVectorStore against a mocked client."""

    @pytest.fixture
    def index(self) -> MagicMock:
        index = MagicMock()
        index.add_documents = AsyncMock()
        index.delete_documents_by_filter = AsyncMock()
        index.search = AsyncMock(
            return_value=SimpleNamespace(
                hits=[
                    {"id": "a", "symbol_name": "foo", "_rankingScore": 0.8, "_vectors": {}},
                    {"id": "b", "symbol_name": "bar"},
                ]
            )
        )
        return index

    @pytest.fixture
    def store(self, index: MagicMock) -> MeilisearchVectorStore:
        store = MeilisearchVectorStore("http://localhost:7700", dimensions=3, batch_size=2)
        client = MagicMock()
        client.index.return_value = index
        client.aclose = AsyncMock()
        store._client = client
        return store

    def test_implements_protocol(self) -> None:
        assert isinstance(MeilisearchVectorStore("http://localhost:7700", 3), VectorStore)

    async def test_upsert_sends_user_vectors(self, store: MeilisearchVectorStore, index: MagicMock) -> None:
        await store.upsert_batch([point(str(i), [1.0, 0.0, 0.0]) for i in range(3)])

        assert index.add_documents.await_count == 2
        first = index.add_documents.await_args_list[0].args[0][0]
        assert first["id"] == "0"
        assert first["_vectors"] == {"default": [1.0, 0.0, 0.0]}
        assert first["workspace_id"] == "ws"

    async def test_upsert_checks_dimensions(self, store: MeilisearchVectorStore, index: MagicMock) -> None:
        with pytest.raises(VectorStoreError):
            await store.upsert_batch([point("bad", [1.0])])
        index.add_documents.assert_not_awaited()

    async def test_search_is_semantic_and_scoped(self, store: MeilisearchVectorStore, index: MagicMock) -> None:
        hits = await store.search([1.0, 0.0, 0.0], workspace_id="ws", limit=5)

        assert [(h.symbol_id, h.score) for h in hits] == [("a", 0.8), ("b", 0.0)]
        assert "_vectors" not in hits[0].payload
        kwargs = index.search.await_args.kwargs
        assert kwargs["vector"] == [1.0, 0.0, 0.0]
        assert kwargs["hybrid"].semantic_ratio == 1.0
        assert kwargs["filter"] == 'workspace_id = "ws"'

    async def test_load_reports_durable(self, store: MeilisearchVectorStore) -> None:
        assert await store.load() is True

    async def test_delete_by_file_filter(self, store: MeilisearchVectorStore, index: MagicMock) -> None:
        await store.delete_by_file("repo", "src/a.ts")
        index.delete_documents_by_filter.assert_awaited_once_with(
            'repo_id = "repo" AND file_path = "src/a.ts"'
        )
