"""Tests for the application context."""

from code_graph.context import AppContext
from code_graph.embedding.jina_embedder import MockEmbedder
from code_graph.graph.models import EngineState
from code_graph.graph.persistence import GraphPersistence
from code_graph.search.meilisearch_client import InMemoryFullTextStore, MeilisearchFullTextStore
from code_graph.search.vector_store import VECTOR_SNAPSHOT_NAME, MeilisearchVectorStore

WORKSPACE_ID = "ws-test"


class TestAppContext:
    """Tests for AppContext class."""

    def test_create_from_settings(self, mock_settings) -> None:
        """Default settings give local full-text search and mock embeddings."""
        context = AppContext.create(mock_settings)

        assert isinstance(context.full_text, InMemoryFullTextStore)
        assert isinstance(context.embedder, MockEmbedder)
        assert context.embedder.config.dimensions == mock_settings.embedding.dimensions
        assert context.runner.pipeline is context.pipeline
        assert context.searcher.graph is context.graph

    async def test_start_initializes_graph(self, app_context) -> None:
        assert app_context.graph.state == EngineState.READY

    async def test_graph_survives_restart(self, mock_settings) -> None:
        """Closing writes the snapshot that the next context loads."""
        context = AppContext.create(mock_settings)
        await context.start()
        await context.pipeline.index_content(
            "export function foo() { bar(); }\n", "a.ts", WORKSPACE_ID, "repo"
        )
        edges = context.graph.stats().edge_count
        await context.close()

        restarted = AppContext.create(mock_settings)
        await restarted.start()
        try:
            assert restarted.graph.stats().edge_count == edges
            assert await restarted.store.get_index_metadata("repo", "a.ts") is not None
        finally:
            await restarted.close()

    async def test_search_survives_restart(self, mock_settings) -> None:
        """Unchanged files are skipped after a restart and stay searchable."""
        source = "export function bar(): number {\n  return 1;\n}\n"
        context = AppContext.create(mock_settings)
        await context.start()
        first = await context.pipeline.index_content(source, "b.ts", WORKSPACE_ID, "repo")
        assert first.chunks
        await context.close()

        restarted = AppContext.create(mock_settings)
        await restarted.start()
        try:
            again = await restarted.pipeline.index_content(source, "b.ts", WORKSPACE_ID, "repo")
            results = await restarted.searcher.search("bar", WORKSPACE_ID)

            assert again.skip_reason == "unchanged"
            assert len(restarted.vector_store) == 1
            assert len(restarted.full_text) == 1
            assert results[0].payload["symbol_name"] == "bar"
        finally:
            await restarted.close()

    async def test_lost_search_snapshots_reset_ledger(self, mock_settings) -> None:
        """Without the vector snapshot the ledger is dropped and files re-index."""
        source = "export function bar(): number {\n  return 1;\n}\n"
        context = AppContext.create(mock_settings)
        await context.start()
        await context.pipeline.index_content(source, "b.ts", WORKSPACE_ID, "repo")
        await context.close()
        GraphPersistence(mock_settings.graph.storage_path).delete(VECTOR_SNAPSHOT_NAME)

        restarted = AppContext.create(mock_settings)
        await restarted.start()
        try:
            assert await restarted.store.get_index_metadata("repo", "b.ts") is None

            again = await restarted.pipeline.index_content(source, "b.ts", WORKSPACE_ID, "repo")

            assert not again.skipped
            assert len(restarted.vector_store) == 1
            assert (await restarted.searcher.search("bar", WORKSPACE_ID))[0].payload["symbol_name"] == "bar"
        finally:
            await restarted.close()

    def test_meilisearch_backs_both_search_stores(self, mock_settings) -> None:
        settings = mock_settings.model_copy(
            update={"meilisearch": mock_settings.meilisearch.model_copy(update={"enabled": True})}
        )
        context = AppContext.create(settings)

        assert isinstance(context.vector_store, MeilisearchVectorStore)
        assert isinstance(context.full_text, MeilisearchFullTextStore)
        assert context.vector_store.index_name == "symbol_vectors"
        assert context.vector_store.dimensions == settings.embedding.dimensions
