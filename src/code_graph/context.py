"""Application context.

Builds every collaborator once and hands out explicit references instead of
process-wide singletons. ``start()`` restores the stores and the dependency
graph; ``close()`` releases clients and writes the local snapshots.
"""

from dataclasses import dataclass

from code_graph.config import Settings, get_settings
from code_graph.embedding.jina_embedder import BaseEmbedder, MockEmbedder, create_embedder
from code_graph.embedding.models import EmbeddingConfig
from code_graph.graph.builder import DependencyGraphBuilder
from code_graph.graph.engine import GraphEngine
from code_graph.graph.persistence import GraphPersistence
from code_graph.graph.store import LocalGraphStore
from code_graph.indexing.hasher import ContentHasher
from code_graph.indexing.jobs import InMemoryJobLedger, JobLedger, RepositoryRegistry
from code_graph.indexing.pipeline import IndexingPipeline
from code_graph.indexing.runner import IndexJobRunner
from code_graph.parsing.chunker import ChunkBuilder
from code_graph.parsing.extractors.registry import ExtractorRegistry
from code_graph.parsing.markdown import MarkdownSectionIndexer
from code_graph.parsing.tree_sitter_parser import TreeSitterParser
from code_graph.search.hybrid import HybridSearcher
from code_graph.search.meilisearch_client import (
    FullTextStore,
    InMemoryFullTextStore,
    MeilisearchFullTextStore,
)
from code_graph.search.models import FusionWeights
from code_graph.search.vector_store import InMemoryVectorStore, MeilisearchVectorStore, VectorStore
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AppContext:
    """Every long-lived collaborator of the engine."""

    settings: Settings
    parser: TreeSitterParser
    extractors: ExtractorRegistry
    store: LocalGraphStore
    vector_store: VectorStore
    full_text: FullTextStore
    embedder: BaseEmbedder
    graph: GraphEngine
    pipeline: IndexingPipeline
    jobs: JobLedger
    repositories: RepositoryRegistry
    runner: IndexJobRunner
    searcher: HybridSearcher

    @classmethod
    def create(cls, settings: Settings | None = None) -> "AppContext":
        """Assemble the context described by the settings.

        The graph store snapshots to ``GRAPH_STORAGE_PATH``. With
        ``MEILISEARCH_ENABLED`` set, vectors and full-text documents live in
        Meilisearch; otherwise the local vector and BM25 stores snapshot
        next to the graph.
        """
        settings = settings or get_settings()
        persistence = GraphPersistence(settings.graph.storage_path)
        store = LocalGraphStore(persistence)
        meili = settings.meilisearch
        if meili.enabled:
            vector_store: VectorStore = MeilisearchVectorStore(
                meili.url,
                settings.embedding.dimensions,
                api_key=meili.master_key,
                index_name=meili.index_vectors,
                batch_size=meili.batch_size,
            )
            full_text: FullTextStore = MeilisearchFullTextStore(
                meili.url,
                api_key=meili.master_key,
                index_name=meili.index_symbols,
                batch_size=meili.batch_size,
            )
        else:
            vector_store = InMemoryVectorStore(settings.embedding.dimensions, persistence=persistence)
            full_text = InMemoryFullTextStore(persistence=persistence)

        return cls._assemble(
            settings,
            store=store,
            vector_store=vector_store,
            full_text=full_text,
            embedder=create_embedder(settings.embedding),
        )

    @classmethod
    def in_memory(cls, settings: Settings | None = None, dimensions: int = 256) -> "AppContext":
        """A fully local context: no snapshots, mock embeddings, BM25 full-text."""
        settings = settings or get_settings()
        return cls._assemble(
            settings,
            store=LocalGraphStore(),
            vector_store=InMemoryVectorStore(dimensions),
            full_text=InMemoryFullTextStore(),
            embedder=MockEmbedder(EmbeddingConfig(dimensions=dimensions)),
        )

    @classmethod
    def _assemble(
        cls,
        settings: Settings,
        store: LocalGraphStore,
        vector_store: VectorStore,
        full_text: FullTextStore,
        embedder: BaseEmbedder,
    ) -> "AppContext":
        parser = TreeSitterParser()
        extractors = ExtractorRegistry()
        graph = GraphEngine(store, full_text=full_text, related_limit=settings.graph.related_limit)
        pipeline = IndexingPipeline(
            parser=parser,
            extractors=extractors,
            graph_builder=DependencyGraphBuilder(),
            chunk_builder=ChunkBuilder(),
            markdown_indexer=MarkdownSectionIndexer(settings.indexing.min_section_chars),
            hasher=ContentHasher(settings.indexing.file_hash_algorithm),
            store=store,
            vector_store=vector_store,
            full_text=full_text,
            embedder=embedder,
            graph=graph,
            ignore_patterns=settings.indexing.ignore_patterns_list,
        )
        jobs = InMemoryJobLedger()
        repositories = RepositoryRegistry()
        searcher = HybridSearcher(
            embedder,
            vector_store,
            full_text,
            graph,
            weights=FusionWeights(
                vector=settings.search.vector_weight,
                fulltext=settings.search.fulltext_weight,
                graph=settings.search.graph_weight,
            ),
            default_top_k=settings.search.default_top_k,
        )
        return cls(
            settings=settings,
            parser=parser,
            extractors=extractors,
            store=store,
            vector_store=vector_store,
            full_text=full_text,
            embedder=embedder,
            graph=graph,
            pipeline=pipeline,
            jobs=jobs,
            repositories=repositories,
            runner=IndexJobRunner(pipeline, jobs, repositories),
            searcher=searcher,
        )

    async def start(self) -> None:
        """Restore the stores, prepare the search indexes and the engine.

        The index ledger is only trusted when the vector and full-text
        stores came back too; otherwise it is dropped so unchanged files are
        indexed again.
        """
        loaded = await self.store.load()
        vectors_loaded = await self.vector_store.load()
        documents_loaded = await self.full_text.load()
        if loaded and not (vectors_loaded and documents_loaded):
            dropped = self.store.reset_index_metadata()
            logger.warning(
                "Search stores missing, index ledger reset",
                vectors_loaded=vectors_loaded,
                documents_loaded=documents_loaded,
                ledger_rows=dropped,
            )
        await self.vector_store.initialize()
        await self.full_text.initialize()
        await self.graph.init()
        logger.info(
            "Context started",
            snapshot_loaded=loaded,
            edges=self.graph.stats().edge_count,
        )

    async def close(self) -> None:
        """Release clients and persist the local stores."""
        await self.embedder.close()
        await self.full_text.close()
        await self.vector_store.close()
        await self.store.close()
        logger.info("Context closed")
