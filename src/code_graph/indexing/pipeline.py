"""Indexing pipeline.

Every entry point funnels into the same per-file flow:

    hash -> dedup check -> language detection -> parse
         -> (markdown sections | symbols + dependency edges + chunks)

Unsupported files and unchanged files are skipped, not failed. Repository
runs catch per-file failures, record them and keep going. Persisting writes
vectors, symbol documents, full-text documents and the index ledger, then
adds the edges to the graph engine.
"""

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from code_graph.core.exceptions import EmbeddingGenerationError, IndexingCancelledError
from code_graph.embedding.jina_embedder import BaseEmbedder
from code_graph.graph.builder import DependencyGraphBuilder, FileIdentity
from code_graph.graph.engine import GraphEngine
from code_graph.graph.store import GraphStore
from code_graph.indexing.hasher import ContentHasher
from code_graph.indexing.jobs import IndexMode, Repository
from code_graph.parsing.chunker import ChunkBuilder, FileContext
from code_graph.parsing.extractors.registry import ExtractorRegistry
from code_graph.parsing.markdown import MarkdownSectionIndexer
from code_graph.parsing.models import Chunk, Edge, IndexMetadata, Language
from code_graph.parsing.tree_sitter_parser import TreeSitterParser, detect_language
from code_graph.search.meilisearch_client import FullTextStore
from code_graph.search.vector_store import VectorPoint, VectorStore
from code_graph.utils.async_io import async_read_file
from code_graph.utils.git import GitRepository
from code_graph.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

SKIP_UNSUPPORTED = "unsupported"
SKIP_UNCHANGED = "unchanged"


@dataclass
class FileIndexResult:
    """Outcome of indexing one file.

    Attributes:
        file_path: Repository-relative path.
        language: Detected language, None when unsupported.
        chunks: Chunks produced for the file.
        edges: Dependency edges produced for the file.
        metadata: Ledger row for the indexed content.
        skip_reason: ``unsupported`` or ``unchanged`` when nothing was indexed.
    """

    file_path: str
    language: Language | None = None
    chunks: list[Chunk] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    metadata: IndexMetadata | None = None
    skip_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None

    @property
    def symbol_count(self) -> int:
        return len(self.chunks)


@dataclass
class FileError:
    """A file that failed to index."""

    file_path: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"file": self.file_path, "error": self.error}


@dataclass
class RepositoryIndexResult:
    """Summary of a repository run; inspect ``errors`` for partial failure."""

    repo_id: str
    commit: str = ""
    total_files: int = 0
    indexed_files: int = 0
    skipped_files: int = 0
    total_symbols: int = 0
    errors: list[FileError] = field(default_factory=list)
    language_stats: dict[str, int] = field(default_factory=dict)
    chunks: list[Chunk] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    metadata: list[IndexMetadata] = field(default_factory=list)

    def add(self, result: FileIndexResult) -> None:
        """Fold one file's outcome into the summary."""
        if result.language is not None:
            key = result.language.value
            self.language_stats[key] = self.language_stats.get(key, 0) + 1
        if result.skipped:
            self.skipped_files += 1
            return
        self.indexed_files += 1
        self.total_symbols += result.symbol_count
        self.chunks.extend(result.chunks)
        self.edges.extend(result.edges)
        if result.metadata is not None:
            self.metadata.append(result.metadata)

    def to_summary(self) -> dict[str, Any]:
        return {
            "repo_id": self.repo_id,
            "commit": self.commit,
            "total_files": self.total_files,
            "indexed_files": self.indexed_files,
            "skipped_files": self.skipped_files,
            "total_symbols": self.total_symbols,
            "errors": [e.to_dict() for e in self.errors],
            "language_stats": dict(self.language_stats),
        }


class IndexingPipeline:
    """Turns files into chunks and edges and writes them to the stores."""

    def __init__(
        self,
        parser: TreeSitterParser,
        extractors: ExtractorRegistry,
        graph_builder: DependencyGraphBuilder,
        chunk_builder: ChunkBuilder,
        markdown_indexer: MarkdownSectionIndexer,
        hasher: ContentHasher,
        store: GraphStore,
        vector_store: VectorStore,
        full_text: FullTextStore,
        embedder: BaseEmbedder,
        graph: GraphEngine,
        ignore_patterns: list[str] | None = None,
    ) -> None:
        self.parser = parser
        self.extractors = extractors
        self.graph_builder = graph_builder
        self.chunk_builder = chunk_builder
        self.markdown_indexer = markdown_indexer
        self.hasher = hasher
        self.store = store
        self.vector_store = vector_store
        self.full_text = full_text
        self.embedder = embedder
        self.graph = graph
        self.ignore_patterns = ignore_patterns

    def is_supported(self, language: Language) -> bool:
        """Whether files of a language can be indexed."""
        if not self.parser.is_supported(language):
            return False
        return language == Language.MARKDOWN or self.extractors.is_supported(language)

    # =========================================================================
    # Per-file flow
    # =========================================================================

    async def index_content(
        self,
        content: str,
        file_path: str,
        workspace_id: str,
        repo_id: str,
        repo_name: str = "",
        commit: str = "",
        persist: bool = True,
    ) -> FileIndexResult:
        """Index in-memory source content as if it were ``file_path``.

        Args:
            content: Source text.
            file_path: Repository-relative path; its extension picks the language.
            workspace_id: Owning workspace.
            repo_id: Owning repository.
            repo_name: Repository display name stored in payloads.
            commit: Commit the content belongs to.
            persist: Write the result to the stores.

        Returns:
            The file's chunks and edges, or a skipped result.

        Raises:
            ParsingError: If the content cannot be parsed.
        """
        language = detect_language(file_path)
        if language is None or not self.is_supported(language):
            logger.debug("Skipping unsupported file", file_path=file_path)
            return FileIndexResult(file_path, skip_reason=SKIP_UNSUPPORTED)

        content_hash = self.hasher.hash_content(content)
        if await self.store.find_by_path_and_hash(repo_id, file_path, content_hash):
            logger.debug("Skipping unchanged file", file_path=file_path)
            return FileIndexResult(file_path, language, skip_reason=SKIP_UNCHANGED)

        parsed = self.parser.parse_source(content, language, file_path)
        context = FileContext(
            workspace_id=workspace_id,
            repo_id=repo_id,
            repo_name=repo_name or repo_id,
            file_path=file_path,
            language=language.value,
            commit=commit,
            content_hash=content_hash,
        )

        edges: list[Edge] = []
        if language == Language.MARKDOWN:
            chunks = self.markdown_indexer.index(parsed, context)
        else:
            symbols = self.extractors.get(language).extract(parsed)
            chunks = self.chunk_builder.build(symbols, context)
            edges = self.graph_builder.build(
                parsed,
                symbols,
                FileIdentity(workspace_id, repo_id, file_path),
            )

        metadata = IndexMetadata(
            repo_id=repo_id,
            file_path=file_path,
            content_hash=content_hash,
            last_indexed_at=int(time.time() * 1000),
            symbol_count=len(chunks),
            language=language.value,
            file_size=len(parsed.source),
        )
        result = FileIndexResult(file_path, language, chunks, edges, metadata)

        if persist:
            await self.persist(chunks, edges, [metadata])
        return result

    async def index_file(
        self,
        path: Path,
        root: Path,
        workspace_id: str,
        repo_id: str,
        repo_name: str = "",
        commit: str = "",
        persist: bool = True,
    ) -> FileIndexResult:
        """Read a file from disk and index it under its path relative to ``root``."""
        file_path = path.relative_to(root).as_posix()
        content = await async_read_file(path)
        return await self.index_content(
            content,
            file_path,
            workspace_id,
            repo_id,
            repo_name=repo_name,
            commit=commit,
            persist=persist,
        )

    # =========================================================================
    # Repository flow
    # =========================================================================

    async def index_repository(
        self,
        repository: Repository,
        workspace_id: str,
        mode: IndexMode = IndexMode.FULL,
        persist: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> RepositoryIndexResult:
        """Index every listed file of a repository checkout.

        Files are processed in listing order. A file that fails is recorded
        in ``errors`` and the run continues.

        Args:
            repository: Repository to index.
            workspace_id: Owning workspace.
            mode: ``incremental`` pulls before listing files.
            persist: Write all results to the stores at the end.
            cancel_event: Checked before each file.

        Returns:
            Summary with the accumulated chunks and edges.

        Raises:
            IndexingCancelledError: If ``cancel_event`` is set mid-run.
            GitOperationError: If pulling or listing files fails.
        """
        checkout = GitRepository(repository.local_path, self.ignore_patterns)
        with LogContext(repo_id=repository.id):
            if mode == IndexMode.INCREMENTAL:
                await checkout.pull()

            commit = await checkout.current_commit()
            files = await checkout.list_files()
            logger.info("Indexing files", file_count=len(files), commit=commit)

            result = RepositoryIndexResult(
                repo_id=repository.id,
                commit=commit,
                total_files=len(files),
            )
            for position, file_path in enumerate(files):
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning("Indexing cancelled", processed=position)
                    raise IndexingCancelledError(repository.id, position)

                try:
                    content = await checkout.read_file(file_path)
                    file_result = await self.index_content(
                        content,
                        file_path,
                        workspace_id,
                        repository.id,
                        repo_name=repository.name,
                        commit=commit,
                        persist=False,
                    )
                except Exception as e:
                    logger.warning("Failed to index file", file_path=file_path, error=str(e))
                    result.errors.append(FileError(file_path, str(e)))
                    continue
                result.add(file_result)

            logger.info(
                "Repository indexed",
                indexed_files=result.indexed_files,
                skipped_files=result.skipped_files,
                errors=len(result.errors),
                total_symbols=result.total_symbols,
            )

            if persist:
                await self.persist(result.chunks, result.edges, result.metadata)
        return result

    # =========================================================================
    # Persistence
    # =========================================================================

    async def persist(
        self,
        chunks: list[Chunk],
        edges: list[Edge],
        metadata: list[IndexMetadata],
    ) -> None:
        """Embed and store chunks, record the ledger rows, then add edges."""
        vectors = await self.embed(chunks)
        await self.store_chunks(chunks, vectors, metadata)
        await self.store_edges(edges)

    async def embed(self, chunks: list[Chunk]) -> list[list[float]]:
        """Embed chunk texts in order.

        Raises:
            EmbeddingGenerationError: If the provider returns the wrong count.
        """
        if not chunks:
            return []
        batch = await self.embedder.embed_batch([c.embedding_text for c in chunks])
        vectors = batch.embeddings
        if len(vectors) != len(chunks):
            raise EmbeddingGenerationError(
                sum(len(c.embedding_text) for c in chunks),
                ValueError(f"Expected {len(chunks)} embeddings, got {len(vectors)}"),
            )
        return vectors

    async def store_chunks(
        self,
        chunks: list[Chunk],
        vectors: list[list[float]],
        metadata: list[IndexMetadata],
    ) -> None:
        """Write vectors, symbol and full-text documents and ledger rows.

        Files whose ledger hash changed lose their previous entries first.
        The three document writes are independent upserts and run
        concurrently.
        """
        await self._remove_stale(metadata)

        documents = [chunk.to_document() for chunk in chunks]
        points = [
            VectorPoint(id=chunk.symbol_id, vector=vector, payload=chunk.payload.to_dict())
            for chunk, vector in zip(chunks, vectors)
        ]
        if documents:
            await asyncio.gather(
                self.vector_store.upsert_batch(points),
                self.store.batch_upsert_symbols(documents),
                self.full_text.add_documents(documents),
            )
        for row in metadata:
            await self.store.upsert_index_metadata(row)
        logger.debug("Stored chunks", chunks=len(chunks), files=len(metadata))

    async def _remove_stale(self, metadata: list[IndexMetadata]) -> None:
        for row in metadata:
            previous = await self.store.get_index_metadata(row.repo_id, row.file_path)
            if previous is None or previous.content_hash == row.content_hash:
                continue
            removed = await self.store.delete_by_file(row.repo_id, row.file_path)
            await self.vector_store.delete_by_file(row.repo_id, row.file_path)
            await self.full_text.delete_by_file(row.repo_id, row.file_path)
            logger.debug("Removed stale symbols", file_path=row.file_path, symbols=removed)

    async def store_edges(self, edges: list[Edge]) -> None:
        """Add edges to the graph engine (write-through to the graph store)."""
        if edges:
            await self.graph.batch_add_edges(edges)
