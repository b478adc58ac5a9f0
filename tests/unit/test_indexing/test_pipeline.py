"""Tests for the indexing pipeline."""

import asyncio
from pathlib import Path

import pytest

from code_graph.core.exceptions import IndexingCancelledError, SyntaxParseError
from code_graph.indexing.jobs import Repository
from code_graph.parsing.models import EdgeType, Language, symbol_ref
from code_graph.parsing.tree_sitter_parser import TreeSitterParser

WORKSPACE_ID = "ws-test"
REPO_ID = "repo-test"


class FailingParser(TreeSitterParser):
    """Parser that fails for selected file paths."""

    def __init__(self, failing: set[str]) -> None:
        super().__init__()
        self.failing = failing

    def parse_source(self, source, language, file_path="<string>"):
        if file_path in self.failing:
            raise SyntaxParseError(file_path, line=1)
        return super().parse_source(source, language, file_path)


def write_repo(root: Path, count: int = 5) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for i in range(count):
        (root / f"mod{i}.py").write_text(f"def fn_{i}():\n    return {i}\n")
    (root / "notes.txt").write_text("not code")
    (root / "node_modules").mkdir()
    (root / "node_modules" / "dep.py").write_text("def dep(): pass\n")
    return root


class TestIndexContent:
    """Tests for per-file indexing."""

    async def test_indexes_symbols_and_edges(self, app_context, sample_typescript_code: str) -> None:
        pipeline = app_context.pipeline

        result = await pipeline.index_content(
            sample_typescript_code, "src/main.ts", WORKSPACE_ID, REPO_ID, commit="abc"
        )

        assert result.language == Language.TYPESCRIPT
        assert not result.skipped
        names = {c.payload.symbol_name for c in result.chunks}
        assert {"Main", "Main.run", "Main.helper", "internal"} <= names
        assert all(c.payload.commit == "abc" for c in result.chunks)

        run_ref = symbol_ref(WORKSPACE_ID, REPO_ID, "src/main.ts", "Main.run")
        calls = await app_context.store.query_by_edge_type(EdgeType.CALLS)
        assert (run_ref, "other") in calls
        assert app_context.graph.stats().edge_count > 0

    async def test_persists_to_every_store(self, app_context, sample_python_code: str) -> None:
        result = await app_context.pipeline.index_content(
            sample_python_code, "calc.py", WORKSPACE_ID, REPO_ID
        )

        assert len(app_context.vector_store) == result.symbol_count
        assert len(app_context.full_text) == result.symbol_count
        assert app_context.store.symbol_count == result.symbol_count
        metadata = await app_context.store.get_index_metadata(REPO_ID, "calc.py")
        assert metadata.symbol_count == result.symbol_count
        assert metadata.language == "python"

    async def test_persist_false_writes_nothing(self, app_context, sample_python_code: str) -> None:
        result = await app_context.pipeline.index_content(
            sample_python_code, "calc.py", WORKSPACE_ID, REPO_ID, persist=False
        )

        assert result.chunks
        assert len(app_context.vector_store) == 0
        assert await app_context.store.get_index_metadata(REPO_ID, "calc.py") is None

    async def test_same_content_indexed_once(self, app_context, sample_python_code: str) -> None:
        """A second run over unchanged content is skipped and the ledger keeps one row."""
        pipeline = app_context.pipeline
        first = await pipeline.index_content(sample_python_code, "calc.py", WORKSPACE_ID, REPO_ID)
        second = await pipeline.index_content(sample_python_code, "calc.py", WORKSPACE_ID, REPO_ID)

        assert second.skip_reason == "unchanged"
        assert second.chunks == []
        assert len(app_context.store._metadata) == 1
        assert app_context.store.symbol_count == first.symbol_count

    async def test_changed_content_replaces_stale_symbols(self, app_context) -> None:
        pipeline = app_context.pipeline
        await pipeline.index_content("def old_name():\n    pass\n", "m.py", WORKSPACE_ID, REPO_ID)
        first_hash = (await app_context.store.get_index_metadata(REPO_ID, "m.py")).content_hash

        await pipeline.index_content("def new_name():\n    pass\n", "m.py", WORKSPACE_ID, REPO_ID)

        assert await app_context.store.find_symbols_by_name(WORKSPACE_ID, "old_name") == []
        assert len(await app_context.store.find_symbols_by_name(WORKSPACE_ID, "new_name")) == 1
        assert len(app_context.vector_store) == 1
        assert len(app_context.full_text) == 1
        metadata = await app_context.store.get_index_metadata(REPO_ID, "m.py")
        assert metadata.content_hash != first_hash

    async def test_same_content_other_path_is_indexed(self, app_context) -> None:
        pipeline = app_context.pipeline
        await pipeline.index_content("def f():\n    pass\n", "a.py", WORKSPACE_ID, REPO_ID)
        other = await pipeline.index_content("def f():\n    pass\n", "b.py", WORKSPACE_ID, REPO_ID)

        assert not other.skipped
        assert app_context.store.symbol_count == 2

    @pytest.mark.parametrize("file_path", ["notes.txt", "Makefile", "image.png"])
    async def test_unsupported_file_skipped(self, app_context, file_path: str) -> None:
        result = await app_context.pipeline.index_content("anything", file_path, WORKSPACE_ID, REPO_ID)

        assert result.skip_reason == "unsupported"
        assert result.language is None
        assert app_context.store.symbol_count == 0

    async def test_markdown_sections(self, app_context, sample_markdown: str) -> None:
        result = await app_context.pipeline.index_content(sample_markdown, "README.md", WORKSPACE_ID, REPO_ID)

        assert result.language == Language.MARKDOWN
        assert result.edges == []
        assert result.chunks
        assert all(c.payload.language == "markdown" for c in result.chunks)

    async def test_index_file_uses_relative_path(self, app_context, tmp_path: Path) -> None:
        root = tmp_path / "repo"
        (root / "pkg").mkdir(parents=True)
        path = root / "pkg" / "util.py"
        path.write_text("def util():\n    pass\n")

        result = await app_context.pipeline.index_file(path, root, WORKSPACE_ID, REPO_ID)

        assert result.file_path == "pkg/util.py"
        assert result.chunks[0].payload.file_path == "pkg/util.py"


class TestIndexRepository:
    """Tests for repository runs."""

    @pytest.fixture
    def repository(self, tmp_path: Path) -> Repository:
        root = write_repo(tmp_path / "checkout")
        return Repository(id=REPO_ID, workspace_id=WORKSPACE_ID, name="demo", local_path=root)

    async def test_indexes_listed_files(self, app_context, repository: Repository) -> None:
        result = await app_context.pipeline.index_repository(repository, WORKSPACE_ID)

        assert result.total_files == 6
        assert result.indexed_files == 5
        assert result.skipped_files == 1
        assert result.total_symbols == 5
        assert result.language_stats == {"python": 5}
        assert result.errors == []
        assert result.commit == ""
        assert len(app_context.vector_store) == 5

    async def test_failed_file_does_not_abort_run(self, app_context, repository: Repository) -> None:
        app_context.pipeline.parser = FailingParser({"mod1.py"})

        result = await app_context.pipeline.index_repository(repository, WORKSPACE_ID)

        assert result.indexed_files >= 4
        assert [e.file_path for e in result.errors] == ["mod1.py"]
        assert "mod1.py" in result.errors[0].error
        assert result.to_summary()["errors"][0]["file"] == "mod1.py"
        assert await app_context.store.get_index_metadata(REPO_ID, "mod1.py") is None
        assert await app_context.store.get_index_metadata(REPO_ID, "mod4.py") is not None

    async def test_second_run_skips_unchanged(self, app_context, repository: Repository) -> None:
        await app_context.pipeline.index_repository(repository, WORKSPACE_ID)
        (repository.local_path / "mod0.py").write_text("def changed():\n    pass\n")

        result = await app_context.pipeline.index_repository(repository, WORKSPACE_ID)

        assert result.indexed_files == 1
        assert result.skipped_files == 5
        assert len(app_context.vector_store) == 5

    async def test_persist_false(self, app_context, repository: Repository) -> None:
        result = await app_context.pipeline.index_repository(repository, WORKSPACE_ID, persist=False)

        assert len(result.chunks) == 5
        assert len(result.metadata) == 5
        assert len(app_context.vector_store) == 0

    async def test_cancelled_run(self, app_context, repository: Repository) -> None:
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(IndexingCancelledError):
            await app_context.pipeline.index_repository(repository, WORKSPACE_ID, cancel_event=cancel)
        assert len(app_context.vector_store) == 0
