"""Tests for parsing models."""

import pytest

from code_graph.parsing.models import (
    Chunk,
    ChunkPayload,
    Edge,
    EdgeType,
    IndexMetadata,
    Language,
    Location,
    Symbol,
    SymbolKind,
    symbol_ref,
)
from code_graph.parsing.tree_sitter_parser import detect_language


class TestLanguage:
    """Tests for Language enum."""

    def test_from_extension_typescript(self) -> None:
        assert Language.from_extension("ts") == Language.TYPESCRIPT
        assert Language.from_extension(".mts") == Language.TYPESCRIPT
        assert Language.from_extension("tsx") == Language.TSX

    def test_jsx_uses_tsx_grammar(self) -> None:
        assert Language.from_extension("jsx") == Language.TSX

    def test_from_extension_c_family(self) -> None:
        assert Language.from_extension("h") == Language.C
        assert Language.from_extension("hpp") == Language.CPP
        assert Language.from_extension("cs") == Language.CSHARP

    def test_from_extension_markdown(self) -> None:
        for ext in ("md", "mdx", "mdc"):
            assert Language.from_extension(ext) == Language.MARKDOWN

    def test_from_extension_unsupported(self) -> None:
        """Test unsupported extension returns None."""
        assert Language.from_extension("xyz") is None
        assert Language.from_extension("") is None

    def test_from_extension_case_insensitive(self) -> None:
        assert Language.from_extension("PY") == Language.PYTHON
        assert Language.from_extension("Go") == Language.GO

    def test_is_ecmascript(self) -> None:
        assert Language.JAVASCRIPT.is_ecmascript
        assert Language.TSX.is_ecmascript
        assert not Language.PYTHON.is_ecmascript

    def test_detect_language(self) -> None:
        assert detect_language("src/app/main.ts") == Language.TYPESCRIPT
        assert detect_language("docs/README.md") == Language.MARKDOWN
        assert detect_language("Makefile") is None


class TestLocation:
    """Tests for Location dataclass."""

    def test_valid_location(self) -> None:
        location = Location(start_line=3, end_line=7)
        assert location.line_count == 5

    def test_single_line(self) -> None:
        assert Location(start_line=1, end_line=1).line_count == 1

    def test_invalid_start(self) -> None:
        with pytest.raises(ValueError):
            Location(start_line=0, end_line=1)

    def test_end_before_start(self) -> None:
        with pytest.raises(ValueError):
            Location(start_line=5, end_line=4)

    def test_contains(self) -> None:
        location = Location(start_line=2, end_line=10)
        assert location.contains(2, 10)
        assert location.contains(4, 5)
        assert not location.contains(1, 5)
        assert not location.contains(9, 11)


class TestSymbol:
    """Tests for Symbol dataclass."""

    @pytest.fixture
    def method(self) -> Symbol:
        return Symbol(
            name="run",
            qualified_name="Main.run",
            kind=SymbolKind.METHOD,
            location=Location(2, 4),
            code_chunk="run() {}",
        )

    def test_parent_name(self, method: Symbol) -> None:
        assert method.parent_name == "Main"

    def test_top_level_has_no_parent(self) -> None:
        symbol = Symbol(
            name="main",
            qualified_name="main",
            kind=SymbolKind.FUNCTION,
            location=Location(1, 1),
            code_chunk="func main() {}",
        )
        assert symbol.parent_name is None

    def test_to_dict(self, method: Symbol) -> None:
        data = method.to_dict()
        assert data["kind"] == "method"
        assert data["visibility"] == "public"
        assert data["exported"] is False
        assert data["location"] == {"start_line": 2, "end_line": 4}


class TestEdge:
    """Tests for Edge dataclass."""

    def test_round_trip_dict(self) -> None:
        edge = Edge(from_id="a", to_id="b", type=EdgeType.CALLS, confidence=0.8)
        data = edge.to_dict()
        assert data == {"from": "a", "to": "b", "type": "CALLS", "confidence": 0.8}
        assert Edge.from_dict(data) == edge

    def test_default_confidence(self) -> None:
        assert Edge.from_dict({"from": "file", "to": "./x", "type": "IMPORTS"}).confidence == 1.0

    def test_empty_endpoint_rejected(self) -> None:
        with pytest.raises(ValueError):
            Edge(from_id="", to_id="b", type=EdgeType.CALLS)

    def test_confidence_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            Edge(from_id="a", to_id="b", type=EdgeType.CALLS, confidence=1.5)


class TestChunk:
    """Tests for Chunk and its payload."""

    def test_to_document(self) -> None:
        payload = ChunkPayload(
            workspace_id="ws",
            repo_id="r",
            repo_name="repo",
            file_path="a.ts",
            language="typescript",
            symbol_id="abc",
            symbol_name="foo",
            symbol_kind="function",
            exported=True,
            visibility="public",
            code="function foo() {}",
            signature="function foo()",
            importance=0.9,
            commit="deadbeef",
        )
        document = Chunk(symbol_id="abc", embedding_text="foo", payload=payload).to_document()

        assert document["id"] == "abc"
        assert document["symbol_name"] == "foo"
        assert document["exported"] is True


class TestIndexMetadata:
    """Tests for IndexMetadata."""

    def test_from_dict_round_trip(self) -> None:
        metadata = IndexMetadata(
            repo_id="r",
            file_path="a.py",
            content_hash="h",
            last_indexed_at=1,
            symbol_count=2,
            language="python",
            file_size=10,
        )
        assert IndexMetadata.from_dict(metadata.to_dict()) == metadata


def test_symbol_ref_format() -> None:
    assert symbol_ref("ws", "repo", "src/a.ts", "Main.run") == "ws/repo/src/a.ts#Main.run"
