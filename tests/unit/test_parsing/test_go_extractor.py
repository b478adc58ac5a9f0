"""Tests for the Go extractor."""

import pytest

from code_graph.parsing.extractors.go import GoExtractor, is_go_exported
from code_graph.parsing.models import Language, Symbol, SymbolKind, Visibility
from code_graph.parsing.tree_sitter_parser import TreeSitterParser

SOURCE = """package server

// Server handles requests.
type Server struct {
	addr string
}

type Handler interface {
	Serve()
}

type ID string

// Start runs the server.
func (s *Server) Start() error {
	return nil
}

func newServer(addr string) *Server {
	return &Server{addr: addr}
}

var (
	Version, build = "1.0", "dev"
)

const limit = 10
"""


class TestGoExtractor:
    """Tests for GoExtractor class."""

    @pytest.fixture
    def symbols(self) -> dict[str, Symbol]:
        parsed = TreeSitterParser().parse_source(SOURCE, Language.GO, "server.go")
        return {s.qualified_name: s for s in GoExtractor().extract(parsed)}

    def test_type_kinds(self, symbols: dict[str, Symbol]) -> None:
        assert symbols["Server"].kind == SymbolKind.CLASS
        assert symbols["Handler"].kind == SymbolKind.INTERFACE
        assert symbols["ID"].kind == SymbolKind.TYPE

    def test_method_qualified_by_receiver(self, symbols: dict[str, Symbol]) -> None:
        start = symbols["Server.Start"]
        assert start.kind == SymbolKind.METHOD
        assert start.signature == "Start() error"
        assert start.doc_comment == "// Start runs the server."

    def test_capitalization_exports(self, symbols: dict[str, Symbol]) -> None:
        assert symbols["Server"].exported is True
        assert symbols["Server"].visibility == Visibility.PUBLIC
        assert symbols["newServer"].exported is False
        assert symbols["newServer"].visibility == Visibility.PRIVATE

    def test_function_signature(self, symbols: dict[str, Symbol]) -> None:
        assert symbols["newServer"].signature == "newServer(addr string) *Server"

    def test_struct_doc_comment(self, symbols: dict[str, Symbol]) -> None:
        assert symbols["Server"].doc_comment == "// Server handles requests."

    def test_one_symbol_per_declared_name(self, symbols: dict[str, Symbol]) -> None:
        assert symbols["Version"].kind == SymbolKind.VARIABLE
        assert symbols["Version"].exported is True
        assert symbols["build"].exported is False
        assert symbols["limit"].kind == SymbolKind.VARIABLE


def test_is_go_exported() -> None:
    assert is_go_exported("Serve")
    assert not is_go_exported("serve")
    assert not is_go_exported("_Serve")
    assert not is_go_exported("")
