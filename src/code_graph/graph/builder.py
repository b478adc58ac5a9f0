"""Dependency edge extraction.

Walks a parsed file once and emits IMPORTS edges for import statements and
CALLS edges for call sites. Call sites are attributed to their enclosing
symbol purely from line geometry, using the extractor's symbol list.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from tree_sitter import Node

from code_graph.parsing.models import Edge, EdgeType, Language, Symbol, symbol_ref
from code_graph.parsing.tree_sitter_parser import ParsedSource, get_node_text, walk
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

FILE_PLACEHOLDER = "file"
IMPORT_CONFIDENCE = 1.0
CALL_CONFIDENCE = 0.8


@dataclass(frozen=True)
class LanguageSyntax:
    """Node types that carry dependency information in one grammar."""

    import_types: frozenset[str]
    call_types: frozenset[str]
    receiver_prefixes: tuple[str, ...] = ()


_ECMASCRIPT = LanguageSyntax(
    import_types=frozenset({"import_statement", "export_statement"}),
    call_types=frozenset({"call_expression"}),
    receiver_prefixes=("this.",),
)

SYNTAX: dict[Language, LanguageSyntax] = {
    Language.TYPESCRIPT: _ECMASCRIPT,
    Language.TSX: _ECMASCRIPT,
    Language.JAVASCRIPT: _ECMASCRIPT,
    Language.PYTHON: LanguageSyntax(
        import_types=frozenset({"import_statement", "import_from_statement"}),
        call_types=frozenset({"call"}),
        receiver_prefixes=("self.", "cls."),
    ),
    Language.GO: LanguageSyntax(
        import_types=frozenset({"import_spec"}),
        call_types=frozenset({"call_expression"}),
    ),
    Language.C: LanguageSyntax(
        import_types=frozenset({"preproc_include"}),
        call_types=frozenset({"call_expression"}),
    ),
    Language.CPP: LanguageSyntax(
        import_types=frozenset({"preproc_include"}),
        call_types=frozenset({"call_expression"}),
        receiver_prefixes=("this->",),
    ),
    Language.CSHARP: LanguageSyntax(
        import_types=frozenset({"using_directive"}),
        call_types=frozenset({"invocation_expression"}),
        receiver_prefixes=("this.",),
    ),
}


@dataclass(frozen=True)
class FileIdentity:
    """Workspace, repository and path of the file being processed."""

    workspace_id: str
    repo_id: str
    file_path: str

    def ref(self, qualified_name: str) -> str:
        """Reference for a symbol declared in this file."""
        return symbol_ref(self.workspace_id, self.repo_id, self.file_path, qualified_name)


class ScopeIndex:
    """Finds the innermost symbol enclosing a line range.

    Symbols are kept in extraction (pre-order) order, so among all symbols
    containing a range the one appended last is the most deeply nested.
    Each line maps to the ascending list of symbol positions covering it;
    a lookup scans that short list backwards instead of the whole file.
    """

    def __init__(self, symbols: Iterable[Symbol]) -> None:
        self._entries: list[tuple[str, int, int]] = []
        self._by_line: dict[int, list[int]] = defaultdict(list)
        for position, symbol in enumerate(symbols):
            start, end = symbol.location.start_line, symbol.location.end_line
            self._entries.append((symbol.qualified_name, start, end))
            for line in range(start, end + 1):
                self._by_line[line].append(position)

    def __len__(self) -> int:
        return len(self._entries)

    def innermost(self, start_line: int, end_line: int) -> str | None:
        """Qualified name of the last symbol whose range contains the range.

        Args:
            start_line: First line of the range (1-based).
            end_line: Last line of the range (1-based).

        Returns:
            The qualified name, or None when no symbol contains the range.
        """
        for position in reversed(self._by_line.get(start_line, ())):
            qualified_name, _, symbol_end = self._entries[position]
            if symbol_end >= end_line:
                return qualified_name
        return None


class DependencyGraphBuilder:
    """Builds IMPORTS and CALLS edges for one parsed file."""

    def build(
        self,
        parsed: ParsedSource,
        symbols: list[Symbol],
        identity: FileIdentity,
    ) -> list[Edge]:
        """Extract dependency edges.

        Args:
            parsed: The parsed file.
            symbols: Symbols extracted from the same tree, in pre-order.
            identity: Workspace/repository/path of the file.

        Returns:
            De-duplicated edges in source order.
        """
        syntax = SYNTAX.get(parsed.language)
        if syntax is None:
            return []

        source = parsed.source
        scopes: ScopeIndex | None = None
        edges: dict[tuple[str, str, EdgeType], Edge] = {}

        for node in walk(parsed.root):
            if node.type in syntax.import_types:
                for target in import_targets(node, source):
                    edge = Edge(FILE_PLACEHOLDER, target, EdgeType.IMPORTS, IMPORT_CONFIDENCE)
                    edges.setdefault((edge.from_id, edge.to_id, edge.type), edge)

            elif node.type in syntax.call_types:
                callee = _callee_name(node, source)
                if not callee:
                    continue
                if scopes is None:
                    scopes = ScopeIndex(symbols)
                enclosing = scopes.innermost(node.start_point[0] + 1, node.end_point[0] + 1)
                if enclosing is None:
                    continue
                target = resolve_receiver(callee, enclosing, syntax.receiver_prefixes)
                edge = Edge(identity.ref(enclosing), target, EdgeType.CALLS, CALL_CONFIDENCE)
                edges.setdefault((edge.from_id, edge.to_id, edge.type), edge)

        logger.debug(
            "Built dependency edges",
            file_path=identity.file_path,
            edges=len(edges),
        )
        return list(edges.values())


def resolve_receiver(callee: str, enclosing: str, prefixes: Iterable[str]) -> str:
    """Rewrite ``this.method`` into ``<enclosing parent>.method``.

    The receiver is assumed to be the type owning the enclosing method, so
    the enclosing qualified name minus its last segment is used. A
    top-level enclosing symbol has no parent and leaves the callee as is.
    """
    for prefix in prefixes:
        if callee.startswith(prefix):
            parts = enclosing.split(".")
            if len(parts) > 1:
                return f"{'.'.join(parts[:-1])}.{callee[len(prefix):]}"
            return callee
    return callee


def import_targets(node: Node, source: bytes) -> list[str]:
    """Module paths referenced by an import-like node."""
    source_field = node.child_by_field_name("source")
    if node.type in ("import_statement", "export_statement") and source_field is not None:
        return [_unquote(get_node_text(source_field, source))]

    if node.type == "import_statement":
        targets = []
        for name in node.children_by_field_name("name"):
            if name.type == "aliased_import":
                name = name.child_by_field_name("name") or name
            targets.append(get_node_text(name, source))
        return [t for t in targets if t]

    if node.type == "import_from_statement":
        module = get_node_text(node.child_by_field_name("module_name"), source)
        return [module] if module else []

    if node.type in ("import_spec", "preproc_include"):
        path = _unquote(get_node_text(node.child_by_field_name("path"), source))
        return [path] if path else []

    if node.type == "using_directive":
        names = [c for c in node.named_children if c.type in ("qualified_name", "identifier")]
        return [get_node_text(names[-1], source)] if names else []

    return []


def _callee_name(node: Node, source: bytes) -> str:
    function = node.child_by_field_name("function")
    return "".join(get_node_text(function, source).split())


def _unquote(text: str) -> str:
    return text.strip().strip("'\"`<>")
