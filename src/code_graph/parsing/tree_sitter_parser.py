"""Tree-sitter front end for multi-language parsing.

This module turns source text into concrete syntax trees and provides the
small node helpers every extractor and the graph builder share.
"""

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

import tree_sitter_c as ts_c
import tree_sitter_c_sharp as ts_c_sharp
import tree_sitter_cpp as ts_cpp
import tree_sitter_go as ts_go
import tree_sitter_javascript as ts_javascript
import tree_sitter_markdown as ts_markdown
import tree_sitter_python as ts_python
import tree_sitter_typescript as ts_typescript
from tree_sitter import Language as TSLanguage
from tree_sitter import Node, Parser, Tree

from code_graph.core.exceptions import SyntaxParseError, UnsupportedLanguageError
from code_graph.parsing.models import Language, Location
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ParsedSource:
    """A syntax tree together with the bytes it was parsed from."""

    tree: Tree
    source: bytes
    language: Language

    @property
    def root(self) -> Node:
        """Root node of the tree."""
        return self.tree.root_node


class TreeSitterParser:
    """Multi-language parser using tree-sitter.

    Grammars are loaded once per instance; a grammar that fails to load is
    logged and its language reported as unsupported.
    """

    _GRAMMARS: dict[Language, Callable[[], Any]] = {
        Language.TYPESCRIPT: ts_typescript.language_typescript,
        Language.TSX: ts_typescript.language_tsx,
        Language.JAVASCRIPT: ts_javascript.language,
        Language.PYTHON: ts_python.language,
        Language.GO: ts_go.language,
        Language.C: ts_c.language,
        Language.CPP: ts_cpp.language,
        Language.CSHARP: ts_c_sharp.language,
        Language.MARKDOWN: ts_markdown.language,
    }

    def __init__(self) -> None:
        self._parsers: dict[Language, Parser] = {}
        self._initialize_parsers()

    def _initialize_parsers(self) -> None:
        """Initialize tree-sitter parsers for supported languages."""
        for lang, grammar in self._GRAMMARS.items():
            try:
                self._parsers[lang] = Parser(TSLanguage(grammar()))
                logger.debug("Initialized parser", language=lang.value)
            except (ValueError, TypeError, OSError) as e:
                logger.warning(
                    "Failed to initialize parser",
                    language=lang.value,
                    error=str(e),
                )

    @property
    def supported_languages(self) -> list[Language]:
        """Get list of supported languages."""
        return list(self._parsers.keys())

    def is_supported(self, language: Language) -> bool:
        """Check if a language has a loaded grammar."""
        return language in self._parsers

    def parse_source(
        self,
        source: str | bytes,
        language: Language,
        file_path: str = "<string>",
    ) -> ParsedSource:
        """Parse source code into a syntax tree.

        Args:
            source: The source code to parse.
            language: The source language.
            file_path: Path used in error reports.

        Returns:
            The parsed tree with its source bytes.

        Raises:
            UnsupportedLanguageError: If language is not supported.
            SyntaxParseError: If parsing fails.
        """
        if language not in self._parsers:
            raise UnsupportedLanguageError(
                language.value,
                [lang.value for lang in self.supported_languages],
            )

        if isinstance(source, str):
            source = source.encode("utf-8")

        try:
            tree = self._parsers[language].parse(source)
        except (ValueError, TypeError) as e:
            raise SyntaxParseError(file_path=file_path, cause=e)

        if tree.root_node.has_error:
            logger.debug(
                "Parsed with syntax errors",
                file_path=file_path,
                errors=collect_errors(tree.root_node, max_errors=3),
            )
        return ParsedSource(tree=tree, source=source, language=language)


def detect_language(file_path: str) -> Language | None:
    """Detect a file's language from its extension."""
    return Language.from_extension(PurePosixPath(file_path).suffix)


def collect_errors(node: Node, max_errors: int = 10) -> list[str]:
    """Collect syntax error descriptions from a tree.

    Args:
        node: The root node to search.
        max_errors: Maximum number of errors to collect.

    Returns:
        List of error descriptions.
    """
    errors: list[str] = []
    for n in walk(node):
        if len(errors) >= max_errors:
            break
        if n.is_error or n.is_missing:
            kind = "Missing" if n.is_missing else "Error"
            errors.append(
                f"{kind} at line {n.start_point[0] + 1}, column {n.start_point[1]}: {n.type}"
            )
    return errors


def walk(node: Node) -> Iterator[Node]:
    """Yield a node and all its descendants in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def find_nodes_by_type(node: Node, types: str | Iterable[str]) -> list[Node]:
    """Find all descendants (including ``node``) of the given types, pre-order."""
    wanted = {types} if isinstance(types, str) else set(types)
    return [n for n in walk(node) if n.type in wanted]


def iter_ancestors(node: Node) -> Iterator[Node]:
    """Yield the ancestors of a node, innermost first."""
    current = node.parent
    while current is not None:
        yield current
        current = current.parent


def first_child_of_type(node: Node, *types: str) -> Node | None:
    """Return the first direct child whose type is one of ``types``."""
    for child in node.children:
        if child.type in types:
            return child
    return None


def get_node_text(node: Node | None, source: bytes) -> str:
    """Get the text content of a node (empty for ``None``)."""
    if node is None:
        return ""
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def get_node_location(node: Node) -> Location:
    """Get the 1-based inclusive line range of a node."""
    return Location(
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
    )
