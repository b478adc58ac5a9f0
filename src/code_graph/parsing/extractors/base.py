"""Shared machinery for per-language symbol extractors.

Every extractor performs the same pre-order walk over a syntax tree while
tracking the qualified name of the innermost enclosing declaration. What
differs per language is the closed set of node kinds it consumes and the
handler it runs for each one.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from tree_sitter import Node

from code_graph.parsing.models import Symbol, SymbolKind, Visibility
from code_graph.parsing.tree_sitter_parser import (
    ParsedSource,
    get_node_location,
    get_node_text,
)


@dataclass
class Visit:
    """Outcome of handling one declaration node.

    Attributes:
        symbols: Symbols emitted for the node, in source order.
        scope: Qualified name that becomes the parent of the node's
            children. ``None`` keeps the current parent.
        descend: Whether to walk the node's children at all.
    """

    symbols: list[Symbol] = field(default_factory=list)
    scope: str | None = None
    descend: bool = True

    @classmethod
    def of(cls, symbol: Symbol) -> "Visit":
        """Emit one symbol and make it the parent of nested declarations."""
        return cls(symbols=[symbol], scope=symbol.qualified_name)


Handler = Callable[[Node, bytes, str | None], Visit | None]


class BaseExtractor(ABC):
    """Base class for tree-walking symbol extractors.

    Subclasses declare ``node_kinds``, an Enum of the node types they
    consume, and map every member to a handler in :meth:`handlers`. The
    mapping is checked to be exhaustive when the extractor is created.
    """

    node_kinds: type[Enum]
    comment_types: tuple[str, ...] = ("comment",)

    def __init__(self) -> None:
        handlers = self.handlers()
        missing = [kind.value for kind in self.node_kinds if kind not in handlers]
        if missing:
            raise TypeError(
                f"{type(self).__name__} has no handler for node kinds: {', '.join(missing)}"
            )
        self._dispatch: dict[str, Handler] = {
            kind.value: handler for kind, handler in handlers.items()
        }

    @abstractmethod
    def handlers(self) -> dict[Enum, Handler]:
        """Map each member of ``node_kinds`` to its handler."""

    def extract(self, parsed: ParsedSource) -> list[Symbol]:
        """Extract symbols from a parsed tree.

        The walk is iterative so deeply nested sources cannot exhaust the
        interpreter stack; children are pushed in reverse to keep pre-order.

        Args:
            parsed: Parsed tree and its source bytes.

        Returns:
            Symbols in pre-order of their declaration nodes.
        """
        symbols: list[Symbol] = []
        stack: list[tuple[Node, str | None]] = [(parsed.root, None)]

        while stack:
            node, parent = stack.pop()
            scope = parent

            handler = self._dispatch.get(node.type)
            if handler is not None:
                visit = handler(node, parsed.source, parent)
                if visit is not None:
                    symbols.extend(visit.symbols)
                    if visit.scope is not None:
                        scope = visit.scope
                    if not visit.descend:
                        continue

            stack.extend((child, scope) for child in reversed(node.children))

        return symbols

    # ------------------------------------------------------------------
    # Helpers shared by all languages
    # ------------------------------------------------------------------

    @staticmethod
    def qualify(parent: str | None, name: str) -> str:
        """Join a local name onto its parent's qualified name."""
        return f"{parent}.{name}" if parent else name

    @staticmethod
    def field_text(node: Node, field_name: str, source: bytes) -> str:
        """Text of a named field, or an empty string when absent."""
        return get_node_text(node.child_by_field_name(field_name), source)

    def doc_comment(self, node: Node, source: bytes) -> str | None:
        """Collect the comment block directly preceding ``node``.

        Consecutive comment siblings with no blank line between them are
        joined, so a run of ``//`` lines reads as one comment.
        """
        lines: list[str] = []
        anchor = node
        prev = node.prev_sibling
        while prev is not None and prev.type in self.comment_types:
            if anchor.start_point[0] - prev.end_point[0] > 1:
                break
            lines.append(get_node_text(prev, source).strip())
            anchor = prev
            prev = prev.prev_sibling
        if not lines:
            return None
        return "\n".join(reversed(lines))

    def make_symbol(
        self,
        node: Node,
        source: bytes,
        *,
        name: str,
        parent: str | None,
        kind: SymbolKind,
        visibility: Visibility = Visibility.PUBLIC,
        exported: bool = False,
        signature: str | None = None,
        doc_comment: str | None = None,
        code_node: Node | None = None,
    ) -> Symbol:
        """Build a symbol located at ``node``.

        ``code_node`` widens the verbatim code slice (e.g. to include a
        decorator or the whole declaration statement) without moving the
        symbol's location.
        """
        return Symbol(
            name=name,
            qualified_name=self.qualify(parent, name),
            kind=kind,
            visibility=visibility,
            exported=exported,
            location=get_node_location(node),
            signature=signature,
            doc_comment=doc_comment,
            code_chunk=get_node_text(code_node or node, source),
        )


def join_signature(
    name: str,
    parameters: str = "",
    return_type: str = "",
    prefix: str = "",
    return_separator: str = ": ",
) -> str:
    """Synthesize ``prefix + name + parameters + return type``."""
    signature = f"{prefix}{name}{parameters}"
    if return_type:
        return_type = return_type.strip()
        if return_separator.strip() and return_type.startswith(return_separator.strip()):
            signature += return_type
        else:
            signature += f"{return_separator}{return_type}"
    return signature


def modifier_words(node: Node, source: bytes, modifier_types: Iterable[str]) -> set[str]:
    """Collect the lower-cased words of a node's modifier children."""
    wanted = set(modifier_types)
    words: set[str] = set()
    for child in node.children:
        if child.type in wanted:
            words.update(get_node_text(child, source).lower().split())
    return words
