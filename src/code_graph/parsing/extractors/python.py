"""Python symbol extractor.

Extracts functions, methods, classes and lambda assignments from Python
syntax trees. Visibility follows the leading-underscore convention.
"""

from enum import Enum

from tree_sitter import Node

from code_graph.parsing.extractors.base import BaseExtractor, Handler, Visit, join_signature
from code_graph.parsing.models import SymbolKind, Visibility
from code_graph.parsing.tree_sitter_parser import get_node_text, iter_ancestors


class PythonNode(str, Enum):
    """Declaration node kinds consumed from Python trees."""

    FUNCTION_DEFINITION = "function_definition"
    CLASS_DEFINITION = "class_definition"
    ASSIGNMENT = "assignment"


class PythonExtractor(BaseExtractor):
    """Extracts Python definitions into symbols.

    Decorated definitions are reported once, located at the definition
    itself with the decorators included in the code slice.
    """

    node_kinds = PythonNode

    def handlers(self) -> dict[Enum, Handler]:
        return {
            PythonNode.FUNCTION_DEFINITION: self._function,
            PythonNode.CLASS_DEFINITION: self._class,
            PythonNode.ASSIGNMENT: self._assignment,
        }

    def _function(self, node: Node, source: bytes, parent: str | None) -> Visit:
        """Handle ``def`` and ``async def``.

        Args:
            node: The function_definition node.
            source: Source bytes.
            parent: Qualified name of the enclosing symbol.

        Returns:
            Visit emitting a function or method symbol.
        """
        name = self.field_text(node, "name", source) or "anonymous"
        outer = _outer_node(node)
        visibility = python_visibility(name)
        kind = SymbolKind.METHOD if _defined_in_class(node) else SymbolKind.FUNCTION

        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=kind,
                visibility=visibility,
                exported=parent is None and visibility == Visibility.PUBLIC,
                signature=join_signature(
                    name,
                    self.field_text(node, "parameters", source),
                    self.field_text(node, "return_type", source),
                    return_separator=" -> ",
                ),
                doc_comment=self._docstring(node, source) or self.doc_comment(outer, source),
                code_node=outer,
            )
        )

    def _class(self, node: Node, source: bytes, parent: str | None) -> Visit:
        name = self.field_text(node, "name", source) or "AnonymousClass"
        outer = _outer_node(node)
        visibility = python_visibility(name)
        superclasses = self.field_text(node, "superclasses", source)

        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.CLASS,
                visibility=visibility,
                exported=parent is None and visibility == Visibility.PUBLIC,
                signature=f"class {name}{superclasses}",
                doc_comment=self._docstring(node, source) or self.doc_comment(outer, source),
                code_node=outer,
            )
        )

    def _assignment(self, node: Node, source: bytes, parent: str | None) -> Visit | None:
        """Handle ``name = lambda ...``; other assignments are not symbols."""
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        if left is None or right is None or left.type != "identifier" or right.type != "lambda":
            return None

        name = get_node_text(left, source)
        visibility = python_visibility(name)
        statement = node.parent if node.parent and node.parent.type == "expression_statement" else node

        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.FUNCTION,
                visibility=visibility,
                exported=parent is None and visibility == Visibility.PUBLIC,
                signature=f"{name} = {get_node_text(right, source)}",
                doc_comment=self.doc_comment(statement, source),
            )
        )

    def _docstring(self, node: Node, source: bytes) -> str | None:
        """Return the cleaned docstring of a function or class body."""
        body = node.child_by_field_name("body")
        if body is None:
            return None
        for child in body.named_children:
            if child.type == "comment":
                continue
            if child.type == "expression_statement" and child.named_children:
                first = child.named_children[0]
                if first.type == "string":
                    return clean_docstring(get_node_text(first, source))
            return None
        return None


def python_visibility(name: str) -> Visibility:
    """Dunder names are public; any other leading underscore is private."""
    if name.startswith("__") and name.endswith("__"):
        return Visibility.PUBLIC
    if name.startswith("_"):
        return Visibility.PRIVATE
    return Visibility.PUBLIC


def clean_docstring(docstring: str) -> str:
    """Strip string prefixes and quotes from a docstring literal."""
    text = docstring.lstrip("rRbBuUfF")
    for quote in ('"""', "'''", '"', "'"):
        if text.startswith(quote) and text.endswith(quote) and len(text) >= 2 * len(quote):
            text = text[len(quote):-len(quote)]
            break
    return text.strip()


def _outer_node(node: Node) -> Node:
    parent = node.parent
    if parent is not None and parent.type == "decorated_definition":
        return parent
    return node


def _defined_in_class(node: Node) -> bool:
    for ancestor in iter_ancestors(node):
        if ancestor.type == "class_definition":
            return True
        if ancestor.type == "function_definition":
            return False
    return False
