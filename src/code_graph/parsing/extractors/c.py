"""C symbol extractor.

Handles function definitions, prototypes, function-pointer declarations
and struct/union/enum definitions, including the anonymous ``typedef struct``
pattern where the typedef supplies the name.
"""

from enum import Enum

from tree_sitter import Node

from code_graph.parsing.extractors.base import BaseExtractor, Handler, Visit, join_signature
from code_graph.parsing.models import SymbolKind, Visibility
from code_graph.parsing.tree_sitter_parser import find_nodes_by_type, get_node_text


class CNode(str, Enum):
    """Declaration node kinds consumed from C trees."""

    FUNCTION_DEFINITION = "function_definition"
    DECLARATION = "declaration"
    STRUCT_SPECIFIER = "struct_specifier"
    UNION_SPECIFIER = "union_specifier"
    ENUM_SPECIFIER = "enum_specifier"


_PLACEHOLDERS = {
    "enum_specifier": "AnonymousEnum",
    "class_specifier": "AnonymousClass",
}


class CExtractor(BaseExtractor):
    """Extracts C functions and aggregate types."""

    node_kinds: type[Enum] = CNode

    def handlers(self) -> dict[Enum, Handler]:
        return {
            CNode.FUNCTION_DEFINITION: self._function,
            CNode.DECLARATION: self._declaration,
            CNode.STRUCT_SPECIFIER: self._aggregate,
            CNode.UNION_SPECIFIER: self._aggregate,
            CNode.ENUM_SPECIFIER: self._aggregate,
        }

    def _function(self, node: Node, source: bytes, parent: str | None) -> Visit:
        declarator = function_declarator(node)
        name = declarator_name(declarator, source) or "anonymous"
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.FUNCTION,
                visibility=Visibility.PRIVATE if is_static(node, source) else Visibility.PUBLIC,
                exported=not is_static(node, source),
                signature=c_signature(node, declarator, source, name),
                doc_comment=self.doc_comment(node, source),
            )
        )

    def _declaration(self, node: Node, source: bytes, parent: str | None) -> Visit | None:
        """Handle prototypes ``ret name(params);`` and pointers ``ret (*name)(params);``.

        A prototype of a function defined in the same scope yields nothing;
        the definition is the symbol.
        """
        declarator = function_declarator(node)
        name = declarator_name(declarator, source)
        if not name:
            return None

        if is_function_pointer(declarator):
            visibility, exported = Visibility.PUBLIC, False
        else:
            if name in defined_functions(node.parent, source):
                return None
            static = is_static(node, source)
            visibility = Visibility.PRIVATE if static else Visibility.PUBLIC
            exported = not static

        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.FUNCTION,
                visibility=visibility,
                exported=exported,
                signature=c_signature(node, declarator, source, name),
                doc_comment=self.doc_comment(node, source),
            )
        )

    def _aggregate(self, node: Node, source: bytes, parent: str | None) -> Visit | None:
        """Handle struct/union/enum specifiers that carry a body."""
        if node.child_by_field_name("body") is None:
            return None

        anchor = node
        name = self.field_text(node, "name", source)
        if node.parent is not None and node.parent.type == "type_definition":
            anchor = node.parent
            name = name or self.field_text(anchor, "declarator", source)

        is_enum = node.type == "enum_specifier"
        placeholder = _PLACEHOLDERS.get(node.type, "AnonymousStruct")
        return Visit.of(
            self.make_symbol(
                anchor,
                source,
                name=name or placeholder,
                parent=parent,
                kind=SymbolKind.ENUM if is_enum else SymbolKind.CLASS,
                visibility=self.member_visibility(anchor, source),
                doc_comment=self.doc_comment(anchor, source),
            )
        )

    def member_visibility(self, node: Node, source: bytes) -> Visibility:
        """C has no access control."""
        return Visibility.PUBLIC


def function_declarator(node: Node) -> Node | None:
    """Find the function_declarator beneath a definition's declarator chain.

    Pointer, reference and parenthesized declarators wrap the function
    declarator; ``declarator`` fields are followed where present and the
    last named child otherwise.
    """
    current = node.child_by_field_name("declarator")
    while current is not None and current.type != "function_declarator":
        following = current.child_by_field_name("declarator")
        if following is None and current.named_children:
            following = current.named_children[-1]
        current = following
    return current


def declarator_name(declarator: Node | None, source: bytes) -> str:
    """Name declared by a function_declarator (may be ``Ns::name``)."""
    if declarator is None:
        return ""
    target = declarator.child_by_field_name("declarator")
    if target is None:
        return ""
    if target.type in ("identifier", "field_identifier", "qualified_identifier",
                       "destructor_name", "operator_name", "template_function"):
        return get_node_text(target, source)
    identifiers = find_nodes_by_type(target, ("identifier", "field_identifier"))
    return get_node_text(identifiers[0], source) if identifiers else ""


def c_signature(node: Node, declarator: Node | None, source: bytes, name: str) -> str:
    """``type name(params)`` for C-family functions."""
    params = get_node_text(declarator.child_by_field_name("parameters"), source) if declarator else ""
    return_type = get_node_text(node.child_by_field_name("type"), source)
    prefix = f"{return_type} " if return_type else ""
    return join_signature(name, params, prefix=prefix)


def is_static(node: Node, source: bytes) -> bool:
    """Whether a declaration carries the ``static`` storage class."""
    return any(
        child.type == "storage_class_specifier" and get_node_text(child, source) == "static"
        for child in node.children
    )


def is_function_pointer(declarator: Node | None) -> bool:
    """Whether a function_declarator declares ``(*name)(...)`` rather than ``name(...)``."""
    if declarator is None:
        return False
    target = declarator.child_by_field_name("declarator")
    return target is not None and target.type == "parenthesized_declarator"


def defined_functions(scope: Node | None, source: bytes) -> set[str]:
    """Names of the functions defined directly in ``scope``."""
    if scope is None:
        return set()
    return {
        declarator_name(function_declarator(child), source)
        for child in scope.named_children
        if child.type == "function_definition"
    }
