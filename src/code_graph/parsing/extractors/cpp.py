"""C++ symbol extractor.

Extends the C extractor with classes, namespaces as transparent
qualified-name scopes, in-class method declarations, out-of-line
``Class::method`` definitions and access-specifier visibility.
"""

from enum import Enum

from tree_sitter import Node

from code_graph.parsing.extractors.base import Handler, Visit
from code_graph.parsing.extractors.c import (
    CExtractor,
    c_signature,
    declarator_name,
    function_declarator,
    is_function_pointer,
    is_static,
)
from code_graph.parsing.models import Symbol, SymbolKind, Visibility
from code_graph.parsing.tree_sitter_parser import (
    ParsedSource,
    find_nodes_by_type,
    get_node_location,
    get_node_text,
    iter_ancestors,
)


class CppNode(str, Enum):
    """Declaration node kinds consumed from C++ trees."""

    FUNCTION_DEFINITION = "function_definition"
    DECLARATION = "declaration"
    FIELD_DECLARATION = "field_declaration"
    CLASS_SPECIFIER = "class_specifier"
    STRUCT_SPECIFIER = "struct_specifier"
    UNION_SPECIFIER = "union_specifier"
    ENUM_SPECIFIER = "enum_specifier"
    NAMESPACE_DEFINITION = "namespace_definition"


_ACCESS = {
    "public": Visibility.PUBLIC,
    "protected": Visibility.PROTECTED,
    "private": Visibility.PRIVATE,
}


class CppExtractor(CExtractor):
    """Extracts C++ functions, methods, classes and enums."""

    node_kinds = CppNode

    def handlers(self) -> dict[Enum, Handler]:
        return {
            CppNode.FUNCTION_DEFINITION: self._function,
            CppNode.DECLARATION: self._declaration,
            CppNode.FIELD_DECLARATION: self._method_declaration,
            CppNode.CLASS_SPECIFIER: self._aggregate,
            CppNode.STRUCT_SPECIFIER: self._aggregate,
            CppNode.UNION_SPECIFIER: self._aggregate,
            CppNode.ENUM_SPECIFIER: self._aggregate,
            CppNode.NAMESPACE_DEFINITION: self._namespace,
        }

    def extract(self, parsed: ParsedSource) -> list[Symbol]:
        """Extract symbols; out-of-line definitions replace in-class declarations."""
        symbols = super().extract(parsed)
        definitions = out_of_line_definitions(parsed.root, parsed.source)
        return [
            s
            for s in symbols
            if s.qualified_name not in definitions
            or s.location.start_line in definitions[s.qualified_name]
        ]

    def _function(self, node: Node, source: bytes, parent: str | None) -> Visit:
        declarator = function_declarator(node)
        full_name = declarator_name(declarator, source) or "anonymous"

        # Out-of-line definitions name their owner: `void Foo::bar() {}`
        *owners, name = full_name.split("::")
        owner_scope = ".".join(o for o in owners if o)
        if owner_scope:
            parent = self.qualify(parent, owner_scope)

        in_class = bool(owner_scope) or _class_body(node) is not None
        visibility = self.member_visibility(node, source)
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name or "anonymous",
                parent=parent,
                kind=SymbolKind.METHOD if in_class else SymbolKind.FUNCTION,
                visibility=visibility,
                exported=visibility == Visibility.PUBLIC and not is_static(node, source),
                signature=c_signature(node, declarator, source, name),
                doc_comment=self.doc_comment(_template_wrapper(node), source),
            )
        )

    def _method_declaration(self, node: Node, source: bytes, parent: str | None) -> Visit | None:
        """Handle in-class method declarations such as ``void start();``.

        Data members, including function-pointer members, are not symbols.
        """
        declarator = function_declarator(node)
        if declarator is None or is_function_pointer(declarator):
            return None
        name = declarator_name(declarator, source)
        if not name:
            return None
        visibility = self.member_visibility(node, source)
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.METHOD,
                visibility=visibility,
                exported=visibility == Visibility.PUBLIC and not is_static(node, source),
                signature=c_signature(node, declarator, source, name),
                doc_comment=self.doc_comment(_template_wrapper(node), source),
            )
        )

    def _namespace(self, node: Node, source: bytes, parent: str | None) -> Visit:
        """Namespaces scope their members but are not symbols themselves."""
        name = self.field_text(node, "name", source)
        if not name:
            return Visit()
        return Visit(scope=self.qualify(parent, name.replace("::", ".")))

    def member_visibility(self, node: Node, source: bytes) -> Visibility:
        """Visibility from the nearest preceding access specifier.

        Members of a ``class`` default to private, members of a ``struct``
        or ``union`` to public; anything outside a class body is public.
        """
        member = _template_wrapper(node)
        body = member.parent
        if body is None or body.type != "field_declaration_list" or body.parent is None:
            return Visibility.PUBLIC

        visibility = Visibility.PRIVATE if body.parent.type == "class_specifier" else Visibility.PUBLIC
        for child in body.children:
            if child.start_byte >= member.start_byte:
                break
            if child.type == "access_specifier":
                visibility = _ACCESS.get(get_node_text(child, source).strip(), visibility)
        return visibility


def _template_wrapper(node: Node) -> Node:
    parent = node.parent
    if parent is not None and parent.type == "template_declaration":
        return parent
    return node


def _class_body(node: Node) -> Node | None:
    for ancestor in iter_ancestors(node):
        if ancestor.type == "field_declaration_list":
            return ancestor
        if ancestor.type in ("function_definition", "namespace_definition", "translation_unit"):
            return None
    return None


def out_of_line_definitions(root: Node, source: bytes) -> dict[str, set[int]]:
    """Map ``Owner::method`` definitions to their start lines by qualified name."""
    found: dict[str, set[int]] = {}
    for node in find_nodes_by_type(root, "function_definition"):
        full_name = declarator_name(function_declarator(node), source)
        if "::" not in full_name:
            continue
        namespaces = [
            get_node_text(ancestor.child_by_field_name("name"), source).replace("::", ".")
            for ancestor in iter_ancestors(node)
            if ancestor.type == "namespace_definition" and ancestor.child_by_field_name("name")
        ]
        parts = [*reversed(namespaces), *(p for p in full_name.split("::") if p)]
        found.setdefault(".".join(parts), set()).add(get_node_location(node).start_line)
    return found
