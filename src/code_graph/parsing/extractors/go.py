"""Go symbol extractor.

Go has no export keyword: an identifier starting with an upper-case letter
is exported from its package. Methods are qualified by their receiver type.
"""

from enum import Enum

from tree_sitter import Node

from code_graph.parsing.extractors.base import BaseExtractor, Handler, Visit, join_signature
from code_graph.parsing.models import SymbolKind, Visibility
from code_graph.parsing.tree_sitter_parser import find_nodes_by_type, get_node_text


class GoNode(str, Enum):
    """Declaration node kinds consumed from Go trees."""

    FUNCTION_DECLARATION = "function_declaration"
    METHOD_DECLARATION = "method_declaration"
    TYPE_SPEC = "type_spec"
    TYPE_ALIAS = "type_alias"
    VAR_SPEC = "var_spec"
    CONST_SPEC = "const_spec"


GROUPED_DECLARATIONS = frozenset({"type_declaration", "var_declaration", "const_declaration"})


class GoExtractor(BaseExtractor):
    """Extracts Go functions, methods, types, variables and constants."""

    node_kinds = GoNode

    def handlers(self) -> dict[Enum, Handler]:
        return {
            GoNode.FUNCTION_DECLARATION: self._function,
            GoNode.METHOD_DECLARATION: self._method,
            GoNode.TYPE_SPEC: self._type_spec,
            GoNode.TYPE_ALIAS: self._type_spec,
            GoNode.VAR_SPEC: self._value_spec,
            GoNode.CONST_SPEC: self._value_spec,
        }

    def _function(self, node: Node, source: bytes, parent: str | None) -> Visit:
        name = self.field_text(node, "name", source) or "anonymous"
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.FUNCTION,
                **_export_fields(name),
                signature=self._signature(node, source, name),
                doc_comment=self.doc_comment(node, source),
            )
        )

    def _method(self, node: Node, source: bytes, parent: str | None) -> Visit:
        name = self.field_text(node, "name", source) or "anonymous"
        receiver = receiver_type(node, source)
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=self.qualify(parent, receiver) if receiver else parent,
                kind=SymbolKind.METHOD,
                **_export_fields(name),
                signature=self._signature(node, source, name),
                doc_comment=self.doc_comment(node, source),
            )
        )

    def _type_spec(self, node: Node, source: bytes, parent: str | None) -> Visit:
        name = self.field_text(node, "name", source) or "anonymous"
        type_node = node.child_by_field_name("type")
        type_kind = type_node.type if type_node is not None else ""
        if type_kind == "struct_type":
            kind = SymbolKind.CLASS
        elif type_kind == "interface_type":
            kind = SymbolKind.INTERFACE
        else:
            kind = SymbolKind.TYPE

        anchor = _declaration_anchor(node)
        return Visit.of(
            self.make_symbol(
                anchor,
                source,
                name=name,
                parent=parent,
                kind=kind,
                **_export_fields(name),
                doc_comment=self.doc_comment(anchor, source),
            )
        )

    def _value_spec(self, node: Node, source: bytes, parent: str | None) -> Visit:
        """Emit one variable symbol per name declared by a var/const spec."""
        anchor = _declaration_anchor(node)
        doc = self.doc_comment(anchor, source)
        symbols = [
            self.make_symbol(
                anchor,
                source,
                name=get_node_text(name_node, source),
                parent=parent,
                kind=SymbolKind.VARIABLE,
                **_export_fields(get_node_text(name_node, source)),
                doc_comment=doc,
            )
            for name_node in node.children_by_field_name("name")
        ]
        return Visit(symbols=symbols)

    @staticmethod
    def _signature(node: Node, source: bytes, name: str) -> str:
        # The receiver lives in its own field, so `parameters` never includes it
        return join_signature(
            name,
            get_node_text(node.child_by_field_name("parameters"), source),
            get_node_text(node.child_by_field_name("result"), source),
            return_separator=" ",
        )


def is_go_exported(name: str) -> bool:
    """Exported identifiers start with an upper-case letter."""
    return bool(name) and name[0] != "_" and name[0].isupper()


def receiver_type(node: Node, source: bytes) -> str | None:
    """Base type name of a method receiver, without pointer or type args."""
    receiver = node.child_by_field_name("receiver")
    if receiver is None:
        return None
    identifiers = find_nodes_by_type(receiver, "type_identifier")
    if not identifiers:
        return None
    return get_node_text(identifiers[0], source)


def _export_fields(name: str) -> dict:
    exported = is_go_exported(name)
    return {
        "exported": exported,
        "visibility": Visibility.PUBLIC if exported else Visibility.PRIVATE,
    }


def _declaration_anchor(spec: Node) -> Node:
    """Use the enclosing declaration when it holds this spec alone."""
    parent = spec.parent
    if parent is not None and parent.type in GROUPED_DECLARATIONS:
        specs = [c for c in parent.named_children if c.type not in ("comment",)]
        if len(specs) == 1:
            return parent
    return spec
