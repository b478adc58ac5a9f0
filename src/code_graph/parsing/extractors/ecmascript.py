"""Symbol extractor for ECMAScript-family grammars.

Covers TypeScript, TSX and JavaScript. Exports are detected by walking a
declaration's ancestors for an export wrapper node.
"""

from enum import Enum

from tree_sitter import Node

from code_graph.parsing.extractors.base import BaseExtractor, Handler, Visit, join_signature
from code_graph.parsing.models import SymbolKind, Visibility
from code_graph.parsing.tree_sitter_parser import first_child_of_type, get_node_text, iter_ancestors


class ECMAScriptNode(str, Enum):
    """Declaration node kinds consumed from ECMAScript-family trees."""

    FUNCTION_DECLARATION = "function_declaration"
    GENERATOR_FUNCTION_DECLARATION = "generator_function_declaration"
    METHOD_DEFINITION = "method_definition"
    CLASS_DECLARATION = "class_declaration"
    ABSTRACT_CLASS_DECLARATION = "abstract_class_declaration"
    INTERFACE_DECLARATION = "interface_declaration"
    TYPE_ALIAS_DECLARATION = "type_alias_declaration"
    ENUM_DECLARATION = "enum_declaration"
    VARIABLE_DECLARATOR = "variable_declarator"


EXPORT_WRAPPERS = frozenset({"export_statement", "export_declaration"})
FUNCTION_VALUES = frozenset({"arrow_function", "function_expression", "function"})
DECLARATION_STATEMENTS = frozenset({"lexical_declaration", "variable_declaration"})


class ECMAScriptExtractor(BaseExtractor):
    """Extracts functions, methods, classes, interfaces, type aliases,
    enums and function-valued variables."""

    node_kinds = ECMAScriptNode

    def handlers(self) -> dict[Enum, Handler]:
        return {
            ECMAScriptNode.FUNCTION_DECLARATION: self._function,
            ECMAScriptNode.GENERATOR_FUNCTION_DECLARATION: self._function,
            ECMAScriptNode.METHOD_DEFINITION: self._method,
            ECMAScriptNode.CLASS_DECLARATION: self._class,
            ECMAScriptNode.ABSTRACT_CLASS_DECLARATION: self._class,
            ECMAScriptNode.INTERFACE_DECLARATION: self._interface,
            ECMAScriptNode.TYPE_ALIAS_DECLARATION: self._type_alias,
            ECMAScriptNode.ENUM_DECLARATION: self._enum,
            ECMAScriptNode.VARIABLE_DECLARATOR: self._variable,
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
                exported=is_exported(node),
                signature=self._signature(node, source, name, prefix="function "),
                doc_comment=self._doc(node, source),
            )
        )

    def _method(self, node: Node, source: bytes, parent: str | None) -> Visit:
        name = self.field_text(node, "name", source) or "anonymous"
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.METHOD,
                visibility=_method_visibility(node, name, source),
                exported=is_exported(node),
                signature=self._signature(node, source, name, prefix="method "),
                doc_comment=self._doc(node, source),
            )
        )

    def _class(self, node: Node, source: bytes, parent: str | None) -> Visit:
        return self._named(node, source, parent, SymbolKind.CLASS, "AnonymousClass")

    def _interface(self, node: Node, source: bytes, parent: str | None) -> Visit:
        return self._named(node, source, parent, SymbolKind.INTERFACE, "AnonymousInterface")

    def _type_alias(self, node: Node, source: bytes, parent: str | None) -> Visit:
        return self._named(node, source, parent, SymbolKind.TYPE, "AnonymousType")

    def _enum(self, node: Node, source: bytes, parent: str | None) -> Visit:
        return self._named(node, source, parent, SymbolKind.ENUM, "AnonymousEnum")

    def _named(
        self,
        node: Node,
        source: bytes,
        parent: str | None,
        kind: SymbolKind,
        placeholder: str,
    ) -> Visit:
        name = self.field_text(node, "name", source) or placeholder
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=kind,
                exported=is_exported(node),
                doc_comment=self._doc(node, source),
            )
        )

    def _variable(self, node: Node, source: bytes, parent: str | None) -> Visit | None:
        value = node.child_by_field_name("value")
        if value is None or value.type not in FUNCTION_VALUES:
            return None

        name_node = node.child_by_field_name("name")
        if name_node is None or name_node.type != "identifier":
            return None
        name = get_node_text(name_node, source)

        statement = node.parent if node.parent and node.parent.type in DECLARATION_STATEMENTS else node
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.FUNCTION,
                exported=is_exported(node),
                signature=self._signature(value, source, name, prefix=f"const {name} = "),
                doc_comment=self._doc(statement, source),
                code_node=statement,
            )
        )

    @staticmethod
    def _signature(node: Node, source: bytes, name: str, prefix: str) -> str:
        parameters = node.child_by_field_name("parameters")
        if parameters is None:
            # Single-identifier arrow functions: `x => x * 2`
            parameters = node.child_by_field_name("parameter")
            params_text = f"({get_node_text(parameters, source)})" if parameters else ""
        else:
            params_text = get_node_text(parameters, source)
        return join_signature(
            name,
            params_text,
            get_node_text(node.child_by_field_name("return_type"), source),
            prefix=prefix,
        )

    def _doc(self, node: Node, source: bytes) -> str | None:
        doc = self.doc_comment(node, source)
        if doc is None and node.parent is not None and node.parent.type in EXPORT_WRAPPERS:
            doc = self.doc_comment(node.parent, source)
        return doc


def is_exported(node: Node) -> bool:
    """Check whether any ancestor of ``node`` is an export wrapper."""
    return any(ancestor.type in EXPORT_WRAPPERS for ancestor in iter_ancestors(node))


def _method_visibility(node: Node, name: str, source: bytes) -> Visibility:
    if name.startswith("#"):
        return Visibility.PRIVATE
    modifier = first_child_of_type(node, "accessibility_modifier")
    text = get_node_text(modifier, source)
    if text == "private":
        return Visibility.PRIVATE
    if text == "protected":
        return Visibility.PROTECTED
    return Visibility.PUBLIC
