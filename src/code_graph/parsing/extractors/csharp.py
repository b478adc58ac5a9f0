"""C# symbol extractor."""

from enum import Enum

from tree_sitter import Node

from code_graph.parsing.extractors.base import (
    BaseExtractor,
    Handler,
    Visit,
    join_signature,
    modifier_words,
)
from code_graph.parsing.models import SymbolKind, Visibility


class CSharpNode(str, Enum):
    """Declaration node kinds consumed from C# trees."""

    NAMESPACE_DECLARATION = "namespace_declaration"
    FILE_SCOPED_NAMESPACE_DECLARATION = "file_scoped_namespace_declaration"
    CLASS_DECLARATION = "class_declaration"
    STRUCT_DECLARATION = "struct_declaration"
    RECORD_DECLARATION = "record_declaration"
    INTERFACE_DECLARATION = "interface_declaration"
    ENUM_DECLARATION = "enum_declaration"
    METHOD_DECLARATION = "method_declaration"
    CONSTRUCTOR_DECLARATION = "constructor_declaration"
    PROPERTY_DECLARATION = "property_declaration"


_TYPE_KINDS = {
    "class_declaration": (SymbolKind.CLASS, "AnonymousClass"),
    "struct_declaration": (SymbolKind.CLASS, "AnonymousStruct"),
    "record_declaration": (SymbolKind.CLASS, "AnonymousClass"),
    "interface_declaration": (SymbolKind.INTERFACE, "AnonymousInterface"),
    "enum_declaration": (SymbolKind.ENUM, "AnonymousEnum"),
}

MODIFIER_TYPES = ("modifier", "modifiers")


class CSharpExtractor(BaseExtractor):
    """Extracts C# types, methods, constructors and properties.

    Namespaces qualify their members without being symbols. ``internal``
    members count as private since they are invisible outside the assembly.
    """

    node_kinds = CSharpNode

    def handlers(self) -> dict[Enum, Handler]:
        return {
            CSharpNode.NAMESPACE_DECLARATION: self._namespace,
            CSharpNode.FILE_SCOPED_NAMESPACE_DECLARATION: self._namespace,
            CSharpNode.CLASS_DECLARATION: self._type,
            CSharpNode.STRUCT_DECLARATION: self._type,
            CSharpNode.RECORD_DECLARATION: self._type,
            CSharpNode.INTERFACE_DECLARATION: self._type,
            CSharpNode.ENUM_DECLARATION: self._type,
            CSharpNode.METHOD_DECLARATION: self._method,
            CSharpNode.CONSTRUCTOR_DECLARATION: self._method,
            CSharpNode.PROPERTY_DECLARATION: self._property,
        }

    def _namespace(self, node: Node, source: bytes, parent: str | None) -> Visit:
        name = self.field_text(node, "name", source)
        if not name:
            return Visit()
        return Visit(scope=self.qualify(parent, name))

    def _type(self, node: Node, source: bytes, parent: str | None) -> Visit:
        kind, placeholder = _TYPE_KINDS[node.type]
        name = self.field_text(node, "name", source) or placeholder
        visibility, exported = self._access(node, source)
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=kind,
                visibility=visibility,
                exported=exported,
                doc_comment=self.doc_comment(node, source),
            )
        )

    def _method(self, node: Node, source: bytes, parent: str | None) -> Visit:
        name = self.field_text(node, "name", source) or "anonymous"
        visibility, exported = self._access(node, source)
        return_type = self.field_text(node, "returns", source) or self.field_text(node, "type", source)
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.METHOD,
                visibility=visibility,
                exported=exported,
                signature=join_signature(
                    name,
                    self.field_text(node, "parameters", source),
                    return_type,
                ),
                doc_comment=self.doc_comment(node, source),
            )
        )

    def _property(self, node: Node, source: bytes, parent: str | None) -> Visit:
        name = self.field_text(node, "name", source) or "anonymous"
        visibility, exported = self._access(node, source)
        return Visit.of(
            self.make_symbol(
                node,
                source,
                name=name,
                parent=parent,
                kind=SymbolKind.VARIABLE,
                visibility=visibility,
                exported=exported,
                signature=join_signature(name, return_type=self.field_text(node, "type", source)),
                doc_comment=self.doc_comment(node, source),
            )
        )

    @staticmethod
    def _access(node: Node, source: bytes) -> tuple[Visibility, bool]:
        words = modifier_words(node, source, MODIFIER_TYPES)
        if "private" in words or "internal" in words:
            return Visibility.PRIVATE, False
        if "protected" in words:
            return Visibility.PROTECTED, False
        return Visibility.PUBLIC, "public" in words
