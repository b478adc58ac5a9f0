"""Data models for symbols, edges and chunks.

This module defines the uniform data model every language extractor
produces, plus the embedding-ready chunk and the per-file index ledger
row that the indexing pipeline persists.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class Language(str, Enum):
    """Supported source languages."""

    TYPESCRIPT = "typescript"
    TSX = "tsx"
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    GO = "go"
    C = "c"
    CPP = "cpp"
    CSHARP = "csharp"
    MARKDOWN = "markdown"

    @classmethod
    def from_extension(cls, ext: str) -> "Language | None":
        """Get language from file extension.

        Args:
            ext: File extension (with or without dot).

        Returns:
            Language enum or None if not supported.
        """
        return _EXTENSIONS.get(ext.lstrip(".").lower())

    @property
    def is_ecmascript(self) -> bool:
        """Whether the language uses an ECMAScript-family grammar."""
        return self in (Language.TYPESCRIPT, Language.TSX, Language.JAVASCRIPT)


_EXTENSIONS: dict[str, Language] = {
    "ts": Language.TYPESCRIPT,
    "mts": Language.TYPESCRIPT,
    "cts": Language.TYPESCRIPT,
    "tsx": Language.TSX,
    # JSX parses with the TSX grammar
    "jsx": Language.TSX,
    "js": Language.JAVASCRIPT,
    "mjs": Language.JAVASCRIPT,
    "cjs": Language.JAVASCRIPT,
    "py": Language.PYTHON,
    "pyw": Language.PYTHON,
    "go": Language.GO,
    "c": Language.C,
    "h": Language.C,
    "cpp": Language.CPP,
    "cc": Language.CPP,
    "cxx": Language.CPP,
    "hpp": Language.CPP,
    "hxx": Language.CPP,
    "cs": Language.CSHARP,
    "md": Language.MARKDOWN,
    "mdx": Language.MARKDOWN,
    "mdc": Language.MARKDOWN,
}


class SymbolKind(str, Enum):
    """Kinds of symbols produced by extraction."""

    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    ENUM = "enum"
    VARIABLE = "variable"
    HEADING = "heading"
    CODE_BLOCK = "code-block"
    PARAGRAPH = "paragraph"


class Visibility(str, Enum):
    """Symbol visibility."""

    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"


class EdgeType(str, Enum):
    """Types of dependency edges."""

    IMPORTS = "IMPORTS"
    CALLS = "CALLS"
    IMPLEMENTS = "IMPLEMENTS"
    EXTENDS = "EXTENDS"
    USES = "USES"
    REFERENCES = "REFERENCES"


@dataclass(frozen=True)
class Location:
    """1-based inclusive line range."""

    start_line: int
    end_line: int

    def __post_init__(self) -> None:
        if self.start_line < 1:
            raise ValueError("start_line must be >= 1")
        if self.end_line < self.start_line:
            raise ValueError("end_line must be >= start_line")

    def contains(self, start_line: int, end_line: int) -> bool:
        """Check whether another line range lies within this one."""
        return self.start_line <= start_line and end_line <= self.end_line

    @property
    def line_count(self) -> int:
        """Number of lines covered."""
        return self.end_line - self.start_line + 1


@dataclass(frozen=True)
class Symbol:
    """A named, located unit of source extracted from a file.

    Attributes:
        name: Local identifier.
        qualified_name: Dot-joined ancestor path, unique within a file.
        kind: Symbol kind.
        visibility: Public, private or protected.
        exported: Whether the symbol is visible outside its file/package.
        location: Line range of the declaration.
        signature: Synthesized signature string.
        doc_comment: Text of the comment or docstring documenting the symbol.
        code_chunk: Verbatim source slice.
    """

    name: str
    qualified_name: str
    kind: SymbolKind
    location: Location
    code_chunk: str
    visibility: Visibility = Visibility.PUBLIC
    exported: bool = False
    signature: str | None = None
    doc_comment: str | None = None

    @property
    def parent_name(self) -> str | None:
        """Qualified name of the enclosing symbol, if any."""
        if "." not in self.qualified_name:
            return None
        return self.qualified_name.rsplit(".", 1)[0]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "qualified_name": self.qualified_name,
            "kind": self.kind.value,
            "visibility": self.visibility.value,
            "exported": self.exported,
            "location": {
                "start_line": self.location.start_line,
                "end_line": self.location.end_line,
            },
            "signature": self.signature,
            "doc_comment": self.doc_comment,
            "code_chunk": self.code_chunk,
        }


@dataclass(frozen=True)
class Edge:
    """A directed, typed dependency between two references.

    Attributes:
        from_id: Source reference; a symbol reference for call edges or
            the ``"file"`` placeholder for import edges.
        to_id: Target identifier, possibly an unresolved name or module path.
        type: Edge type.
        confidence: Confidence in [0, 1].
    """

    from_id: str
    to_id: str
    type: EdgeType
    confidence: float = 1.0

    def __post_init__(self) -> None:
        if not self.from_id or not self.to_id:
            raise ValueError("Edge endpoints must be non-empty")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Edge confidence must be within [0, 1]")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "from": self.from_id,
            "to": self.to_id,
            "type": self.type.value,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Edge":
        """Create from dictionary."""
        return cls(
            from_id=data["from"],
            to_id=data["to"],
            type=EdgeType(data["type"]),
            confidence=data.get("confidence", 1.0),
        )


@dataclass
class ChunkPayload:
    """Denormalized record stored alongside a chunk's vector."""

    workspace_id: str
    repo_id: str
    repo_name: str
    file_path: str
    language: str
    symbol_id: str
    symbol_name: str
    symbol_kind: str
    exported: bool
    visibility: str
    code: str
    signature: str | None
    importance: float
    commit: str
    symbol_ref: str = ""
    content_hash: str = ""
    start_line: int = 0
    end_line: int = 0
    indexed_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


@dataclass
class Chunk:
    """An embedding-ready unit derived from a symbol or document section."""

    symbol_id: str
    embedding_text: str
    payload: ChunkPayload

    def to_document(self) -> dict[str, Any]:
        """Flatten into a full-text document keyed by ``id``."""
        return {"id": self.symbol_id, **self.payload.to_dict()}


@dataclass
class IndexMetadata:
    """Per-file dedup and incremental-index ledger row."""

    repo_id: str
    file_path: str
    content_hash: str
    last_indexed_at: int
    symbol_count: int
    language: str
    file_size: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexMetadata":
        """Create from dictionary."""
        return cls(**data)


def symbol_ref(workspace_id: str, repo_id: str, file_path: str, qualified_name: str) -> str:
    """Fully-qualified symbol reference ``ws/repo/path#qualified.name``."""
    return f"{workspace_id}/{repo_id}/{file_path}#{qualified_name}"
