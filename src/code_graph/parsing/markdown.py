"""Markdown section indexer.

Segments a Markdown document into headings, code blocks, paragraphs and
lists using the tree-sitter-markdown block grammar, renders inline markup
to plain text with the inline grammar, then turns every section into an
embedding-ready chunk.
"""

import html
import re
import time
from dataclasses import dataclass
from enum import Enum

import tree_sitter_markdown as ts_markdown
from tree_sitter import Language as TSLanguage
from tree_sitter import Node, Parser

from code_graph.parsing.chunker import FileContext, generate_symbol_id
from code_graph.parsing.models import (
    Chunk,
    ChunkPayload,
    Language,
    SymbolKind,
    Visibility,
    symbol_ref,
)
from code_graph.parsing.tree_sitter_parser import ParsedSource, get_node_text, walk
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MIN_SECTION_CHARS = 20

_SLUG_SEPARATORS = re.compile(r"[^\w]+")
_SLUG_MAX_LENGTH = 50


class SectionType(str, Enum):
    """Markdown section types."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    CODE_BLOCK = "code-block"
    LIST = "list"


_SECTION_KINDS = {
    SectionType.HEADING: SymbolKind.HEADING,
    SectionType.CODE_BLOCK: SymbolKind.CODE_BLOCK,
    SectionType.PARAGRAPH: SymbolKind.PARAGRAPH,
    SectionType.LIST: SymbolKind.PARAGRAPH,
}

# Block containers whose children are visited in document order
_CONTAINERS = frozenset({"document", "section"})

# Inline nodes that render to nothing
_INLINE_DROPPED = frozenset(
    {"emphasis_delimiter", "code_span_delimiter", "link_destination", "link_title", "link_label"}
)

# Link-like inline nodes render only their visible text child
_LINK_TEXT = {
    "inline_link": "link_text",
    "full_reference_link": "link_text",
    "collapsed_reference_link": "link_text",
    "shortcut_link": "link_text",
    "image": "image_description",
}


class InlineRenderer:
    """Renders Markdown inline markup to the text a reader sees.

    Link and image text is kept; destinations, titles, emphasis and code
    span delimiters are dropped; escapes and entities are decoded.
    """

    def __init__(self) -> None:
        self._parser = Parser(TSLanguage(ts_markdown.inline_language()))

    def render(self, text: str) -> str:
        source = text.encode("utf-8")
        tree = self._parser.parse(source)
        return _render_inline(tree.root_node, source).decode("utf-8", errors="replace")


def _render_inline(node: Node, source: bytes) -> bytes:
    if node.type in _INLINE_DROPPED:
        return b""
    if node.type == "backslash_escape":
        return source[node.start_byte + 1 : node.end_byte]
    if node.type == "hard_line_break":
        return b"\n"
    if node.type in ("uri_autolink", "email_autolink"):
        return source[node.start_byte + 1 : node.end_byte - 1]
    if node.type in ("entity_reference", "numeric_character_reference"):
        return html.unescape(get_node_text(node, source)).encode("utf-8")

    label = _LINK_TEXT.get(node.type)
    if label is not None:
        return b"".join(_render_inline(c, source) for c in node.children if c.type == label)

    # Plain text is the gap between markup children
    parts: list[bytes] = []
    position = node.start_byte
    for child in node.children:
        parts.append(source[position : child.start_byte])
        parts.append(_render_inline(child, source))
        position = child.end_byte
    parts.append(source[position : node.end_byte])
    return b"".join(parts)


@dataclass
class MarkdownSection:
    """One block-level section of a Markdown document."""

    type: SectionType
    content: str
    start_line: int
    end_line: int
    level: int | None = None
    title: str | None = None
    language: str | None = None

    @property
    def kind(self) -> SymbolKind:
        return _SECTION_KINDS[self.type]


def slugify(text: str) -> str:
    """Lowercase, collapse non-word runs to ``-``, trim and cap at 50 chars."""
    return _SLUG_SEPARATORS.sub("-", text.lower()).strip("-")[:_SLUG_MAX_LENGTH]


def section_symbol_name(section: MarkdownSection, index: int) -> str:
    """Stable per-file name for a section.

    Headings are named ``h{level}-{slug}``; other sections use their type,
    the slug of the owning heading (when there is one) and their position.
    """
    if section.type == SectionType.HEADING and section.title:
        return f"h{section.level}-{slugify(section.title)}"
    if section.title:
        return f"{section.type.value}-{slugify(section.title)}-{index}"
    return f"{section.type.value}-{index}"


def section_importance(section: MarkdownSection) -> float:
    score = 0.5
    if section.type == SectionType.HEADING:
        score = 1.0 - (section.level or 1) * 0.1
    elif section.type == SectionType.CODE_BLOCK:
        score = 0.8
    if len(section.content) > 200:
        score += 0.1
    return min(score, 1.0)


def section_embedding_text(section: MarkdownSection, file_path: str) -> str:
    """Embedding text prefixed with the file path and owning section title."""
    parts = [f"File: {file_path}"]
    if section.title and section.type != SectionType.HEADING:
        parts.append(f"Section: {section.title}")

    if section.type == SectionType.HEADING:
        parts.append(f"Heading: {section.content}")
    elif section.type == SectionType.CODE_BLOCK:
        language = f"({section.language})" if section.language else ""
        parts.append(f"Code block{language}:\n{section.content}")
    else:
        parts.append(section.content)
    return "\n".join(parts)


class MarkdownSectionIndexer:
    """Builds chunks from Markdown documents.

    Paragraphs and lists whose rendered text is shorter than
    ``min_section_chars`` are dropped as noise. Every non-heading section
    carries the title of the nearest preceding heading.
    """

    def __init__(self, min_section_chars: int = DEFAULT_MIN_SECTION_CHARS) -> None:
        self.min_section_chars = min_section_chars
        self.renderer = InlineRenderer()

    def rendered_text(self, markup: str) -> str:
        """Inline markup rendered to plain text with trimmed lines."""
        return _plain_text(self.renderer.render(markup))

    def index(self, parsed: ParsedSource, context: FileContext) -> list[Chunk]:
        """Index a parsed Markdown document.

        Args:
            parsed: Document parsed with the markdown grammar.
            context: The file's identity and provenance.

        Returns:
            One chunk per retained section, in document order.
        """
        sections = self.extract_sections(parsed)
        indexed_at = int(time.time() * 1000)
        chunks = [
            self._build_chunk(section, index, context, indexed_at)
            for index, section in enumerate(sections)
        ]
        logger.debug(
            "Indexed markdown document",
            file_path=context.file_path,
            sections=len(chunks),
        )
        return chunks

    def extract_sections(self, parsed: ParsedSource) -> list[MarkdownSection]:
        """Segment a document into sections in document order."""
        source = parsed.source
        sections: list[MarkdownSection] = []
        current_heading: str | None = None

        for node in self._blocks(parsed.root):
            section = self._to_section(node, source, current_heading)
            if section is None:
                continue
            sections.append(section)
            if section.type == SectionType.HEADING:
                current_heading = section.title or ""
        return sections

    @staticmethod
    def _blocks(root: Node) -> list[Node]:
        """Block nodes in document order, flattening nested sections."""
        blocks: list[Node] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type in _CONTAINERS:
                stack.extend(reversed(node.children))
            else:
                blocks.append(node)
        return blocks

    def _to_section(
        self,
        node: Node,
        source: bytes,
        current_heading: str | None,
    ) -> MarkdownSection | None:
        start_line, end_line = _line_range(node)
        raw = get_node_text(node, source).rstrip("\n")

        if node.type in ("atx_heading", "setext_heading"):
            return MarkdownSection(
                type=SectionType.HEADING,
                content=raw,
                start_line=start_line,
                end_line=end_line,
                level=_heading_level(node),
                title=self.rendered_text(_heading_title(node, source)),
            )

        if node.type in ("fenced_code_block", "indented_code_block"):
            return MarkdownSection(
                type=SectionType.CODE_BLOCK,
                content=raw,
                start_line=start_line,
                end_line=end_line,
                title=current_heading,
                language=_code_language(node, source),
            )

        if node.type == "paragraph":
            text = self.rendered_text(get_node_text(node, source))
            section_type = SectionType.PARAGRAPH
        elif node.type == "list":
            paragraphs = [n for n in walk(node) if n.type == "paragraph"]
            text = "\n".join(self.rendered_text(get_node_text(p, source)) for p in paragraphs)
            section_type = SectionType.LIST
        else:
            return None

        if len(text) < self.min_section_chars:
            return None
        return MarkdownSection(
            type=section_type,
            content=text,
            start_line=start_line,
            end_line=end_line,
            title=current_heading,
        )

    @staticmethod
    def _build_chunk(
        section: MarkdownSection,
        index: int,
        context: FileContext,
        indexed_at: int,
    ) -> Chunk:
        symbol_name = section_symbol_name(section, index)
        symbol_id = generate_symbol_id(
            context.workspace_id,
            context.repo_id,
            context.file_path,
            symbol_name,
        )
        payload = ChunkPayload(
            workspace_id=context.workspace_id,
            repo_id=context.repo_id,
            repo_name=context.repo_name,
            file_path=context.file_path,
            language=Language.MARKDOWN.value,
            symbol_id=symbol_id,
            symbol_name=symbol_name,
            symbol_kind=section.kind.value,
            exported=True,
            visibility=Visibility.PUBLIC.value,
            code=section.content,
            signature=section.title,
            importance=section_importance(section),
            commit=context.commit,
            symbol_ref=symbol_ref(
                context.workspace_id,
                context.repo_id,
                context.file_path,
                symbol_name,
            ),
            content_hash=context.content_hash,
            start_line=section.start_line,
            end_line=section.end_line,
            indexed_at=indexed_at,
        )
        return Chunk(
            symbol_id=symbol_id,
            embedding_text=section_embedding_text(section, context.file_path),
            payload=payload,
        )


def _line_range(node: Node) -> tuple[int, int]:
    # Block nodes usually end at column 0 of the following line
    start = node.start_point[0] + 1
    end_row, end_column = node.end_point
    end = end_row if end_column == 0 and end_row > node.start_point[0] else end_row + 1
    return start, max(start, end)


def _heading_level(node: Node) -> int:
    for child in node.children:
        if child.type.startswith("atx_h") and child.type.endswith("_marker"):
            return int(child.type[5])  # atx_h2_marker -> 2
        if child.type == "setext_h1_underline":
            return 1
        if child.type == "setext_h2_underline":
            return 2
    return 1


def _heading_title(node: Node, source: bytes) -> str:
    content = node.child_by_field_name("heading_content")
    if content is None:
        return ""
    text = get_node_text(content, source).strip()
    if node.type == "atx_heading":
        text = text.rstrip("#").rstrip()
    return text


def _code_language(node: Node, source: bytes) -> str | None:
    for child in node.children:
        if child.type == "info_string":
            words = get_node_text(child, source).split()
            return words[0] if words else None
    return None


def _plain_text(text: str) -> str:
    return "\n".join(line.strip() for line in text.strip().splitlines())
