"""Chunk builder for extracted code symbols.

Turns symbols plus their file context into embedding-ready chunks with a
deterministic id, an embedding text and a denormalized payload.
"""

import hashlib
import re
import time
from dataclasses import dataclass

from code_graph.parsing.models import Chunk, ChunkPayload, Symbol, Visibility, symbol_ref
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

# Comment markers and noise words removed from doc comments
_DOC_NOISE = re.compile(r"/\*\*|/\*|\*/|\*|TODO|FIXME|^[ \t]*(?:/{2,}|#+)", re.MULTILINE)


def generate_symbol_id(
    workspace_id: str,
    repo_id: str,
    file_path: str,
    symbol_name: str,
) -> str:
    """Deterministic id for a symbol.

    The id is the SHA-256 hex digest of the four inputs joined by NUL
    bytes, so it is identical across calls and processes, and ids that
    contain ``/`` cannot collide the way their reference strings do.
    """
    key = "\0".join((workspace_id, repo_id, file_path, symbol_name))
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def clean_doc_comment(doc_comment: str | None) -> str:
    """Strip comment markers and TODO/FIXME tags, trimming every line."""
    if not doc_comment:
        return ""
    cleaned = _DOC_NOISE.sub("", doc_comment)
    return "\n".join(line.strip() for line in cleaned.splitlines() if line.strip())


def prepare_embedding_text(
    code: str,
    signature: str | None = None,
    doc_comment: str | None = None,
) -> str:
    """Newline-join signature, code and the cleaned doc comment."""
    parts: list[str] = []
    if signature:
        parts.append(signature)
    parts.append(code)
    cleaned = clean_doc_comment(doc_comment)
    if cleaned:
        parts.append(cleaned)
    return "\n".join(parts)


def calculate_importance(symbol: Symbol) -> float:
    """Score a symbol in [0, 1] from export status, visibility and docs."""
    score = 0.5
    if symbol.exported:
        score += 0.3
    if symbol.visibility == Visibility.PUBLIC:
        score += 0.1
    if symbol.doc_comment:
        score += 0.1
    return max(0.0, min(score, 1.0))


@dataclass(frozen=True)
class FileContext:
    """Identity and provenance of the file a batch of symbols came from."""

    workspace_id: str
    repo_id: str
    repo_name: str
    file_path: str
    language: str
    commit: str = ""
    content_hash: str = ""


class ChunkBuilder:
    """Builds chunks from extracted symbols."""

    def build(self, symbols: list[Symbol], context: FileContext) -> list[Chunk]:
        """Build one chunk per symbol.

        Args:
            symbols: Symbols extracted from one file.
            context: The file's identity and provenance.

        Returns:
            Chunks in symbol order.
        """
        indexed_at = int(time.time() * 1000)
        chunks = [self._build_chunk(symbol, context, indexed_at) for symbol in symbols]
        logger.debug("Built chunks", file_path=context.file_path, chunks=len(chunks))
        return chunks

    def _build_chunk(self, symbol: Symbol, context: FileContext, indexed_at: int) -> Chunk:
        symbol_id = generate_symbol_id(
            context.workspace_id,
            context.repo_id,
            context.file_path,
            symbol.qualified_name,
        )
        payload = ChunkPayload(
            workspace_id=context.workspace_id,
            repo_id=context.repo_id,
            repo_name=context.repo_name,
            file_path=context.file_path,
            language=context.language,
            symbol_id=symbol_id,
            symbol_name=symbol.qualified_name,
            symbol_kind=symbol.kind.value,
            exported=symbol.exported,
            visibility=symbol.visibility.value,
            code=symbol.code_chunk,
            signature=symbol.signature,
            importance=calculate_importance(symbol),
            commit=context.commit,
            symbol_ref=symbol_ref(
                context.workspace_id,
                context.repo_id,
                context.file_path,
                symbol.qualified_name,
            ),
            content_hash=context.content_hash,
            start_line=symbol.location.start_line,
            end_line=symbol.location.end_line,
            indexed_at=indexed_at,
        )
        return Chunk(
            symbol_id=symbol_id,
            embedding_text=prepare_embedding_text(
                symbol.code_chunk,
                signature=symbol.signature,
                doc_comment=symbol.doc_comment,
            ),
            payload=payload,
        )
