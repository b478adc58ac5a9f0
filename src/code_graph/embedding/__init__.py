"""Embedding providers for chunk and query vectors."""

from code_graph.embedding.jina_embedder import (
    BaseEmbedder,
    JinaEmbedder,
    MockEmbedder,
    create_embedder,
)
from code_graph.embedding.models import (
    BatchEmbeddingResult,
    EmbeddingConfig,
    EmbeddingResult,
)

__all__ = [
    # Models
    "EmbeddingResult",
    "BatchEmbeddingResult",
    "EmbeddingConfig",
    # Embedders
    "BaseEmbedder",
    "JinaEmbedder",
    "MockEmbedder",
    "create_embedder",
]
