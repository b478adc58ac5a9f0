"""Embedding models and data structures."""

from dataclasses import dataclass
from typing import Any

from code_graph.config import EmbeddingSettings


@dataclass
class EmbeddingResult:
    """Result of embedding a single text.

    Attributes:
        text: The original text that was embedded.
        embedding: The embedding vector.
        model: The model used for embedding.
        dimensions: Dimensionality of the embedding.
        token_count: Number of tokens in the text.
    """

    text: str
    embedding: list[float]
    model: str
    dimensions: int
    token_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "text": self.text,
            "embedding": self.embedding,
            "model": self.model,
            "dimensions": self.dimensions,
            "token_count": self.token_count,
        }


@dataclass
class BatchEmbeddingResult:
    """Result of embedding a batch of texts, in input order."""

    results: list[EmbeddingResult]
    total_tokens: int
    model: str

    @property
    def embeddings(self) -> list[list[float]]:
        """Get just the embedding vectors."""
        return [r.embedding for r in self.results]

    @property
    def count(self) -> int:
        return len(self.results)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding operations.

    Attributes:
        model_name: Name of the embedding model.
        dimensions: Embedding dimensions.
        batch_size: Texts per provider request.
        max_retries: Maximum attempts per request.
        timeout: Request timeout in seconds.
        normalize: Whether to L2-normalize embeddings.
    """

    model_name: str = "jina-embeddings-v2-base-code"
    dimensions: int = 768
    batch_size: int = 32
    max_retries: int = 3
    timeout: float = 30.0
    normalize: bool = True

    @classmethod
    def from_settings(cls, settings: EmbeddingSettings) -> "EmbeddingConfig":
        """Build a config from the ``EMBEDDING_`` settings section."""
        return cls(
            model_name=settings.model,
            dimensions=settings.dimensions,
            batch_size=settings.batch_size,
            max_retries=settings.max_retries,
            timeout=settings.timeout,
        )
