"""Embedding providers.

``JinaEmbedder`` calls the Jina AI embeddings API; ``MockEmbedder`` produces
deterministic feature-hashed vectors for tests and offline use.
"""

import asyncio
import hashlib
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx
import numpy as np

from code_graph.config import EmbeddingSettings
from code_graph.core.exceptions import (
    EmbeddingGenerationError,
    MissingConfigError,
    ModelLoadError,
)
from code_graph.embedding.models import (
    BatchEmbeddingResult,
    EmbeddingConfig,
    EmbeddingResult,
)
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_]+")


class BaseEmbedder(ABC):
    """Abstract base class for embedding providers."""

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Embed a single text.

        Args:
            text: Text to embed.

        Returns:
            EmbeddingResult with the embedding vector.
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> BatchEmbeddingResult:
        """Embed multiple texts.

        Args:
            texts: List of texts to embed.

        Returns:
            BatchEmbeddingResult with one embedding per input, in order.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass


class JinaEmbedder(BaseEmbedder):
    """Jina AI embeddings implementation."""

    API_URL = "https://api.jina.ai/v1/embeddings"

    def __init__(
        self,
        api_key: str,
        config: EmbeddingConfig | None = None,
    ) -> None:
        """Initialize Jina embedder.

        Args:
            api_key: Jina AI API key.
            config: Embedding configuration.

        Raises:
            ModelLoadError: If no API key is given.
        """
        if not api_key:
            raise ModelLoadError("jina", ValueError("API key is required"))

        self.api_key = api_key
        self.config = config or EmbeddingConfig()
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def embed(self, text: str) -> EmbeddingResult:
        """Embed a single text.

        Raises:
            EmbeddingGenerationError: If the text is empty or the request fails.
        """
        if not text.strip():
            raise EmbeddingGenerationError(0, ValueError("Empty text"))

        result = await self.embed_batch([text])
        return result.results[0]

    async def embed_batch(self, texts: list[str]) -> BatchEmbeddingResult:
        """Embed texts in provider-sized batches.

        Raises:
            EmbeddingGenerationError: If any batch fails after retries.
        """
        if not texts:
            return BatchEmbeddingResult(results=[], total_tokens=0, model=self.config.model_name)

        client = await self._ensure_client()
        results: list[EmbeddingResult] = []
        total_tokens = 0

        for i in range(0, len(texts), self.config.batch_size):
            batch = texts[i : i + self.config.batch_size]
            batch_results, tokens = await self._embed_batch_request(client, batch)
            results.extend(batch_results)
            total_tokens += tokens

        return BatchEmbeddingResult(
            results=results,
            total_tokens=total_tokens,
            model=self.config.model_name,
        )

    async def _embed_batch_request(
        self,
        client: httpx.AsyncClient,
        texts: list[str],
    ) -> tuple[list[EmbeddingResult], int]:
        """Make one batch request, retrying rate limits and transport errors."""
        payload = {
            "model": self.config.model_name,
            "input": [t if t.strip() else " " for t in texts],
            "dimensions": self.config.dimensions,
            "normalized": self.config.normalize,
        }
        text_length = sum(len(t) for t in texts)

        for attempt in range(self.config.max_retries):
            try:
                response = await client.post(self.API_URL, json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < self.config.max_retries - 1:
                    wait_time = 2 ** (attempt + 1)
                    logger.warning("Rate limited, waiting", wait_time=wait_time, attempt=attempt + 1)
                    await asyncio.sleep(wait_time)
                    continue
                raise EmbeddingGenerationError(text_length, e) from e
            except httpx.RequestError as e:
                if attempt < self.config.max_retries - 1:
                    wait_time = 2 ** (attempt + 1)
                    logger.warning("Request failed, retrying", error=str(e), attempt=attempt + 1)
                    await asyncio.sleep(wait_time)
                    continue
                raise EmbeddingGenerationError(text_length, e) from e

            items = sorted(data.get("data", []), key=lambda item: item.get("index", 0))
            if len(items) != len(texts):
                raise EmbeddingGenerationError(
                    text_length,
                    ValueError(f"Expected {len(texts)} embeddings, got {len(items)}"),
                )
            total_tokens = data.get("usage", {}).get("total_tokens", 0)
            results = [
                EmbeddingResult(
                    text=text,
                    embedding=item.get("embedding", []),
                    model=self.config.model_name,
                    dimensions=len(item.get("embedding", [])),
                    token_count=total_tokens // len(texts),
                )
                for text, item in zip(texts, items)
            ]
            logger.debug("Embedded batch", batch_size=len(texts), total_tokens=total_tokens)
            return results, total_tokens

        raise EmbeddingGenerationError(text_length, RuntimeError("Max retries exceeded"))

    async def close(self) -> None:
        """Clean up HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "JinaEmbedder":
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class MockEmbedder(BaseEmbedder):
    """Deterministic offline embedder.

    Each lowercased word token is hashed with SHA-256 into one of
    ``dimensions`` buckets with a hash-derived sign, so texts sharing
    vocabulary get similar vectors and identical texts identical ones.
    """

    MODEL_NAME = "mock-embedder"

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._call_count = 0

    def _generate_embedding(self, text: str) -> list[float]:
        vector = np.zeros(self.config.dimensions, dtype=np.float64)
        for token in _TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:8], "big") % self.config.dimensions
            vector[bucket] += 1.0 if digest[8] & 1 else -1.0

        if self.config.normalize:
            norm = np.linalg.norm(vector)
            if norm > 0:
                vector /= norm
        return vector.tolist()

    async def embed(self, text: str) -> EmbeddingResult:
        self._call_count += 1
        embedding = self._generate_embedding(text)
        return EmbeddingResult(
            text=text,
            embedding=embedding,
            model=self.MODEL_NAME,
            dimensions=len(embedding),
            token_count=len(text.split()),
        )

    async def embed_batch(self, texts: list[str]) -> BatchEmbeddingResult:
        results = [await self.embed(text) for text in texts]
        return BatchEmbeddingResult(
            results=results,
            total_tokens=sum(r.token_count for r in results),
            model=self.MODEL_NAME,
        )

    async def close(self) -> None:
        """No-op for mock."""
        pass

    @property
    def call_count(self) -> int:
        """Number of embed calls so far."""
        return self._call_count


def create_embedder(settings: EmbeddingSettings) -> BaseEmbedder:
    """Create the embedder selected by the ``EMBEDDING_`` settings.

    Raises:
        MissingConfigError: If the Jina provider is selected without
            ``EMBEDDING_API_KEY``.
    """
    config = EmbeddingConfig.from_settings(settings)
    if settings.provider == "mock":
        return MockEmbedder(config)

    if not settings.api_key:
        raise MissingConfigError("EMBEDDING_API_KEY")
    return JinaEmbedder(settings.api_key, config)
