"""Hybrid search fusing vector, full-text and graph relevance.

The three retrievals run concurrently. Each one is isolated: a failing
signal contributes nothing and is logged, and a signal with zero weight is
never executed. Scores are normalized per signal and combined with the
normalized fusion weights; ties are broken by symbol id.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from code_graph.embedding.jina_embedder import BaseEmbedder
from code_graph.graph.engine import GraphEngine
from code_graph.graph.models import RelatedSymbol
from code_graph.search.meilisearch_client import FullTextStore
from code_graph.search.models import (
    FullTextHit,
    FusionWeights,
    HybridResult,
    SearchFilters,
    VectorHit,
)
from code_graph.search.vector_store import VectorStore
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TOP_K = 10


class HybridSearcher:
    """Weighted fusion of vector, full-text and graph search."""

    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: VectorStore,
        full_text: FullTextStore,
        graph: GraphEngine,
        weights: FusionWeights | None = None,
        default_top_k: int = DEFAULT_TOP_K,
    ) -> None:
        """Initialize hybrid searcher.

        Args:
            embedder: Embeds the query for vector search.
            vector_store: Nearest-neighbor store.
            full_text: Full-text store.
            graph: Graph engine providing related symbols.
            weights: Default fusion weights.
            default_top_k: Result count when none is requested.
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.full_text = full_text
        self.graph = graph
        self.weights = weights or FusionWeights()
        self.default_top_k = default_top_k

    async def search(
        self,
        query: str,
        workspace_id: str,
        top_k: int | None = None,
        filters: SearchFilters | None = None,
        weights: FusionWeights | None = None,
    ) -> list[HybridResult]:
        """Run the three retrievals and fuse them.

        Args:
            query: Query text.
            workspace_id: Workspace to search.
            top_k: Number of results to return.
            filters: Payload filters applied to all three signals.
            weights: Fusion weights; normalized to sum to 1.

        Returns:
            Results sorted by fused score, highest first.
        """
        limit = top_k or self.default_top_k
        normalized = (weights or self.weights).normalized()
        logger.info(
            "Hybrid search",
            query=query,
            workspace_id=workspace_id,
            weights={"vector": normalized.vector, "fulltext": normalized.fulltext, "graph": normalized.graph},
        )

        vector_hits, fulltext_hits, related = await asyncio.gather(
            self._run_signal(
                "vector",
                normalized.vector,
                lambda: self._vector_search(query, workspace_id, filters, limit),
            ),
            self._run_signal(
                "fulltext",
                normalized.fulltext,
                lambda: self.full_text.search(query, workspace_id=workspace_id, filters=filters, limit=limit),
            ),
            self._run_signal(
                "graph",
                normalized.graph,
                lambda: self.graph.search_related(query, workspace_id, filters=filters),
            ),
        )

        results = fuse(vector_hits, fulltext_hits, related, normalized)[:limit]
        logger.info("Hybrid search completed", count=len(results))
        return results

    async def _vector_search(
        self,
        query: str,
        workspace_id: str,
        filters: SearchFilters | None,
        limit: int,
    ) -> list[VectorHit]:
        embedded = await self.embedder.embed(query)
        return await self.vector_store.search(
            embedded.embedding,
            workspace_id=workspace_id,
            filters=filters,
            limit=limit,
        )

    @staticmethod
    async def _run_signal(
        signal: str,
        weight: float,
        search: Callable[[], Awaitable[list[T]]],
    ) -> list[T]:
        if weight <= 0:
            return []
        try:
            return await search()
        except Exception as e:
            logger.warning("Search signal failed", signal=signal, error=str(e))
            return []


def fuse(
    vector_hits: list[VectorHit],
    fulltext_hits: list[FullTextHit],
    related: list[RelatedSymbol],
    weights: FusionWeights,
) -> list[HybridResult]:
    """Merge per-signal results into one ranking.

    Vector scores are used as-is. Full-text scores are divided by the
    largest full-text score of this batch, floored at 1. Graph scores are
    ``1 / (path_length + 1)``, keeping the shortest path per symbol.
    Missing signals contribute 0.
    """
    merged: dict[str, HybridResult] = {}

    def entry(symbol_id: str, payload: dict[str, Any] | None = None) -> HybridResult:
        result = merged.get(symbol_id)
        if result is None:
            result = merged[symbol_id] = HybridResult(symbol_id=symbol_id, score=0.0)
        if payload and not result.payload:
            result.payload = payload
        return result

    for hit in vector_hits:
        entry(hit.symbol_id, hit.payload).scores.vector = hit.score

    ceiling = max([hit.score for hit in fulltext_hits] + [1.0])
    for hit in fulltext_hits:
        entry(hit.symbol_id, hit.fields).scores.fulltext = hit.score / ceiling

    for item in related:
        scores = entry(item.symbol_id).scores
        scores.graph = max(scores.graph, 1.0 / (item.path_length + 1))

    for result in merged.values():
        result.score = (
            weights.vector * result.scores.vector
            + weights.fulltext * result.scores.fulltext
            + weights.graph * result.scores.graph
        )
    return sorted(merged.values(), key=lambda r: (-r.score, r.symbol_id))
