"""Search module: vector, full-text and hybrid retrieval."""

from code_graph.search.hybrid import HybridSearcher, fuse
from code_graph.search.meilisearch_client import (
    FullTextStore,
    InMemoryFullTextStore,
    MeilisearchFullTextStore,
)
from code_graph.search.models import (
    FullTextHit,
    FusionWeights,
    HybridResult,
    SearchFilters,
    SignalScores,
    VectorHit,
)
from code_graph.search.vector_store import InMemoryVectorStore, VectorPoint, VectorStore

__all__ = [
    # Models
    "SearchFilters",
    "VectorHit",
    "FullTextHit",
    "FusionWeights",
    "SignalScores",
    "HybridResult",
    # Stores
    "VectorStore",
    "VectorPoint",
    "InMemoryVectorStore",
    "FullTextStore",
    "MeilisearchFullTextStore",
    "InMemoryFullTextStore",
    # Fusion
    "HybridSearcher",
    "fuse",
]
