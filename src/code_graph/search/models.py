"""Search models.

Defines filters shared by the vector and full-text stores, the hits they
return, and the weights and results of hybrid fusion.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SearchFilters:
    """Payload filters applied by the vector and full-text stores.

    Attributes:
        repo_ids: Restrict to these repositories.
        language: Restrict to one language.
        symbol_kinds: Restrict to these symbol kinds.
    """

    repo_ids: list[str] = field(default_factory=list)
    language: str | None = None
    symbol_kinds: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when no payload constraint is set."""
        return not (self.repo_ids or self.language or self.symbol_kinds)

    def matches(self, payload: dict[str, Any], workspace_id: str | None = None) -> bool:
        """Check whether a payload passes the filters and workspace scope."""
        if workspace_id is not None and payload.get("workspace_id") != workspace_id:
            return False
        if self.repo_ids and payload.get("repo_id") not in self.repo_ids:
            return False
        if self.language and payload.get("language") != self.language:
            return False
        if self.symbol_kinds and payload.get("symbol_kind") not in self.symbol_kinds:
            return False
        return True

    def to_meilisearch_filter(self, workspace_id: str | None = None) -> str | None:
        """Convert to a Meilisearch filter expression.

        Returns:
            Filter string or None if nothing is filtered.
        """
        filters = []
        if workspace_id is not None:
            filters.append(f'workspace_id = "{workspace_id}"')
        if self.repo_ids:
            repo_filter = " OR ".join(f'repo_id = "{repo}"' for repo in self.repo_ids)
            filters.append(f"({repo_filter})")
        if self.language:
            filters.append(f'language = "{self.language}"')
        if self.symbol_kinds:
            kind_filter = " OR ".join(f'symbol_kind = "{kind}"' for kind in self.symbol_kinds)
            filters.append(f"({kind_filter})")
        return " AND ".join(filters) if filters else None


@dataclass
class VectorHit:
    """A nearest-neighbor match.

    Attributes:
        symbol_id: Point id.
        score: Cosine similarity.
        payload: Stored chunk payload.
    """

    symbol_id: str
    score: float
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class FullTextHit:
    """A full-text match.

    Attributes:
        symbol_id: Document id.
        score: Unnormalized BM25-style relevance.
        fields: Stored document fields.
    """

    symbol_id: str
    score: float
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FusionWeights:
    """Per-signal weights of hybrid fusion."""

    vector: float = 0.6
    fulltext: float = 0.3
    graph: float = 0.1

    def __post_init__(self) -> None:
        if min(self.vector, self.fulltext, self.graph) < 0:
            raise ValueError("Fusion weights must be non-negative")

    @property
    def total(self) -> float:
        return self.vector + self.fulltext + self.graph

    def normalized(self) -> "FusionWeights":
        """Scale the weights to sum to 1; all-zero weights stay zero."""
        total = self.total
        if total <= 0:
            return FusionWeights(0.0, 0.0, 0.0)
        return FusionWeights(self.vector / total, self.fulltext / total, self.graph / total)


@dataclass
class SignalScores:
    """Normalized score of each signal; a missing signal scores 0."""

    vector: float = 0.0
    fulltext: float = 0.0
    graph: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"vector": self.vector, "fulltext": self.fulltext, "graph": self.graph}


@dataclass
class HybridResult:
    """One fused search result.

    Attributes:
        symbol_id: Symbol id.
        score: Weighted sum of the signal scores.
        scores: Per-signal normalized scores.
        payload: Chunk payload from whichever signal returned it first.
    """

    symbol_id: str
    score: float
    scores: SignalScores = field(default_factory=SignalScores)
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "symbol_id": self.symbol_id,
            "score": self.score,
            "scores": self.scores.to_dict(),
            "payload": self.payload,
        }
