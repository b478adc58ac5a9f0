"""Vector store for chunk embeddings.

``VectorStore`` is the nearest-neighbor interface used by indexing and
hybrid search. ``MeilisearchVectorStore`` keeps vectors in a Meilisearch
index with a user-provided embedder; ``InMemoryVectorStore`` implements the
interface with NumPy cosine similarity over a dense matrix and can snapshot
its points to disk.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import numpy as np
from meilisearch_python_sdk import AsyncClient
from meilisearch_python_sdk.errors import MeilisearchApiError
from meilisearch_python_sdk.models.search import Hybrid
from meilisearch_python_sdk.models.settings import MeilisearchSettings, UserProvidedEmbedder

from code_graph.core.exceptions import SearchConnectionError, SearchIndexError, VectorStoreError
from code_graph.graph.persistence import GraphPersistence
from code_graph.search.meilisearch_client import FILTERABLE_FIELDS
from code_graph.search.models import SearchFilters, VectorHit
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

EMBEDDER_NAME = "default"
VECTOR_SNAPSHOT_NAME = "vectors"


@dataclass
class VectorPoint:
    """A vector with its id and payload."""

    id: str
    vector: list[float]
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "vector": self.vector, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VectorPoint":
        return cls(id=data["id"], vector=list(data["vector"]), payload=dict(data["payload"]))


@runtime_checkable
class VectorStore(Protocol):
    """Nearest-neighbor search over chunk vectors."""

    async def initialize(self) -> None: ...

    async def load(self) -> bool: ...

    async def upsert_batch(self, points: list[VectorPoint]) -> None: ...

    async def search(
        self,
        vector: list[float],
        workspace_id: str,
        filters: SearchFilters | None = None,
        limit: int = 10,
    ) -> list[VectorHit]: ...

    async def delete_by_file(self, repo_id: str, file_path: str) -> int: ...

    async def delete_by_repo(self, repo_id: str) -> int: ...

    async def delete_by_workspace(self, workspace_id: str) -> int: ...

    async def close(self) -> None: ...


class MeilisearchVectorStore:
    """Vectors stored in a Meilisearch index.

    Each point is a document holding its payload and the vector under
    ``_vectors``; searches are pure semantic queries against the
    user-provided embedder. Delete counts are not reported by the server,
    so the delete methods return 0.
    """

    def __init__(
        self,
        url: str,
        dimensions: int,
        api_key: str | None = None,
        index_name: str = "symbol_vectors",
        batch_size: int = 1000,
    ) -> None:
        """Initialize client.

        Args:
            url: Meilisearch server URL.
            dimensions: Embedding dimensionality.
            api_key: Optional API key.
            index_name: Index holding vector documents.
            batch_size: Documents per add request.
        """
        self.url = url
        self.dimensions = dimensions
        self.api_key = api_key
        self.index_name = index_name
        self.batch_size = batch_size
        self._client: AsyncClient | None = None

    async def _ensure_client(self) -> AsyncClient:
        """Ensure client is initialized.

        Raises:
            SearchConnectionError: If the client cannot be created.
        """
        if self._client is None:
            try:
                self._client = AsyncClient(self.url, self.api_key)
            except Exception as e:
                raise SearchConnectionError(self.url, e) from e
        return self._client

    async def initialize(self) -> None:
        """Create the index with filterable payload fields and the embedder.

        Raises:
            SearchIndexError: If index creation or configuration fails.
        """
        client = await self._ensure_client()
        try:
            index = await client.create_index(self.index_name, primary_key="id")
            await index.update_settings(
                MeilisearchSettings(
                    filterable_attributes=list(FILTERABLE_FIELDS),
                    embedders={EMBEDDER_NAME: UserProvidedEmbedder(dimensions=self.dimensions)},
                )
            )
            logger.info("Vector index initialized", index=self.index_name)
        except MeilisearchApiError as e:
            if "already exists" not in str(e):
                raise SearchIndexError(self.index_name, "create", e) from e
            logger.info("Vector index already exists", index=self.index_name)

    async def load(self) -> bool:
        """Vectors live on the server and survive restarts."""
        return True

    async def upsert_batch(self, points: list[VectorPoint]) -> None:
        """Add or replace points in batches.

        Raises:
            VectorStoreError: If a vector's dimensionality is wrong.
            SearchIndexError: If a batch is rejected.
        """
        if not points:
            return
        documents = []
        for point in points:
            if len(point.vector) != self.dimensions:
                raise VectorStoreError(
                    "upsert",
                    ValueError(f"Expected {self.dimensions} dimensions, got {len(point.vector)}"),
                )
            documents.append(
                {**point.payload, "id": point.id, "_vectors": {EMBEDDER_NAME: point.vector}}
            )

        client = await self._ensure_client()
        index = client.index(self.index_name)
        try:
            for i in range(0, len(documents), self.batch_size):
                await index.add_documents(documents[i : i + self.batch_size])
        except MeilisearchApiError as e:
            raise SearchIndexError(self.index_name, "add_documents", e) from e
        logger.debug("Upserted vectors", count=len(documents))

    async def search(
        self,
        vector: list[float],
        workspace_id: str,
        filters: SearchFilters | None = None,
        limit: int = 10,
    ) -> list[VectorHit]:
        """Top ``limit`` documents by semantic similarity within a workspace.

        Raises:
            VectorStoreError: If the search request fails.
        """
        if limit <= 0:
            return []
        client = await self._ensure_client()
        index = client.index(self.index_name)
        try:
            result = await index.search(
                "",
                limit=limit,
                filter=(filters or SearchFilters()).to_meilisearch_filter(workspace_id),
                vector=vector,
                hybrid=Hybrid(semantic_ratio=1.0, embedder=EMBEDDER_NAME),
                show_ranking_score=True,
            )
        except MeilisearchApiError as e:
            raise VectorStoreError("search", e) from e

        hits = []
        for hit in result.hits:
            payload = {k: v for k, v in hit.items() if not k.startswith("_")}
            hits.append(VectorHit(hit["id"], float(hit.get("_rankingScore", 0.0)), payload))
        return hits

    async def delete_by_file(self, repo_id: str, file_path: str) -> int:
        return await self._delete_by_filter(f'repo_id = "{repo_id}" AND file_path = "{file_path}"')

    async def delete_by_repo(self, repo_id: str) -> int:
        return await self._delete_by_filter(f'repo_id = "{repo_id}"')

    async def delete_by_workspace(self, workspace_id: str) -> int:
        return await self._delete_by_filter(f'workspace_id = "{workspace_id}"')

    async def _delete_by_filter(self, filter_str: str) -> int:
        client = await self._ensure_client()
        index = client.index(self.index_name)
        try:
            await index.delete_documents_by_filter(filter_str)
        except MeilisearchApiError as e:
            raise SearchIndexError(self.index_name, "delete_by_filter", e) from e
        logger.info("Vectors deleted by filter", filter=filter_str)
        return 0

    async def close(self) -> None:
        """Close the client connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class InMemoryVectorStore:
    """Brute-force cosine similarity search.

    Points are upserted by id; vectors are stacked into one matrix lazily
    on the first search after a write. With a persistence handler the
    points are written on ``close()`` and restored by ``load()``.
    """

    def __init__(
        self,
        dimensions: int | None = None,
        persistence: GraphPersistence | None = None,
        snapshot_name: str = VECTOR_SNAPSHOT_NAME,
    ) -> None:
        self.dimensions = dimensions
        self._persistence = persistence
        self._snapshot_name = snapshot_name
        self._points: dict[str, VectorPoint] = {}
        self._matrix: np.ndarray | None = None
        self._ids: list[str] = []

    def __len__(self) -> int:
        return len(self._points)

    async def initialize(self) -> None:
        pass

    async def upsert_batch(self, points: list[VectorPoint]) -> None:
        """Insert or replace points.

        Raises:
            VectorStoreError: If a vector's dimensionality is inconsistent.
        """
        for point in points:
            if self.dimensions is None:
                self.dimensions = len(point.vector)
            if len(point.vector) != self.dimensions:
                raise VectorStoreError(
                    "upsert",
                    ValueError(f"Expected {self.dimensions} dimensions, got {len(point.vector)}"),
                )
            self._points[point.id] = point
        self._matrix = None
        logger.debug("Upserted vectors", count=len(points), total=len(self._points))

    async def search(
        self,
        vector: list[float],
        workspace_id: str,
        filters: SearchFilters | None = None,
        limit: int = 10,
    ) -> list[VectorHit]:
        """Top ``limit`` points by cosine similarity within a workspace."""
        if not self._points or limit <= 0:
            return []
        matrix, ids = self._ensure_matrix()

        query = np.asarray(vector, dtype=np.float64)
        if query.shape[0] != matrix.shape[1]:
            raise VectorStoreError(
                "search",
                ValueError(f"Expected {matrix.shape[1]} dimensions, got {query.shape[0]}"),
            )

        query_norm = np.linalg.norm(query)
        row_norms = np.linalg.norm(matrix, axis=1)
        denominator = row_norms * query_norm
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(denominator > 0, matrix @ query / denominator, 0.0)

        filters = filters or SearchFilters()
        hits: list[VectorHit] = []
        for position in np.argsort(-similarities, kind="stable"):
            point = self._points[ids[position]]
            if not filters.matches(point.payload, workspace_id):
                continue
            hits.append(VectorHit(point.id, float(similarities[position]), dict(point.payload)))
            if len(hits) >= limit:
                break
        return hits

    def _ensure_matrix(self) -> tuple[np.ndarray, list[str]]:
        if self._matrix is None:
            self._ids = list(self._points)
            self._matrix = np.array(
                [self._points[i].vector for i in self._ids],
                dtype=np.float64,
            )
        return self._matrix, self._ids

    async def delete_by_file(self, repo_id: str, file_path: str) -> int:
        return self._delete(
            lambda p: p.get("repo_id") == repo_id and p.get("file_path") == file_path
        )

    async def delete_by_repo(self, repo_id: str) -> int:
        return self._delete(lambda p: p.get("repo_id") == repo_id)

    async def delete_by_workspace(self, workspace_id: str) -> int:
        return self._delete(lambda p: p.get("workspace_id") == workspace_id)

    def _delete(self, predicate: Callable[[dict[str, Any]], bool]) -> int:
        doomed = [pid for pid, point in self._points.items() if predicate(point.payload)]
        for pid in doomed:
            del self._points[pid]
        if doomed:
            self._matrix = None
        return len(doomed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dimensions": self.dimensions,
            "points": [point.to_dict() for point in self._points.values()],
        }

    def load_dict(self, data: dict[str, Any]) -> None:
        """Replace the stored points with serialized data."""
        self._points = {}
        for row in data.get("points", []):
            point = VectorPoint.from_dict(row)
            self._points[point.id] = point
        if data.get("dimensions") is not None:
            self.dimensions = data["dimensions"]
        self._matrix = None

    async def save(self) -> None:
        """Write a snapshot when persistence is configured."""
        if self._persistence is None:
            return
        await asyncio.to_thread(self._persistence.save, self._snapshot_name, self.to_dict())

    async def load(self) -> bool:
        """Load the snapshot, if any.

        Returns:
            True if a snapshot was loaded.
        """
        if self._persistence is None:
            return False
        data = await asyncio.to_thread(self._persistence.load, self._snapshot_name)
        if data is None:
            return False
        self.load_dict(data)
        return True

    async def close(self) -> None:
        await self.save()
