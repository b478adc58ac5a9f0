"""Full-text symbol search.

``FullTextStore`` is the BM25-style search interface used by indexing,
hybrid search and the graph engine's related-symbol lookup.
``MeilisearchFullTextStore`` talks to a Meilisearch server;
``InMemoryFullTextStore`` scores documents locally with Okapi BM25.
"""

import asyncio
import math
import re
from collections import Counter
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from meilisearch_python_sdk import AsyncClient
from meilisearch_python_sdk.errors import MeilisearchApiError
from meilisearch_python_sdk.models.settings import MeilisearchSettings as IndexSettings

from code_graph.core.exceptions import (
    SearchConnectionError,
    SearchIndexError,
    SearchQueryError,
)
from code_graph.graph.persistence import GraphPersistence
from code_graph.search.models import FullTextHit, SearchFilters
from code_graph.utils.logging import get_logger

logger = get_logger(__name__)

SEARCHABLE_FIELDS = ("symbol_name", "signature", "code")
FILTERABLE_FIELDS = ("workspace_id", "repo_id", "file_path", "language", "symbol_kind")
FULL_TEXT_SNAPSHOT_NAME = "full_text"


@runtime_checkable
class FullTextStore(Protocol):
    """BM25-style search over symbol documents."""

    async def initialize(self) -> None: ...

    async def load(self) -> bool: ...

    async def add_documents(self, documents: list[dict[str, Any]]) -> int: ...

    async def search(
        self,
        query: str,
        workspace_id: str,
        filters: SearchFilters | None = None,
        limit: int = 10,
    ) -> list[FullTextHit]: ...

    async def delete_by_file(self, repo_id: str, file_path: str) -> None: ...

    async def delete_by_repo(self, repo_id: str) -> None: ...

    async def delete_by_workspace(self, workspace_id: str) -> None: ...

    async def close(self) -> None: ...


class MeilisearchFullTextStore:
    """Meilisearch-backed full-text store.

    Documents are chunk payloads keyed by ``id``; the ranking score
    reported by Meilisearch is used as the relevance score.
    """

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        index_name: str = "symbols",
        batch_size: int = 1000,
    ) -> None:
        """Initialize client.

        Args:
            url: Meilisearch server URL.
            api_key: Optional API key.
            index_name: Index holding symbol documents.
            batch_size: Documents per add request.
        """
        self.url = url
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
        """Create the index and configure searchable/filterable fields.

        Raises:
            SearchIndexError: If index creation or configuration fails.
        """
        client = await self._ensure_client()
        try:
            index = await client.create_index(self.index_name, primary_key="id")
            await index.update_settings(
                IndexSettings(
                    searchable_attributes=list(SEARCHABLE_FIELDS),
                    filterable_attributes=list(FILTERABLE_FIELDS),
                )
            )
            logger.info("Index initialized", index=self.index_name)
        except MeilisearchApiError as e:
            if "already exists" not in str(e):
                raise SearchIndexError(self.index_name, "create", e) from e
            logger.info("Index already exists", index=self.index_name)

    async def load(self) -> bool:
        """Documents live on the server and survive restarts."""
        return True

    async def add_documents(self, documents: list[dict[str, Any]]) -> int:
        """Add or replace documents in batches.

        Raises:
            SearchIndexError: If a batch is rejected.
        """
        if not documents:
            return 0

        client = await self._ensure_client()
        index = client.index(self.index_name)
        total = 0
        try:
            for i in range(0, len(documents), self.batch_size):
                batch = documents[i : i + self.batch_size]
                await index.add_documents(batch)
                total += len(batch)
        except MeilisearchApiError as e:
            raise SearchIndexError(self.index_name, "add_documents", e) from e

        logger.debug("Documents indexed", count=total)
        return total

    async def search(
        self,
        query: str,
        workspace_id: str,
        filters: SearchFilters | None = None,
        limit: int = 10,
    ) -> list[FullTextHit]:
        """Search within a workspace.

        Raises:
            SearchQueryError: If the search request fails.
        """
        client = await self._ensure_client()
        index = client.index(self.index_name)
        filter_str = (filters or SearchFilters()).to_meilisearch_filter(workspace_id)
        try:
            result = await index.search(
                query,
                limit=limit,
                filter=filter_str,
                show_ranking_score=True,
            )
        except MeilisearchApiError as e:
            raise SearchQueryError(query, e) from e

        return [
            FullTextHit(
                symbol_id=hit["id"],
                score=float(hit.get("_rankingScore", 0.0)),
                fields=hit,
            )
            for hit in result.hits
        ]

    async def delete_by_file(self, repo_id: str, file_path: str) -> None:
        await self._delete_by_filter(f'repo_id = "{repo_id}" AND file_path = "{file_path}"')

    async def delete_by_repo(self, repo_id: str) -> None:
        await self._delete_by_filter(f'repo_id = "{repo_id}"')

    async def delete_by_workspace(self, workspace_id: str) -> None:
        await self._delete_by_filter(f'workspace_id = "{workspace_id}"')

    async def _delete_by_filter(self, filter_str: str) -> None:
        client = await self._ensure_client()
        index = client.index(self.index_name)
        try:
            await index.delete_documents_by_filter(filter_str)
        except MeilisearchApiError as e:
            raise SearchIndexError(self.index_name, "delete_by_filter", e) from e
        logger.info("Documents deleted by filter", filter=filter_str)

    async def health_check(self) -> bool:
        try:
            client = await self._ensure_client()
            health = await client.health()
            return health.status == "available"
        except Exception:
            return False

    async def close(self) -> None:
        """Close the client connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class InMemoryFullTextStore:
    """Local Okapi BM25 search over symbol documents.

    Each searchable field is scored separately and weighted, so a match
    in the symbol name outranks the same match buried in the code body.
    With a persistence handler the documents are written on ``close()``
    and restored by ``load()``; term counts are rebuilt on load.
    """

    FIELD_WEIGHTS = {"symbol_name": 3.0, "signature": 2.0, "code": 1.0}

    def __init__(
        self,
        k1: float = 1.2,
        b: float = 0.75,
        persistence: GraphPersistence | None = None,
        snapshot_name: str = FULL_TEXT_SNAPSHOT_NAME,
    ) -> None:
        self.k1 = k1
        self.b = b
        self._persistence = persistence
        self._snapshot_name = snapshot_name
        self._documents: dict[str, dict[str, Any]] = {}
        self._terms: dict[str, dict[str, Counter[str]]] = {}

    def __len__(self) -> int:
        return len(self._documents)

    async def initialize(self) -> None:
        pass

    async def add_documents(self, documents: list[dict[str, Any]]) -> int:
        for document in documents:
            self._put(document)
        return len(documents)

    def _put(self, document: dict[str, Any]) -> None:
        doc_id = document["id"]
        self._documents[doc_id] = dict(document)
        self._terms[doc_id] = {
            name: Counter(tokenize(str(document.get(name) or "")))
            for name in self.FIELD_WEIGHTS
        }

    async def search(
        self,
        query: str,
        workspace_id: str,
        filters: SearchFilters | None = None,
        limit: int = 10,
    ) -> list[FullTextHit]:
        """Rank documents of a workspace by weighted BM25."""
        query_terms = list(dict.fromkeys(tokenize(query)))
        if not query_terms or limit <= 0:
            return []

        filters = filters or SearchFilters()
        scope = [
            doc_id
            for doc_id, document in self._documents.items()
            if filters.matches(document, workspace_id)
        ]
        if not scope:
            return []

        total = len(scope)
        document_frequency = {
            term: sum(
                1 for doc_id in scope if any(term in counts for counts in self._terms[doc_id].values())
            )
            for term in query_terms
        }
        average_length = {
            name: (sum(sum(self._terms[d][name].values()) for d in scope) / total) or 1.0
            for name in self.FIELD_WEIGHTS
        }

        hits: list[FullTextHit] = []
        for doc_id in scope:
            score = 0.0
            for name, weight in self.FIELD_WEIGHTS.items():
                counts = self._terms[doc_id][name]
                length = sum(counts.values())
                for term in query_terms:
                    frequency = counts.get(term, 0)
                    if not frequency:
                        continue
                    df = document_frequency[term]
                    idf = math.log(1 + (total - df + 0.5) / (df + 0.5))
                    norm = self.k1 * (1 - self.b + self.b * length / average_length[name])
                    score += weight * idf * frequency * (self.k1 + 1) / (frequency + norm)
            if score > 0:
                hits.append(FullTextHit(doc_id, score, dict(self._documents[doc_id])))

        hits.sort(key=lambda h: (-h.score, h.symbol_id))
        return hits[:limit]

    async def delete_by_file(self, repo_id: str, file_path: str) -> None:
        self._delete(
            lambda d: d.get("repo_id") == repo_id and d.get("file_path") == file_path
        )

    async def delete_by_repo(self, repo_id: str) -> None:
        self._delete(lambda d: d.get("repo_id") == repo_id)

    async def delete_by_workspace(self, workspace_id: str) -> None:
        self._delete(lambda d: d.get("workspace_id") == workspace_id)

    def _delete(self, predicate: Callable[[dict[str, Any]], bool]) -> None:
        for doc_id in [i for i, d in self._documents.items() if predicate(d)]:
            del self._documents[doc_id]
            del self._terms[doc_id]

    def to_dict(self) -> dict[str, Any]:
        return {"documents": list(self._documents.values())}

    def load_dict(self, data: dict[str, Any]) -> None:
        """Replace the stored documents with serialized data."""
        self._documents.clear()
        self._terms.clear()
        for document in data.get("documents", []):
            self._put(document)

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

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        await self.save()


_WORD = re.compile(r"[A-Za-z0-9_]+")
_CAMEL_PART = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens; camelCase and snake_case words also yield parts."""
    tokens: list[str] = []
    for word in _WORD.findall(text):
        tokens.append(word.lower())
        parts = [p.lower() for chunk in word.split("_") for p in _CAMEL_PART.findall(chunk)]
        if len(parts) > 1:
            tokens.extend(parts)
    return tokens
