"""
Qdrant Vector Index - Dense nearest-neighbour search per corpus.

Each corpus lives in its own collection. Payloads are returned verbatim
(camelCase keys) and mapped to domain items by the search domain.
"""

from __future__ import annotations

import logging
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import FieldCondition, Filter, MatchAny, MatchValue

from maktaba.config.errors import BackendError, IndexUnavailableError
from maktaba.domains.search.models import Corpus, SearchHit

logger = logging.getLogger(__name__)

__all__ = ["QdrantVectorIndex", "build_filter"]


def build_filter(filters: dict[str, Any] | None) -> Filter | None:
    """
    Translate payload filters into a Qdrant filter.

    List values match any of their elements; scalars match exactly.
    """
    if not filters:
        return None

    conditions = []
    for key, value in filters.items():
        if isinstance(value, (list, tuple, set)):
            conditions.append(FieldCondition(key=key, match=MatchAny(any=list(value))))
        else:
            conditions.append(FieldCondition(key=key, match=MatchValue(value=value)))
    return Filter(must=conditions)


class QdrantVectorIndex:
    """
    Qdrant-backed vector search.

    Example:
        >>> index = QdrantVectorIndex(AsyncQdrantClient(url="http://localhost:6333"), collections)
        >>> hits = await index.search(Corpus.VERSE, embedding, limit=50, score_threshold=0.6)
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        collections: dict[Corpus, str],
        authors_collection: str | None = None,
    ) -> None:
        """
        Initialize index.

        Args:
            client: Async Qdrant client
            collections: Collection name per corpus
            authors_collection: Collection of author records
        """
        self._client = client
        self._collections = collections
        self._authors_collection = authors_collection

    @classmethod
    def from_url(
        cls,
        url: str,
        collections: dict[Corpus, str],
        authors_collection: str | None = None,
        api_key: str | None = None,
        timeout: int = 10,
    ) -> QdrantVectorIndex:
        """Create an index with its own client."""
        return cls(
            AsyncQdrantClient(url=url, api_key=api_key, timeout=timeout),
            collections,
            authors_collection,
        )

    async def search(
        self,
        corpus: Corpus,
        embedding: list[float],
        limit: int,
        score_threshold: float,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        """
        Search one corpus collection.

        Args:
            corpus: Corpus to search
            embedding: Query embedding
            limit: Maximum hits
            score_threshold: Minimum cosine similarity
            filters: Payload filters

        Returns:
            Hits at or above the threshold, best first

        Raises:
            IndexUnavailableError: Collection does not exist
            BackendError: Any other Qdrant failure
        """
        return await self._query(
            self._collections[corpus],
            embedding,
            limit,
            score_threshold,
            filters,
            details={"corpus": corpus.value},
        )

    async def search_authors(
        self,
        embedding: list[float],
        limit: int,
        score_threshold: float,
    ) -> list[SearchHit]:
        """
        Search the author collection.

        Raises:
            IndexUnavailableError: No author collection configured, or it does not exist
            BackendError: Any other Qdrant failure
        """
        if self._authors_collection is None:
            raise IndexUnavailableError("No Qdrant author collection configured")
        return await self._query(self._authors_collection, embedding, limit, score_threshold)

    async def _query(
        self,
        collection: str,
        embedding: list[float],
        limit: int,
        score_threshold: float,
        filters: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        try:
            response = await self._client.query_points(
                collection_name=collection,
                query=embedding,
                limit=limit,
                query_filter=build_filter(filters),
                score_threshold=score_threshold,
                with_payload=True,
            )
        except UnexpectedResponse as e:
            if e.status_code == 404:
                raise IndexUnavailableError(
                    f"Qdrant collection '{collection}' not found",
                    {"collection": collection, **(details or {})},
                ) from e
            raise BackendError(
                f"Qdrant search failed: {e.status_code}", {"collection": collection}
            ) from e

        hits = [
            SearchHit(payload=dict(point.payload or {}), score=point.score)
            for point in response.points
        ]
        logger.debug("Qdrant %s: %d hits (threshold=%.2f)", collection, len(hits), score_threshold)
        return hits

    async def close(self) -> None:
        """Close the underlying client."""
        await self._client.close()
