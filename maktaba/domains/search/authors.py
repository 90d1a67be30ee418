"""
Author Search - Authors whose names match the query.

Semantic lookup over the author index, falling back to a name match in
the metadata store when the index is missing, fails or finds nothing.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import AUTHOR_RESULT_LIMIT, AUTHOR_SCORE_THRESHOLD, EMBEDDING_TIMEOUT_SECONDS
from .contracts import AuthorDirectory, AuthorIndex, QueryEmbedder
from .models import Author
from .retrieval import embed_or_none

logger = logging.getLogger(__name__)

__all__ = ["AuthorSearch", "author_from_payload"]


def author_from_payload(payload: dict[str, Any]) -> Author:
    """Map an author index payload onto an Author."""
    return Author(
        author_id=str(payload["authorId"]),
        name_arabic=payload.get("nameArabic") or "",
        name_latin=payload.get("nameLatin"),
        death_date_hijri=payload.get("deathDateHijri"),
        death_date_gregorian=payload.get("deathDateGregorian"),
        books_count=payload.get("booksCount") or 0,
    )


class AuthorSearch:
    """
    Author lookup run alongside corpus retrieval.

    Never raises: every failure degrades to the name match, and a failing
    name match yields no authors.

    Example:
        >>> authors = AuthorSearch(vector_index, repository, embedder)
        >>> await authors.search("النووي")
    """

    def __init__(
        self,
        index: AuthorIndex | None,
        directory: AuthorDirectory,
        embedder: QueryEmbedder,
        score_threshold: float = AUTHOR_SCORE_THRESHOLD,
        embedding_timeout: float = EMBEDDING_TIMEOUT_SECONDS,
    ) -> None:
        self._index = index
        self._directory = directory
        self._embedder = embedder
        self._score_threshold = score_threshold
        self._embedding_timeout = embedding_timeout

    async def _semantic(self, query: str, limit: int) -> list[Author]:
        if self._index is None:
            return []
        embedding = await embed_or_none(self._embedder, query, self._embedding_timeout)
        if embedding is None:
            return []
        try:
            hits = await self._index.search_authors(embedding, limit, self._score_threshold)
            return [author_from_payload(hit.payload) for hit in hits]
        except Exception as e:
            logger.warning("Semantic author search failed, falling back to names: %s", e)
            return []

    async def search(self, query: str, limit: int = AUTHOR_RESULT_LIMIT) -> list[Author]:
        """Up to limit authors for the query."""
        authors = await self._semantic(query, limit)
        if authors:
            return authors[:limit]

        try:
            return await self._directory.find_authors(query, limit)
        except Exception as e:
            logger.warning("Author name lookup failed: %s", e)
            return []
