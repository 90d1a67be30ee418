"""
Search Contracts - Interfaces for the external collaborators of search.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import Author, BookMetadata, Corpus, RerankScore, SearchHit


@runtime_checkable
class VectorSearch(Protocol):
    """Contract for dense vector index implementations."""

    async def search(
        self,
        corpus: Corpus,
        embedding: list[float],
        limit: int,
        score_threshold: float,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        """Return hits at or above score_threshold, best first."""
        ...


@runtime_checkable
class LexicalSearch(Protocol):
    """Contract for inverted index implementations."""

    async def search(
        self,
        corpus: Corpus,
        query: str,
        limit: int,
        fuzzy: bool = True,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        """Return hits with raw (unbounded) relevance scores, best first."""
        ...


@runtime_checkable
class QueryEmbedder(Protocol):
    """Contract for query embedding implementations."""

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        ...


@runtime_checkable
class ChatCompleter(Protocol):
    """Contract for LLM chat completion services."""

    async def complete(
        self,
        prompt: str,
        model: str,
        timeout_seconds: float,
        temperature: float = 0.0,
    ) -> str | None:
        """Return completion text, or None on any failure."""
        ...


@runtime_checkable
class PairReranker(Protocol):
    """Contract for cross-encoder reranking services."""

    async def rerank(
        self,
        query: str,
        documents: list[str],
        top_n: int,
    ) -> list[RerankScore]:
        """Score (query, document) pairs, best first."""
        ...


@runtime_checkable
class MetadataStore(Protocol):
    """Contract for book metadata lookup."""

    async def get_books(self, book_ids: list[str]) -> dict[str, BookMetadata]:
        """Return metadata keyed by book ID; unknown IDs are omitted."""
        ...


@runtime_checkable
class AuthorIndex(Protocol):
    """Contract for the dense index of author records."""

    async def search_authors(
        self,
        embedding: list[float],
        limit: int,
        score_threshold: float,
    ) -> list[SearchHit]:
        """Return author hits at or above score_threshold, best first."""
        ...


@runtime_checkable
class AuthorDirectory(Protocol):
    """Contract for name lookup of authors."""

    async def find_authors(self, query: str, limit: int) -> list[Author]:
        """Return authors whose name contains query, most prolific first."""
        ...
