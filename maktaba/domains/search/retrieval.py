"""
Corpus Retrieval - Semantic and keyword search for a single corpus.

Turns raw backend hits into ranked retrieval items. Retrievers let backend
errors through; orchestrators wrap each sub-call in run_guarded, which
degrades failures to empty results.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, TypeVar

from maktaba.config.errors import IndexUnavailableError

from .config import EMBEDDING_TIMEOUT_SECONDS, EXCLUDED_BOOK_IDS, EXCLUDED_HADITH_COLLECTIONS
from .contracts import LexicalSearch, QueryEmbedder, VectorSearch
from .corpora import NARRATIONS, PASSAGES, VERSES, CorpusSpec
from .models import Corpus, ItemT, Narration, SearchHit
from .query_utils import dynamic_cutoff, normalize_arabic_text, should_skip_semantic

logger = logging.getLogger(__name__)

__all__ = [
    "CorpusRetriever",
    "build_retrievers",
    "corpus_filters",
    "drop_excluded_collections",
    "embed_or_none",
    "gather_or_cancel",
    "run_guarded",
]

T = TypeVar("T")


class CorpusRetriever(Generic[ItemT]):
    """
    Retrieval for one corpus over a vector and a lexical backend.

    Example:
        >>> retriever = CorpusRetriever(PASSAGES, qdrant, elastic, embedder)
        >>> items = await retriever.semantic_search("الصبر", limit=50, cutoff=0.6)
    """

    def __init__(
        self,
        spec: CorpusSpec[ItemT],
        vector: VectorSearch,
        lexical: LexicalSearch,
        embedder: QueryEmbedder,
        exclude_payload: Callable[[dict[str, Any]], bool] | None = None,
    ) -> None:
        """
        Initialize retriever.

        Args:
            spec: Corpus spec (payload mapping, key)
            vector: Vector index backend
            lexical: Lexical index backend
            embedder: Query embedder, used when no embedding is supplied
            exclude_payload: Predicate dropping semantic hits before ranking
        """
        self.spec = spec
        self._vector = vector
        self._lexical = lexical
        self._embedder = embedder
        self._exclude_payload = exclude_payload

    @property
    def corpus(self) -> Corpus:
        return self.spec.corpus

    async def semantic_search(
        self,
        query: str,
        limit: int,
        cutoff: float,
        embedding: list[float] | None = None,
        filters: dict[str, Any] | None = None,
    ) -> list[ItemT]:
        """
        Run semantic search.

        Args:
            query: Raw query string (drives skip and cutoff decisions)
            limit: Maximum hits to request
            cutoff: Base similarity cutoff, raised for short queries
            embedding: Precomputed query embedding
            filters: Backend payload filters

        Returns:
            Items with semantic_rank (1-based) and semantic_score set
        """
        if should_skip_semantic(query):
            logger.debug("Skipping semantic %s search for %r", self.corpus.value, query[:50])
            return []

        threshold = dynamic_cutoff(query, cutoff)
        if embedding is None:
            embedding = await self._embedder.embed_query(normalize_arabic_text(query))

        hits = await self._vector.search(self.corpus, embedding, limit, threshold, filters)
        hits = self._filter(hits)

        return [
            self.spec.from_payload(hit.payload, semantic_rank=rank, semantic_score=hit.score)
            for rank, hit in enumerate(hits, 1)
        ]

    async def keyword_search(
        self,
        query: str,
        limit: int,
        fuzzy: bool = True,
        filters: dict[str, Any] | None = None,
    ) -> list[ItemT]:
        """
        Run lexical search.

        Returns:
            Items with keyword_rank (1-based) and raw bm25_score set
        """
        hits = await self._lexical.search(self.corpus, query, limit, fuzzy, filters)
        return [
            self.spec.from_payload(hit.payload, keyword_rank=rank, bm25_score=hit.score)
            for rank, hit in enumerate(hits, 1)
        ]

    def _filter(self, hits: Sequence[SearchHit]) -> list[SearchHit]:
        if self._exclude_payload is None:
            return list(hits)
        return [hit for hit in hits if not self._exclude_payload(hit.payload)]


def _is_excluded_book(payload: dict[str, Any]) -> bool:
    return str(payload.get("bookId")) in EXCLUDED_BOOK_IDS


def build_retrievers(
    vector: VectorSearch,
    lexical: LexicalSearch,
    embedder: QueryEmbedder,
) -> dict[Corpus, CorpusRetriever[Any]]:
    """Create one retriever per corpus."""
    return {
        Corpus.PASSAGE: CorpusRetriever(
            PASSAGES, vector, lexical, embedder, exclude_payload=_is_excluded_book
        ),
        Corpus.VERSE: CorpusRetriever(VERSES, vector, lexical, embedder),
        Corpus.NARRATION: CorpusRetriever(NARRATIONS, vector, lexical, embedder),
    }


def corpus_filters(
    corpus: Corpus,
    book_id: str | None = None,
    hadith_collections: Sequence[str] = (),
) -> dict[str, Any] | None:
    """Backend payload filters for a corpus, or None when unfiltered."""
    if corpus == Corpus.PASSAGE and book_id:
        return {"bookId": book_id}
    if corpus == Corpus.NARRATION and hadith_collections:
        return {"collectionSlug": list(hadith_collections)}
    return None


def drop_excluded_collections(
    narrations: list[Narration],
    requested: Sequence[str] = (),
) -> list[Narration]:
    """Drop bulk collections unless the caller asked for specific collections."""
    if requested:
        return narrations
    return [n for n in narrations if n.collection_slug not in EXCLUDED_HADITH_COLLECTIONS]


def _context(corpus: Corpus | None, query_index: int | None) -> str:
    parts = []
    if corpus is not None:
        parts.append(f"corpus={corpus.value}")
    if query_index is not None:
        parts.append(f"query={query_index}")
    return ", ".join(parts)


async def run_guarded(
    call: Awaitable[list[T]],
    sub_call: str,
    corpus: Corpus | None = None,
    query_index: int | None = None,
    timings: dict[str, float] | None = None,
) -> list[T]:
    """
    Await a retrieval sub-call, degrading any failure to an empty list.

    A missing index is the exception: IndexUnavailableError propagates.

    Args:
        call: Awaitable returning results
        sub_call: Name used in log lines ("semantic", "keyword")
        corpus: Corpus being searched
        query_index: Expanded-query index, for refine searches
        timings: Receives elapsed milliseconds under the corpus name
    """
    start = time.perf_counter()
    try:
        return await call
    except IndexUnavailableError:
        raise
    except Exception as e:
        logger.warning("%s search failed (%s): %s", sub_call, _context(corpus, query_index), e)
        return []
    finally:
        if timings is not None and corpus is not None:
            timings[corpus.value] = (time.perf_counter() - start) * 1000


async def embed_or_none(
    embedder: QueryEmbedder,
    query: str,
    timeout: float = EMBEDDING_TIMEOUT_SECONDS,
    query_index: int | None = None,
) -> list[float] | None:
    """Embed the normalized query, returning None on timeout or failure."""
    try:
        return await asyncio.wait_for(
            embedder.embed_query(normalize_arabic_text(query)), timeout
        )
    except asyncio.TimeoutError:
        logger.warning("Embedding timed out after %.1fs (%s)", timeout, _context(None, query_index))
    except Exception as e:
        logger.warning("Embedding failed (%s): %s", _context(None, query_index), e)
    return None


async def gather_or_cancel(*tasks: asyncio.Future[Any]) -> list[Any]:
    """Gather tasks; if one raises, cancel the rest before propagating."""
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise
