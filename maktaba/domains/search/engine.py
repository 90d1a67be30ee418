"""
Hybrid Search Engine - Entry point for searching all corpora.

Validates the request, dispatches to standard or refine search, and
assembles the response with optional debug statistics.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from maktaba.config.errors import SearchError

from .authors import AuthorSearch
from .config import (
    AUTHOR_RESULT_LIMIT,
    BM25_NORM_K,
    DEBUG_TOP_RESULTS,
    KEYWORD_WEIGHT,
    MAX_QUERY_LENGTH,
    RRF_K,
    SEMANTIC_WEIGHT,
    llm_model_for,
)
from .corpora import SPECS
from .fusion import match_type
from .metadata import BookMetadataLookup
from .models import (
    Author,
    BookMetadata,
    Corpus,
    DebugStats,
    Narration,
    Passage,
    RefineStats,
    RerankerType,
    RetrievalItem,
    SearchMode,
    SearchRequest,
    SearchResponse,
    SearchStrategy,
    TopResultBreakdown,
    Verse,
)
from .query_utils import classify, dynamic_cutoff
from .refine_search import RefineSearch
from .standard_search import StandardSearch

logger = logging.getLogger(__name__)

__all__ = ["HybridSearchEngine", "build_debug_stats", "validate_request"]

_FUSION_WEIGHTS = {
    "weighted_combination": {"semantic": SEMANTIC_WEIGHT, "keyword": KEYWORD_WEIGHT},
    "semantic_only": {"semantic": 1.0, "keyword": 0.0},
    "keyword_only": {"semantic": 0.0, "keyword": 1.0},
}


def validate_request(request: SearchRequest) -> SearchRequest:
    """
    Check caller input before any retrieval runs.

    Returns:
        The request with surrounding whitespace stripped from the query

    Raises:
        SearchError: Empty or overlong query
    """
    query = request.query.strip()
    if not query:
        raise SearchError("Query must not be empty")
    if len(query) > MAX_QUERY_LENGTH:
        raise SearchError(
            f"Query exceeds {MAX_QUERY_LENGTH} characters",
            {"length": len(query), "max_length": MAX_QUERY_LENGTH},
        )
    if query == request.query:
        return request
    return request.model_copy(update={"query": query})


def _fusion_method(request: SearchRequest) -> str:
    if request.mode == SearchMode.KEYWORD:
        return "keyword_only"
    if request.mode == SearchMode.SEMANTIC:
        return "semantic_only"
    if classify(request.query).strategy == SearchStrategy.SEMANTIC_ONLY:
        return "semantic_only"
    return "weighted_combination"


def _top_results(
    passages: list[Passage],
    verses: list[Verse],
    narrations: list[Narration],
    book_metadata: dict[str, BookMetadata],
) -> list[TopResultBreakdown]:
    tagged: list[tuple[Corpus, RetrievalItem]] = [
        *((Corpus.PASSAGE, p) for p in passages),
        *((Corpus.VERSE, v) for v in verses),
        *((Corpus.NARRATION, n) for n in narrations),
    ]
    tagged.sort(key=lambda pair: pair[1].final_score, reverse=True)

    breakdown = []
    for rank, (corpus, item) in enumerate(tagged[:DEBUG_TOP_RESULTS], 1):
        title = SPECS[corpus].title(item)
        if isinstance(item, Passage) and item.book_id in book_metadata:
            title = book_metadata[item.book_id].title_arabic[:50]
        breakdown.append(
            TopResultBreakdown(
                rank=rank,
                corpus=corpus,
                title=title,
                match_type=match_type(item),
                semantic_score=item.semantic_score,
                keyword_score=item.bm25_score,
                fused_score=item.fused_score,
                final_score=item.final_score,
            )
        )
    return breakdown


def build_debug_stats(
    request: SearchRequest,
    passages: list[Passage],
    verses: list[Verse],
    narrations: list[Narration],
    timing: dict[str, Any],
    total_above_cutoff: int = 0,
    reranker_timed_out: bool = False,
    refine_stats: RefineStats | None = None,
    book_metadata: dict[str, BookMetadata] | None = None,
) -> DebugStats:
    """Assemble diagnostics for tuning fusion and reranking."""
    fusion_method = _fusion_method(request)
    total_shown = len(passages) + len(verses) + len(narrations)
    cutoff = request.refine_similarity_cutoff if refine_stats else request.similarity_cutoff

    return DebugStats(
        search_params={
            "mode": request.mode.value,
            "cutoff": cutoff,
            "effective_cutoff": dynamic_cutoff(request.query, cutoff),
            "total_above_cutoff": total_above_cutoff or total_shown,
            "total_shown": total_shown,
        },
        algorithm={
            "fusion_method": fusion_method,
            "fusion_weights": _FUSION_WEIGHTS[fusion_method],
            "rrf_k": RRF_K,
            "bm25_norm_k": BM25_NORM_K,
            "reranker": None if request.reranker == RerankerType.NONE else request.reranker.value,
            "query_expansion_model": (
                llm_model_for(request.query_expansion_model) if refine_stats else None
            ),
        },
        top_results=_top_results(passages, verses, narrations, book_metadata or {}),
        timing=timing,
        refine_stats=refine_stats,
        reranker_timed_out=reranker_timed_out,
    )


class HybridSearchEngine:
    """
    Hybrid semantic + lexical search across passages, verses and narrations.

    Example:
        >>> engine = HybridSearchEngine(standard, refine, metadata, authors=author_search)
        >>> response = await engine.search(SearchRequest(query="الصبر على البلاء"))
        >>> response.passages[0].book_id
    """

    def __init__(
        self,
        standard: StandardSearch,
        refine: RefineSearch,
        metadata: BookMetadataLookup | None = None,
        debug_enabled: bool = True,
        authors: AuthorSearch | None = None,
    ) -> None:
        """
        Initialize engine.

        Args:
            standard: Single-query orchestrator
            refine: Query-expansion orchestrator
            metadata: Book metadata for debug titles
            debug_enabled: Whether requests may ask for debug stats
            authors: Author lookup run beside retrieval (skipped for book-scoped requests)
        """
        self._standard = standard
        self._refine = refine
        self._metadata = metadata
        self._debug_enabled = debug_enabled
        self._authors = authors

    async def search(self, request: SearchRequest) -> SearchResponse:
        """
        Execute a search.

        Refine search applies only in hybrid mode without a book filter.

        Args:
            request: Search request

        Returns:
            Per-corpus results

        Raises:
            SearchError: Invalid request
            IndexUnavailableError: A backend index does not exist
        """
        request = validate_request(request)
        start = time.perf_counter()
        use_refine = request.refine and request.mode == SearchMode.HYBRID and not request.book_id

        refine_stats: RefineStats | None = None
        expanded_queries = []
        total_above_cutoff = 0

        authors_task: asyncio.Task[list[Author]] | None = None
        if self._authors is not None and not request.book_id:
            authors_task = asyncio.create_task(
                self._authors.search(request.query, AUTHOR_RESULT_LIMIT)
            )

        try:
            if use_refine:
                refined = await self._refine.execute(request)
                passages, verses, narrations = refined.passages, refined.verses, refined.narrations
                expanded_queries = refined.expanded_queries
                reranker_timed_out = refined.reranker_timed_out
                refine_stats = refined.stats
                timing: dict[str, Any] = dict(refined.stats.timing)
            else:
                standard = await self._standard.execute(request)
                passages, verses, narrations = (
                    standard.passages,
                    standard.verses,
                    standard.narrations,
                )
                reranker_timed_out = standard.reranker_timed_out
                total_above_cutoff = standard.total_above_cutoff
                timing = dict(standard.timing)
        except BaseException:
            if authors_task is not None:
                authors_task.cancel()
            raise

        authors: list[Author] = []
        if authors_task is not None:
            author_start = time.perf_counter()
            authors = await authors_task
            timing["author_search"] = (time.perf_counter() - author_start) * 1000

        passages = passages[: request.limit]

        debug_stats = None
        if request.include_debug and self._debug_enabled:
            book_metadata: dict[str, BookMetadata] = {}
            if self._metadata is not None and passages:
                metadata_start = time.perf_counter()
                book_metadata = await self._metadata.get_books(p.book_id for p in passages)
                timing["book_metadata"] = (time.perf_counter() - metadata_start) * 1000
            timing["total"] = (time.perf_counter() - start) * 1000
            debug_stats = build_debug_stats(
                request,
                passages,
                verses,
                narrations,
                timing,
                total_above_cutoff=total_above_cutoff,
                reranker_timed_out=reranker_timed_out,
                refine_stats=refine_stats,
                book_metadata=book_metadata,
            )

        response = SearchResponse(
            query=request.query,
            mode=request.mode,
            count=len(passages) + len(verses) + len(narrations),
            passages=passages,
            verses=verses,
            narrations=narrations,
            authors=authors,
            refined=use_refine,
            expanded_queries=expanded_queries,
            reranker_timed_out=reranker_timed_out,
            debug_stats=debug_stats,
        )

        logger.info(
            "Search '%s' (mode=%s, refine=%s) -> %d results in %.1fms",
            request.query[:50],
            request.mode.value,
            use_refine,
            response.count,
            (time.perf_counter() - start) * 1000,
        )
        return response
