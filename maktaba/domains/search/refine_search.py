"""
Refine Search - Multi-query retrieval with query expansion.

Flow:
1. Expand the query (original first, then alternates)
2. Embed every expanded query in parallel
3. Per expanded query, in parallel: fuse semantic + keyword per corpus
4. Merge the per-query result sets per corpus by weighted score
5. Rerank all corpora together in one pass
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .config import EMBEDDING_TIMEOUT_SECONDS
from .contracts import QueryEmbedder
from .corpora import SPECS
from .expansion import QueryExpansionService
from .fusion import merge_weighted_results, merge_with_rrf
from .metadata import BookMetadataLookup
from .models import (
    Corpus,
    CorpusLimits,
    ExpandedQuery,
    Narration,
    Passage,
    QueryStats,
    RefineStats,
    SearchRequest,
    Verse,
    WeightedResultSet,
)
from .query_utils import classify, should_skip_semantic
from .rerankers import RerankerOrchestrator
from .retrieval import (
    CorpusRetriever,
    corpus_filters,
    drop_excluded_collections,
    embed_or_none,
    gather_or_cancel,
    run_guarded,
)
from .standard_search import active_corpora

logger = logging.getLogger(__name__)

__all__ = ["RefineSearch", "RefineSearchResult"]

_STATS_FIELDS = {
    Corpus.PASSAGE: "passages",
    Corpus.VERSE: "verses",
    Corpus.NARRATION: "narrations",
}


@dataclass
class RefineSearchResult:
    """Per-corpus results of a refine search."""

    passages: list[Passage] = field(default_factory=list)
    verses: list[Verse] = field(default_factory=list)
    narrations: list[Narration] = field(default_factory=list)
    expanded_queries: list[ExpandedQuery] = field(default_factory=list)
    reranker_timed_out: bool = False
    stats: RefineStats = field(default_factory=RefineStats)


async def _no_results() -> list[Any]:
    return []


class RefineSearch:
    """
    Refine (query expansion) search orchestrator.

    Example:
        >>> refine = RefineSearch(retrievers, embedder, expansion, reranker, metadata)
        >>> result = await refine.execute(SearchRequest(query="حكم الصيام في السفر", refine=True))
    """

    def __init__(
        self,
        retrievers: dict[Corpus, CorpusRetriever[Any]],
        embedder: QueryEmbedder,
        expansion: QueryExpansionService,
        reranker: RerankerOrchestrator,
        metadata: BookMetadataLookup | None = None,
        embedding_timeout: float = EMBEDDING_TIMEOUT_SECONDS,
    ) -> None:
        self._retrievers = retrievers
        self._embedder = embedder
        self._expansion = expansion
        self._reranker = reranker
        self._metadata = metadata
        self._embedding_timeout = embedding_timeout

    async def execute(self, request: SearchRequest) -> RefineSearchResult:
        """
        Run a refine search.

        Args:
            request: Validated search request (hybrid mode, no book filter)

        Returns:
            Reranked per-corpus results plus the expanded queries and stats
        """
        query = request.query
        stats = RefineStats()

        # Step 1: expansion, with weights taken from the request
        start = time.perf_counter()
        expansion = await self._expansion.expand(query, request.query_expansion_model)
        expanded = [
            q.model_copy(
                update={
                    "weight": request.refine_original_weight
                    if i == 0
                    else request.refine_expanded_weight
                }
            )
            for i, q in enumerate(expansion.queries)
        ]
        stats.expansion_cached = expansion.cached
        stats.timing["expansion"] = (time.perf_counter() - start) * 1000

        # Step 2: embeddings for all expanded queries
        start = time.perf_counter()
        embeddings = await asyncio.gather(
            *(self._embed(i, q.query) for i, q in enumerate(expanded))
        )
        stats.timing["embeddings"] = (time.perf_counter() - start) * 1000

        # Step 3: per-query, per-corpus hybrid retrieval
        start = time.perf_counter()
        skip_keyword = classify(query).skip_keyword
        corpora = active_corpora(request)
        per_query = await gather_or_cancel(
            *(
                asyncio.ensure_future(
                    self._search_expanded(i, q, embeddings[i], request, corpora, skip_keyword)
                )
                for i, q in enumerate(expanded)
            )
        )
        stats.timing["search"] = (time.perf_counter() - start) * 1000

        # Step 4: weighted merge per corpus
        start = time.perf_counter()
        merged: dict[Corpus, list[Any]] = {}
        for corpus in Corpus:
            spec = SPECS[corpus]
            sets = [
                WeightedResultSet(results=results[corpus], weight=expanded[i].weight)
                for i, (results, _) in enumerate(per_query)
                if corpus in results
            ]
            merged[corpus] = merge_weighted_results(sets, spec.key, spec.carry_highlight)
        stats.timing["merge"] = (time.perf_counter() - start) * 1000

        stats.query_stats = [query_stats for _, query_stats in per_query]
        stats.total_before_merge = sum(s.docs_retrieved for s in stats.query_stats)
        stats.after_merge = {_STATS_FIELDS[c]: len(items) for c, items in merged.items()}

        # Step 5: one reranking pass over all corpora
        limits = CorpusLimits(
            passages=request.refine_book_rerank,
            verses=request.refine_ayah_rerank,
            narrations=request.refine_hadith_rerank,
        )
        passages = merged[Corpus.PASSAGE]
        book_metadata = {}
        if passages and self._metadata is not None:
            book_metadata = await self._metadata.get_books(
                p.book_id for p in passages[: limits.passages]
            )

        start = time.perf_counter()
        outcome = await self._reranker.rerank_unified(
            query,
            passages,
            merged[Corpus.VERSE],
            merged[Corpus.NARRATION],
            limits,
            request.reranker,
            book_metadata,
        )
        stats.timing["rerank"] = (time.perf_counter() - start) * 1000
        stats.sent_to_reranker = sum(
            min(len(items), limits.for_corpus(corpus)) for corpus, items in merged.items()
        )

        logger.info(
            "Refine search: query='%s' expanded=%d (cached=%s) -> %d passages, %d verses, "
            "%d narrations (timed_out=%s)",
            query[:50],
            len(expanded),
            expansion.cached,
            len(outcome.passages),
            len(outcome.verses),
            len(outcome.narrations),
            outcome.timed_out,
        )

        return RefineSearchResult(
            passages=outcome.passages,
            verses=outcome.verses,
            narrations=outcome.narrations,
            expanded_queries=expanded,
            reranker_timed_out=outcome.timed_out,
            stats=stats,
        )

    async def _embed(self, index: int, text: str) -> list[float] | None:
        if should_skip_semantic(text):
            return None
        return await embed_or_none(self._embedder, text, self._embedding_timeout, query_index=index)

    async def _search_expanded(
        self,
        index: int,
        expanded: ExpandedQuery,
        embedding: list[float] | None,
        request: SearchRequest,
        corpora: list[Corpus],
        skip_keyword: bool,
    ) -> tuple[dict[Corpus, list[Any]], QueryStats]:
        """Hybrid retrieval for one expanded query across the active corpora."""
        start = time.perf_counter()
        per_query_limits = {
            Corpus.PASSAGE: request.refine_book_per_query,
            Corpus.VERSE: request.refine_ayah_per_query,
            Corpus.NARRATION: request.refine_hadith_per_query,
        }

        tasks = []
        for corpus in corpora:
            retriever = self._retrievers[corpus]
            filters = corpus_filters(corpus, request.book_id, request.hadith_collections)
            limit = per_query_limits[corpus]

            semantic = (
                run_guarded(
                    retriever.semantic_search(
                        expanded.query, limit, request.refine_similarity_cutoff, embedding, filters
                    ),
                    "semantic",
                    corpus,
                    index,
                )
                if embedding is not None
                else _no_results()
            )
            keyword = (
                run_guarded(
                    retriever.keyword_search(expanded.query, limit, request.fuzzy, filters),
                    "keyword",
                    corpus,
                    index,
                )
                if not skip_keyword
                else _no_results()
            )
            tasks.extend([asyncio.ensure_future(semantic), asyncio.ensure_future(keyword)])

        outputs = await gather_or_cancel(*tasks)

        results: dict[Corpus, list[Any]] = {}
        query_stats = QueryStats(query=expanded.query, weight=expanded.weight, reason=expanded.reason)
        for position, corpus in enumerate(corpora):
            semantic_items, keyword_items = outputs[2 * position], outputs[2 * position + 1]
            fused = merge_with_rrf(semantic_items, keyword_items, SPECS[corpus].key)
            if corpus == Corpus.NARRATION:
                fused = drop_excluded_collections(fused, request.hadith_collections)
            results[corpus] = fused
            setattr(query_stats, _STATS_FIELDS[corpus], len(fused))
            query_stats.docs_retrieved += len(fused)

        query_stats.search_time_ms = (time.perf_counter() - start) * 1000
        return results, query_stats
