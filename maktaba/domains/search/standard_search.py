"""
Standard Search - Single-query hybrid retrieval across all corpora.

Flow:
1. Classify the query
2. Start keyword searches and query embedding concurrently
3. Start semantic searches once the embedding resolves
4. Combine per corpus according to the search mode, then truncate
5. Optionally rerank each corpus
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .config import (
    AYAH_PRE_RERANK_CAP,
    BOOK_PRE_RERANK_CAP,
    DEFAULT_AYAH_LIMIT,
    DEFAULT_HADITH_LIMIT,
    EMBEDDING_TIMEOUT_SECONDS,
    HADITH_PRE_RERANK_CAP,
    STANDARD_FETCH_LIMIT,
)
from .contracts import QueryEmbedder
from .corpora import (
    SPECS,
    CorpusSpec,
    format_narration_for_reranking,
    format_passage_for_reranking,
    format_verse_for_reranking,
)
from .fusion import merge_with_rrf, normalize_lexical_score
from .metadata import BookMetadataLookup
from .models import (
    Corpus,
    ItemT,
    Narration,
    Passage,
    RerankerType,
    SearchMode,
    SearchRequest,
    Verse,
)
from .query_utils import classify
from .rerankers import RerankerOrchestrator
from .retrieval import (
    CorpusRetriever,
    corpus_filters,
    drop_excluded_collections,
    embed_or_none,
    gather_or_cancel,
    run_guarded,
)

logger = logging.getLogger(__name__)

__all__ = ["StandardSearch", "StandardSearchResult", "active_corpora", "combine_by_mode"]


@dataclass
class StandardSearchResult:
    """Per-corpus results of a standard search."""

    passages: list[Passage] = field(default_factory=list)
    verses: list[Verse] = field(default_factory=list)
    narrations: list[Narration] = field(default_factory=list)
    total_above_cutoff: int = 0
    reranker_timed_out: bool = False
    timing: dict[str, Any] = field(default_factory=dict)


def active_corpora(request: SearchRequest) -> list[Corpus]:
    """Corpora a request searches. A book filter restricts search to passages."""
    corpora = []
    if request.include_books:
        corpora.append(Corpus.PASSAGE)
    if request.include_quran and not request.book_id:
        corpora.append(Corpus.VERSE)
    if request.include_hadith and not request.book_id:
        corpora.append(Corpus.NARRATION)
    return corpora


def combine_by_mode(
    spec: CorpusSpec[ItemT],
    mode: SearchMode,
    semantic: list[ItemT],
    keyword: list[ItemT],
) -> list[ItemT]:
    """Keyword list (normalized scores), semantic list, or the fused list."""
    if mode == SearchMode.KEYWORD:
        return [
            item.model_copy(update={"fused_score": normalize_lexical_score(item.bm25_score)})
            for item in keyword
        ]
    if mode == SearchMode.SEMANTIC:
        return semantic
    return merge_with_rrf(semantic, keyword, spec.key)


class StandardSearch:
    """
    Standard (non-expanded) search orchestrator.

    Example:
        >>> search = StandardSearch(retrievers, embedder, reranker)
        >>> result = await search.execute(SearchRequest(query="الصبر على البلاء"))
    """

    def __init__(
        self,
        retrievers: dict[Corpus, CorpusRetriever[Any]],
        embedder: QueryEmbedder,
        reranker: RerankerOrchestrator,
        metadata: BookMetadataLookup | None = None,
        embedding_timeout: float = EMBEDDING_TIMEOUT_SECONDS,
    ) -> None:
        self._retrievers = retrievers
        self._embedder = embedder
        self._reranker = reranker
        self._metadata = metadata
        self._embedding_timeout = embedding_timeout

    async def execute(self, request: SearchRequest) -> StandardSearchResult:
        """
        Run a standard search.

        Args:
            request: Validated search request

        Returns:
            Per-corpus results, truncated to their limits
        """
        query = request.query
        mode = request.mode
        classification = classify(query)
        skip_keyword = classification.skip_keyword or mode == SearchMode.SEMANTIC
        skip_semantic = classification.skip_semantic or mode == SearchMode.KEYWORD
        fetch_limit = STANDARD_FETCH_LIMIT if mode == SearchMode.HYBRID else request.limit
        corpora = active_corpora(request)

        timing: dict[str, Any] = {"keyword": {}, "semantic": {}}

        # Phase 1: keyword searches and embedding in parallel
        keyword_tasks: dict[Corpus, asyncio.Task[list[Any]]] = {}
        if not skip_keyword:
            for corpus in corpora:
                retriever = self._retrievers[corpus]
                keyword_tasks[corpus] = asyncio.create_task(
                    run_guarded(
                        retriever.keyword_search(
                            query, fetch_limit, request.fuzzy, self._filters(corpus, request)
                        ),
                        "keyword",
                        corpus,
                        timings=timing["keyword"],
                    )
                )

        embedding: list[float] | None = None
        start = time.perf_counter()
        if not skip_semantic and corpora:
            embedding = await embed_or_none(self._embedder, query, self._embedding_timeout)
        timing["embedding"] = (time.perf_counter() - start) * 1000

        # Phase 2: semantic searches once the embedding is ready
        semantic_tasks: dict[Corpus, asyncio.Task[list[Any]]] = {}
        if embedding is not None:
            for corpus in corpora:
                retriever = self._retrievers[corpus]
                semantic_tasks[corpus] = asyncio.create_task(
                    run_guarded(
                        retriever.semantic_search(
                            query,
                            fetch_limit,
                            request.similarity_cutoff,
                            embedding,
                            self._filters(corpus, request),
                        ),
                        "semantic",
                        corpus,
                        timings=timing["semantic"],
                    )
                )

        # Phase 3: wait for everything, then combine
        await gather_or_cancel(*keyword_tasks.values(), *semantic_tasks.values())
        keyword = {corpus: task.result() for corpus, task in keyword_tasks.items()}
        semantic = {corpus: task.result() for corpus, task in semantic_tasks.items()}

        start = time.perf_counter()
        result = StandardSearchResult(timing=timing)
        combined: dict[Corpus, list[Any]] = {}
        for corpus in corpora:
            items = combine_by_mode(
                SPECS[corpus], mode, semantic.get(corpus, []), keyword.get(corpus, [])
            )
            if corpus == Corpus.NARRATION:
                items = drop_excluded_collections(items, request.hadith_collections)
            combined[corpus] = items

        passage_limit = request.book_limit if mode == SearchMode.HYBRID else request.limit
        limits = {
            Corpus.PASSAGE: passage_limit,
            Corpus.VERSE: min(request.limit, DEFAULT_AYAH_LIMIT),
            Corpus.NARRATION: min(request.limit, DEFAULT_HADITH_LIMIT),
        }
        if mode == SearchMode.HYBRID:
            result.total_above_cutoff = len(combined.get(Corpus.PASSAGE, []))
        timing["merge"] = (time.perf_counter() - start) * 1000

        if request.reranker != RerankerType.NONE and combined:
            start = time.perf_counter()
            combined, result.reranker_timed_out = await self._rerank(
                query, combined, limits, request.reranker
            )
            timing["rerank"] = (time.perf_counter() - start) * 1000

        result.passages = combined.get(Corpus.PASSAGE, [])[: limits[Corpus.PASSAGE]]
        result.verses = combined.get(Corpus.VERSE, [])[: limits[Corpus.VERSE]]
        result.narrations = combined.get(Corpus.NARRATION, [])[: limits[Corpus.NARRATION]]

        logger.info(
            "Standard search: query='%s' mode=%s -> %d passages, %d verses, %d narrations",
            query[:50],
            mode.value,
            len(result.passages),
            len(result.verses),
            len(result.narrations),
        )
        return result

    async def _rerank(
        self,
        query: str,
        combined: dict[Corpus, list[Any]],
        limits: dict[Corpus, int],
        strategy: RerankerType,
    ) -> tuple[dict[Corpus, list[Any]], bool]:
        """Rerank each corpus independently; returns the lists and a timeout flag."""
        caps = {
            Corpus.PASSAGE: BOOK_PRE_RERANK_CAP,
            Corpus.VERSE: AYAH_PRE_RERANK_CAP,
            Corpus.NARRATION: HADITH_PRE_RERANK_CAP,
        }

        book_metadata = {}
        passages = combined.get(Corpus.PASSAGE, [])[: caps[Corpus.PASSAGE]]
        if passages and self._metadata is not None:
            book_metadata = await self._metadata.get_books(p.book_id for p in passages)

        renderers = {
            Corpus.PASSAGE: lambda p: format_passage_for_reranking(p, book_metadata.get(p.book_id)),
            Corpus.VERSE: format_verse_for_reranking,
            Corpus.NARRATION: format_narration_for_reranking,
        }

        corpora = list(combined)
        outcomes = await asyncio.gather(
            *(
                self._reranker.rerank(
                    query,
                    combined[corpus][: caps[corpus]],
                    renderers[corpus],
                    limits[corpus],
                    strategy,
                )
                for corpus in corpora
            )
        )
        reranked = {corpus: outcome.results for corpus, outcome in zip(corpora, outcomes)}
        return reranked, any(outcome.timed_out for outcome in outcomes)

    @staticmethod
    def _filters(corpus: Corpus, request: SearchRequest) -> dict[str, Any] | None:
        return corpus_filters(corpus, request.book_id, request.hadith_collections)
