"""
Reranker Orchestrator - Optional second-pass ordering of fused results.

Strategies:
- none: keep fused order
- jina: cross-encoder relevance scores
- gpt-oss-20b / gpt-oss-120b / gemini-flash: LLM returns a ranking as a
  JSON array of 1-based document numbers

Every service call is bounded by a timeout. On timeout or any failure the
original order is returned; `timed_out` is set only for timeouts.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable, Sequence

from .config import (
    CROSS_ENCODER_TIMEOUT_SECONDS,
    LLM_RERANKERS,
    MIN_UNIFIED_RERANK_CANDIDATES,
    RERANKER_TEXT_LIMIT,
    UNIFIED_RERANK_TIMEOUT_SECONDS,
    UNIFIED_RERANKER_TEXT_LIMIT,
    llm_model_for,
)
from .contracts import ChatCompleter, PairReranker
from .corpora import (
    format_narration_for_reranking,
    format_passage_for_reranking,
    format_verse_for_reranking,
)
from .models import (
    BookMetadata,
    Corpus,
    CorpusLimits,
    ItemT,
    Narration,
    NarrationCandidate,
    Passage,
    PassageCandidate,
    RerankCandidate,
    RerankerType,
    RerankOutcome,
    UnifiedRerankOutcome,
    Verse,
    VerseCandidate,
)

logger = logging.getLogger(__name__)

__all__ = ["RerankerOrchestrator", "parse_ranking"]

_RANKING_RE = re.compile(r"\[[\d,\s]+\]")
_MAX_PROMPT_QUERY_CHARS = 500


def parse_ranking(content: str, count: int) -> list[int] | None:
    """
    Extract 0-based document indexes from an LLM ranking response.

    The first bracketed integer list is used. Out-of-range and repeated
    document numbers are dropped.

    Returns:
        Indexes in ranked order, or None if no list could be parsed
    """
    match = _RANKING_RE.search(content)
    if match is None:
        return None
    try:
        numbers = json.loads(match.group(0))
    except ValueError:
        return None

    indexes: list[int] = []
    for number in numbers:
        index = number - 1
        if 0 <= index < count and index not in indexes:
            indexes.append(index)
    return indexes or None


def _pad(indexes: Sequence[int], count: int, top_n: int) -> list[int]:
    """Append leftover indexes in original order until top_n are present."""
    padded = list(indexes[:top_n])
    for index in range(count):
        if len(padded) >= top_n:
            break
        if index not in padded:
            padded.append(index)
    return padded


def _sanitize_query(query: str) -> str:
    return re.sub(r"[\r\n]+", " ", query.replace('"', "'"))[:_MAX_PROMPT_QUERY_CHARS]


def _ranking_prompt(query: str, documents: Sequence[str]) -> str:
    docs_text = "\n\n".join(f"[{i}] {doc}" for i, doc in enumerate(documents, 1))
    return f"""You rank Arabic and Islamic source documents for a search query.

Query: "{_sanitize_query(query)}"

Documents:
{docs_text}

First decide what the user wants:
A) A specific source (a named verse, a well-known hadith, a surah/ayah reference)
B) An answer to a question
C) Material about a topic

Then rank:
- For A, the exact [QURAN] or [HADITH] source first, then related sources, then [BOOK] commentary on it.
- For B, documents that answer the question first, then documents that discuss it.
- For C, documents primarily about the topic first, then passing mentions.
Match English queries to Arabic documents and the reverse.

Include every document; only leave one out if it cannot possibly relate to the query.

Return ONLY a JSON array of document numbers, best first: [3, 1, 5, 2, 4]"""


def _unified_prompt(query: str, documents: Sequence[str]) -> str:
    docs_text = "\n\n".join(f"[{i}] {doc}" for i, doc in enumerate(documents, 1))
    return f"""You rank a MIXED set of Arabic and Islamic documents for a search query.
The set contains [BOOK] excerpts, [QURAN] verses and [HADITH] narrations.

Query: "{_sanitize_query(query)}"

Documents:
{docs_text}

Ranking priority:
1. When the query looks up a specific source, that source ranks highest.
2. When the query is a question, documents that answer it rank highest.
3. When the query names a topic, primary sources about it rank highest.

Include every document; only leave one out if it cannot possibly relate to the query.

Return ONLY a JSON array of document numbers, best first: [3, 1, 5, 2, ...]"""


class RerankerOrchestrator:
    """
    Applies a reranking strategy to one corpus or to all corpora together.

    Example:
        >>> orchestrator = RerankerOrchestrator(llm=openrouter, pair_reranker=jina)
        >>> outcome = await orchestrator.rerank(
        ...     query, verses, format_verse_for_reranking, 10, RerankerType.JINA
        ... )
    """

    def __init__(
        self,
        llm: ChatCompleter | None = None,
        pair_reranker: PairReranker | None = None,
        timeouts: dict[RerankerType, float] | None = None,
        unified_timeout: float = UNIFIED_RERANK_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            llm: Chat completion service for LLM strategies
            pair_reranker: Cross-encoder service for the jina strategy
            timeouts: Per-strategy timeout overrides in seconds
            unified_timeout: Timeout for LLM strategies in unified reranking
        """
        self._llm = llm
        self._pair_reranker = pair_reranker
        self._timeouts: dict[RerankerType, float] = {
            RerankerType.JINA: CROSS_ENCODER_TIMEOUT_SECONDS,
            **{strategy: timeout for strategy, (_, timeout) in LLM_RERANKERS.items()},
        }
        if timeouts:
            self._timeouts.update(timeouts)
        self._unified_timeout = unified_timeout

    async def rerank(
        self,
        query: str,
        items: Sequence[ItemT],
        render: Callable[[ItemT], str],
        top_n: int,
        strategy: RerankerType,
    ) -> RerankOutcome[ItemT]:
        """
        Rerank one corpus.

        Args:
            query: Original query
            items: Candidates in fused order
            render: Renders an item as reranker text
            top_n: Number of results to return
            strategy: Reranking strategy

        Returns:
            min(top_n, len(items)) items plus the timeout flag
        """
        items = list(items)
        fallback = items[:top_n]
        timeout = self._timeouts.get(strategy)
        if not items or strategy == RerankerType.NONE or timeout is None:
            return RerankOutcome(fallback)

        documents = [render(item)[:RERANKER_TEXT_LIMIT] for item in items]

        try:
            if strategy == RerankerType.JINA:
                scored = await asyncio.wait_for(
                    self._cross_encoder_scores(query, documents, top_n), timeout
                )
            else:
                prompt = _ranking_prompt(query, documents)
                order = await asyncio.wait_for(
                    self._llm_ranking(prompt, strategy, len(items), timeout), timeout
                )
                scored = None if order is None else {i: None for i in order}
        except asyncio.TimeoutError:
            logger.warning("Reranker %s timed out after %.1fs, using original order", strategy.value, timeout)
            return RerankOutcome(fallback, timed_out=True)
        except Exception as e:
            logger.warning("Reranker %s failed, using original order: %s", strategy.value, e)
            return RerankOutcome(fallback)

        if scored is None:
            return RerankOutcome(fallback)

        results: list[ItemT] = []
        for rank, index in enumerate(_pad(list(scored), len(items), top_n), 1):
            item = items[index]
            if index in scored:
                score = scored[index]
                item = item.model_copy(
                    update={"rerank_score": score if score is not None else 1 - rank / 100}
                )
            results.append(item)

        logger.debug("Reranked %d -> %d items with %s", len(items), len(results), strategy.value)
        return RerankOutcome(results)

    async def rerank_unified(
        self,
        query: str,
        passages: Sequence[Passage],
        verses: Sequence[Verse],
        narrations: Sequence[Narration],
        limits: CorpusLimits,
        strategy: RerankerType,
        book_metadata: dict[str, BookMetadata] | None = None,
    ) -> UnifiedRerankOutcome:
        """
        Rerank all corpora in one service call.

        Each corpus contributes at most its limit as candidates; the ranked
        list is split back into per-corpus lists capped at the same limits.
        LLM-ranked items are scored 1 - rank / 100.

        Args:
            query: Original query
            passages: Merged passages
            verses: Merged verses
            narrations: Merged narrations
            limits: Per-corpus caps
            strategy: Reranking strategy
            book_metadata: Titles and authors for rendering passages

        Returns:
            Per-corpus lists plus the timeout flag
        """

        def fallback(timed_out: bool = False) -> UnifiedRerankOutcome:
            return UnifiedRerankOutcome(
                passages=list(passages[: limits.passages]),
                verses=list(verses[: limits.verses]),
                narrations=list(narrations[: limits.narrations]),
                timed_out=timed_out,
            )

        if strategy == RerankerType.NONE:
            return fallback()

        candidates = self.build_candidates(passages, verses, narrations, limits, book_metadata or {})
        if len(candidates) < MIN_UNIFIED_RERANK_CANDIDATES:
            return fallback()

        documents = [c.rendered_text[:UNIFIED_RERANKER_TEXT_LIMIT] for c in candidates]
        total = limits.passages + limits.verses + limits.narrations
        timeout = (
            self._timeouts[RerankerType.JINA]
            if strategy == RerankerType.JINA
            else self._unified_timeout
        )

        try:
            if strategy == RerankerType.JINA:
                scored = await asyncio.wait_for(
                    self._cross_encoder_scores(query, documents, total), timeout
                )
            else:
                prompt = _unified_prompt(query, documents)
                order = await asyncio.wait_for(
                    self._llm_ranking(prompt, strategy, len(candidates), timeout), timeout
                )
                scored = None if order is None else {i: None for i in order}
        except asyncio.TimeoutError:
            logger.warning("Unified rerank (%s) timed out after %.1fs, using fused order", strategy.value, timeout)
            return fallback(timed_out=True)
        except Exception as e:
            logger.warning("Unified rerank (%s) failed, using fused order: %s", strategy.value, e)
            return fallback()

        if scored is None:
            return fallback()

        return self._split(candidates, scored, limits)

    @staticmethod
    def build_candidates(
        passages: Sequence[Passage],
        verses: Sequence[Verse],
        narrations: Sequence[Narration],
        limits: CorpusLimits,
        book_metadata: dict[str, BookMetadata],
    ) -> list[RerankCandidate]:
        """Flatten capped per-corpus lists into tagged reranker candidates."""
        candidates: list[RerankCandidate] = []
        for i, passage in enumerate(passages[: limits.passages]):
            candidates.append(
                PassageCandidate(
                    source_index=i,
                    rendered_text=format_passage_for_reranking(
                        passage, book_metadata.get(passage.book_id), UNIFIED_RERANKER_TEXT_LIMIT
                    ),
                    original_score=passage.semantic_score or passage.fused_score or 0.0,
                    item=passage,
                )
            )
        for i, verse in enumerate(verses[: limits.verses]):
            candidates.append(
                VerseCandidate(
                    source_index=i,
                    rendered_text=format_verse_for_reranking(verse, UNIFIED_RERANKER_TEXT_LIMIT),
                    original_score=verse.semantic_score or verse.final_score,
                    item=verse,
                )
            )
        for i, narration in enumerate(narrations[: limits.narrations]):
            candidates.append(
                NarrationCandidate(
                    source_index=i,
                    rendered_text=format_narration_for_reranking(narration, UNIFIED_RERANKER_TEXT_LIMIT),
                    original_score=narration.semantic_score or narration.final_score,
                    item=narration,
                )
            )
        return candidates

    @staticmethod
    def _split(
        candidates: Sequence[RerankCandidate],
        scored: dict[int, float | None],
        limits: CorpusLimits,
    ) -> UnifiedRerankOutcome:
        buckets: dict[Corpus, list] = {corpus: [] for corpus in Corpus}
        taken: set[int] = set()

        for index, score in scored.items():
            candidate = candidates[index]
            bucket = buckets[candidate.corpus]
            if len(bucket) >= limits.for_corpus(candidate.corpus):
                continue
            rank = sum(len(b) for b in buckets.values()) + 1
            bucket.append(
                candidate.item.model_copy(
                    update={"rerank_score": score if score is not None else 1 - rank / 100}
                )
            )
            taken.add(index)

        # Candidates the service left out keep their original order
        for index, candidate in enumerate(candidates):
            bucket = buckets[candidate.corpus]
            if index not in taken and len(bucket) < limits.for_corpus(candidate.corpus):
                bucket.append(candidate.item)

        return UnifiedRerankOutcome(
            passages=buckets[Corpus.PASSAGE],
            verses=buckets[Corpus.VERSE],
            narrations=buckets[Corpus.NARRATION],
        )

    async def _cross_encoder_scores(
        self,
        query: str,
        documents: list[str],
        top_n: int,
    ) -> dict[int, float | None] | None:
        if self._pair_reranker is None:
            logger.warning("Cross-encoder reranking requested but no reranker is configured")
            return None

        scores = await self._pair_reranker.rerank(query, documents, top_n)
        scored: dict[int, float | None] = {}
        for entry in scores:
            if 0 <= entry.index < len(documents) and entry.index not in scored:
                scored[entry.index] = entry.score
        return scored or None

    async def _llm_ranking(
        self,
        prompt: str,
        strategy: RerankerType,
        count: int,
        timeout: float,
    ) -> list[int] | None:
        if self._llm is None:
            logger.warning("LLM reranking requested but no completion service is configured")
            return None

        model = llm_model_for(strategy)
        content = await self._llm.complete(prompt, model, timeout_seconds=timeout, temperature=0.0)
        if content is None:
            return None

        order = parse_ranking(content, count)
        if order is None:
            logger.warning("Reranker %s returned an unparseable ranking, using original order", model)
        return order
