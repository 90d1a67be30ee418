"""
Fusion - Combine semantic and keyword result lists.

- Lexical score normalization (unbounded BM25 -> [0, 1))
- Reciprocal Rank Fusion score (tiebreak)
- Weighted per-corpus fusion of semantic and keyword lists
- Weighted merge of result sets from several expanded queries
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Sequence

from .config import BM25_NORM_K, KEYWORD_WEIGHT, RRF_K, SEMANTIC_WEIGHT
from .models import ItemT, MatchType, RetrievalItem, WeightedResultSet

logger = logging.getLogger(__name__)

__all__ = [
    "match_type",
    "merge_weighted_results",
    "merge_with_rrf",
    "normalize_lexical_score",
    "rrf_score",
]

# Fields owned by the semantic side when both sides found an item
_SEMANTIC_FIELDS = frozenset({"semantic_rank", "semantic_score", "matched_queries"})


def normalize_lexical_score(raw: float | None, k: float = BM25_NORM_K) -> float:
    """
    Map an unbounded lexical score into [0, 1).

    Monotonic in raw, equal to 0.5 at raw == k, and 0 for non-positive input.
    """
    if raw is None or raw <= 0:
        return 0.0
    return raw / (raw + k)


def rrf_score(ranks: Iterable[int | None], k: int = RRF_K) -> float:
    """Reciprocal Rank Fusion: sum of 1 / (k + rank) over present ranks."""
    return sum(1.0 / (k + rank) for rank in ranks if rank is not None)


def match_type(item: RetrievalItem) -> MatchType:
    """Which retrieval method(s) found the item."""
    if item.semantic_rank is not None and item.keyword_rank is not None:
        return MatchType.BOTH
    if item.semantic_rank is not None:
        return MatchType.SEMANTIC
    return MatchType.KEYWORD


def _combine(semantic: ItemT, keyword: ItemT) -> ItemT:
    """Merge one item found by both methods; keyword-side display fields win."""
    data = semantic.model_dump()
    for name, value in keyword.model_dump().items():
        if value is not None and name not in _SEMANTIC_FIELDS:
            data[name] = value
    return type(semantic).model_validate(data)


def merge_with_rrf(
    semantic: Sequence[ItemT],
    keyword: Sequence[ItemT],
    key: Callable[[ItemT], Hashable],
    on_merge: Callable[[ItemT, ItemT], ItemT] | None = None,
    *,
    semantic_weight: float = SEMANTIC_WEIGHT,
    keyword_weight: float = KEYWORD_WEIGHT,
    rrf_k: int = RRF_K,
    bm25_k: float = BM25_NORM_K,
) -> list[ItemT]:
    """
    Fuse semantic and keyword results for one corpus.

    Items found by one method keep that method's score (normalized for
    keyword). Items found by both get
    semantic_weight * semantic + keyword_weight * normalized_keyword.
    RRF only breaks ties.

    Args:
        semantic: Semantic results (semantic_rank set)
        keyword: Keyword results (keyword_rank set)
        key: Identity key extractor
        on_merge: Optional hook called as on_merge(combined, keyword_item)
            for items present in both lists; returns the item to keep
        semantic_weight: Weight of the semantic score
        keyword_weight: Weight of the normalized keyword score
        rrf_k: RRF constant
        bm25_k: Lexical normalization constant

    Returns:
        Deduplicated items sorted by fused_score desc, rrf_score desc
    """
    merged: dict[Hashable, ItemT] = {}

    for item in semantic:
        merged.setdefault(key(item), item)

    for item in keyword:
        item_key = key(item)
        existing = merged.get(item_key)
        if existing is None:
            merged[item_key] = item
        elif existing.semantic_rank is not None and existing.keyword_rank is None:
            combined = _combine(existing, item)
            merged[item_key] = on_merge(combined, item) if on_merge else combined

    results: list[ItemT] = []
    for item in merged.values():
        has_semantic = item.semantic_rank is not None
        has_keyword = item.keyword_rank is not None
        semantic_score = item.semantic_score or 0.0
        keyword_score = normalize_lexical_score(item.bm25_score, bm25_k)

        if has_semantic and has_keyword:
            fused = semantic_weight * semantic_score + keyword_weight * keyword_score
        elif has_semantic:
            fused = semantic_score
        else:
            fused = keyword_score

        results.append(
            item.model_copy(
                update={
                    "fused_score": fused,
                    "rrf_score": rrf_score((item.semantic_rank, item.keyword_rank), rrf_k),
                }
            )
        )

    results.sort(key=lambda r: (r.fused_score, r.rrf_score), reverse=True)
    return results


def _native_score(item: RetrievalItem) -> float:
    return item.fused_score if item.fused_score is not None else item.final_score


def merge_weighted_results(
    sets: Sequence[WeightedResultSet[ItemT]],
    key: Callable[[ItemT], Hashable],
    carry_payload: Callable[[ItemT, ItemT], ItemT] | None = None,
) -> list[ItemT]:
    """
    Merge per-query result sets into one deduplicated list.

    Each occurrence is scored weight * native score. The occurrence with the
    highest weighted score is kept; carry_payload(kept, other) may copy richer
    display data (such as a highlight) from the discarded occurrence.
    `matched_queries` records the index of every set the item appeared in.

    Args:
        sets: Result sets in expansion order (original query first)
        key: Identity key extractor
        carry_payload: Optional payload carry-over hook

    Returns:
        Items sorted by weighted score desc; ties keep first-seen order
    """
    entries: dict[Hashable, tuple[ItemT, float]] = {}

    for index, result_set in enumerate(sets):
        for item in result_set.results:
            item_key = key(item)
            weighted = result_set.weight * _native_score(item)
            current = entries.get(item_key)

            if current is None:
                entries[item_key] = (item.model_copy(update={"matched_queries": [index]}), weighted)
                continue

            best, best_weighted = current
            queries = best.matched_queries
            if index not in queries:
                queries = [*queries, index]

            if weighted > best_weighted:
                kept, other, kept_weighted = item, best, weighted
            else:
                kept, other, kept_weighted = best, item, best_weighted

            if carry_payload is not None:
                kept = carry_payload(kept, other)
            entries[item_key] = (kept.model_copy(update={"matched_queries": queries}), kept_weighted)

    ordered = sorted(entries.values(), key=lambda entry: entry[1], reverse=True)
    logger.debug(
        "Merged %d result sets (%d items) into %d unique items",
        len(sets),
        sum(len(s.results) for s in sets),
        len(ordered),
    )
    return [item for item, _ in ordered]
