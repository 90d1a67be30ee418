"""Tests for per-corpus retrieval and sub-call guards."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from maktaba.config.errors import BackendError, IndexUnavailableError

from .conftest import FakeBackend, passage_hit
from .models import Corpus, Narration, Passage
from .query_utils import dynamic_cutoff
from .retrieval import (
    build_retrievers,
    corpus_filters,
    drop_excluded_collections,
    embed_or_none,
    gather_or_cancel,
    run_guarded,
)

# --- Retriever Tests ---


async def test_semantic_search_ranks_hits(
    vector: FakeBackend, lexical: FakeBackend, embedder: AsyncMock
) -> None:
    """Test semantic hits become 1-based ranked items."""
    retriever = build_retrievers(vector, lexical, embedder)[Corpus.PASSAGE]

    items = await retriever.semantic_search("الصبر على البلاء", limit=50, cutoff=0.6)

    assert [(p.book_id, p.semantic_rank, p.semantic_score) for p in items] == [
        ("10", 1, 0.9),
        ("11", 2, 0.8),
    ]
    assert isinstance(items[0], Passage)
    assert items[0].reference_url == "https://app.turath.io/book/10#p-1"
    threshold = vector.calls[0]["args"][0]
    assert threshold == dynamic_cutoff("الصبر على البلاء", 0.6)


async def test_semantic_search_uses_supplied_embedding(
    vector: FakeBackend, lexical: FakeBackend, embedder: AsyncMock
) -> None:
    """Test a precomputed embedding skips the embedder."""
    retriever = build_retrievers(vector, lexical, embedder)[Corpus.VERSE]

    await retriever.semantic_search("الصبر على البلاء", limit=10, cutoff=0.6, embedding=[1.0])

    embedder.embed_query.assert_not_awaited()
    assert vector.calls[0]["query"] == [1.0]


async def test_semantic_search_skips_quoted_query(
    vector: FakeBackend, lexical: FakeBackend, embedder: AsyncMock
) -> None:
    """Test exact-phrase queries never reach the vector backend."""
    retriever = build_retrievers(vector, lexical, embedder)[Corpus.PASSAGE]

    assert await retriever.semantic_search('"الصبر"', limit=10, cutoff=0.6) == []
    vector.search.assert_not_awaited()


async def test_semantic_search_excludes_books(
    vector: FakeBackend, lexical: FakeBackend, embedder: AsyncMock
) -> None:
    """Test excluded books are dropped before ranking."""
    vector.hits[Corpus.PASSAGE] = [passage_hit("2", 1, 0.95), passage_hit("10", 3, 0.9)]
    retriever = build_retrievers(vector, lexical, embedder)[Corpus.PASSAGE]

    items = await retriever.semantic_search("الصبر على البلاء", limit=10, cutoff=0.6)

    assert [(p.book_id, p.semantic_rank) for p in items] == [("10", 1)]


async def test_keyword_search_ranks_hits(
    vector: FakeBackend, lexical: FakeBackend, embedder: AsyncMock
) -> None:
    """Test lexical hits keep raw scores and pass fuzzy and filters through."""
    retriever = build_retrievers(vector, lexical, embedder)[Corpus.NARRATION]

    items = await retriever.keyword_search("عجبا", limit=30, fuzzy=False, filters={"x": 1})

    assert [(n.hadith_number, n.keyword_rank, n.bm25_score) for n in items] == [
        ("2999", 1, 7.0),
        ("14", 2, 6.5),
    ]
    assert lexical.calls[0]["args"] == (False, {"x": 1})


# --- Filter Tests ---


def test_corpus_filters() -> None:
    """Test filters per corpus."""
    assert corpus_filters(Corpus.PASSAGE, book_id="10") == {"bookId": "10"}
    assert corpus_filters(Corpus.NARRATION, hadith_collections=["bukhari"]) == {
        "collectionSlug": ["bukhari"]
    }
    assert corpus_filters(Corpus.VERSE, book_id="10") is None
    assert corpus_filters(Corpus.PASSAGE) is None


def test_drop_excluded_collections() -> None:
    """Test bulk collections are dropped unless requested."""
    narrations = [
        Narration(collection_slug="suyuti", hadith_number="1", keyword_rank=1),
        Narration(collection_slug="muslim", hadith_number="2", keyword_rank=2),
    ]

    assert [n.collection_slug for n in drop_excluded_collections(narrations)] == ["muslim"]
    assert len(drop_excluded_collections(narrations, ["suyuti"])) == 2


# --- Guard Tests ---


async def _fail(error: Exception) -> list[int]:
    raise error


async def _ok() -> list[int]:
    return [1, 2]


async def test_run_guarded_success() -> None:
    """Test results pass through and timing is recorded."""
    timings: dict[str, float] = {}
    assert await run_guarded(_ok(), "keyword", Corpus.VERSE, timings=timings) == [1, 2]
    assert "verse" in timings


async def test_run_guarded_degrades_failures() -> None:
    """Test backend failures become empty results."""
    assert await run_guarded(_fail(BackendError("boom")), "semantic", Corpus.PASSAGE) == []
    assert await run_guarded(_fail(ValueError("bad")), "semantic", query_index=2) == []


async def test_run_guarded_propagates_missing_index() -> None:
    """Test a missing index is not swallowed."""
    with pytest.raises(IndexUnavailableError):
        await run_guarded(_fail(IndexUnavailableError("missing")), "keyword", Corpus.VERSE)


async def test_embed_or_none_normalizes(embedder: AsyncMock) -> None:
    """Test the embedder receives normalized text."""
    assert await embed_or_none(embedder, "إلى") == [0.1] * 8
    embedder.embed_query.assert_awaited_once_with("الي")


async def test_embed_or_none_timeout() -> None:
    """Test slow embedders yield None."""

    async def slow(text: str) -> list[float]:
        await asyncio.sleep(1)
        return [0.0]

    embedder = AsyncMock()
    embedder.embed_query.side_effect = slow
    assert await embed_or_none(embedder, "الصبر", timeout=0.01) is None


async def test_embed_or_none_failure() -> None:
    """Test embedder errors yield None."""
    embedder = AsyncMock()
    embedder.embed_query.side_effect = RuntimeError("down")
    assert await embed_or_none(embedder, "الصبر") is None


async def test_gather_or_cancel_cancels_siblings() -> None:
    """Test a failure cancels the remaining tasks."""
    slow = asyncio.ensure_future(asyncio.sleep(10))
    failing = asyncio.ensure_future(_fail(IndexUnavailableError("missing")))

    with pytest.raises(IndexUnavailableError):
        await gather_or_cancel(slow, failing)

    await asyncio.sleep(0)
    assert slow.cancelled()