"""Shared fixtures for search orchestration tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from .models import Corpus, SearchHit


def passage_hit(book_id: str, page: int, score: float, **payload: Any) -> SearchHit:
    return SearchHit(
        payload={"bookId": book_id, "pageNumber": page, "textSnippet": f"نص الصفحة {page}", **payload},
        score=score,
    )


def verse_hit(surah: int, ayah: int, score: float, **payload: Any) -> SearchHit:
    return SearchHit(
        payload={
            "surahNumber": surah,
            "ayahNumber": ayah,
            "surahNameArabic": "البقرة",
            "surahNameEnglish": "Al-Baqarah",
            "text": f"آية {ayah}",
            **payload,
        },
        score=score,
    )


def narration_hit(slug: str, number: str, score: float, **payload: Any) -> SearchHit:
    return SearchHit(
        payload={"collectionSlug": slug, "hadithNumber": number, "text": f"حديث {number}", **payload},
        score=score,
    )


class FakeBackend:
    """Returns canned hits per corpus and records every call."""

    def __init__(self) -> None:
        self.hits: dict[Corpus, list[SearchHit]] = {corpus: [] for corpus in Corpus}
        self.errors: dict[Corpus, Exception] = {}
        self.calls: list[dict[str, Any]] = []
        self.search = AsyncMock(side_effect=self._search)

    async def _search(self, corpus: Corpus, query: Any, limit: int, *args: Any) -> list[SearchHit]:
        self.calls.append({"corpus": corpus, "query": query, "limit": limit, "args": args})
        if corpus in self.errors:
            raise self.errors[corpus]
        return self.hits[corpus][:limit]

    def corpora_called(self) -> set[Corpus]:
        return {call["corpus"] for call in self.calls}


@pytest.fixture
def vector() -> FakeBackend:
    backend = FakeBackend()
    backend.hits[Corpus.PASSAGE] = [passage_hit("10", 1, 0.9), passage_hit("11", 5, 0.8)]
    backend.hits[Corpus.VERSE] = [verse_hit(2, 153, 0.85)]
    backend.hits[Corpus.NARRATION] = [narration_hit("bukhari", "1", 0.8)]
    return backend


@pytest.fixture
def lexical() -> FakeBackend:
    backend = FakeBackend()
    backend.hits[Corpus.PASSAGE] = [
        passage_hit("10", 1, 12.0, highlightedSnippet="<em>الصبر</em> نص"),
        passage_hit("12", 7, 6.0),
    ]
    backend.hits[Corpus.VERSE] = [verse_hit(2, 153, 9.0), verse_hit(3, 200, 5.0)]
    backend.hits[Corpus.NARRATION] = [
        narration_hit("muslim", "2999", 7.0),
        narration_hit("suyuti", "14", 6.5),
    ]
    return backend


@pytest.fixture
def embedder() -> AsyncMock:
    mock = AsyncMock()
    mock.embed_query.return_value = [0.1] * 8
    return mock


@pytest.fixture
def mock_llm() -> AsyncMock:
    mock = AsyncMock()
    mock.complete.return_value = None
    return mock


@pytest.fixture
def mock_jina() -> AsyncMock:
    mock = AsyncMock()
    mock.rerank.return_value = []
    return mock
