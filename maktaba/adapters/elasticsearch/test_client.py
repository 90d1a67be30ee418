"""
Tests for the Elasticsearch lexical index adapter.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from maktaba.config.errors import BackendError, IndexUnavailableError
from maktaba.domains.search.models import Corpus

from .client import ElasticsearchLexicalIndex, build_query


def _index(handler) -> ElasticsearchLexicalIndex:
    return ElasticsearchLexicalIndex(password="secret", transport=httpx.MockTransport(handler))


def _hits(*hits: dict[str, Any]) -> dict[str, Any]:
    return {"hits": {"hits": list(hits)}}


# --- Query Builder Tests ---


def test_build_query_terms_fuzzy() -> None:
    """Test free terms become a fuzzy multi_match."""
    body = build_query("الصبر البلاء", 20, fuzzy=True)

    assert body["size"] == 20
    must = body["query"]["bool"]["must"]
    assert len(must) == 1
    assert must[0]["multi_match"]["query"] == "الصبر البلاء"
    assert must[0]["multi_match"]["fuzziness"] == "AUTO"


def test_build_query_without_fuzzy() -> None:
    """Test fuzziness is omitted when disabled."""
    body = build_query("الصبر", 5, fuzzy=False)
    assert "fuzziness" not in body["query"]["bool"]["must"][0]["multi_match"]


def test_build_query_phrase() -> None:
    """Test quoted phrases become exact phrase matches."""
    body = build_query('"إنما الأعمال بالنيات" عمر', 10)
    must = body["query"]["bool"]["must"]

    assert must[0] == {"match_phrase": {"text_searchable.exact": "إنما الأعمال بالنيات"}}
    assert must[1]["multi_match"]["query"] == "عمر"


def test_build_query_filters() -> None:
    """Test filter clauses are passed through."""
    body = build_query("الصبر", 10, filters=[{"term": {"book_id": "10"}}])
    assert body["query"]["bool"]["filter"] == [{"term": {"book_id": "10"}}]


# --- Search Tests ---


async def test_search_maps_page_hits() -> None:
    """Test page documents map to passage payloads with highlights."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json=_hits(
                {
                    "_score": 12.5,
                    "_source": {"book_id": 10, "page_number": 4, "content_plain": "نص الصفحة"},
                    "highlight": {"text_searchable": ["<mark>نص</mark> الصفحة"]},
                }
            ),
        )

    index = _index(handler)
    hits = await index.search(Corpus.PASSAGE, "نص", 30, filters={"bookId": "10"})

    assert requests[0].url.path == "/arabic_pages/_search"
    body = json.loads(requests[0].content)
    assert body["query"]["bool"]["filter"] == [{"term": {"book_id": "10"}}]
    assert hits[0].score == 12.5
    assert hits[0].payload["bookId"] == "10"
    assert hits[0].payload["pageNumber"] == 4
    assert hits[0].payload["highlightedSnippet"] == "<mark>نص</mark> الصفحة"
    await index.close()


async def test_search_maps_hadith_hits_with_collection_filter() -> None:
    """Test hadith documents map to narration payloads and collection filters use terms."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json=_hits(
                {
                    "_score": 7.0,
                    "_source": {
                        "collection_slug": "muslim",
                        "hadith_number": 2999,
                        "text_arabic": "عجبا لأمر المؤمن",
                        "book_number": 55,
                    },
                }
            ),
        )

    index = _index(handler)
    hits = await index.search(
        Corpus.NARRATION, "عجبا", 30, filters={"collectionSlug": ["muslim", "bukhari"]}
    )

    body = json.loads(requests[0].content)
    assert body["query"]["bool"]["filter"] == [
        {"terms": {"collection_slug": ["muslim", "bukhari"]}}
    ]
    assert hits[0].payload["hadithNumber"] == "2999"
    assert hits[0].payload["highlightedText"] is None


async def test_empty_query_skips_request() -> None:
    """Test a query with no usable terms does not hit the backend."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("unexpected request")

    assert await _index(handler).search(Corpus.VERSE, "?!", 10) == []


async def test_missing_index_raises_unavailable() -> None:
    """Test a 404 signals an uninitialized index."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": {"type": "index_not_found_exception"}})

    with pytest.raises(IndexUnavailableError):
        await _index(handler).search(Corpus.VERSE, "الصبر", 10)


async def test_server_error_raises_backend_error() -> None:
    """Test other errors are backend failures."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(BackendError):
        await _index(handler).search(Corpus.VERSE, "الصبر", 10)
