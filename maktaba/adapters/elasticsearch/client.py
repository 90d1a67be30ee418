"""
Elasticsearch Lexical Index - BM25 search over the Arabic text indices.

Features:
- Exact phrase matching for quoted phrases
- Optional fuzzy matching for free terms
- Highlighted fragments returned in the payload
- Index documents mapped to the camelCase payloads the search domain reads
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from maktaba.config.errors import BackendError, IndexUnavailableError
from maktaba.domains.search.models import Corpus, SearchHit
from maktaba.domains.search.query_utils import parse_search_query

logger = logging.getLogger(__name__)

__all__ = ["ElasticsearchLexicalIndex", "IndexLayout", "build_query", "DEFAULT_LAYOUTS"]

SEARCH_FIELD = "text_searchable"
EXACT_FIELD = "text_searchable.exact"
HIGHLIGHT_PRE_TAG = "<mark>"
HIGHLIGHT_POST_TAG = "</mark>"


def _page_payload(source: dict[str, Any], highlight: str | None) -> dict[str, Any]:
    return {
        "bookId": str(source.get("book_id", "")),
        "pageNumber": source.get("page_number"),
        "volumeNumber": source.get("volume_number"),
        "textSnippet": source.get("content_plain") or "",
        "highlightedSnippet": highlight,
    }


def _ayah_payload(source: dict[str, Any], highlight: str | None) -> dict[str, Any]:
    return {
        "surahNumber": source.get("surah_number"),
        "ayahNumber": source.get("ayah_number"),
        "surahNameArabic": source.get("surah_name_arabic"),
        "surahNameEnglish": source.get("surah_name_english"),
        "text": source.get("text_uthmani") or source.get("text_plain") or "",
        "highlightedText": highlight,
        "juzNumber": source.get("juz_number"),
        "pageNumber": source.get("page_number"),
    }


def _hadith_payload(source: dict[str, Any], highlight: str | None) -> dict[str, Any]:
    book_id = source.get("book_id")
    return {
        "collectionSlug": source.get("collection_slug"),
        "hadithNumber": str(source.get("hadith_number", "")),
        "bookId": str(book_id) if book_id is not None else None,
        "collectionNameArabic": source.get("collection_name_arabic"),
        "collectionNameEnglish": source.get("collection_name_english"),
        "bookNumber": source.get("book_number"),
        "bookNameArabic": source.get("book_name_arabic"),
        "bookNameEnglish": source.get("book_name_english"),
        "text": source.get("text_arabic") or source.get("text_plain") or "",
        "highlightedText": highlight,
        "chapterArabic": source.get("chapter_arabic"),
        "chapterEnglish": source.get("chapter_english"),
    }


@dataclass(frozen=True)
class IndexLayout:
    """
    How one corpus is stored in Elasticsearch.

    Attributes:
        index: Index name
        to_payload: Maps (_source, highlight) to a domain payload
        filter_fields: Maps payload filter keys to index fields
    """

    index: str
    to_payload: Callable[[dict[str, Any], str | None], dict[str, Any]]
    filter_fields: dict[str, str]


DEFAULT_LAYOUTS: dict[Corpus, IndexLayout] = {
    Corpus.PASSAGE: IndexLayout("arabic_pages", _page_payload, {"bookId": "book_id"}),
    Corpus.VERSE: IndexLayout("arabic_ayahs", _ayah_payload, {}),
    Corpus.NARRATION: IndexLayout(
        "arabic_hadiths", _hadith_payload, {"collectionSlug": "collection_slug"}
    ),
}


def build_query(
    query: str,
    limit: int,
    fuzzy: bool = True,
    filters: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """
    Build the search body for a raw query.

    Quoted phrases must match exactly on the unstemmed field. Free terms
    are required to match; with fuzzy enabled they tolerate small typos.
    """
    parsed = parse_search_query(query)
    must: list[dict[str, Any]] = [
        {"match_phrase": {EXACT_FIELD: phrase}} for phrase in parsed.phrases
    ]
    if parsed.terms:
        multi_match: dict[str, Any] = {
            "query": " ".join(parsed.terms),
            "fields": [SEARCH_FIELD, f"{EXACT_FIELD}^2"],
            "operator": "and",
        }
        if fuzzy:
            multi_match["fuzziness"] = "AUTO"
            multi_match["prefix_length"] = 1
        must.append({"multi_match": multi_match})

    return {
        "size": limit,
        "query": {"bool": {"must": must, "filter": filters or []}},
        "highlight": {
            "pre_tags": [HIGHLIGHT_PRE_TAG],
            "post_tags": [HIGHLIGHT_POST_TAG],
            "fields": {SEARCH_FIELD: {"number_of_fragments": 0}},
        },
    }


class ElasticsearchLexicalIndex:
    """
    Lexical search against Elasticsearch over its REST API.

    Example:
        >>> index = ElasticsearchLexicalIndex("http://localhost:9200", password="secret")
        >>> hits = await index.search(Corpus.PASSAGE, "الصبر", limit=50)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:9200",
        username: str = "elastic",
        password: str = "",
        timeout: float = 10.0,
        layouts: dict[Corpus, IndexLayout] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize index client.

        Args:
            base_url: Elasticsearch URL
            username: Basic auth user
            password: Basic auth password
            timeout: Request timeout in seconds
            layouts: Per-corpus index layouts
            transport: Custom HTTP transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._auth = httpx.BasicAuth(username, password) if password else None
        self._layouts = layouts or DEFAULT_LAYOUTS
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=self._auth,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _filters(self, layout: IndexLayout, filters: dict[str, Any] | None) -> list[dict[str, Any]]:
        clauses = []
        for key, value in (filters or {}).items():
            field = layout.filter_fields.get(key)
            if field is None:
                logger.debug("Ignoring unsupported filter %s for %s", key, layout.index)
                continue
            if isinstance(value, (list, tuple, set)):
                clauses.append({"terms": {field: list(value)}})
            else:
                clauses.append({"term": {field: value}})
        return clauses

    async def search(
        self,
        corpus: Corpus,
        query: str,
        limit: int,
        fuzzy: bool = True,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        """
        Search one corpus index.

        Returns:
            Hits with raw BM25 scores, best first

        Raises:
            IndexUnavailableError: Index does not exist
            BackendError: Any other Elasticsearch error
        """
        layout = self._layouts[corpus]
        body = build_query(query, limit, fuzzy, self._filters(layout, filters))
        if not body["query"]["bool"]["must"]:
            return []

        client = await self._get_client()
        response = await client.post(f"/{layout.index}/_search", json=body)

        if response.status_code == 404:
            raise IndexUnavailableError(
                f"Elasticsearch index '{layout.index}' not found",
                {"index": layout.index, "corpus": corpus.value},
            )
        if response.status_code != 200:
            logger.error("Elasticsearch error: %s %s", response.status_code, response.text[:200])
            raise BackendError(
                f"Elasticsearch search failed: {response.status_code}", {"index": layout.index}
            )

        hits = []
        for hit in response.json().get("hits", {}).get("hits", []):
            fragments = hit.get("highlight", {}).get(SEARCH_FIELD) or []
            highlight = fragments[0] if fragments else None
            hits.append(
                SearchHit(
                    payload=layout.to_payload(hit.get("_source", {}), highlight),
                    score=hit.get("_score") or 0.0,
                )
            )

        logger.debug("Elasticsearch %s: %d hits for %r", layout.index, len(hits), query[:50])
        return hits

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
