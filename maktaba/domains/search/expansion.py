"""
Query Expansion - Alternative phrasings of a query via an LLM.

The original query is always the first expanded query. Successful
expansions are cached by verbatim query string; fallbacks are not.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from .cache import TTLCache
from .config import (
    EXPANDED_QUERY_WEIGHT,
    EXPANSION_COUNT,
    EXPANSION_TIMEOUT_SECONDS,
    llm_model_for,
)
from .contracts import ChatCompleter
from .models import ExpandedQuery, ExpansionResult, RerankerType

logger = logging.getLogger(__name__)

__all__ = ["QueryExpansionService", "parse_expansions"]

_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_EXPANSION_TEMPERATURE = 0.3


def _expansion_prompt(query: str) -> str:
    safe_query = re.sub(r"[\r\n]+", " ", query.replace('"', "'"))[:500]
    return f"""You expand search queries for an Arabic and Islamic text search engine covering the Quran, hadith collections and classical books.

User query: "{safe_query}"

Write {EXPANSION_COUNT} alternative search queries that help find what the user is looking for. Useful directions:
- If the query is a question, phrase queries that would find the answer.
- Arabic equivalents, root variations and related terminology.
- The kinds of sources that would discuss the topic.
- Arabic terms for an English query, and English terms for an Arabic query.

Keep each query to 2-5 words. Do not repeat the original query.

Return ONLY a JSON array of strings:
["query 1", "query 2", "query 3", "query 4"]"""


def parse_expansions(content: str, query: str) -> list[ExpandedQuery] | None:
    """
    Parse the alternates out of an expansion response.

    Entries may be strings or objects with a "query" field. Empty entries and
    entries identical to the original are skipped.

    Returns:
        Original query followed by the alternates, or None if nothing usable
    """
    match = _ARRAY_RE.search(content)
    if match is None:
        return None
    try:
        raw: Any = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(raw, list):
        return None

    queries = [ExpandedQuery(query=query, weight=1.0, reason="Original query")]
    for i, entry in enumerate(raw[:EXPANSION_COUNT]):
        text = entry.get("query") if isinstance(entry, dict) else entry
        if not isinstance(text, str):
            continue
        text = text.strip()
        if text and text != query.strip():
            queries.append(
                ExpandedQuery(
                    query=text,
                    weight=EXPANDED_QUERY_WEIGHT,
                    reason=f"Expanded query {i + 1}",
                )
            )

    return queries if len(queries) > 1 else None


class QueryExpansionService:
    """
    LLM-backed query expansion with a shared cache.

    Example:
        >>> service = QueryExpansionService(llm, TTLCache(max_size=1000, ttl_seconds=3600))
        >>> result = await service.expand("ما حكم الصيام في السفر")
        >>> [q.query for q in result.queries]
    """

    def __init__(
        self,
        llm: ChatCompleter,
        cache: TTLCache[str, list[ExpandedQuery]],
        timeout_seconds: float = EXPANSION_TIMEOUT_SECONDS,
    ) -> None:
        self._llm = llm
        self._cache = cache
        self._timeout = timeout_seconds

    async def expand(
        self,
        query: str,
        model: RerankerType = RerankerType.GEMINI_FLASH,
    ) -> ExpansionResult:
        """
        Expand a query into alternates.

        Args:
            query: Original query, used verbatim as the cache key
            model: LLM strategy whose model performs the expansion

        Returns:
            Expanded queries (original first) and whether they were cached
        """
        cached = self._cache.get(query)
        if cached is not None:
            logger.debug("Expansion cache hit for %r", query[:50])
            return ExpansionResult(queries=list(cached), cached=True)

        fallback = ExpansionResult(
            queries=[ExpandedQuery(query=query, weight=1.0, reason="Original query")]
        )
        model_id = llm_model_for(model)

        try:
            content = await asyncio.wait_for(
                self._llm.complete(
                    _expansion_prompt(query),
                    model_id,
                    timeout_seconds=self._timeout,
                    temperature=_EXPANSION_TEMPERATURE,
                ),
                self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Query expansion with %s timed out after %.1fs", model_id, self._timeout)
            return fallback
        except Exception as e:
            logger.warning("Query expansion with %s failed: %s", model_id, e)
            return fallback

        if content is None:
            return fallback

        queries = parse_expansions(content, query)
        if queries is None:
            logger.warning("Query expansion with %s returned no usable queries", model_id)
            return fallback

        self._cache.set(query, queries)
        logger.info("Expanded %r into %d queries", query[:50], len(queries) - 1)
        return ExpansionResult(queries=list(queries))
