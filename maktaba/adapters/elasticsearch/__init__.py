"""Elasticsearch adapter - Lexical (BM25) search."""

from .client import DEFAULT_LAYOUTS, ElasticsearchLexicalIndex, IndexLayout, build_query

__all__ = ["ElasticsearchLexicalIndex", "IndexLayout", "DEFAULT_LAYOUTS", "build_query"]
