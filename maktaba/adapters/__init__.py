"""
Adapters - External service integrations.

All external API calls are wrapped here to isolate domains from third-party changes.
"""

from .elasticsearch import ElasticsearchLexicalIndex
from .embeddings import LocalEmbedder, OpenRouterEmbedder
from .jina import JinaReranker
from .llm import OpenRouterLLMService
from .qdrant import QdrantVectorIndex
from .sqlite import SQLiteRepository

__all__ = [
    # Retrieval backends
    "QdrantVectorIndex",
    "ElasticsearchLexicalIndex",
    # Model services
    "OpenRouterEmbedder",
    "LocalEmbedder",
    "OpenRouterLLMService",
    "JinaReranker",
    # Storage
    "SQLiteRepository",
]
