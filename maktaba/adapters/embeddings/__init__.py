"""Embeddings adapter - Query vectors for semantic search."""

from .client import LocalEmbedder, OpenRouterEmbedder

__all__ = ["OpenRouterEmbedder", "LocalEmbedder"]
