"""Qdrant adapter - Vector index search."""

from .client import QdrantVectorIndex, build_filter

__all__ = ["QdrantVectorIndex", "build_filter"]
