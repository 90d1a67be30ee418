"""Jina adapter - Cross-encoder reranking."""

from .client import JinaReranker

__all__ = ["JinaReranker"]
