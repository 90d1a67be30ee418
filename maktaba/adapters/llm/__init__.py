"""LLM adapter - Chat completions for expansion and reranking."""

from .service import OpenRouterLLMService, extract_content

__all__ = ["OpenRouterLLMService", "extract_content"]
