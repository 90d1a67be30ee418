"""
Query Embedders - Remote (OpenRouter) and local (sentence-transformers).

Both produce the dense query vectors matched against the Qdrant
collections; the remote model must be the one the collections were built with.
"""

from __future__ import annotations

import asyncio
import logging
import threading

import httpx
from sentence_transformers import SentenceTransformer

from maktaba.config.errors import EmbeddingError

logger = logging.getLogger(__name__)

__all__ = ["LocalEmbedder", "OpenRouterEmbedder"]


class OpenRouterEmbedder:
    """
    Query embeddings from the OpenRouter embeddings endpoint.

    Example:
        >>> embedder = OpenRouterEmbedder(api_key="sk-or-...")
        >>> vector = await embedder.embed_query("الصبر على البلاء")
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "google/gemini-embedding-001",
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize embedder.

        Args:
            api_key: OpenRouter API key
            model: Embedding model ID
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Custom HTTP transport (tests)
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def embed_query(self, text: str) -> list[float]:
        """
        Embed a single query.

        Raises:
            EmbeddingError: Missing key, HTTP error or malformed response
        """
        if not self._api_key:
            raise EmbeddingError("OpenRouter API key is not configured")

        client = await self._get_client()
        response = await client.post(
            "/embeddings",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={"model": self.model, "input": text},
        )

        if response.status_code != 200:
            logger.error("Embedding error: %s %s", response.status_code, response.text[:200])
            raise EmbeddingError(
                f"Embedding API error: {response.status_code}", {"model": self.model}
            )

        data = response.json().get("data") or []
        if not data or not data[0].get("embedding"):
            raise EmbeddingError("Embedding response contained no vector", {"model": self.model})
        return data[0]["embedding"]

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class LocalEmbedder:
    """
    In-process query embeddings with sentence-transformers.

    The model loads once on first use, even when several queries arrive
    together; encoding runs in a worker thread so the event loop is not blocked.
    """

    def __init__(self, model_name: str = "BAAI/bge-m3") -> None:
        self.model_name = model_name
        self._model: SentenceTransformer | None = None
        self._lock = threading.Lock()

    def _get_model(self) -> SentenceTransformer:
        if self._model is None:
            with self._lock:
                if self._model is None:
                    logger.info("Loading embedding model %s", self.model_name)
                    self._model = SentenceTransformer(self.model_name)
        return self._model

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query with a normalized vector."""
        model = await asyncio.to_thread(self._get_model)
        vector = await asyncio.to_thread(model.encode, text, normalize_embeddings=True)
        return vector.tolist()
