"""
Jina Reranker - Cross-encoder relevance scores over HTTP.
"""

from __future__ import annotations

import logging

import httpx

from maktaba.config.errors import RerankerError
from maktaba.domains.search.models import RerankScore

logger = logging.getLogger(__name__)

__all__ = ["JinaReranker"]


class JinaReranker:
    """
    Jina cross-encoder reranking client.

    Example:
        >>> reranker = JinaReranker(api_key="jina_...")
        >>> scores = await reranker.rerank("الصبر", ["doc one", "doc two"], top_n=2)
        >>> scores[0].index, scores[0].score
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "jina-reranker-v3",
        url: str = "https://api.jina.ai/v1/rerank",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize reranker.

        Args:
            api_key: Jina API key
            model: Reranker model ID
            url: Rerank endpoint
            timeout: Request timeout in seconds
            transport: Custom HTTP transport (tests)
        """
        self.model = model
        self.url = url
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def rerank(self, query: str, documents: list[str], top_n: int) -> list[RerankScore]:
        """
        Score documents against the query.

        Returns:
            Scores best first; indexes refer to positions in `documents`

        Raises:
            TimeoutError: Request timed out
            RerankerError: Missing key, HTTP error or malformed response
        """
        if not self._api_key:
            raise RerankerError("Jina API key is not configured")
        if not documents:
            return []

        client = await self._get_client()
        try:
            response = await client.post(
                self.url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={
                    "model": self.model,
                    "query": query,
                    "documents": documents,
                    "top_n": min(top_n, len(documents)),
                    "return_documents": False,
                },
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Jina rerank timed out after {self.timeout}s") from e

        if response.status_code != 200:
            logger.error("Jina error: %s %s", response.status_code, response.text[:200])
            raise RerankerError(f"Jina API error: {response.status_code}", {"model": self.model})

        try:
            results = response.json()["results"]
            scores = [
                RerankScore(index=r["index"], score=r["relevance_score"]) for r in results
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise RerankerError("Malformed Jina response", {"model": self.model}) from e

        logger.debug("Jina reranked %d documents", len(documents))
        return scores

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
