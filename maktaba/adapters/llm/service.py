"""
LLM Service - Chat completions through OpenRouter.

Used for query expansion and LLM reranking. Failures never raise:
callers get None and fall back to their non-LLM behavior.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from maktaba.config.errors import LLMError

logger = logging.getLogger(__name__)

__all__ = ["OpenRouterLLMService", "extract_content"]


def extract_content(data: dict[str, Any]) -> str:
    """
    Pull the message text out of a chat completion response.

    Raises:
        LLMError: Response has no message content
    """
    choices = data.get("choices") or []
    if not choices:
        raise LLMError("Completion response has no choices")
    content = (choices[0].get("message") or {}).get("content")
    if not isinstance(content, str) or not content.strip():
        raise LLMError("Completion response has no content")
    return content


class OpenRouterLLMService:
    """
    OpenRouter chat completion client.

    Example:
        >>> llm = OpenRouterLLMService(api_key="sk-or-...")
        >>> text = await llm.complete("Rank these...", "openai/gpt-oss-20b", timeout_seconds=20)
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://openrouter.ai/api/v1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize LLM service.

        Args:
            api_key: OpenRouter API key
            base_url: API base URL
            transport: Custom HTTP transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, transport=self._transport)
        return self._client

    async def complete(
        self,
        prompt: str,
        model: str,
        timeout_seconds: float,
        temperature: float = 0.0,
    ) -> str | None:
        """
        Generate a completion for a single user prompt.

        Args:
            prompt: User prompt
            model: OpenRouter model ID
            timeout_seconds: Request timeout
            temperature: Sampling temperature

        Returns:
            Completion text, or None on any failure
        """
        try:
            return await self._complete(prompt, model, timeout_seconds, temperature)
        except httpx.TimeoutException:
            logger.warning("LLM %s timed out after %.1fs", model, timeout_seconds)
        except httpx.HTTPError as e:
            logger.warning("LLM %s request failed: %s", model, e)
        except LLMError as e:
            logger.warning("LLM %s: %s", model, e.message)
        except ValueError as e:
            logger.warning("LLM %s returned invalid JSON: %s", model, e)
        return None

    async def _complete(
        self,
        prompt: str,
        model: str,
        timeout_seconds: float,
        temperature: float,
    ) -> str:
        if not self._api_key:
            raise LLMError("OpenRouter API key is not configured")

        client = await self._get_client()
        response = await client.post(
            "/chat/completions",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": temperature,
            },
            timeout=timeout_seconds,
        )

        if response.status_code == 429:
            raise LLMError("OpenRouter rate limit exceeded", {"model": model})
        if response.status_code != 200:
            raise LLMError(f"OpenRouter API error: {response.status_code}", {"model": model})

        return extract_content(response.json())

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
