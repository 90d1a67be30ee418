"""
Tests for query embedders.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Generator
from unittest.mock import MagicMock, patch

import httpx
import numpy as np
import pytest

from maktaba.config.errors import EmbeddingError

from .client import LocalEmbedder, OpenRouterEmbedder

# --- OpenRouter Tests ---


async def test_openrouter_embed_query() -> None:
    """Test the embedding endpoint request and response mapping."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})

    embedder = OpenRouterEmbedder("sk-test", transport=httpx.MockTransport(handler))
    vector = await embedder.embed_query("الصبر")

    assert vector == [0.1, 0.2, 0.3]
    assert requests[0].url.path == "/api/v1/embeddings"
    assert requests[0].headers["Authorization"] == "Bearer sk-test"
    assert json.loads(requests[0].content) == {
        "model": "google/gemini-embedding-001",
        "input": "الصبر",
    }
    await embedder.close()


async def test_openrouter_http_error() -> None:
    """Test HTTP errors raise EmbeddingError."""
    embedder = OpenRouterEmbedder(
        "sk-test", transport=httpx.MockTransport(lambda r: httpx.Response(502))
    )
    with pytest.raises(EmbeddingError):
        await embedder.embed_query("الصبر")


async def test_openrouter_empty_response() -> None:
    """Test a response without vectors raises EmbeddingError."""
    embedder = OpenRouterEmbedder(
        "sk-test", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"data": []}))
    )
    with pytest.raises(EmbeddingError):
        await embedder.embed_query("الصبر")


async def test_openrouter_requires_key() -> None:
    """Test a missing API key fails before any request."""
    with pytest.raises(EmbeddingError):
        await OpenRouterEmbedder(None).embed_query("الصبر")


# --- Local Tests ---


@pytest.fixture
def mock_sentence_transformer() -> Generator[MagicMock, None, None]:
    """Mock the sentence-transformers model class."""
    with patch("maktaba.adapters.embeddings.client.SentenceTransformer") as mock:
        mock.return_value.encode.return_value = np.array([0.5, 0.25], dtype=np.float32)
        yield mock


async def test_local_embed_query(mock_sentence_transformer: MagicMock) -> None:
    """Test local embeddings load the model once and return plain floats."""
    embedder = LocalEmbedder("test-model")

    first = await embedder.embed_query("الصبر")
    await embedder.embed_query("البلاء")

    assert first == [0.5, 0.25]
    mock_sentence_transformer.assert_called_once_with("test-model")
    mock_sentence_transformer.return_value.encode.assert_called_with(
        "البلاء", normalize_embeddings=True
    )


async def test_local_concurrent_first_use_loads_once() -> None:
    """Test parallel first queries share a single model load."""
    model = MagicMock()
    model.encode.return_value = np.array([1.0, 0.0], dtype=np.float32)

    def slow_load(name: str) -> MagicMock:
        time.sleep(0.05)
        return model

    with patch(
        "maktaba.adapters.embeddings.client.SentenceTransformer", side_effect=slow_load
    ) as mock:
        embedder = LocalEmbedder("test-model")
        vectors = await asyncio.gather(*(embedder.embed_query(f"q{i}") for i in range(5)))

    assert mock.call_count == 1
    assert vectors == [[1.0, 0.0]] * 5
    assert model.encode.call_count == 5
