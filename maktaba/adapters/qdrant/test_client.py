"""
Tests for the Qdrant vector index adapter.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import MatchAny, MatchValue

from maktaba.config.errors import BackendError, IndexUnavailableError
from maktaba.domains.search.models import Corpus

from .client import QdrantVectorIndex, build_filter

COLLECTIONS = {
    Corpus.PASSAGE: "arabic_texts_pages",
    Corpus.VERSE: "quran_ayahs",
    Corpus.NARRATION: "sunnah_hadiths",
}


@pytest.fixture
def mock_qdrant() -> AsyncMock:
    """Create a mock async Qdrant client."""
    mock = AsyncMock()
    mock.query_points.return_value = MagicMock(
        points=[
            MagicMock(payload={"surahNumber": 2, "ayahNumber": 153}, score=0.91),
            MagicMock(payload={"surahNumber": 2, "ayahNumber": 45}, score=0.77),
        ]
    )
    return mock


@pytest.fixture
def index(mock_qdrant: AsyncMock) -> QdrantVectorIndex:
    return QdrantVectorIndex(mock_qdrant, COLLECTIONS)


def _unexpected(status: int) -> UnexpectedResponse:
    return UnexpectedResponse(status, "error", b"{}", httpx.Headers())


# --- Filter Tests ---


def test_build_filter_none() -> None:
    """Test no filters produce no Qdrant filter."""
    assert build_filter(None) is None
    assert build_filter({}) is None


def test_build_filter_scalar_and_list() -> None:
    """Test scalars match exactly and lists match any value."""
    qdrant_filter = build_filter({"bookId": "10", "collectionSlug": ["bukhari", "muslim"]})

    assert qdrant_filter is not None
    by_key = {c.key: c.match for c in qdrant_filter.must}
    assert isinstance(by_key["bookId"], MatchValue)
    assert by_key["bookId"].value == "10"
    assert isinstance(by_key["collectionSlug"], MatchAny)
    assert by_key["collectionSlug"].any == ["bukhari", "muslim"]


# --- Search Tests ---


async def test_search_returns_hits(index: QdrantVectorIndex, mock_qdrant: AsyncMock) -> None:
    """Test hits carry payload and score in backend order."""
    hits = await index.search(Corpus.VERSE, [0.1, 0.2], limit=10, score_threshold=0.6)

    assert [h.payload["ayahNumber"] for h in hits] == [153, 45]
    assert hits[0].score == 0.91

    kwargs = mock_qdrant.query_points.call_args.kwargs
    assert kwargs["collection_name"] == "quran_ayahs"
    assert kwargs["limit"] == 10
    assert kwargs["score_threshold"] == 0.6
    assert kwargs["query_filter"] is None
    assert kwargs["with_payload"] is True


async def test_search_passes_filters(index: QdrantVectorIndex, mock_qdrant: AsyncMock) -> None:
    """Test payload filters reach Qdrant."""
    await index.search(Corpus.PASSAGE, [0.1], 5, 0.5, {"bookId": "10"})

    kwargs = mock_qdrant.query_points.call_args.kwargs
    assert kwargs["collection_name"] == "arabic_texts_pages"
    assert kwargs["query_filter"].must[0].key == "bookId"


async def test_missing_collection_raises_unavailable(
    index: QdrantVectorIndex, mock_qdrant: AsyncMock
) -> None:
    """Test a 404 from Qdrant signals an uninitialized index."""
    mock_qdrant.query_points.side_effect = _unexpected(404)

    with pytest.raises(IndexUnavailableError) as exc_info:
        await index.search(Corpus.NARRATION, [0.1], 5, 0.5)
    assert exc_info.value.details["collection"] == "sunnah_hadiths"


async def test_other_errors_raise_backend_error(
    index: QdrantVectorIndex, mock_qdrant: AsyncMock
) -> None:
    """Test other HTTP errors are backend failures."""
    mock_qdrant.query_points.side_effect = _unexpected(500)

    with pytest.raises(BackendError):
        await index.search(Corpus.VERSE, [0.1], 5, 0.5)


# --- Author Tests ---


async def test_search_authors(mock_qdrant: AsyncMock) -> None:
    """Test author searches query the author collection without filters."""
    index = QdrantVectorIndex(mock_qdrant, COLLECTIONS, authors_collection="arabic_texts_authors")

    hits = await index.search_authors([0.1], limit=5, score_threshold=0.3)

    assert len(hits) == 2
    kwargs = mock_qdrant.query_points.call_args.kwargs
    assert kwargs["collection_name"] == "arabic_texts_authors"
    assert kwargs["limit"] == 5
    assert kwargs["score_threshold"] == 0.3
    assert kwargs["query_filter"] is None


async def test_search_authors_unconfigured(index: QdrantVectorIndex, mock_qdrant: AsyncMock) -> None:
    """Test author search without a collection is an unavailable index."""
    with pytest.raises(IndexUnavailableError):
        await index.search_authors([0.1], limit=5, score_threshold=0.3)
    mock_qdrant.query_points.assert_not_called()


async def test_search_authors_missing_collection(mock_qdrant: AsyncMock) -> None:
    """Test a 404 names the author collection."""
    mock_qdrant.query_points.side_effect = _unexpected(404)
    index = QdrantVectorIndex(mock_qdrant, COLLECTIONS, authors_collection="arabic_texts_authors")

    with pytest.raises(IndexUnavailableError) as exc_info:
        await index.search_authors([0.1], limit=5, score_threshold=0.3)
    assert exc_info.value.details == {"collection": "arabic_texts_authors"}
