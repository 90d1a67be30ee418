"""Tests for CLI commands."""

import asyncio
import json
from collections.abc import Generator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from maktaba.adapters import SQLiteRepository
from maktaba.config import Settings
from maktaba.config.errors import IndexUnavailableError
from maktaba.domains.search import (
    Author,
    Narration,
    RerankerType,
    SearchMode,
    SearchResponse,
    Verse,
)

from .main import app

runner = CliRunner()


@pytest.fixture
def mock_engine() -> Generator[AsyncMock, None, None]:
    """Patch service setup and the engine used by the search command."""
    engine = AsyncMock()
    engine.search.return_value = SearchResponse(
        query="الصبر",
        mode=SearchMode.HYBRID,
        count=2,
        verses=[
            Verse(
                surah_number=2,
                ayah_number=153,
                text="يا أيها الذين آمنوا",
                semantic_rank=1,
                semantic_score=0.85,
            )
        ],
        narrations=[
            Narration(
                collection_slug="muslim",
                hadith_number="2999",
                text="عجبا لأمر المؤمن",
                keyword_rank=1,
                bm25_score=7.0,
            )
        ],
    )
    with (
        patch("maktaba.interfaces.api.deps.init_services", new=AsyncMock()),
        patch("maktaba.interfaces.api.deps.cleanup_services", new=AsyncMock()) as cleanup,
        patch("maktaba.interfaces.api.deps.get_search_engine", return_value=engine),
    ):
        engine.cleanup = cleanup
        yield engine


def test_version() -> None:
    """Test version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "Maktaba v" in result.output


def test_search_prints_tables(mock_engine: AsyncMock) -> None:
    """Test search renders one table per non-empty corpus."""
    result = runner.invoke(app, ["search", "الصبر", "--reranker", "jina", "-n", "5"])

    assert result.exit_code == 0
    assert "Quran" in result.output
    assert "Hadith" in result.output
    assert "2:153" in result.output
    request = mock_engine.search.await_args.args[0]
    assert request.reranker == RerankerType.JINA
    assert request.limit == 5
    mock_engine.cleanup.assert_awaited_once()


def test_search_error_exits(mock_engine: AsyncMock) -> None:
    """Test taxonomy errors exit with status 1 after cleanup."""
    mock_engine.search.side_effect = IndexUnavailableError("Collection not found")

    result = runner.invoke(app, ["search", "الصبر"])

    assert result.exit_code == 1
    assert "Collection not found" in result.output
    mock_engine.cleanup.assert_awaited_once()


def test_search_invalid_limit() -> None:
    """Test out-of-range options are rejected before searching."""
    result = runner.invoke(app, ["search", "الصبر", "--limit", "0"])
    assert result.exit_code == 1


def test_search_prints_authors(mock_engine: AsyncMock) -> None:
    """Test matched authors get their own table."""
    mock_engine.search.return_value = mock_engine.search.return_value.model_copy(
        update={"authors": [Author(author_id="7", name_arabic="النووي", books_count=12)]}
    )

    result = runner.invoke(app, ["search", "النووي"])

    assert result.exit_code == 0
    assert "Authors" in result.output
    assert "12" in result.output


# --- Init Tests ---


@pytest.fixture
def tmp_settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """Point the CLI at a temporary database."""
    settings = Settings(data_dir=tmp_path, db_path=tmp_path / "maktaba.db")
    with patch("maktaba.config.get_settings", return_value=settings):
        yield settings


def _book_ids(settings: Settings, ids: list[str]) -> set[str]:
    async def lookup() -> set[str]:
        repo = SQLiteRepository(settings.db_path)
        try:
            return set(await repo.get_books(ids))
        finally:
            await repo.close()

    return asyncio.run(lookup())


def test_init_creates_database(tmp_settings: Settings) -> None:
    """Test init creates an empty database."""
    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    assert "Initialization complete" in result.output
    assert tmp_settings.db_path.exists()


def test_init_loads_catalog(tmp_settings: Settings, tmp_path: Path) -> None:
    """Test init seeds authors and books from a catalog file."""
    catalog = tmp_path / "catalog.json"
    catalog.write_text(
        json.dumps(
            {
                "authors": [{"id": 1, "name_arabic": "النووي"}],
                "books": [{"id": "10", "title_arabic": "رياض الصالحين", "author_id": 1}],
            },
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["init", "--catalog", str(catalog)])

    assert result.exit_code == 0
    assert "Loaded 1 authors" in result.output
    assert _book_ids(tmp_settings, ["10"]) == {"10"}


def test_init_invalid_catalog_exits(tmp_settings: Settings, tmp_path: Path) -> None:
    """Test a malformed catalog exits with status 1."""
    catalog = tmp_path / "catalog.json"
    catalog.write_text("not json", encoding="utf-8")

    result = runner.invoke(app, ["init", "--catalog", str(catalog)])

    assert result.exit_code == 1
    assert "Cannot load catalog" in result.output
