"""Tests for corpus payload mapping and reranker rendering."""

from __future__ import annotations

from .conftest import narration_hit, passage_hit, verse_hit
from .corpora import (
    NARRATIONS,
    PASSAGES,
    VERSES,
    format_narration_for_reranking,
    format_passage_for_reranking,
    format_verse_for_reranking,
    hadith_source_url,
)
from .models import BookMetadata

# --- Payload Mapping Tests ---


def test_passage_from_payload() -> None:
    """Test page payloads map to passages with a reference URL."""
    passage = PASSAGES.from_payload(passage_hit("10", 4, 1.0).payload, semantic_rank=1)

    assert passage.book_id == "10"
    assert passage.page_number == 4
    assert passage.highlighted_snippet == passage.text_snippet
    assert passage.reference_url == "https://app.turath.io/book/10#p-4"
    assert PASSAGES.key(passage) == ("10", 4)


def test_verse_from_payload() -> None:
    """Test ayah payloads map to verses with a quran.com link."""
    verse = VERSES.from_payload(verse_hit(2, 153, 1.0).payload, keyword_rank=2)

    assert verse.quran_url == "https://quran.com/2?startingVerse=153"
    assert verse.keyword_rank == 2
    assert VERSES.title(verse) == "البقرة 153"


def test_narration_from_payload() -> None:
    """Test hadith payloads map to narrations with a sunnah.com link."""
    narration = NARRATIONS.from_payload(narration_hit("bukhari", "1", 1.0).payload, keyword_rank=1)

    assert narration.source_url == "https://sunnah.com/bukhari:1"
    assert NARRATIONS.key(narration) == ("bukhari", "1")
    assert NARRATIONS.title(narration) == "bukhari 1"


def test_hadith_source_url_book_paths() -> None:
    """Test collections linked by book number and lettered hadith numbers."""
    assert hadith_source_url("malik", "12a", 3) == "https://sunnah.com/malik/3/12"
    assert hadith_source_url("malik", "12", None) == "https://sunnah.com/malik:12"
    assert hadith_source_url("muslim", "2999b", 55) == "https://sunnah.com/muslim:2999"


# --- Highlight Tests ---


def test_carry_highlight() -> None:
    """Test a highlight is copied only onto items without one."""
    plain = PASSAGES.from_payload(passage_hit("10", 1, 1.0).payload, semantic_rank=1)
    marked = PASSAGES.from_payload(
        passage_hit("10", 1, 1.0, highlightedSnippet="<mark>نص</mark>").payload, keyword_rank=1
    )

    assert not PASSAGES.has_highlight(plain)
    assert PASSAGES.carry_highlight(plain, marked).highlighted_snippet == "<mark>نص</mark>"
    assert PASSAGES.carry_highlight(marked, plain) is marked


# --- Rendering Tests ---


def test_format_passage_with_metadata() -> None:
    """Test passages render with title and author."""
    passage = PASSAGES.from_payload(passage_hit("10", 4, 1.0).payload, semantic_rank=1)
    metadata = BookMetadata(book_id="10", title_arabic="رياض الصالحين", author_name_arabic="النووي")

    text = format_passage_for_reranking(passage, metadata)

    assert text == "[BOOK] رياض الصالحين - النووي, p.4\nنص الصفحة 4"


def test_format_passage_without_metadata() -> None:
    """Test passages render with the page number only when metadata is missing."""
    passage = PASSAGES.from_payload(passage_hit("10", 4, 1.0).payload, semantic_rank=1)
    assert format_passage_for_reranking(passage, None, text_limit=3) == "[BOOK] Page 4\nنص "


def test_format_verse_range() -> None:
    """Test verse ranges render as start-end."""
    verse = VERSES.from_payload(verse_hit(2, 153, 1.0, ayahEnd=155).payload, semantic_rank=1)
    assert format_verse_for_reranking(verse).startswith("[QURAN] البقرة (Al-Baqarah), Ayah 153-155\n")


def test_format_narration_with_chapter() -> None:
    """Test narrations include the chapter when present."""
    narration = NARRATIONS.from_payload(
        narration_hit(
            "muslim",
            "2999",
            1.0,
            collectionNameArabic="صحيح مسلم",
            collectionNameEnglish="Sahih Muslim",
            bookNameArabic="كتاب الزهد",
            chapterArabic="باب المؤمن أمره كله خير",
        ).payload,
        keyword_rank=1,
    )

    assert format_narration_for_reranking(narration) == (
        "[HADITH] صحيح مسلم (Sahih Muslim), كتاب الزهد - باب المؤمن أمره كله خير\nحديث 2999"
    )
