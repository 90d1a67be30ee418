"""
Corpus Specs - Per-corpus identity, payload mapping and rendering.

Fusion, merging and reranking are written once and parameterized by these
specs, so each corpus only describes what is specific to it.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic

from .models import BookMetadata, Corpus, ItemT, Narration, Passage, Verse

__all__ = [
    "CorpusSpec",
    "NARRATIONS",
    "PASSAGES",
    "SPECS",
    "VERSES",
    "format_narration_for_reranking",
    "format_passage_for_reranking",
    "format_verse_for_reranking",
    "hadith_source_url",
    "page_reference_url",
    "quran_url",
]

# Collections linked as /collection/book/hadith rather than /collection:hadith
_BOOK_PATH_COLLECTIONS = frozenset({"malik", "bulugh"})
_HADITH_SUFFIX_RE = re.compile(r"[A-Za-z]+$")


def page_reference_url(book_id: str, page_number: int) -> str:
    return f"https://app.turath.io/book/{book_id}#p-{page_number}"


def quran_url(surah_number: int, ayah_number: int) -> str:
    return f"https://quran.com/{surah_number}?startingVerse={ayah_number}"


def hadith_source_url(collection_slug: str, hadith_number: str, book_number: int | None) -> str:
    number = _HADITH_SUFFIX_RE.sub("", hadith_number)
    if collection_slug in _BOOK_PATH_COLLECTIONS and book_number is not None:
        return f"https://sunnah.com/{collection_slug}/{book_number}/{number}"
    return f"https://sunnah.com/{collection_slug}:{number}"


# --- Payload mapping ---


def _passage_fields(payload: dict[str, Any]) -> dict[str, Any]:
    book_id = str(payload["bookId"])
    page_number = int(payload["pageNumber"])
    snippet = payload.get("textSnippet") or ""
    return {
        "book_id": book_id,
        "page_number": page_number,
        "volume_number": payload.get("volumeNumber"),
        "text_snippet": snippet,
        "highlighted_snippet": payload.get("highlightedSnippet") or snippet,
        "reference_url": page_reference_url(book_id, page_number),
    }


def _verse_fields(payload: dict[str, Any]) -> dict[str, Any]:
    surah = int(payload["surahNumber"])
    ayah = int(payload["ayahNumber"])
    text = payload.get("text") or ""
    return {
        "surah_number": surah,
        "ayah_number": ayah,
        "ayah_end": payload.get("ayahEnd"),
        "surah_name_arabic": payload.get("surahNameArabic") or "",
        "surah_name_english": payload.get("surahNameEnglish") or "",
        "text": text,
        "highlighted_text": payload.get("highlightedText") or text,
        "juz_number": payload.get("juzNumber"),
        "page_number": payload.get("pageNumber"),
        "quran_url": quran_url(surah, ayah),
    }


def _narration_fields(payload: dict[str, Any]) -> dict[str, Any]:
    slug = str(payload["collectionSlug"])
    number = str(payload["hadithNumber"])
    book_number = payload.get("bookNumber")
    text = payload.get("text") or ""
    return {
        "collection_slug": slug,
        "hadith_number": number,
        "book_id": payload.get("bookId") or None,
        "collection_name_arabic": payload.get("collectionNameArabic") or "",
        "collection_name_english": payload.get("collectionNameEnglish") or "",
        "book_number": book_number,
        "book_name_arabic": payload.get("bookNameArabic") or "",
        "book_name_english": payload.get("bookNameEnglish") or "",
        "text": text,
        "highlighted_text": payload.get("highlightedText") or text,
        "chapter_arabic": payload.get("chapterArabic"),
        "chapter_english": payload.get("chapterEnglish"),
        "source_url": hadith_source_url(slug, number, book_number),
    }


# --- Reranker rendering ---


def format_passage_for_reranking(
    passage: Passage,
    metadata: BookMetadata | None = None,
    text_limit: int = 800,
) -> str:
    """Render a passage as `[BOOK] title - author, p.N` plus its snippet."""
    snippet = passage.text_snippet[:text_limit]
    if metadata is None:
        return f"[BOOK] Page {passage.page_number}\n{snippet}"
    author = metadata.author_name_arabic or "Unknown"
    return f"[BOOK] {metadata.title_arabic} - {author}, p.{passage.page_number}\n{snippet}"


def format_verse_for_reranking(verse: Verse, text_limit: int = 800) -> str:
    """Render a verse as `[QURAN] surah (English), Ayah N` plus its text."""
    ayah = verse.ayah_number if verse.ayah_end is None else f"{verse.ayah_number}-{verse.ayah_end}"
    return (
        f"[QURAN] {verse.surah_name_arabic} ({verse.surah_name_english}), Ayah {ayah}\n"
        f"{verse.text[:text_limit]}"
    )


def format_narration_for_reranking(narration: Narration, text_limit: int = 800) -> str:
    """Render a narration as `[HADITH] collection (English), book[ - chapter]` plus its text."""
    header = (
        f"[HADITH] {narration.collection_name_arabic} ({narration.collection_name_english}), "
        f"{narration.book_name_arabic}"
    )
    if narration.chapter_arabic:
        header = f"{header} - {narration.chapter_arabic}"
    return f"{header}\n{narration.text[:text_limit]}"


# --- Specs ---


@dataclass(frozen=True)
class CorpusSpec(Generic[ItemT]):
    """
    Everything corpus-specific that generic search code needs.

    Attributes:
        corpus: Which corpus this describes
        model: Item model class
        key: Identity key extractor
        payload_fields: Maps a backend payload to model fields (ranks excluded)
        text_field: Canonical text attribute
        highlight_field: Highlighted text attribute
        title: Short label for debug output
    """

    corpus: Corpus
    model: type[ItemT]
    key: Callable[[ItemT], Hashable]
    payload_fields: Callable[[dict[str, Any]], dict[str, Any]]
    text_field: str
    highlight_field: str
    title: Callable[[ItemT], str]

    def from_payload(self, payload: dict[str, Any], **scores: Any) -> ItemT:
        """Build an item from a backend payload plus rank/score fields."""
        return self.model(**self.payload_fields(payload), **scores)

    def has_highlight(self, item: ItemT) -> bool:
        """True when the item carries a highlight that differs from its canonical text."""
        highlight = getattr(item, self.highlight_field)
        return bool(highlight) and highlight != getattr(item, self.text_field)

    def carry_highlight(self, target: ItemT, source: ItemT) -> ItemT:
        """Copy source's highlight onto target when target has none of its own."""
        if self.has_highlight(target) or not self.has_highlight(source):
            return target
        return target.model_copy(
            update={self.highlight_field: getattr(source, self.highlight_field)}
        )


PASSAGES: CorpusSpec[Passage] = CorpusSpec(
    corpus=Corpus.PASSAGE,
    model=Passage,
    key=lambda p: (p.book_id, p.page_number),
    payload_fields=_passage_fields,
    text_field="text_snippet",
    highlight_field="highlighted_snippet",
    title=lambda p: f"Book {p.book_id}",
)

VERSES: CorpusSpec[Verse] = CorpusSpec(
    corpus=Corpus.VERSE,
    model=Verse,
    key=lambda v: (v.surah_number, v.ayah_number),
    payload_fields=_verse_fields,
    text_field="text",
    highlight_field="highlighted_text",
    title=lambda v: f"{v.surah_name_arabic} {v.ayah_number}",
)

NARRATIONS: CorpusSpec[Narration] = CorpusSpec(
    corpus=Corpus.NARRATION,
    model=Narration,
    key=lambda n: (n.collection_slug, n.hadith_number),
    payload_fields=_narration_fields,
    text_field="text",
    highlight_field="highlighted_text",
    title=lambda n: f"{n.collection_name_arabic or n.collection_slug} {n.hadith_number}",
)

SPECS: dict[Corpus, CorpusSpec[Any]] = {
    Corpus.PASSAGE: PASSAGES,
    Corpus.VERSE: VERSES,
    Corpus.NARRATION: NARRATIONS,
}
