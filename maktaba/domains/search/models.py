"""
Search Models - Data types for the search domain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, Field, model_validator


class Corpus(str, Enum):
    """Searchable entity families."""

    PASSAGE = "passage"  # Book pages
    VERSE = "verse"  # Quran ayahs
    NARRATION = "narration"  # Hadith


class SearchMode(str, Enum):
    """Which retrieval methods a request uses."""

    HYBRID = "hybrid"
    SEMANTIC = "semantic"
    KEYWORD = "keyword"


class SearchStrategy(str, Enum):
    """Combination strategy picked by the query classifier."""

    HYBRID = "hybrid"
    SEMANTIC_ONLY = "semantic_only"


class RerankerType(str, Enum):
    """Second-pass reranking strategies."""

    NONE = "none"
    JINA = "jina"  # Cross-encoder
    GPT_OSS_20B = "gpt-oss-20b"
    GPT_OSS_120B = "gpt-oss-120b"
    GEMINI_FLASH = "gemini-flash"


class MatchType(str, Enum):
    """Which retrieval method(s) found an item."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    BOTH = "both"


# --- Retrieval items ---


class RetrievalItem(BaseModel):
    """
    Base for a single retrieved item.

    Ranks are 1-based and present only when the corresponding backend
    returned the item. `fused_score` and `rrf_score` are filled in by fusion.
    """

    semantic_rank: int | None = Field(default=None, ge=1)
    semantic_score: float | None = None
    keyword_rank: int | None = Field(default=None, ge=1)
    bm25_score: float | None = None
    fused_score: float | None = None
    rrf_score: float | None = None
    rerank_score: float | None = None
    matched_queries: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_rank(self) -> RetrievalItem:
        if self.semantic_rank is None and self.keyword_rank is None:
            raise ValueError("retrieval item needs a semantic_rank or a keyword_rank")
        return self

    @property
    def final_score(self) -> float:
        """Score the item is ultimately ordered and displayed by."""
        for score in (self.rerank_score, self.fused_score, self.semantic_score):
            if score is not None:
                return score
        if self.bm25_score is not None and self.bm25_score > 0:
            from .fusion import normalize_lexical_score

            return normalize_lexical_score(self.bm25_score)
        return self.rrf_score or 0.0


class Passage(RetrievalItem):
    """Page of a classical book."""

    book_id: str
    page_number: int
    volume_number: int | None = None
    text_snippet: str = ""
    highlighted_snippet: str | None = None
    reference_url: str | None = None


class Verse(RetrievalItem):
    """Quran ayah (or ayah range)."""

    surah_number: int
    ayah_number: int
    ayah_end: int | None = None
    surah_name_arabic: str = ""
    surah_name_english: str = ""
    text: str = ""
    highlighted_text: str | None = None
    juz_number: int | None = None
    page_number: int | None = None
    quran_url: str | None = None


class Narration(RetrievalItem):
    """Hadith from a collection."""

    collection_slug: str
    hadith_number: str
    book_id: int | None = None
    collection_name_arabic: str = ""
    collection_name_english: str = ""
    book_number: int | None = None
    book_name_arabic: str = ""
    book_name_english: str = ""
    text: str = ""
    highlighted_text: str | None = None
    chapter_arabic: str | None = None
    chapter_english: str | None = None
    source_url: str | None = None


ItemT = TypeVar("ItemT", bound=RetrievalItem)


# --- Backend results ---


class SearchHit(BaseModel):
    """Raw hit returned by a vector or lexical backend."""

    payload: dict[str, Any]
    score: float


class RerankScore(BaseModel):
    """Single entry of a cross-encoder response."""

    index: int
    score: float


class BookMetadata(BaseModel):
    """Display metadata for a book, used when rendering passages."""

    book_id: str
    title_arabic: str
    author_name_arabic: str | None = None


class Author(BaseModel):
    """Author matched by name, listed beside the corpus results."""

    author_id: str
    name_arabic: str
    name_latin: str | None = None
    death_date_hijri: str | None = None
    death_date_gregorian: str | None = None
    books_count: int = 0


# --- Classification & expansion ---


class QueryClassification(BaseModel):
    """Outcome of inspecting the raw query string."""

    is_arabic_script: bool
    strategy: SearchStrategy
    skip_semantic: bool

    model_config = {"frozen": True}

    @property
    def skip_keyword(self) -> bool:
        return self.strategy != SearchStrategy.HYBRID


class ExpandedQuery(BaseModel):
    """Alternative phrasing produced by query expansion."""

    query: str
    weight: float = Field(default=1.0, gt=0.0, le=1.0)
    reason: str

    model_config = {"frozen": True}


@dataclass
class ExpansionResult:
    """Expanded queries plus whether they came from the cache."""

    queries: list[ExpandedQuery]
    cached: bool = False


@dataclass
class WeightedResultSet(Generic[ItemT]):
    """Results of one expanded query for one corpus."""

    results: list[ItemT]
    weight: float


# --- Reranking ---


class _CandidateBase(BaseModel):
    source_index: int
    rendered_text: str
    original_score: float


class PassageCandidate(_CandidateBase):
    corpus: Literal[Corpus.PASSAGE] = Corpus.PASSAGE
    item: Passage


class VerseCandidate(_CandidateBase):
    corpus: Literal[Corpus.VERSE] = Corpus.VERSE
    item: Verse


class NarrationCandidate(_CandidateBase):
    corpus: Literal[Corpus.NARRATION] = Corpus.NARRATION
    item: Narration


RerankCandidate = Annotated[
    Union[PassageCandidate, VerseCandidate, NarrationCandidate],
    Field(discriminator="corpus"),
]


@dataclass
class RerankOutcome(Generic[ItemT]):
    """Reranked list plus whether the service timed out."""

    results: list[ItemT]
    timed_out: bool = False


@dataclass
class UnifiedRerankOutcome:
    """Per-corpus lists after one cross-corpus reranking pass."""

    passages: list[Passage] = field(default_factory=list)
    verses: list[Verse] = field(default_factory=list)
    narrations: list[Narration] = field(default_factory=list)
    timed_out: bool = False


class CorpusLimits(BaseModel):
    """Per-corpus result caps."""

    passages: int = Field(default=10, ge=0)
    verses: int = Field(default=10, ge=0)
    narrations: int = Field(default=10, ge=0)

    def for_corpus(self, corpus: Corpus) -> int:
        return {
            Corpus.PASSAGE: self.passages,
            Corpus.VERSE: self.verses,
            Corpus.NARRATION: self.narrations,
        }[corpus]


# --- Request / response ---


class SearchRequest(BaseModel):
    """Search request."""

    query: str
    mode: SearchMode = SearchMode.HYBRID
    limit: int = Field(default=20, ge=1, le=100)
    book_limit: int = Field(default=10, ge=5, le=50)
    book_id: str | None = None
    include_books: bool = True
    include_quran: bool = True
    include_hadith: bool = True
    hadith_collections: list[str] = Field(default_factory=list)
    reranker: RerankerType = RerankerType.NONE
    similarity_cutoff: float = Field(default=0.6, ge=0.0, le=1.0)
    fuzzy: bool = True

    # Refine mode
    refine: bool = False
    refine_similarity_cutoff: float = Field(default=0.25, ge=0.0, le=1.0)
    refine_original_weight: float = Field(default=1.0, gt=0.0, le=1.0)
    refine_expanded_weight: float = Field(default=0.7, gt=0.0, le=1.0)
    refine_book_per_query: int = Field(default=30, ge=1, le=100)
    refine_ayah_per_query: int = Field(default=30, ge=1, le=100)
    refine_hadith_per_query: int = Field(default=30, ge=1, le=100)
    refine_book_rerank: int = Field(default=20, ge=1, le=50)
    refine_ayah_rerank: int = Field(default=12, ge=1, le=50)
    refine_hadith_rerank: int = Field(default=15, ge=1, le=50)
    query_expansion_model: RerankerType = RerankerType.GEMINI_FLASH

    include_debug: bool = False

    model_config = {"frozen": True}


class TopResultBreakdown(BaseModel):
    """How one of the top-ranked items was matched and scored."""

    rank: int
    corpus: Corpus
    title: str
    match_type: MatchType
    semantic_score: float | None = None
    keyword_score: float | None = None
    fused_score: float | None = None
    final_score: float


class QueryStats(BaseModel):
    """Per-expanded-query retrieval statistics."""

    query: str
    weight: float
    reason: str
    docs_retrieved: int = 0
    passages: int = 0
    verses: int = 0
    narrations: int = 0
    search_time_ms: float = 0.0


class RefineStats(BaseModel):
    """Refine-mode statistics."""

    query_stats: list[QueryStats] = Field(default_factory=list)
    total_before_merge: int = 0
    after_merge: dict[str, int] = Field(default_factory=dict)
    sent_to_reranker: int = 0
    expansion_cached: bool = False
    timing: dict[str, float] = Field(default_factory=dict)


class DebugStats(BaseModel):
    """Diagnostics for tuning fusion weights."""

    search_params: dict[str, Any] = Field(default_factory=dict)
    algorithm: dict[str, Any] = Field(default_factory=dict)
    top_results: list[TopResultBreakdown] = Field(default_factory=list)
    timing: dict[str, Any] = Field(default_factory=dict)
    refine_stats: RefineStats | None = None
    reranker_timed_out: bool = False


class SearchResponse(BaseModel):
    """Per-corpus results for one search request."""

    query: str
    mode: SearchMode
    count: int
    passages: list[Passage] = Field(default_factory=list)
    verses: list[Verse] = Field(default_factory=list)
    narrations: list[Narration] = Field(default_factory=list)
    authors: list[Author] = Field(default_factory=list)
    refined: bool = False
    expanded_queries: list[ExpandedQuery] = Field(default_factory=list)
    reranker_timed_out: bool = False
    debug_stats: DebugStats | None = None
