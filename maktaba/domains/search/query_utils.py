"""
Query Utilities - Classification and preprocessing of raw query strings.

Pure functions: no I/O, no logging.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .config import MIN_CHARS_FOR_SEMANTIC
from .models import QueryClassification, SearchStrategy

__all__ = [
    "ParsedQuery",
    "classify",
    "dynamic_cutoff",
    "effective_length",
    "has_quoted_phrase",
    "is_arabic_script",
    "normalize_arabic_text",
    "normalize_query",
    "parse_search_query",
    "prepare_search_terms",
    "should_skip_semantic",
]

_ARABIC_RE = re.compile(
    "[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]"
)

# Opening -> closing quote pairs
_QUOTE_PAIRS = {
    '"': '"',
    "'": "'",
    "«": "»",
    "“": "”",
    "‘": "’",
    "„": "“",
    "‹": "›",
    "「": "」",
}
_QUOTE_CHARS = "".join(sorted(set(_QUOTE_PAIRS) | set(_QUOTE_PAIRS.values())))
_QUOTE_STRIP_RE = re.compile(f"[{re.escape(_QUOTE_CHARS)}]")


def _quoted_pattern(open_: str, close: str) -> str:
    pattern = f"{re.escape(open_)}([^{re.escape(close)}]+){re.escape(close)}"
    if open_ == "'":
        # Apostrophes inside words are not quotes
        pattern = rf"(?<!\w){pattern}(?!\w)"
    return pattern


_QUOTED_RE = re.compile(
    "|".join(_quoted_pattern(open_, close) for open_, close in _QUOTE_PAIRS.items())
)
_WHITESPACE_RE = re.compile(r"\s+")
_TERM_STRIP_RE = re.compile("[^\\w\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF]")

# Arabic normalization
_DIACRITICS_RE = re.compile("[\u064B-\u065F\u0670]")
_ALEF_VARIANTS_RE = re.compile("[\u0622\u0623\u0625\u0671]")
_TATWEEL = "\u0640"

# Effective-length buckets for the dynamic cutoff
_SINGLE_WORD_MAX_CHARS = 6
_THRESHOLD_BONUSES = ((3, 0.40), (6, 0.30))


def is_arabic_script(text: str) -> bool:
    """Check whether text contains any Arabic-script code point."""
    return _ARABIC_RE.search(text) is not None


def has_quoted_phrase(text: str) -> bool:
    """Check whether text contains a phrase wrapped in a recognized quote pair."""
    return _QUOTED_RE.search(text) is not None


def normalize_query(text: str) -> str:
    """Strip quote characters and collapse whitespace."""
    return _WHITESPACE_RE.sub(" ", _QUOTE_STRIP_RE.sub(" ", text)).strip()


def effective_length(text: str) -> int:
    """Character count of the normalized query (single spaces count)."""
    return len(normalize_query(text))


def should_skip_semantic(text: str) -> bool:
    """
    Decide whether semantic search is pointless for this query.

    Quoted phrases ask for literal matches, and very short queries produce
    embeddings that match nearly everything.
    """
    if has_quoted_phrase(text):
        return True
    return effective_length(text) < MIN_CHARS_FOR_SEMANTIC


def classify(query: str) -> QueryClassification:
    """
    Classify a raw query.

    Args:
        query: Raw query string

    Returns:
        Script detection, combination strategy and semantic-skip flag.
        Non-Arabic queries are semantic_only since the lexical indexes hold
        Arabic text only.
    """
    arabic = is_arabic_script(query)
    return QueryClassification(
        is_arabic_script=arabic,
        strategy=SearchStrategy.HYBRID if arabic else SearchStrategy.SEMANTIC_ONLY,
        skip_semantic=should_skip_semantic(query),
    )


def dynamic_cutoff(query: str, base_cutoff: float) -> float:
    """
    Raise the similarity cutoff for short queries.

    Args:
        query: Raw query string
        base_cutoff: Requested cutoff

    Returns:
        Cutoff in [base_cutoff, 1.0]
    """
    normalized = normalize_query(query)
    chars = len(normalized)
    if normalized and " " not in normalized:
        chars = min(chars, _SINGLE_WORD_MAX_CHARS)

    bonus = 0.0
    for max_chars, value in _THRESHOLD_BONUSES:
        if chars <= max_chars:
            bonus = value
            break

    return max(base_cutoff, min(1.0, base_cutoff + bonus))


def normalize_arabic_text(text: str) -> str:
    """
    Normalize Arabic text before embedding.

    Removes diacritics, tatweel and standalone hamza, unifies alef variants,
    and maps alef maksura to ya and ta marbuta to ha.
    """
    text = _DIACRITICS_RE.sub("", text)
    text = text.replace(_TATWEEL, "")
    text = _ALEF_VARIANTS_RE.sub("\u0627", text)
    text = text.replace("\u0621", "")
    text = text.replace("\u0649", "\u064A")
    text = text.replace("\u0629", "\u0647")
    return _WHITESPACE_RE.sub(" ", text).strip()


def prepare_search_terms(text: str) -> list[str]:
    """Split text into bare terms, dropping punctuation."""
    terms = (_TERM_STRIP_RE.sub("", token) for token in text.split())
    return [term for term in terms if term]


@dataclass
class ParsedQuery:
    """Lexical view of a query: exact phrases plus free terms."""

    phrases: list[str] = field(default_factory=list)
    terms: list[str] = field(default_factory=list)


def parse_search_query(text: str) -> ParsedQuery:
    """
    Separate quoted phrases from free terms.

    A quoted single word is treated as a term, not a phrase.

    Example:
        >>> parse_search_query('free text "exact phrase"')
        ParsedQuery(phrases=['exact phrase'], terms=['free', 'text'])
    """
    parsed = ParsedQuery()
    for match in _QUOTED_RE.finditer(text):
        inner = next(group for group in match.groups() if group is not None)
        words = prepare_search_terms(inner)
        if len(words) > 1:
            parsed.phrases.append(" ".join(words))
        else:
            parsed.terms.extend(words)

    remainder = _QUOTED_RE.sub(" ", text)
    parsed.terms.extend(prepare_search_terms(remainder))
    return parsed
