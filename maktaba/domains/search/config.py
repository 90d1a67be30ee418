"""
Search configuration constants.

Centralizes the tuning knobs of retrieval, fusion and reranking.
"""

from __future__ import annotations

from .models import RerankerType

# Fusion
SEMANTIC_WEIGHT = 0.8
KEYWORD_WEIGHT = 0.3
RRF_K = 60
BM25_NORM_K = 5.0

# Query handling
MIN_CHARS_FOR_SEMANTIC = 4
MAX_QUERY_LENGTH = 500

# Similarity cutoffs
DEFAULT_SIMILARITY_CUTOFF = 0.6
REFINE_SIMILARITY_CUTOFF = 0.25

# Result limits
DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 100
DEFAULT_BOOK_LIMIT = 10
MIN_BOOK_LIMIT = 5
MAX_BOOK_LIMIT = 50
DEFAULT_AYAH_LIMIT = 30
DEFAULT_HADITH_LIMIT = 30

# Fetch limits (candidates pulled from each backend before fusion)
STANDARD_FETCH_LIMIT = 50
FETCH_LIMIT_CAP = 100
AYAH_PRE_RERANK_CAP = 60
HADITH_PRE_RERANK_CAP = 75
BOOK_PRE_RERANK_CAP = 50

# Reranking
RERANKER_TEXT_LIMIT = 800
UNIFIED_RERANKER_TEXT_LIMIT = 600
UNIFIED_RERANK_TIMEOUT_SECONDS = 25.0
CROSS_ENCODER_TIMEOUT_SECONDS = 10.0
MIN_UNIFIED_RERANK_CANDIDATES = 3

# Timeouts
EMBEDDING_TIMEOUT_SECONDS = 5.0
EXPANSION_TIMEOUT_SECONDS = 15.0

# Query expansion
EXPANSION_COUNT = 4
EXPANDED_QUERY_WEIGHT = 0.7

# Corpus exclusions
EXCLUDED_BOOK_IDS = frozenset({"2"})
EXCLUDED_HADITH_COLLECTIONS = frozenset({"suyuti"})

# Author lookup
AUTHOR_SCORE_THRESHOLD = 0.3
AUTHOR_RESULT_LIMIT = 5

# Debug stats
DEBUG_TOP_RESULTS = 5

# LLM strategies: model ID and per-call timeout
LLM_RERANKERS: dict[RerankerType, tuple[str, float]] = {
    RerankerType.GPT_OSS_20B: ("openai/gpt-oss-20b", 20.0),
    RerankerType.GPT_OSS_120B: ("openai/gpt-oss-120b", 20.0),
    RerankerType.GEMINI_FLASH: ("google/gemini-3-flash-preview", 15.0),
}


def llm_model_for(strategy: RerankerType) -> str:
    """Model ID used for an LLM strategy (query expansion falls back to gemini-flash)."""
    model, _ = LLM_RERANKERS.get(strategy, LLM_RERANKERS[RerankerType.GEMINI_FLASH])
    return model
