"""
Search Domain - Hybrid retrieval over books, Quran and hadith.

This domain handles:
- Query classification and dynamic similarity cutoffs
- Semantic (vector) and keyword (lexical) retrieval per corpus
- Weighted score fusion with RRF tiebreaks
- Query expansion and multi-query merging
- Cross-encoder and LLM reranking
- Author lookup beside the corpus results
"""

from .authors import AuthorSearch
from .cache import TTLCache
from .contracts import (
    AuthorDirectory,
    AuthorIndex,
    ChatCompleter,
    LexicalSearch,
    MetadataStore,
    PairReranker,
    QueryEmbedder,
    VectorSearch,
)
from .engine import HybridSearchEngine
from .expansion import QueryExpansionService
from .metadata import BookMetadataLookup
from .models import (
    Author,
    BookMetadata,
    Corpus,
    ExpandedQuery,
    Narration,
    Passage,
    RerankerType,
    SearchHit,
    SearchMode,
    SearchRequest,
    SearchResponse,
    Verse,
)
from .refine_search import RefineSearch
from .rerankers import RerankerOrchestrator
from .retrieval import CorpusRetriever, build_retrievers
from .standard_search import StandardSearch

__all__ = [
    # Contracts
    "VectorSearch",
    "LexicalSearch",
    "QueryEmbedder",
    "ChatCompleter",
    "PairReranker",
    "MetadataStore",
    "AuthorIndex",
    "AuthorDirectory",
    # Models
    "Corpus",
    "SearchMode",
    "RerankerType",
    "SearchHit",
    "BookMetadata",
    "Author",
    "Passage",
    "Verse",
    "Narration",
    "ExpandedQuery",
    "SearchRequest",
    "SearchResponse",
    # Implementations
    "TTLCache",
    "CorpusRetriever",
    "build_retrievers",
    "BookMetadataLookup",
    "AuthorSearch",
    "QueryExpansionService",
    "RerankerOrchestrator",
    "StandardSearch",
    "RefineSearch",
    "HybridSearchEngine",
]
