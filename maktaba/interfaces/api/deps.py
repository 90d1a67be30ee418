"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of backend adapters and the search engine.
"""

from __future__ import annotations

from dataclasses import replace
from functools import lru_cache

from maktaba.adapters import (
    ElasticsearchLexicalIndex,
    JinaReranker,
    LocalEmbedder,
    OpenRouterEmbedder,
    OpenRouterLLMService,
    QdrantVectorIndex,
    SQLiteRepository,
)
from maktaba.adapters.elasticsearch import DEFAULT_LAYOUTS
from maktaba.config import get_settings
from maktaba.domains.search import (
    AuthorSearch,
    BookMetadata,
    BookMetadataLookup,
    Corpus,
    ExpandedQuery,
    HybridSearchEngine,
    QueryEmbedder,
    QueryExpansionService,
    RefineSearch,
    RerankerOrchestrator,
    RerankerType,
    StandardSearch,
    TTLCache,
    build_retrievers,
)


@lru_cache
def get_sqlite_repository() -> SQLiteRepository:
    """Get SQLite repository singleton."""
    settings = get_settings()
    return SQLiteRepository(settings.db_path)


@lru_cache
def get_vector_index() -> QdrantVectorIndex:
    """Get Qdrant vector index singleton."""
    settings = get_settings()
    return QdrantVectorIndex.from_url(
        settings.qdrant_url,
        {
            Corpus.PASSAGE: settings.qdrant_pages_collection,
            Corpus.VERSE: settings.qdrant_quran_collection,
            Corpus.NARRATION: settings.qdrant_hadith_collection,
        },
        authors_collection=settings.qdrant_authors_collection,
        api_key=settings.qdrant_api_key,
        timeout=settings.qdrant_timeout_seconds,
    )


@lru_cache
def get_lexical_index() -> ElasticsearchLexicalIndex:
    """Get Elasticsearch lexical index singleton."""
    settings = get_settings()
    index_names = {
        Corpus.PASSAGE: settings.es_pages_index,
        Corpus.VERSE: settings.es_ayahs_index,
        Corpus.NARRATION: settings.es_hadiths_index,
    }
    return ElasticsearchLexicalIndex(
        base_url=settings.elasticsearch_url,
        username=settings.elasticsearch_username,
        password=settings.elasticsearch_password,
        timeout=settings.elasticsearch_timeout_seconds,
        layouts={
            corpus: replace(layout, index=index_names[corpus])
            for corpus, layout in DEFAULT_LAYOUTS.items()
        },
    )


@lru_cache
def get_embedder() -> QueryEmbedder:
    """Get the configured query embedder."""
    settings = get_settings()
    if settings.embedding_provider == "local":
        return LocalEmbedder(settings.local_embedding_model)
    return OpenRouterEmbedder(
        settings.openrouter_api_key,
        model=settings.embedding_model,
        base_url=settings.openrouter_url,
        timeout=settings.embedding_timeout_seconds,
    )


@lru_cache
def get_llm_service() -> OpenRouterLLMService:
    """Get OpenRouter chat completion singleton."""
    settings = get_settings()
    return OpenRouterLLMService(settings.openrouter_api_key, base_url=settings.openrouter_url)


@lru_cache
def get_jina_reranker() -> JinaReranker:
    """Get Jina reranker singleton."""
    settings = get_settings()
    return JinaReranker(
        settings.jina_api_key,
        model=settings.jina_rerank_model,
        url=settings.jina_rerank_url,
        timeout=settings.jina_rerank_timeout_seconds,
    )


@lru_cache
def get_metadata_lookup() -> BookMetadataLookup:
    """Get cached book metadata lookup."""
    settings = get_settings()
    cache: TTLCache[str, BookMetadata] = TTLCache(
        max_size=settings.metadata_cache_max_size,
        ttl_seconds=settings.metadata_cache_ttl_seconds,
        name="book_metadata",
    )
    return BookMetadataLookup(get_sqlite_repository(), cache)


@lru_cache
def get_search_engine() -> HybridSearchEngine:
    """Get hybrid search engine singleton."""
    settings = get_settings()
    embedder = get_embedder()
    retrievers = build_retrievers(get_vector_index(), get_lexical_index(), embedder)
    metadata = get_metadata_lookup()
    reranker = RerankerOrchestrator(
        llm=get_llm_service(),
        pair_reranker=get_jina_reranker(),
        timeouts={RerankerType.JINA: settings.jina_rerank_timeout_seconds},
        unified_timeout=settings.unified_rerank_timeout_seconds,
    )
    expansion_cache: TTLCache[str, list[ExpandedQuery]] = TTLCache(
        max_size=settings.expansion_cache_max_size,
        ttl_seconds=settings.expansion_cache_ttl_seconds,
        name="query_expansion",
    )
    expansion = QueryExpansionService(
        get_llm_service(), expansion_cache, timeout_seconds=settings.expansion_timeout_seconds
    )

    standard = StandardSearch(
        retrievers,
        embedder,
        reranker,
        metadata=metadata,
        embedding_timeout=settings.embedding_timeout_seconds,
    )
    refine = RefineSearch(
        retrievers,
        embedder,
        expansion,
        reranker,
        metadata=metadata,
        embedding_timeout=settings.embedding_timeout_seconds,
    )
    authors = AuthorSearch(
        get_vector_index(),
        get_sqlite_repository(),
        embedder,
        embedding_timeout=settings.embedding_timeout_seconds,
    )
    return HybridSearchEngine(
        standard,
        refine,
        metadata=metadata,
        debug_enabled=settings.debug_stats_enabled,
        authors=authors,
    )


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    repo = get_sqlite_repository()
    await repo.initialize()
    get_search_engine()


async def cleanup_services() -> None:
    """Close backend clients on shutdown."""
    await get_sqlite_repository().close()
    await get_vector_index().close()
    await get_lexical_index().close()
    await get_llm_service().close()
    await get_jina_reranker().close()
    embedder = get_embedder()
    if isinstance(embedder, OpenRouterEmbedder):
        await embedder.close()
