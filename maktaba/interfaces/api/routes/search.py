"""
Search Routes - Hybrid search over books, Quran and hadith.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from maktaba.domains.search import (
    HybridSearchEngine,
    RerankerType,
    SearchMode,
    SearchRequest,
    SearchResponse,
)
from maktaba.interfaces.api.deps import get_search_engine

router = APIRouter()


def _collections(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [slug.strip() for slug in raw.split(",") if slug.strip()]


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query(..., description="Search query (Arabic or English)"),
    mode: SearchMode = SearchMode.HYBRID,
    limit: int = Query(20, ge=1, le=100),
    book_limit: int = Query(10, ge=5, le=50, alias="bookLimit"),
    book_id: str | None = Query(None, alias="bookId"),
    include_books: bool = Query(True, alias="includeBooks"),
    include_quran: bool = Query(True, alias="includeQuran"),
    include_hadith: bool = Query(True, alias="includeHadith"),
    hadith_collections: str | None = Query(
        None, alias="hadithCollections", description="Comma-separated collection slugs"
    ),
    reranker: RerankerType = RerankerType.NONE,
    similarity_cutoff: float = Query(0.6, ge=0.0, le=1.0, alias="similarityCutoff"),
    fuzzy: bool = True,
    refine: bool = False,
    refine_similarity_cutoff: float = Query(
        0.25, ge=0.0, le=1.0, alias="refineSimilarityCutoff"
    ),
    refine_original_weight: float = Query(1.0, gt=0.0, le=1.0, alias="refineOriginalWeight"),
    refine_expanded_weight: float = Query(0.7, gt=0.0, le=1.0, alias="refineExpandedWeight"),
    refine_book_per_query: int = Query(30, ge=1, le=100, alias="refineBookPerQuery"),
    refine_ayah_per_query: int = Query(30, ge=1, le=100, alias="refineAyahPerQuery"),
    refine_hadith_per_query: int = Query(30, ge=1, le=100, alias="refineHadithPerQuery"),
    refine_book_rerank: int = Query(20, ge=1, le=50, alias="refineBookRerank"),
    refine_ayah_rerank: int = Query(12, ge=1, le=50, alias="refineAyahRerank"),
    refine_hadith_rerank: int = Query(15, ge=1, le=50, alias="refineHadithRerank"),
    query_expansion_model: RerankerType = Query(
        RerankerType.GEMINI_FLASH, alias="queryExpansionModel"
    ),
    include_debug: bool = Query(False, alias="includeDebug"),
    engine: HybridSearchEngine = Depends(get_search_engine),
) -> SearchResponse:
    """
    Search passages, verses and narrations.

    - **q**: Search query (at most 500 characters)
    - **mode**: hybrid, semantic or keyword
    - **refine**: Expand the query with an LLM and merge results (hybrid mode only)
    - **reranker**: none, jina or an LLM strategy
    """
    request = SearchRequest(
        query=q,
        mode=mode,
        limit=limit,
        book_limit=book_limit,
        book_id=book_id,
        include_books=include_books,
        include_quran=include_quran,
        include_hadith=include_hadith,
        hadith_collections=_collections(hadith_collections),
        reranker=reranker,
        similarity_cutoff=similarity_cutoff,
        fuzzy=fuzzy,
        refine=refine,
        refine_similarity_cutoff=refine_similarity_cutoff,
        refine_original_weight=refine_original_weight,
        refine_expanded_weight=refine_expanded_weight,
        refine_book_per_query=refine_book_per_query,
        refine_ayah_per_query=refine_ayah_per_query,
        refine_hadith_per_query=refine_hadith_per_query,
        refine_book_rerank=refine_book_rerank,
        refine_ayah_rerank=refine_ayah_rerank,
        refine_hadith_rerank=refine_hadith_rerank,
        query_expansion_model=query_expansion_model,
        include_debug=include_debug,
    )
    return await engine.search(request)
