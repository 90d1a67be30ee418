"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Paths
    data_dir: Path = Path("data")
    db_path: Path = Path("data/maktaba.db")

    # Qdrant (vector index)
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    qdrant_timeout_seconds: int = 10
    qdrant_pages_collection: str = "arabic_texts_pages"
    qdrant_quran_collection: str = "quran_ayahs"
    qdrant_hadith_collection: str = "sunnah_hadiths"
    qdrant_authors_collection: str = "arabic_texts_authors"

    # Elasticsearch (lexical index)
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_username: str = "elastic"
    elasticsearch_password: str = ""
    elasticsearch_timeout_seconds: float = 10.0
    es_pages_index: str = "arabic_pages"
    es_ayahs_index: str = "arabic_ayahs"
    es_hadiths_index: str = "arabic_hadiths"

    # OpenRouter (chat completions + embeddings)
    openrouter_url: str = "https://openrouter.ai/api/v1"
    openrouter_api_key: str | None = None

    # Embeddings: "openrouter" (remote) or "local" (sentence-transformers)
    embedding_provider: str = "openrouter"
    embedding_model: str = "google/gemini-embedding-001"
    local_embedding_model: str = "BAAI/bge-m3"
    embedding_timeout_seconds: float = 5.0

    # Jina cross-encoder reranker
    jina_api_key: str | None = None
    jina_rerank_url: str = "https://api.jina.ai/v1/rerank"
    jina_rerank_model: str = "jina-reranker-v3"
    jina_rerank_timeout_seconds: float = 10.0

    # Query expansion / reranking
    expansion_timeout_seconds: float = 15.0
    unified_rerank_timeout_seconds: float = 25.0

    # Caches
    expansion_cache_max_size: int = 1000
    expansion_cache_ttl_seconds: int = 3600
    metadata_cache_max_size: int = 5000
    metadata_cache_ttl_seconds: int = 86400

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    debug_stats_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
