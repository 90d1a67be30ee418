"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from maktaba.config.errors import ErrorCode, MaktabaError

    raise MaktabaError(ErrorCode.SEARCH_INVALID_QUERY, "Query is empty")
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Search errors
    SEARCH_INVALID_QUERY = "SEARCH_INVALID_QUERY"
    SEARCH_INDEX_UNAVAILABLE = "SEARCH_INDEX_UNAVAILABLE"
    SEARCH_BACKEND_FAILED = "SEARCH_BACKEND_FAILED"

    # Reranking errors
    RERANK_FAILED = "RERANK_FAILED"
    RERANK_TIMEOUT = "RERANK_TIMEOUT"

    # LLM/Model errors
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_INVALID_RESPONSE = "LLM_INVALID_RESPONSE"
    EMBEDDING_FAILED = "EMBEDDING_FAILED"

    # Storage errors
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"


class MaktabaError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Domain-specific exceptions for cleaner imports
class SearchError(MaktabaError):
    """Invalid search request (caller input error)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.SEARCH_INVALID_QUERY, message, details)


class IndexUnavailableError(MaktabaError):
    """Target collection or index does not exist yet."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.SEARCH_INDEX_UNAVAILABLE, message, details)


class BackendError(MaktabaError):
    """Vector or lexical backend call failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.SEARCH_BACKEND_FAILED, message, details)


class RerankerError(MaktabaError):
    """Reranking service errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.RERANK_FAILED, message, details)


class LLMError(MaktabaError):
    """LLM/model errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.LLM_UNAVAILABLE, message, details)


class EmbeddingError(MaktabaError):
    """Query embedding errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.EMBEDDING_FAILED, message, details)


class StorageError(MaktabaError):
    """Storage/database errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.STORAGE_CONNECTION_FAILED, message, details)
