"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    BackendError,
    EmbeddingError,
    ErrorCode,
    IndexUnavailableError,
    LLMError,
    MaktabaError,
    RerankerError,
    SearchError,
    StorageError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "MaktabaError",
    "SearchError",
    "IndexUnavailableError",
    "BackendError",
    "RerankerError",
    "LLMError",
    "EmbeddingError",
    "StorageError",
]
