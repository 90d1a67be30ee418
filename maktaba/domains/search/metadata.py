"""
Book Metadata Lookup - Cached titles and authors for passage rendering.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .cache import TTLCache
from .contracts import MetadataStore
from .models import BookMetadata

logger = logging.getLogger(__name__)

__all__ = ["BookMetadataLookup"]


class BookMetadataLookup:
    """Reads book metadata through a TTL cache; store failures yield no metadata."""

    def __init__(self, store: MetadataStore, cache: TTLCache[str, BookMetadata]) -> None:
        self._store = store
        self._cache = cache

    async def get_books(self, book_ids: Iterable[str]) -> dict[str, BookMetadata]:
        """Metadata for the given books, keyed by book ID (unknown IDs omitted)."""
        unique_ids = list(dict.fromkeys(book_ids))
        found, missing = self._cache.get_many(unique_ids)
        if not missing:
            return found

        try:
            fetched = await self._store.get_books(missing)
        except Exception as e:
            logger.warning("Book metadata lookup failed for %d books: %s", len(missing), e)
            return found

        self._cache.set_many(fetched)
        return {**found, **fetched}
