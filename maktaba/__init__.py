"""
Maktaba - Hybrid retrieval over classical Arabic books, Quran and Hadith.

Example:
    >>> from maktaba.interfaces.api.deps import get_search_engine
    >>> engine = get_search_engine()
    >>> response = await engine.search(SearchRequest(query="الصبر على البلاء"))
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
