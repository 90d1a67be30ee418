"""SQLite adapter - Book metadata storage."""

from .repository import SQLiteRepository

__all__ = ["SQLiteRepository"]
