"""
SQLite Repository - Book and author metadata storage.

Features:
- Async operations via aiosqlite
- Batched lookups of book titles and author names
- Author name search ordered by book count
- Upserts used when loading the catalog (`maktaba init --catalog`)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import aiosqlite
from pydantic import BaseModel, Field, ValidationError

from maktaba.config.errors import StorageError
from maktaba.domains.search.models import Author, BookMetadata

logger = logging.getLogger(__name__)

__all__ = ["Catalog", "SQLiteRepository"]

# SQLite's default host parameter limit is 999
_MAX_PARAMS = 900


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CatalogAuthor(BaseModel):
    id: int
    name_arabic: str
    name_latin: str | None = None
    death_date_hijri: str | None = None
    death_date_gregorian: str | None = None


class CatalogBook(BaseModel):
    id: str
    title_arabic: str
    title_latin: str | None = None
    author_id: int | None = None


class Catalog(BaseModel):
    """Book and author records loaded by `maktaba init --catalog`."""

    authors: list[CatalogAuthor] = Field(default_factory=list)
    books: list[CatalogBook] = Field(default_factory=list)


class SQLiteRepository:
    """
    SQLite repository for book metadata.

    Example:
        >>> repo = SQLiteRepository("data/maktaba.db")
        >>> await repo.initialize()
        >>> await repo.upsert_author(1, "النووي")
        >>> await repo.upsert_book("10", "رياض الصالحين", author_id=1)
        >>> books = await repo.get_books(["10"])
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = await aiosqlite.connect(str(self.db_path))
            except aiosqlite.Error as e:
                raise StorageError(f"Cannot open database: {self.db_path}") from e
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()

        await conn.executescript("""
            -- Authors table
            CREATE TABLE IF NOT EXISTS authors (
                id INTEGER PRIMARY KEY,
                name_arabic TEXT NOT NULL,
                name_latin TEXT,
                death_date_hijri TEXT,
                death_date_gregorian TEXT
            );

            -- Books table
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title_arabic TEXT NOT NULL,
                title_latin TEXT,
                author_id INTEGER,
                FOREIGN KEY (author_id) REFERENCES authors(id)
            );

            CREATE INDEX IF NOT EXISTS idx_books_author ON books(author_id);
        """)

        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    async def upsert_author(
        self,
        author_id: int,
        name_arabic: str,
        name_latin: str | None = None,
        death_date_hijri: str | None = None,
        death_date_gregorian: str | None = None,
    ) -> None:
        """Insert or replace an author."""
        conn = await self._get_connection()
        await conn.execute(
            """
            INSERT OR REPLACE INTO authors
                (id, name_arabic, name_latin, death_date_hijri, death_date_gregorian)
            VALUES (?, ?, ?, ?, ?)
            """,
            (author_id, name_arabic, name_latin, death_date_hijri, death_date_gregorian),
        )
        await conn.commit()

    async def upsert_book(
        self,
        book_id: str,
        title_arabic: str,
        author_id: int | None = None,
        title_latin: str | None = None,
    ) -> None:
        """Insert or replace a book."""
        conn = await self._get_connection()
        await conn.execute(
            """
            INSERT OR REPLACE INTO books (id, title_arabic, title_latin, author_id)
            VALUES (?, ?, ?, ?)
            """,
            (book_id, title_arabic, title_latin, author_id),
        )
        await conn.commit()

    async def import_catalog(self, path: str | Path) -> tuple[int, int]:
        """
        Upsert the authors and books of a JSON catalog file.

        Args:
            path: JSON file with "authors" and "books" arrays

        Returns:
            Number of authors and books written

        Raises:
            StorageError: File is unreadable or not a valid catalog
        """
        try:
            catalog = Catalog.model_validate_json(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise StorageError(f"Cannot load catalog: {path}", {"error": str(e)}) from e

        for author in catalog.authors:
            await self.upsert_author(
                author.id,
                author.name_arabic,
                author.name_latin,
                author.death_date_hijri,
                author.death_date_gregorian,
            )
        for book in catalog.books:
            await self.upsert_book(book.id, book.title_arabic, book.author_id, book.title_latin)

        logger.info(
            "Imported %d authors and %d books from %s",
            len(catalog.authors),
            len(catalog.books),
            path,
        )
        return len(catalog.authors), len(catalog.books)

    async def get_books(self, book_ids: Iterable[str]) -> dict[str, BookMetadata]:
        """
        Get title and author for several books.

        Args:
            book_ids: Book IDs to look up

        Returns:
            Metadata keyed by book ID; unknown IDs are omitted
        """
        ids = list(dict.fromkeys(str(book_id) for book_id in book_ids))
        if not ids:
            return {}

        conn = await self._get_connection()
        books: dict[str, BookMetadata] = {}
        for start in range(0, len(ids), _MAX_PARAMS):
            batch = ids[start : start + _MAX_PARAMS]
            placeholders = ",".join("?" for _ in batch)
            cursor = await conn.execute(
                f"""
                SELECT b.id, b.title_arabic, a.name_arabic AS author_name_arabic
                FROM books b
                LEFT JOIN authors a ON a.id = b.author_id
                WHERE b.id IN ({placeholders})
                """,
                batch,
            )
            for row in await cursor.fetchall():
                books[row["id"]] = BookMetadata(
                    book_id=row["id"],
                    title_arabic=row["title_arabic"],
                    author_name_arabic=row["author_name_arabic"],
                )

        logger.debug("Loaded metadata for %d of %d books", len(books), len(ids))
        return books

    async def find_authors(self, query: str, limit: int) -> list[Author]:
        """
        Find authors whose Arabic or Latin name contains the query.

        Latin names match case-insensitively. Authors with more books come first.
        """
        pattern = "%" + _escape_like(query.strip()) + "%"
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            SELECT a.id, a.name_arabic, a.name_latin, a.death_date_hijri,
                   a.death_date_gregorian, COUNT(b.id) AS books_count
            FROM authors a
            LEFT JOIN books b ON b.author_id = a.id
            WHERE a.name_arabic LIKE ? ESCAPE '\\' OR a.name_latin LIKE ? ESCAPE '\\'
            GROUP BY a.id
            ORDER BY books_count DESC, a.id
            LIMIT ?
            """,
            (pattern, pattern, limit),
        )
        return [
            Author(
                author_id=str(row["id"]),
                name_arabic=row["name_arabic"],
                name_latin=row["name_latin"],
                death_date_hijri=row["death_date_hijri"],
                death_date_gregorian=row["death_date_gregorian"],
                books_count=row["books_count"],
            )
            for row in await cursor.fetchall()
        ]

    async def get_book_count(self) -> int:
        """Get total book count."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT COUNT(*) FROM books")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
