"""Book naming helpers shared by keys, corpus lookup, and storage."""

from .books import DEFAULT_CATALOG, Book, BookCatalog, normalize_book_name

__all__ = ["Book", "BookCatalog", "DEFAULT_CATALOG", "normalize_book_name"]
