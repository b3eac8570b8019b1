"""Read-only lookup over a bundled canonical verse dataset.

Responsibilities:
- Load the `[{abbrev, chapters: [[verse, ...], ...]}]` dataset once into memory.
- Serve chapter verse sets by any accepted book-name variant at zero network cost.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from loguru import logger

from ..errors import InvalidChapterKeyError
from ..models.datatypes import VerseSet, verses_from_texts
from ..text.books import DEFAULT_CATALOG, BookCatalog

DEFAULT_CORPUS_PATH = Path(__file__).resolve().parents[1] / "data" / "corpus_sample.json"


class StaticCorpus:
    """In-memory canonical text keyed by canonical book id and chapter."""

    def __init__(
        self,
        chapters_by_book: Mapping[str, tuple[tuple[str, ...], ...]],
        catalog: BookCatalog = DEFAULT_CATALOG,
    ) -> None:
        """Initialize the corpus from pre-parsed chapter texts per book id."""

        self._chapters_by_book = dict(chapters_by_book)
        self._catalog = catalog

    @classmethod
    def from_json(
        cls, path: Path = DEFAULT_CORPUS_PATH, catalog: BookCatalog = DEFAULT_CATALOG
    ) -> StaticCorpus:
        """Load a corpus file; book entries are matched by abbreviation, then position."""

        payload = json.loads(path.read_text(encoding="utf-8-sig"))
        if not isinstance(payload, list):
            raise ValueError(f"Corpus `{path}` must contain a top-level list of books.")

        books = list(catalog)
        chapters_by_book: dict[str, tuple[tuple[str, ...], ...]] = {}
        for position, entry in enumerate(payload):
            if not isinstance(entry, Mapping):
                raise ValueError(f"Corpus `{path}` entry {position} must be an object.")
            book_id = cls._match_book_id(entry, position, books, catalog, len(payload))
            if book_id is None:
                logger.warning(
                    "Skipping unrecognized corpus entry {} (abbrev={!r}) in {}",
                    position,
                    entry.get("abbrev"),
                    path,
                )
                continue
            raw_chapters = entry.get("chapters")
            if not isinstance(raw_chapters, list):
                raise ValueError(f"Corpus `{path}` entry `{book_id}` has no chapter list.")
            chapters_by_book[book_id] = tuple(
                tuple(str(verse) for verse in chapter) if isinstance(chapter, list) else ()
                for chapter in raw_chapters
            )
        return cls(chapters_by_book, catalog=catalog)

    @staticmethod
    def _match_book_id(
        entry: Mapping[str, object],
        position: int,
        books: list,
        catalog: BookCatalog,
        entry_count: int,
    ) -> str | None:
        """Resolve a dataset entry to a canonical book id."""

        abbrev = entry.get("abbrev")
        if isinstance(abbrev, str) and abbrev.strip():
            try:
                return catalog.resolve(abbrev).book_id
            except InvalidChapterKeyError:
                pass
        # Full datasets list books in canonical order.
        if entry_count == len(books):
            return books[position].book_id
        return None

    def get_chapter(self, book: str, chapter: int) -> VerseSet | None:
        """Return numbered verses for a chapter, or `None` when not bundled."""

        try:
            book_id = self._catalog.resolve(book).book_id
        except InvalidChapterKeyError:
            return None
        chapters = self._chapters_by_book.get(book_id)
        if chapters is None or chapter < 1 or chapter > len(chapters):
            return None
        texts = chapters[chapter - 1]
        if not texts:
            return None
        return verses_from_texts(texts)

    def books(self) -> tuple[str, ...]:
        """Return canonical ids of books present in the dataset."""

        return tuple(self._chapters_by_book)
