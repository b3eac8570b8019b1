"""Canonical book catalog and book-name normalization.

Responsibilities:
- Normalize free-form book names into stable ASCII identifiers.
- Resolve Portuguese, English, accented, and abbreviated book names to one id.
- Provide per-book chapter counts used to bound chapter keys and batch runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
import unicodedata
from typing import Iterator

from ..errors import InvalidChapterKeyError


def normalize_book_name(value: str) -> str:
    """Return a diacritic-free, lowercased, dash-collapsed book identifier."""

    normalized = unicodedata.normalize("NFKD", value)
    ascii_only = normalized.encode("ascii", "ignore").decode("ascii")
    lowered = ascii_only.lower().strip()
    collapsed = re.sub(r"[^a-z0-9]+", "-", lowered)
    return collapsed.strip("-")


@dataclass(frozen=True, slots=True)
class Book:
    """One canonical book of the catalog.

    Attributes:
        book_id: Canonical identifier (normalized English name).
        name: Portuguese display name.
        abbrev: Abbreviation used by the bundled corpus dataset.
        chapters: Number of chapters in the book.
        testament: `old` or `new`.
        aliases: Extra display-name variants accepted by the resolver.
    """

    book_id: str
    name: str
    abbrev: str
    chapters: int
    testament: str
    aliases: tuple[str, ...] = field(default_factory=tuple)

    def legacy_storage_names(self) -> tuple[str, ...]:
        """Return filename stems older stores used for this book, most specific first."""

        lowered = self.name.lower()
        stripped = "".join(
            character
            for character in unicodedata.normalize("NFD", lowered)
            if unicodedata.category(character) != "Mn"
        )
        candidates = [
            stripped,
            stripped.replace(" ", "-"),
            stripped.replace("-", " "),
            lowered,
        ]
        return tuple(dict.fromkeys(candidate for candidate in candidates if candidate))


_BOOKS: tuple[Book, ...] = (
    Book("genesis", "Gênesis", "gn", 50, "old"),
    Book("exodus", "Êxodo", "ex", 40, "old"),
    Book("leviticus", "Levítico", "lv", 27, "old"),
    Book("numbers", "Números", "nm", 36, "old"),
    Book("deuteronomy", "Deuteronômio", "dt", 34, "old"),
    Book("joshua", "Josué", "js", 24, "old"),
    Book("judges", "Juízes", "jz", 21, "old"),
    Book("ruth", "Rute", "rt", 4, "old"),
    Book("1-samuel", "1 Samuel", "1sm", 31, "old"),
    Book("2-samuel", "2 Samuel", "2sm", 24, "old"),
    Book("1-kings", "1 Reis", "1rs", 22, "old"),
    Book("2-kings", "2 Reis", "2rs", 25, "old"),
    Book("1-chronicles", "1 Crônicas", "1cr", 29, "old"),
    Book("2-chronicles", "2 Crônicas", "2cr", 36, "old"),
    Book("ezra", "Esdras", "ed", 10, "old"),
    Book("nehemiah", "Neemias", "ne", 13, "old"),
    Book("esther", "Ester", "et", 10, "old"),
    Book("job", "Jó", "jó", 42, "old"),
    Book("psalms", "Salmos", "sl", 150, "old", ("Psalm", "Salmo")),
    Book("proverbs", "Provérbios", "pv", 31, "old"),
    Book("ecclesiastes", "Eclesiastes", "ec", 12, "old"),
    Book(
        "song-of-songs",
        "Cânticos",
        "ct",
        8,
        "old",
        ("Cantares", "Cântico dos Cânticos", "Song of Solomon"),
    ),
    Book("isaiah", "Isaías", "is", 66, "old"),
    Book("jeremiah", "Jeremias", "jr", 52, "old"),
    Book("lamentations", "Lamentações", "lm", 5, "old"),
    Book("ezekiel", "Ezequiel", "ez", 48, "old"),
    Book("daniel", "Daniel", "dn", 12, "old"),
    Book("hosea", "Oséias", "os", 14, "old", ("Oseias",)),
    Book("joel", "Joel", "jl", 3, "old"),
    Book("amos", "Amós", "am", 9, "old"),
    Book("obadiah", "Obadias", "ob", 1, "old"),
    Book("jonah", "Jonas", "jn", 4, "old"),
    Book("micah", "Miquéias", "mq", 7, "old", ("Miqueias",)),
    Book("nahum", "Naum", "na", 3, "old"),
    Book("habakkuk", "Habacuque", "hc", 3, "old"),
    Book("zephaniah", "Sofonias", "sf", 3, "old"),
    Book("haggai", "Ageu", "ag", 2, "old"),
    Book("zechariah", "Zacarias", "zc", 14, "old"),
    Book("malachi", "Malaquias", "ml", 4, "old"),
    Book("matthew", "Mateus", "mt", 28, "new"),
    Book("mark", "Marcos", "mc", 16, "new"),
    Book("luke", "Lucas", "lc", 24, "new"),
    Book("john", "João", "jo", 21, "new"),
    Book("acts", "Atos", "atos", 28, "new", ("Atos dos Apóstolos",)),
    Book("romans", "Romanos", "rm", 16, "new"),
    Book("1-corinthians", "1 Coríntios", "1co", 16, "new"),
    Book("2-corinthians", "2 Coríntios", "2co", 13, "new"),
    Book("galatians", "Gálatas", "gl", 6, "new"),
    Book("ephesians", "Efésios", "ef", 6, "new"),
    Book("philippians", "Filipenses", "fp", 4, "new"),
    Book("colossians", "Colossenses", "cl", 4, "new"),
    Book("1-thessalonians", "1 Tessalonicenses", "1ts", 5, "new"),
    Book("2-thessalonians", "2 Tessalonicenses", "2ts", 3, "new"),
    Book("1-timothy", "1 Timóteo", "1tm", 6, "new"),
    Book("2-timothy", "2 Timóteo", "2tm", 4, "new"),
    Book("titus", "Tito", "tt", 3, "new"),
    Book("philemon", "Filemom", "fm", 1, "new", ("Filemon",)),
    Book("hebrews", "Hebreus", "hb", 13, "new"),
    Book("james", "Tiago", "tg", 5, "new"),
    Book("1-peter", "1 Pedro", "1pe", 5, "new"),
    Book("2-peter", "2 Pedro", "2pe", 3, "new"),
    Book("1-john", "1 João", "1jo", 5, "new"),
    Book("2-john", "2 João", "2jo", 1, "new"),
    Book("3-john", "3 João", "3jo", 1, "new"),
    Book("jude", "Judas", "jd", 1, "new"),
    Book("revelation", "Apocalipse", "ap", 22, "new", ("Apocalypse",)),
)


class BookCatalog:
    """Lookup table from display-name variants to canonical books."""

    def __init__(self, books: tuple[Book, ...] = _BOOKS) -> None:
        """Build exact and normalized indexes over the given books."""

        self._books = books
        self._by_id = {book.book_id: book for book in books}
        self._exact: dict[str, Book] = {}
        normalized: dict[str, Book | None] = {}

        for book in books:
            for variant in (book.abbrev, book.name, book.book_id, *book.aliases):
                self._exact.setdefault(variant.casefold(), book)
                token = normalize_book_name(variant)
                if not token:
                    continue
                existing = normalized.get(token, book)
                # "Jó" and "jo" (João) collapse together; such tokens stay exact-only.
                normalized[token] = book if existing is book else None

        self._normalized = {
            token: book for token, book in normalized.items() if book is not None
        }

    def __iter__(self) -> Iterator[Book]:
        return iter(self._books)

    def __len__(self) -> int:
        return len(self._books)

    def get(self, book_id: str) -> Book | None:
        """Return a book by canonical id, or `None` when unknown."""

        return self._by_id.get(book_id)

    def resolve(self, name: str) -> Book:
        """Resolve any accepted book-name variant to its canonical book.

        Raises:
            InvalidChapterKeyError: If no book matches the name.
        """

        stripped = name.strip()
        exact = self._exact.get(stripped.casefold())
        if exact is not None:
            return exact
        token = normalize_book_name(stripped)
        book = self._by_id.get(token) or self._normalized.get(token)
        if book is None:
            raise InvalidChapterKeyError(f"Unknown book `{name}`.")
        return book

    def chapter_count(self, name: str) -> int:
        """Return the number of chapters of a book given any accepted name."""

        return self.resolve(name).chapters


DEFAULT_CATALOG = BookCatalog()
