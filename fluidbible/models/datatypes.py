"""Core datatypes shared across fluidbible modules.

Responsibilities:
- Represent immutable records exchanged between corpus, cache, store, and provider.
- Provide explicit typing and JSON payload conversion for persisted content.

Key types:
- `ChapterKey`, `Verse`, `FluidContent`, `CacheEntry`, `BatchPhase`, and `BatchRun`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from ..errors import InvalidChapterKeyError
from ..text.books import DEFAULT_CATALOG, BookCatalog


@dataclass(frozen=True, slots=True)
class ChapterKey:
    """Composite identifier of one chapter in one language.

    Attributes:
        language: Target language code, for example `pt`.
        book: Canonical book id (see `normalize_book_name`).
        chapter: 1-based chapter number within the book.
    """

    language: str
    book: str
    chapter: int

    @classmethod
    def create(
        cls,
        language: str,
        book: str,
        chapter: int,
        catalog: BookCatalog = DEFAULT_CATALOG,
    ) -> ChapterKey:
        """Build a validated key from any accepted book-name variant.

        Raises:
            InvalidChapterKeyError: If the language is blank, the book is unknown,
                or the chapter is outside the book's range.
        """

        normalized_language = language.strip().lower()
        if not normalized_language:
            raise InvalidChapterKeyError("Language must be a non-empty code.")
        resolved = catalog.resolve(book)
        if isinstance(chapter, bool) or not isinstance(chapter, int):
            raise InvalidChapterKeyError(f"Chapter must be an integer, got `{chapter!r}`.")
        if chapter < 1 or chapter > resolved.chapters:
            raise InvalidChapterKeyError(
                f"{resolved.name} has chapters 1-{resolved.chapters}; got {chapter}."
            )
        return cls(language=normalized_language, book=resolved.book_id, chapter=chapter)

    def label(self) -> str:
        """Return a compact `lang/book/chapter` label for logs."""

        return f"{self.language}/{self.book}/{self.chapter}"


@dataclass(frozen=True, slots=True)
class Verse:
    """One verse of canonical text."""

    number: int
    text: str


VerseSet = tuple[Verse, ...]


def verses_from_texts(texts: list[str] | tuple[str, ...]) -> VerseSet:
    """Number verse texts from 1 in order."""

    return tuple(Verse(number=index, text=text) for index, text in enumerate(texts, start=1))


@dataclass(frozen=True, slots=True)
class FluidContent:
    """Reading-friendly rendering of one chapter.

    Attributes:
        title: Chapter title chosen by the provider.
        paragraphs: Ordered prose paragraphs. Never empty for valid content.
    """

    title: str
    paragraphs: tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        """Return whether the content carries no usable paragraph."""

        return not any(paragraph.strip() for paragraph in self.paragraphs)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON payload stored by persistent and ephemeral tiers."""

        return {"title": self.title, "paragraphs": list(self.paragraphs)}

    @classmethod
    def from_payload(cls, payload: object) -> FluidContent:
        """Parse a `{title, paragraphs}` mapping, ignoring unrelated keys.

        Raises:
            ValueError: If the payload is not a mapping or fields are malformed.
        """

        if not isinstance(payload, Mapping):
            raise ValueError("Fluid content payload must be a JSON object.")
        title = payload.get("title", "")
        paragraphs = payload.get("paragraphs")
        if not isinstance(title, str):
            raise ValueError("Fluid content `title` must be a string.")
        if not isinstance(paragraphs, list) or not all(
            isinstance(paragraph, str) for paragraph in paragraphs
        ):
            raise ValueError("Fluid content `paragraphs` must be a list of strings.")
        return cls(
            title=title.strip(),
            paragraphs=tuple(paragraph.strip() for paragraph in paragraphs if paragraph.strip()),
        )


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Ephemeral cache record with its write time."""

    key: ChapterKey
    value: FluidContent
    written_at: datetime


class BatchPhase(str, Enum):
    """States of the per-chapter batch state machine."""

    CHECK = "check"
    GENERATE = "generate"
    BACKOFF = "backoff"
    DELAY = "delay"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class BatchRun:
    """Snapshot of one mass-generation run over a book.

    Attributes:
        book_name: Book display name the run was started with.
        total: Number of chapters to process.
        current: Chapter currently (or last) processed; 0 before the first one.
        generated: Chapters generated and persisted in this run.
        skipped: Chapters already present in the persistent store.
        errors: Chapters abandoned after a fatal or exhausted failure.
        cancelled: Whether the run stopped because cancellation was requested.
        log: Time-ordered, user-facing log lines.
        phase: Current state-machine phase.
        chapter: Chapter the next step applies to.
        attempt: Transient failures seen for `chapter` so far.
        wait_seconds: Wait scheduled by the current backoff or delay phase.
    """

    book_name: str
    total: int
    current: int = 0
    generated: int = 0
    skipped: int = 0
    errors: int = 0
    cancelled: bool = False
    log: tuple[str, ...] = field(default_factory=tuple)
    phase: BatchPhase = BatchPhase.CHECK
    chapter: int = 1
    attempt: int = 0
    wait_seconds: float = 0.0

    @property
    def finished(self) -> bool:
        """Return whether the run reached a terminal phase."""

        return self.phase in (BatchPhase.COMPLETED, BatchPhase.CANCELLED)

    @property
    def processed(self) -> int:
        """Return how many chapters reached a terminal per-chapter outcome."""

        return self.generated + self.skipped + self.errors
