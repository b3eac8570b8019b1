"""Best-effort canonical verse retrieval for chapters outside the static corpus."""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from ..errors import ProviderError
from ..models.datatypes import ChapterKey, VerseSet, verses_from_texts
from ..text.books import DEFAULT_CATALOG, BookCatalog
from .generator import load_json_response
from .openai_client import ChatCompletionClient
from .prompts import PromptLibrary


class VerseSource(Protocol):
    """Protocol for network-sourced canonical text."""

    def fetch(self, key: ChapterKey) -> VerseSet | None:
        """Return the chapter's verses, or `None` when they cannot be obtained."""


class ChatVerseSource:
    """Ask the chat provider for a chapter's canonical verses.

    Failures never propagate: generation can still proceed from the chapter
    reference alone.
    """

    def __init__(
        self,
        client: ChatCompletionClient,
        model: str,
        catalog: BookCatalog = DEFAULT_CATALOG,
    ) -> None:
        self.client = client
        self.model = model
        self.prompts = PromptLibrary()
        self._catalog = catalog

    def fetch(self, key: ChapterKey) -> VerseSet | None:
        """Fetch verses for a key, logging and returning `None` on any provider failure."""

        book = self._catalog.get(key.book)
        book_name = book.name if book is not None else key.book
        try:
            text = self.client.chat_completion_text(
                model=self.model,
                system_prompt=self.prompts.verses_system_prompt(),
                user_prompt=self.prompts.verses_prompt(
                    book_name=book_name, chapter=key.chapter, language=key.language
                ),
                temperature=0.0,
                json_response=True,
            )
            payload = load_json_response(text)
        except ProviderError as exc:
            logger.warning("Canonical text fetch failed for {}: {}", key.label(), exc)
            return None

        verses = payload.get("verses") if isinstance(payload, dict) else None
        if not isinstance(verses, list):
            logger.warning("Canonical text fetch for {} returned no verse list", key.label())
            return None

        numbered = sorted(
            (
                (entry.get("number"), entry["text"].strip())
                for entry in verses
                if isinstance(entry, dict)
                and isinstance(entry.get("text"), str)
                and entry["text"].strip()
            ),
            key=lambda item: item[0] if isinstance(item[0], int) else 0,
        )
        if not numbered:
            return None
        return verses_from_texts([text for _, text in numbered])
