"""Fluid chapter generation interfaces and provider integrations.

Responsibilities:
- Define the protocol the resolver uses to generate fluid content.
- Provide a chat-completions-backed generator with JSON response parsing.
"""

from __future__ import annotations

import json
import re
from typing import Any, Protocol

from ..errors import ProviderError
from ..models.datatypes import ChapterKey, FluidContent, VerseSet
from ..text.books import DEFAULT_CATALOG, BookCatalog
from .openai_client import ChatCompletionClient
from .prompts import PromptLibrary

_CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*|\s*```")


def load_json_response(text: str) -> Any:
    """Parse provider text as JSON, tolerating surrounding Markdown code fences.

    Raises:
        ProviderError: With `malformed_response` kind when the text is not JSON.
    """

    stripped = _CODE_FENCE_PATTERN.sub("", text).strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise ProviderError(
            "Provider returned text that is not valid JSON.",
            failure_kind="malformed_response",
        ) from exc


class FluidGenerator(Protocol):
    """Protocol for fluid content providers."""

    def generate(self, key: ChapterKey, verses: VerseSet) -> FluidContent:
        """Rewrite one chapter's verses into fluid content, raising `ProviderError`."""


class ChatFluidGenerator:
    """Chat-completions-backed generator for fluid chapter content."""

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        provider_id: str = "openai",
        api_key: str | None = None,
        temperature: float = 0.7,
        client: ChatCompletionClient | None = None,
        catalog: BookCatalog = DEFAULT_CATALOG,
    ) -> None:
        """Initialize generator settings and chat client dependencies."""

        self.model = model
        self.provider_id = provider_id
        self.temperature = temperature
        self.client = (
            client
            if client is not None
            else ChatCompletionClient(api_key=api_key, provider_id=provider_id)
        )
        self.prompts = PromptLibrary()
        self._catalog = catalog

    def generate(self, key: ChapterKey, verses: VerseSet) -> FluidContent:
        """Generate fluid content for one chapter key."""

        book = self._catalog.get(key.book)
        book_name = book.name if book is not None else key.book
        text = self.client.chat_completion_text(
            model=self.model,
            system_prompt=self.prompts.fluid_system_prompt(),
            user_prompt=self.prompts.fluid_rewrite_prompt(
                book_name=book_name,
                chapter=key.chapter,
                language=key.language,
                verses=verses,
            ),
            temperature=self.temperature,
            json_response=True,
        )
        payload = load_json_response(text)
        try:
            return FluidContent.from_payload(payload)
        except ValueError as exc:
            raise ProviderError(
                f"Provider returned an invalid fluid chapter structure: {exc}",
                failure_kind="malformed_response",
            ) from exc
