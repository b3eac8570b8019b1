"""Integration-test fixtures for deterministic provider and credential behavior."""

from __future__ import annotations

import json
import os
import sys
from typing import Iterator

import pytest
from loguru import logger

from fluidbible.llm.openai_client import ChatCompletionClient
from tests.doubles import InMemoryCredentialStore

_PROVIDER_API_KEY_ENV_KEYS = ("OPENAI_API_KEY", "OPENROUTER_API_KEY")


@pytest.fixture
def chat_prompts() -> list[str]:
    """Collect user prompts sent through the mocked chat client."""

    return []


@pytest.fixture(autouse=True)
def _mock_chat_completion_calls(
    monkeypatch: pytest.MonkeyPatch, chat_prompts: list[str]
) -> None:
    """Mock chat-completions calls in integration tests to avoid network/key requirements."""

    def _mock_chat_completion(self: ChatCompletionClient, **kwargs: object) -> str:
        """Return one payload usable both as fluid content and as a verse list."""

        _ = self
        chat_prompts.append(str(kwargs.get("user_prompt", "")))
        return json.dumps(
            {
                "title": "Capítulo Fluido",
                "paragraphs": ["Primeiro parágrafo.", "Segundo parágrafo."],
                "verses": [{"number": 1, "text": "Texto canônico."}],
            }
        )

    monkeypatch.setattr(ChatCompletionClient, "chat_completion_text", _mock_chat_completion)


@pytest.fixture(autouse=True)
def credential_store(monkeypatch: pytest.MonkeyPatch) -> InMemoryCredentialStore:
    """Replace OS keyring access with one in-memory store shared by every provider."""

    store = InMemoryCredentialStore()
    monkeypatch.setattr("fluidbible.cli.create_credential_store", lambda provider_id: store)
    return store


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop host configuration that would change CLI defaults."""

    for key in list(os.environ):
        if key.startswith("FLUIDBIBLE_") or key in _PROVIDER_API_KEY_ENV_KEYS:
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _restore_loguru_handlers() -> Iterator[None]:
    """Reset loguru sinks that CLI batch runs bind to captured streams."""

    yield
    logger.remove()
    logger.add(sys.stderr)
