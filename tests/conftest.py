"""Shared pytest fixtures for the full fluidbible test suite."""

from __future__ import annotations

from typing import Callable, Iterator

import pytest
from loguru import logger

from fluidbible.io.corpus import StaticCorpus
from fluidbible.llm.cache import EphemeralCache
from fluidbible.pipeline.resolver import TieredResolver
from tests.doubles import InMemoryStore, ScriptedGenerator


@pytest.fixture
def sample_corpus() -> StaticCorpus:
    """Provide the bundled sample corpus (Genesis 1 and Psalm 23)."""

    return StaticCorpus.from_json()


@pytest.fixture
def make_resolver(
    sample_corpus: StaticCorpus,
) -> Iterator[Callable[..., TieredResolver]]:
    """Provide a factory for resolvers over the sample corpus, closed after the test."""

    created: list[TieredResolver] = []

    def _make(
        *,
        store: InMemoryStore | None = None,
        generator: ScriptedGenerator | None = None,
        cache: EphemeralCache | None = None,
        verse_source: object | None = None,
    ) -> TieredResolver:
        resolver = TieredResolver(
            corpus=sample_corpus,
            cache=cache if cache is not None else EphemeralCache(),
            store=store if store is not None else InMemoryStore(),
            generator=generator if generator is not None else ScriptedGenerator(),
            verse_source=verse_source,  # type: ignore[arg-type]
        )
        created.append(resolver)
        return resolver

    yield _make
    for resolver in created:
        resolver.close()


@pytest.fixture
def loguru_messages() -> Iterator[list[str]]:
    """Capture loguru messages emitted during the test."""

    messages: list[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)
