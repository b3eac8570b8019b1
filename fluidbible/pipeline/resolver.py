"""Tiered chapter resolution.

Responsibilities:
- Return fluid content for a chapter key from the cheapest tier that has it.
- Generate on a full miss, grounding the provider with canonical verses.
- Write generated content back to the ephemeral cache and, in the background,
  to the persistent store.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from types import TracebackType

from loguru import logger

from ..errors import ProviderError, ResolutionError, StoreError
from ..io.corpus import StaticCorpus
from ..io.storage import FluidStore
from ..llm.cache import EphemeralCache
from ..llm.generator import FluidGenerator
from ..llm.verse_source import VerseSource
from ..models.datatypes import ChapterKey, FluidContent, VerseSet


class TieredResolver:
    """Resolve chapter keys through cache, persistent store, and generation.

    Lookup order is ephemeral cache, then persistent store, then generation.
    The static corpus is never returned to callers; it only grounds generation
    for the primary language.
    """

    def __init__(
        self,
        *,
        corpus: StaticCorpus,
        cache: EphemeralCache,
        store: FluidStore,
        generator: FluidGenerator,
        verse_source: VerseSource | None = None,
        primary_language: str = "pt",
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.corpus = corpus
        self.cache = cache
        self.store = store
        self.generator = generator
        self.verse_source = verse_source
        self.primary_language = primary_language
        self._owns_executor = executor is None
        self._executor = (
            executor
            if executor is not None
            else ThreadPoolExecutor(max_workers=1, thread_name_prefix="fluid-persist")
        )
        self._pending: set[Future[None]] = set()
        self._pending_lock = threading.Lock()

    def resolve(self, key: ChapterKey) -> FluidContent:
        """Return fluid content for `key`, generating it on a full miss.

        Raises:
            ResolutionError: When generation fails or yields empty content.
        """

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            stored = self.store.get(key)
        except StoreError as exc:
            logger.warning("Store read failed for {}; treating as missing: {}", key.label(), exc)
            stored = None
        if stored is not None and stored.is_empty:
            logger.warning("Stored entry for {} has no paragraphs; regenerating", key.label())
            stored = None
        if stored is not None:
            self.cache.set(key, stored)
            return stored

        return self.generate(key)

    def generate(self, key: ChapterKey, *, persist_in_background: bool = True) -> FluidContent:
        """Generate content for `key`, bypassing cache and store lookups.

        The result is always written to the ephemeral cache. With
        `persist_in_background` it is also scheduled for a detached store write;
        otherwise persistence is left to the caller.
        """

        verses = self._verses_for(key)
        try:
            content = self.generator.generate(key, verses)
        except ProviderError as exc:
            raise ResolutionError(key, str(exc), transient=exc.transient) from exc

        if content.is_empty:
            raise ResolutionError(
                key,
                f"Provider returned no paragraphs for {key.label()}.",
                transient=False,
            )

        self.cache.set(key, content)
        if persist_in_background:
            self._schedule_persist(key, content)
        return content

    def _verses_for(self, key: ChapterKey) -> VerseSet:
        """Select grounding verses: corpus for the primary language, else network."""

        if key.language == self.primary_language:
            verses = self.corpus.get_chapter(key.book, key.chapter)
            if verses is not None:
                return verses
        if self.verse_source is not None:
            fetched = self.verse_source.fetch(key)
            if fetched is not None:
                return fetched
        logger.info("No canonical text for {}; generating from the reference only", key.label())
        return ()

    def _schedule_persist(self, key: ChapterKey, content: FluidContent) -> None:
        future = self._executor.submit(self.store.put, key, content)
        with self._pending_lock:
            self._pending.add(future)

        def _on_done(done: Future[None]) -> None:
            with self._pending_lock:
                self._pending.discard(done)
            error = done.exception()
            if error is not None:
                logger.error("Background store write failed for {}: {}", key.label(), error)

        future.add_done_callback(_on_done)

    def flush(self, timeout: float | None = None) -> None:
        """Block until pending background store writes have finished."""

        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Flush pending writes and release the owned executor."""

        self.flush()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> TieredResolver:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
