"""Application-facing entry points for chapter reads and batch runs."""

from __future__ import annotations

from types import TracebackType

from ..config import FluidBibleConfig
from ..io.corpus import DEFAULT_CORPUS_PATH, StaticCorpus
from ..io.storage import FluidStore
from ..llm.cache import EphemeralCache
from ..models.datatypes import ChapterKey, FluidContent
from ..provider_factory import ProviderFactory
from ..telemetry.logger import RunLogger
from ..text.books import DEFAULT_CATALOG, BookCatalog
from .batch import BatchPolicy
from .orchestrator import BatchHandle, BatchOrchestrator, SnapshotCallback
from .resolver import TieredResolver


class FluidBibleService:
    """Wire a resolver and a batch orchestrator behind two operations."""

    def __init__(
        self,
        *,
        resolver: TieredResolver,
        orchestrator: BatchOrchestrator,
        catalog: BookCatalog = DEFAULT_CATALOG,
    ) -> None:
        self.resolver = resolver
        self.orchestrator = orchestrator
        self.catalog = catalog

    @classmethod
    def from_config(
        cls,
        config: FluidBibleConfig,
        *,
        run_logger: RunLogger | None = None,
        catalog: BookCatalog = DEFAULT_CATALOG,
        batch_store: FluidStore | None = None,
    ) -> FluidBibleService:
        """Build every collaborator from a validated config."""

        runtime = config.resolved_provider_runtime()
        client = ProviderFactory.create_client(
            runtime,
            timeout_seconds=config.provider_timeout_seconds,
            min_request_interval_seconds=config.min_request_interval_seconds,
        )
        corpus = StaticCorpus.from_json(config.corpus_path or DEFAULT_CORPUS_PATH, catalog)
        resolver = TieredResolver(
            corpus=corpus,
            cache=EphemeralCache(max_entries=config.cache_max_entries),
            store=ProviderFactory.create_store(config, catalog=catalog),
            generator=ProviderFactory.create_generator(
                runtime, client, temperature=config.temperature, catalog=catalog
            ),
            verse_source=ProviderFactory.create_verse_source(runtime, client, catalog=catalog),
            primary_language=config.primary_language,
        )
        orchestrator = BatchOrchestrator(
            resolver=resolver,
            store=(
                batch_store
                if batch_store is not None
                else ProviderFactory.create_store(config, batch=True, catalog=catalog)
            ),
            catalog=catalog,
            language=config.language,
            policy=BatchPolicy(
                backoff_base_seconds=config.backoff_base_seconds,
                max_attempts=config.max_attempts,
                inter_chapter_delay_seconds=config.inter_chapter_delay_seconds,
            ),
            run_logger=run_logger,
        )
        return cls(resolver=resolver, orchestrator=orchestrator, catalog=catalog)

    def resolve_chapter(self, language: str, book: str, chapter: int) -> FluidContent:
        """Return fluid content for one chapter, generating it when needed.

        Raises:
            InvalidChapterKeyError: If the book or chapter is invalid.
            ResolutionError: If generation fails.
        """

        key = ChapterKey.create(language, book, chapter, self.catalog)
        return self.resolver.resolve(key)

    def start_batch(
        self,
        book: str,
        total: int | None = None,
        *,
        on_snapshot: SnapshotCallback | None = None,
    ) -> BatchHandle:
        """Start generating a book's first `total` chapters on a worker thread."""

        return self.orchestrator.start(book, total, on_snapshot=on_snapshot)

    def close(self) -> None:
        self.resolver.close()

    def __enter__(self) -> FluidBibleService:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
