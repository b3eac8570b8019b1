"""Batch orchestration over every chapter of a book.

Responsibilities:
- Execute the effects requested by the batch state machine: store checks,
  generation with persistence, and interruptible waits.
- Publish one immutable `BatchRun` snapshot per transition.
- Run batches on a worker thread with cooperative cancellation.
"""

from __future__ import annotations

import threading
from typing import Callable, Iterator

from loguru import logger

from ..errors import InvalidChapterKeyError, ResolutionError, StoreError
from ..io.storage import FluidStore
from ..models.datatypes import BatchRun, ChapterKey
from ..telemetry.logger import RunLogger
from ..text.books import DEFAULT_CATALOG, Book, BookCatalog
from .batch import (
    BatchPolicy,
    CheckChapter,
    GenerateChapter,
    Wait,
    apply_cancel,
    apply_check,
    apply_failure,
    apply_generated,
    apply_wait_elapsed,
    next_effect,
    start_run,
)
from .resolver import TieredResolver

SnapshotCallback = Callable[[BatchRun], None]


class CancellationToken:
    """Cooperative cancellation flag whose waits wake up on cancel."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; return `True` if cancellation interrupted the wait."""

        return self._event.wait(timeout=max(seconds, 0.0))


class BatchOrchestrator:
    """Drive generation across a book's chapters, one chapter at a time."""

    def __init__(
        self,
        *,
        resolver: TieredResolver,
        store: FluidStore,
        catalog: BookCatalog = DEFAULT_CATALOG,
        language: str = "pt",
        policy: BatchPolicy | None = None,
        sleeper: Callable[[float], None] | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        """Initialize collaborators.

        `sleeper` replaces the token-based wait (tests pass a recorder); the
        token is still consulted after it returns.
        """

        self.resolver = resolver
        self.store = store
        self.catalog = catalog
        self.language = language
        self.policy = policy if policy is not None else BatchPolicy()
        self._sleeper = sleeper
        self.run_logger = (
            run_logger if run_logger is not None else RunLogger(configure_sink=False)
        )

    def _resolve_scope(self, book: str, total: int | None) -> tuple[Book, int]:
        resolved = self.catalog.resolve(book)
        chapters = resolved.chapters if total is None else total
        if chapters < 0 or chapters > resolved.chapters:
            raise InvalidChapterKeyError(
                f"{resolved.name} has {resolved.chapters} chapters; cannot process {chapters}."
            )
        return resolved, chapters

    def run(
        self,
        book: str,
        total: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[BatchRun]:
        """Return an iterator of snapshots for a run over the first `total` chapters.

        The book is validated eagerly; `total` defaults to the book's chapter count.

        Raises:
            InvalidChapterKeyError: If the book is unknown or `total` is out of range.
        """

        resolved, chapters = self._resolve_scope(book, total)
        token = cancel_token if cancel_token is not None else CancellationToken()
        return self._iterate(resolved, chapters, token)

    def _iterate(self, book: Book, total: int, token: CancellationToken) -> Iterator[BatchRun]:
        run = start_run(book.name, total)
        self.run_logger.log_run_start(book.book_id, total)
        emitted = self._emit_new_lines(run, 0)
        yield run

        while not run.finished:
            if token.cancelled:
                run = apply_cancel(run)
            else:
                run = self._step(book, run, token)
            emitted = self._emit_new_lines(run, emitted)
            yield run

        self.run_logger.log_run_complete(
            generated=run.generated,
            skipped=run.skipped,
            errors=run.errors,
            cancelled=run.cancelled,
        )

    def _step(self, book: Book, run: BatchRun, token: CancellationToken) -> BatchRun:
        effect = next_effect(run)
        if isinstance(effect, CheckChapter):
            key = ChapterKey(language=self.language, book=book.book_id, chapter=effect.chapter)
            return apply_check(run, self.policy, present=self._check(key))
        if isinstance(effect, GenerateChapter):
            key = ChapterKey(language=self.language, book=book.book_id, chapter=effect.chapter)
            return self._generate(run, key)
        if isinstance(effect, Wait):
            if self._wait(effect.seconds, token):
                return apply_cancel(run)
            return apply_wait_elapsed(run, self.policy)
        return run

    def _check(self, key: ChapterKey) -> bool:
        try:
            return self.store.exists(key)
        except StoreError as exc:
            logger.warning("Store check failed for {}; treating as absent: {}", key.label(), exc)
            return False

    def _generate(self, run: BatchRun, key: ChapterKey) -> BatchRun:
        try:
            content = self.resolver.generate(key, persist_in_background=False)
        except ResolutionError as exc:
            self.run_logger.log_chapter_outcome(
                key.chapter, "retry" if exc.transient else "error", attempt=run.attempt + 1
            )
            return apply_failure(run, self.policy, message=exc.message, transient=exc.transient)
        except Exception as exc:
            logger.exception("Unexpected generation failure for {}", key.label())
            self.run_logger.log_chapter_outcome(key.chapter, "error", attempt=run.attempt + 1)
            return apply_failure(run, self.policy, message=str(exc), transient=False)

        try:
            self.store.put(key, content)
        except StoreError as exc:
            logger.error("Store write failed for {}: {}", key.label(), exc)
            self.run_logger.log_chapter_outcome(key.chapter, "error", stage="store")
            return apply_failure(run, self.policy, message=str(exc), transient=False)

        self.run_logger.log_chapter_outcome(key.chapter, "generated")
        return apply_generated(run, self.policy)

    def _wait(self, seconds: float, token: CancellationToken) -> bool:
        if self._sleeper is None:
            return token.wait(seconds)
        self._sleeper(seconds)
        return token.cancelled

    def _emit_new_lines(self, run: BatchRun, emitted: int) -> int:
        for line in run.log[emitted:]:
            self.run_logger.log_message(line)
        return len(run.log)

    def start(
        self,
        book: str,
        total: int | None = None,
        *,
        on_snapshot: SnapshotCallback | None = None,
    ) -> BatchHandle:
        """Start a run on a worker thread and return its observable handle.

        `on_snapshot` is subscribed before the worker starts, so it receives
        every snapshot including the initial one.
        """

        token = CancellationToken()
        snapshots = self.run(book, total, token)
        handle = BatchHandle(snapshots, token)
        if on_snapshot is not None:
            handle.subscribe(on_snapshot)
        handle._start()
        return handle


class BatchHandle:
    """Observe and control a batch running on a worker thread."""

    def __init__(self, snapshots: Iterator[BatchRun], token: CancellationToken) -> None:
        self._snapshots = snapshots
        self._token = token
        self._lock = threading.Lock()
        self._latest: BatchRun | None = None
        self._subscribers: list[SnapshotCallback] = []
        self._error: BaseException | None = None
        self._finished = threading.Event()
        self._thread = threading.Thread(target=self._consume, name="fluid-batch", daemon=True)

    def _start(self) -> None:
        self._thread.start()

    def _consume(self) -> None:
        try:
            for snapshot in self._snapshots:
                with self._lock:
                    self._latest = snapshot
                    subscribers = list(self._subscribers)
                for callback in subscribers:
                    callback(snapshot)
        except Exception as exc:
            logger.exception("Batch run aborted unexpectedly")
            self._error = exc
        finally:
            self._finished.set()

    def snapshot(self) -> BatchRun | None:
        """Return the most recent snapshot, or `None` before the first one."""

        with self._lock:
            return self._latest

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Call `callback` with every later snapshot; return an unsubscribe function.

        The current snapshot, if any, is delivered immediately.
        """

        with self._lock:
            self._subscribers.append(callback)
            latest = self._latest
        if latest is not None:
            callback(latest)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def cancel(self) -> None:
        """Request cooperative cancellation; the in-flight chapter step may still finish."""

        self._token.cancel()

    @property
    def done(self) -> bool:
        """Whether the worker has consumed its last snapshot or stopped on an error."""

        return self._finished.is_set()

    def wait(self, timeout: float | None = None) -> BatchRun:
        """Wait for the run to finish and return its final snapshot.

        Raises:
            TimeoutError: If the run is still going after `timeout` seconds.
        """

        if not self._finished.wait(timeout):
            raise TimeoutError("Batch run is still in progress.")
        if self._error is not None:
            raise self._error
        latest = self.snapshot()
        if latest is None:
            raise RuntimeError("Batch run produced no snapshot.")
        return latest
