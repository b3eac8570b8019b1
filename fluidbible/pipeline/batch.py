"""Pure state machine for whole-book batch generation.

Responsibilities:
- Describe the next side effect a batch run needs (`next_effect`).
- Fold the outcome of that effect into a new immutable `BatchRun` snapshot.

Nothing here performs I/O or sleeps; `orchestrator.py` executes the effects.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..models.datatypes import BatchPhase, BatchRun


@dataclass(frozen=True, slots=True)
class BatchPolicy:
    """Retry and pacing parameters for a batch run."""

    backoff_base_seconds: float = 2.0
    max_attempts: int = 5
    inter_chapter_delay_seconds: float = 2.0


@dataclass(frozen=True, slots=True)
class CheckChapter:
    """Look the chapter up in the persistent store."""

    chapter: int


@dataclass(frozen=True, slots=True)
class GenerateChapter:
    """Generate and persist the chapter; `attempt` counts prior transient failures."""

    chapter: int
    attempt: int


@dataclass(frozen=True, slots=True)
class Wait:
    """Sleep before the next step, interruptibly."""

    seconds: float
    reason: str


BatchEffect = CheckChapter | GenerateChapter | Wait


def backoff_seconds(base_seconds: float, attempt: int) -> float:
    """Return the wait after the `attempt`-th consecutive transient failure (1-based)."""

    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return base_seconds * 2 ** (attempt - 1)


def _append(run: BatchRun, *messages: str) -> tuple[str, ...]:
    return run.log + messages


def start_run(book_name: str, total: int) -> BatchRun:
    """Return the initial snapshot of a run over `total` chapters."""

    if total < 0:
        raise ValueError("total must be >= 0")
    run = BatchRun(
        book_name=book_name,
        total=total,
        log=(f"Iniciando geração para {book_name} ({total} capítulos)...",),
    )
    if total == 0:
        return _complete(run)
    return run


def next_effect(run: BatchRun) -> BatchEffect | None:
    """Return the effect the current phase requires, or `None` when terminal."""

    if run.phase is BatchPhase.CHECK:
        return CheckChapter(chapter=run.chapter)
    if run.phase is BatchPhase.GENERATE:
        return GenerateChapter(chapter=run.chapter, attempt=run.attempt)
    if run.phase in (BatchPhase.BACKOFF, BatchPhase.DELAY):
        return Wait(seconds=run.wait_seconds, reason=run.phase.value)
    return None


def _complete(run: BatchRun) -> BatchRun:
    return replace(
        run,
        phase=BatchPhase.COMPLETED,
        wait_seconds=0.0,
        log=_append(run, "Processo finalizado."),
    )


def _advance(run: BatchRun, policy: BatchPolicy, *, delay: bool) -> BatchRun:
    """Move past the current chapter, inserting the politeness delay when more remain."""

    if run.chapter >= run.total:
        return _complete(run)
    if delay and policy.inter_chapter_delay_seconds > 0:
        return replace(
            run,
            phase=BatchPhase.DELAY,
            attempt=0,
            wait_seconds=policy.inter_chapter_delay_seconds,
        )
    return replace(
        run,
        phase=BatchPhase.CHECK,
        chapter=run.chapter + 1,
        attempt=0,
        wait_seconds=0.0,
    )


def apply_check(run: BatchRun, policy: BatchPolicy, *, present: bool) -> BatchRun:
    """Fold a store lookup result for the current chapter."""

    chapter = run.chapter
    if present:
        checked = replace(
            run,
            current=chapter,
            skipped=run.skipped + 1,
            log=_append(run, f"Capítulo {chapter}: Já existe. Pulando."),
        )
        return _advance(checked, policy, delay=False)
    return replace(
        run,
        current=chapter,
        phase=BatchPhase.GENERATE,
        attempt=0,
        log=_append(run, f"Capítulo {chapter}: Gerando conteúdo..."),
    )


def apply_generated(run: BatchRun, policy: BatchPolicy) -> BatchRun:
    """Fold a successful generate-and-persist of the current chapter."""

    generated = replace(
        run,
        generated=run.generated + 1,
        log=_append(run, f"Capítulo {run.chapter}: Gerado e salvo com sucesso!"),
    )
    return _advance(generated, policy, delay=True)


def apply_failure(
    run: BatchRun,
    policy: BatchPolicy,
    *,
    message: str,
    transient: bool,
) -> BatchRun:
    """Fold a failed generation attempt of the current chapter.

    A transient failure schedules a backoff of `base * 2^(n-1)` for the n-th
    consecutive failure; a fatal one counts the chapter as an error.
    """

    chapter = run.chapter
    if not transient:
        failed = replace(
            run,
            errors=run.errors + 1,
            log=_append(run, f"ERRO no Capítulo {chapter}: {message}"),
        )
        return _advance(failed, policy, delay=True)

    attempt = run.attempt + 1
    wait_seconds = backoff_seconds(policy.backoff_base_seconds, attempt)
    return replace(
        run,
        phase=BatchPhase.BACKOFF,
        attempt=attempt,
        wait_seconds=wait_seconds,
        log=_append(
            run,
            f"Cota excedida (Cap {chapter}). Aguardando {wait_seconds:g}s para tentar "
            f"novamente ({attempt}/{policy.max_attempts})...",
        ),
    )


def apply_wait_elapsed(run: BatchRun, policy: BatchPolicy) -> BatchRun:
    """Fold the end of a backoff or politeness wait."""

    if run.phase is BatchPhase.DELAY:
        return replace(
            run,
            phase=BatchPhase.CHECK,
            chapter=run.chapter + 1,
            attempt=0,
            wait_seconds=0.0,
        )
    if run.phase is not BatchPhase.BACKOFF:
        raise ValueError(f"No wait is pending in phase `{run.phase.value}`.")
    if run.attempt >= policy.max_attempts:
        exhausted = replace(
            run,
            errors=run.errors + 1,
            wait_seconds=0.0,
            log=_append(
                run,
                f"ERRO CRÍTICO no Capítulo {run.chapter}: Falha após "
                f"{run.attempt} tentativas.",
            ),
        )
        return _advance(exhausted, policy, delay=True)
    return replace(run, phase=BatchPhase.GENERATE, wait_seconds=0.0)


def apply_cancel(run: BatchRun) -> BatchRun:
    """Stop the run where it is; `current` and counters are left untouched."""

    if run.finished:
        return run
    return replace(
        run,
        phase=BatchPhase.CANCELLED,
        cancelled=True,
        wait_seconds=0.0,
        log=_append(run, "Processo interrompido pelo usuário."),
    )
