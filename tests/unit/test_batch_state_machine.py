"""Unit tests for the pure batch-generation state machine."""

from __future__ import annotations

import pytest

from fluidbible.models.datatypes import BatchPhase
from fluidbible.pipeline.batch import (
    BatchPolicy,
    CheckChapter,
    GenerateChapter,
    Wait,
    apply_cancel,
    apply_check,
    apply_failure,
    apply_generated,
    apply_wait_elapsed,
    backoff_seconds,
    next_effect,
    start_run,
)

_POLICY = BatchPolicy(backoff_base_seconds=2.0, max_attempts=5, inter_chapter_delay_seconds=2.0)


def test_backoff_doubles_from_the_base() -> None:
    """Waits follow `base * 2^(n-1)` and strictly increase."""

    waits = [backoff_seconds(2.0, attempt) for attempt in range(1, 6)]

    assert waits == [2.0, 4.0, 8.0, 16.0, 32.0]
    assert all(later > earlier for earlier, later in zip(waits, waits[1:]))


def test_backoff_rejects_non_positive_attempts() -> None:
    """Attempts are 1-based."""

    with pytest.raises(ValueError):
        backoff_seconds(2.0, 0)


def test_start_run_is_zeroed_and_asks_for_the_first_check() -> None:
    """A fresh run has zero counters and checks chapter 1 first."""

    run = start_run("Gênesis", 50)

    assert (run.current, run.generated, run.skipped, run.errors) == (0, 0, 0, 0)
    assert run.cancelled is False
    assert run.log == ("Iniciando geração para Gênesis (50 capítulos)...",)
    assert next_effect(run) == CheckChapter(chapter=1)


def test_empty_run_completes_immediately() -> None:
    """A zero-chapter run is terminal from the start."""

    run = start_run("Obadias", 0)

    assert run.phase is BatchPhase.COMPLETED
    assert next_effect(run) is None


def test_present_chapter_is_skipped_without_delay() -> None:
    """Skipped chapters advance straight to the next check."""

    run = apply_check(start_run("Livro", 2), _POLICY, present=True)

    assert run.skipped == 1
    assert run.current == 1
    assert next_effect(run) == CheckChapter(chapter=2)
    assert run.log[-1] == "Capítulo 1: Já existe. Pulando."


def test_generated_chapter_waits_politely_before_the_next_one() -> None:
    """A generated chapter is followed by the inter-chapter delay when more remain."""

    run = apply_check(start_run("Livro", 2), _POLICY, present=False)
    assert next_effect(run) == GenerateChapter(chapter=1, attempt=0)

    run = apply_generated(run, _POLICY)

    assert run.generated == 1
    assert next_effect(run) == Wait(seconds=2.0, reason="delay")
    run = apply_wait_elapsed(run, _POLICY)
    assert next_effect(run) == CheckChapter(chapter=2)


def test_last_chapter_completes_without_delay() -> None:
    """No politeness delay follows the final chapter."""

    run = apply_check(start_run("Livro", 1), _POLICY, present=False)
    run = apply_generated(run, _POLICY)

    assert run.phase is BatchPhase.COMPLETED
    assert run.log[-1] == "Processo finalizado."


def test_transient_failures_back_off_then_exhaust_after_max_attempts() -> None:
    """Five consecutive transient failures record one error after escalating waits."""

    run = apply_check(start_run("Livro", 1), _POLICY, present=False)
    waits: list[float] = []
    for _ in range(_POLICY.max_attempts):
        run = apply_failure(run, _POLICY, message="429", transient=True)
        effect = next_effect(run)
        assert isinstance(effect, Wait)
        waits.append(effect.seconds)
        run = apply_wait_elapsed(run, _POLICY)

    assert waits == [2.0, 4.0, 8.0, 16.0, 32.0]
    assert run.errors == 1
    assert run.generated == 0
    assert run.phase is BatchPhase.COMPLETED
    assert "Falha após 5 tentativas" in run.log[-2]


def test_transient_failure_retries_the_same_chapter() -> None:
    """After a backoff the same chapter is generated again with the attempt count kept."""

    run = apply_check(start_run("Livro", 3), _POLICY, present=False)
    run = apply_failure(run, _POLICY, message="429", transient=True)
    run = apply_wait_elapsed(run, _POLICY)

    assert next_effect(run) == GenerateChapter(chapter=1, attempt=1)
    assert "(1/5)" in run.log[-1]


def test_fatal_failure_counts_an_error_and_moves_on() -> None:
    """Fatal failures are never retried."""

    run = apply_check(start_run("Livro", 2), _POLICY, present=False)
    run = apply_failure(run, _POLICY, message="chave inválida", transient=False)

    assert run.errors == 1
    assert run.log[-1] == "ERRO no Capítulo 1: chave inválida"
    run = apply_wait_elapsed(run, _POLICY)
    assert next_effect(run) == CheckChapter(chapter=2)


def test_cancel_keeps_current_and_counters() -> None:
    """Cancelling freezes progress and logs the interruption."""

    run = apply_check(start_run("Livro", 3), _POLICY, present=True)
    cancelled = apply_cancel(run)

    assert cancelled.cancelled is True
    assert cancelled.phase is BatchPhase.CANCELLED
    assert cancelled.current == run.current == 1
    assert cancelled.skipped == 1
    assert cancelled.log[-1] == "Processo interrompido pelo usuário."
    assert next_effect(cancelled) is None
    assert apply_cancel(cancelled) is cancelled


def test_wait_elapsed_outside_a_wait_is_rejected() -> None:
    """Only backoff and delay phases have a pending wait."""

    with pytest.raises(ValueError):
        apply_wait_elapsed(start_run("Livro", 1), _POLICY)
