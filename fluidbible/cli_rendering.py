"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
fluid chapter text, batch progress, and the book listing.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from .errors import CommandError, InvalidChapterKeyError, ResolutionError
from .models.datatypes import BatchRun, FluidContent
from .text.books import BookCatalog


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, CommandError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    elif isinstance(exc, ResolutionError):
        typer.secho(
            f"{command_name} failed for {exc.key.label()}: {exc.message}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.transient:
            hint = "The provider is rate limited or out of quota; try again later."
        else:
            hint = "Check the provider, model, and API key settings."
        typer.secho(f"Hint: {hint}", fg=typer.colors.YELLOW, err=True)
    elif isinstance(exc, InvalidChapterKeyError):
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
        typer.secho(
            "Hint: run `fluidbible books` to list book names and chapter counts.",
            fg=typer.colors.YELLOW,
            err=True,
        )
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_fluid_content(content: FluidContent) -> None:
    """Print a chapter title followed by blank-line separated paragraphs."""

    typer.secho(content.title, bold=True)
    for paragraph in content.paragraphs:
        typer.echo("")
        typer.echo(paragraph)


def echo_batch_progress(run: BatchRun) -> None:
    """Print one deterministic progress line for a batch snapshot."""

    typer.echo(
        f"[progress] phase={run.phase.value} current={run.current}/{run.total} "
        f"generated={run.generated} skipped={run.skipped} errors={run.errors}"
    )


def echo_batch_summary(run: BatchRun) -> None:
    """Print final batch counters."""

    status = "cancelled" if run.cancelled else "completed"
    typer.echo(f"Batch {status}: {run.book_name}")
    typer.echo(f"Chapters processed: {run.current}/{run.total}")
    typer.echo(f"Generated: {run.generated}")
    typer.echo(f"Skipped: {run.skipped}")
    typer.echo(f"Errors: {run.errors}")


def echo_book_rows(catalog: BookCatalog) -> None:
    """Print compact `id  name  chapters` rows in canonical order."""

    width = max(len(book.book_id) for book in catalog)
    for book in catalog:
        typer.echo(f"{book.book_id.ljust(width)}  {book.name} ({book.chapters})")
