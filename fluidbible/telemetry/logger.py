"""Structured run logging utilities.

Responsibilities:
- Emit concise, deterministic batch-level runtime logs through `loguru`.
- Own sink configuration for CLI-driven runs.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


class RunLogger:
    """Emit deterministic batch logs for CLI-observable pipeline activity."""

    def __init__(self, sink: TextIO | None = None, *, configure_sink: bool = True) -> None:
        """Initialize the logger, replacing loguru handlers with `sink` when requested."""

        self._sink = sink or sys.stdout
        if configure_sink:
            logger.remove()
            logger.add(self._sink, format="{message}", level="INFO", colorize=False)

    def _emit(self, level: str, event: str, **context: object) -> None:
        """Emit one structured runtime log line."""

        logger.log(level, f"[batch] level={level} event={event}{_format_context(context)}")

    def log_run_start(self, book: str, total: int) -> None:
        """Emit a run-start event."""

        self._emit("INFO", "start", book=book, total=total)

    def log_message(self, message: str, *, level: str = "INFO") -> None:
        """Emit one user-facing batch log line verbatim."""

        logger.log(level, message)

    def log_chapter_outcome(self, chapter: int, outcome: str, **context: object) -> None:
        """Emit a per-chapter terminal outcome such as `skipped` or `generated`."""

        level = "WARNING" if outcome == "error" else "INFO"
        self._emit(level, outcome, chapter=chapter, **context)

    def log_run_complete(
        self,
        *,
        generated: int,
        skipped: int,
        errors: int,
        cancelled: bool,
    ) -> None:
        """Emit the run summary event."""

        self._emit(
            "INFO",
            "cancelled" if cancelled else "complete",
            errors=errors,
            generated=generated,
            skipped=skipped,
        )
