"""Domain exceptions for content resolution, storage, and CLI diagnostics."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.datatypes import ChapterKey


class InvalidChapterKeyError(ValueError):
    """Raised when a book cannot be identified or a chapter is out of range."""


class StoreError(RuntimeError):
    """Raised when the persistent store fails for infrastructure reasons.

    A missing chapter is never a `StoreError`; gateways return `None` for it.
    """

    def __init__(self, *, operation: str, detail: str) -> None:
        """Initialize a store failure scoped to one gateway operation."""

        super().__init__(f"Store {operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class ProviderError(RuntimeError):
    """Raised when the generation provider fails or returns unusable output."""

    TRANSIENT_KINDS = frozenset({"rate_limited", "insufficient_quota"})

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        """Initialize provider error metadata used for retry classification."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code

    @property
    def transient(self) -> bool:
        """Return whether waiting and retrying is expected to succeed."""

        return self.failure_kind in self.TRANSIENT_KINDS


class ResolutionError(RuntimeError):
    """Raised when fluid content for a chapter key cannot be produced."""

    def __init__(self, key: ChapterKey, message: str, *, transient: bool) -> None:
        """Initialize a resolution failure for one chapter key."""

        super().__init__(message)
        self.key = key
        self.message = message
        self.transient = transient


class CommandError(RuntimeError):
    """Raised when a CLI command fails at a specific stage."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped command error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint
