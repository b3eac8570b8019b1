"""Shared typed data models for fluidbible.

This package contains dataclasses used across pipeline modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    BatchPhase,
    BatchRun,
    CacheEntry,
    ChapterKey,
    FluidContent,
    Verse,
    VerseSet,
    verses_from_texts,
)

__all__ = [
    "BatchPhase",
    "BatchRun",
    "CacheEntry",
    "ChapterKey",
    "FluidContent",
    "Verse",
    "VerseSet",
    "verses_from_texts",
]
