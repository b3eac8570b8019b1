"""Ephemeral, process-local cache of resolved fluid content.

Responsibilities:
- Build stable cache keys from chapter keys.
- Serve repeated lookups within one client session without further I/O.
- Never let a failed write (quota, serialization, backing store) reach the caller.
- Track basic cache telemetry (hits/misses).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from threading import Lock
from typing import Callable, MutableMapping

from loguru import logger

from ..models.datatypes import CacheEntry, ChapterKey, FluidContent

_CACHE_PREFIX = "bible_app_v1_"


class CacheQuotaExceededError(RuntimeError):
    """Raised internally when the cache holds `max_entries` entries."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class EphemeralCache:
    """Key/value cache of fluid content with best-effort writes.

    Values are stored as JSON strings so any string mapping (a dict, a `shelve`
    handle, a browser-like storage adapter) can back the cache.
    """

    backing: MutableMapping[str, str] = field(default_factory=dict)
    max_entries: int | None = None
    clock: Callable[[], datetime] = _utc_now
    hits: int = 0
    misses: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    @staticmethod
    def make_key(key: ChapterKey) -> str:
        """Return the storage key for a chapter key."""

        return f"{_CACHE_PREFIX}fluid_{key.language}_{key.book}_{key.chapter}"

    def get(self, key: ChapterKey) -> FluidContent | None:
        """Return cached content and update hit/miss counters; unreadable entries miss."""

        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def get_entry(self, key: ChapterKey) -> CacheEntry | None:
        """Return the full cache entry for a key, if readable."""

        cache_key = self.make_key(key)
        with self._lock:
            raw = self.backing.get(cache_key)
            entry = self._decode(key, raw) if raw is not None else None
            if entry is None:
                self.misses += 1
            else:
                self.hits += 1
            return entry

    def set(self, key: ChapterKey, value: FluidContent) -> None:
        """Store content; any write failure is logged and ignored."""

        cache_key = self.make_key(key)
        try:
            serialized = json.dumps(
                {
                    "written_at": self.clock().isoformat(),
                    "value": value.to_payload(),
                },
                ensure_ascii=False,
            )
            with self._lock:
                if (
                    self.max_entries is not None
                    and cache_key not in self.backing
                    and len(self.backing) >= self.max_entries
                ):
                    raise CacheQuotaExceededError(
                        f"cache holds {len(self.backing)} entries (max {self.max_entries})"
                    )
                self.backing[cache_key] = serialized
        except Exception as exc:
            logger.warning("Ephemeral cache write skipped for {}: {}", key.label(), exc)

    def clear(self) -> None:
        """Drop every fluid entry and reset telemetry."""

        with self._lock:
            for cache_key in [k for k in self.backing if k.startswith(_CACHE_PREFIX)]:
                del self.backing[cache_key]
            self.hits = 0
            self.misses = 0

    def hit_rate(self) -> float:
        """Return cache hit rate for current cache lifecycle."""

        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / float(total)

    @staticmethod
    def _decode(key: ChapterKey, raw: str) -> CacheEntry | None:
        """Decode a stored entry, returning `None` for corrupt or empty content."""

        try:
            payload = json.loads(raw)
            value = FluidContent.from_payload(payload["value"])
            written_at = datetime.fromisoformat(payload["written_at"])
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring unreadable ephemeral cache entry {}: {}", key.label(), exc)
            return None
        if value.is_empty:
            return None
        return CacheEntry(key=key, value=value, written_at=written_at)
