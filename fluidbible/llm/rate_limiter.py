"""Request pacing for generation provider calls.

Responsibilities:
- Space consecutive requests to one provider/model key by a minimum interval.
- Stay safe when interactive resolutions and a batch run share one client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from time import monotonic, sleep
from typing import Callable


@dataclass(slots=True)
class RateLimiter:
    """Per-key minimum-interval limiter used before every provider request."""

    min_interval_seconds: float = 0.5
    clock: Callable[[], float] = monotonic
    sleeper: Callable[[float], None] = sleep
    _next_allowed_at: dict[str, float] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def acquire(self, key: str) -> None:
        """Block until a request for `key` is allowed, then reserve the next slot."""

        if self.min_interval_seconds <= 0.0:
            return
        with self._lock:
            now = self.clock()
            next_allowed = self._next_allowed_at.get(key, 0.0)
            # Reserve before sleeping so concurrent callers queue behind this slot.
            start_at = max(now, next_allowed)
            self._next_allowed_at[key] = start_at + self.min_interval_seconds
        wait_seconds = start_at - now
        if wait_seconds > 0.0:
            self.sleeper(wait_seconds)
