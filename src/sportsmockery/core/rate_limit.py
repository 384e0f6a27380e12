"""In-process fixed-window rate limiting.

Each key gets a window that opens on its first event and lasts
``window_seconds``. The key map is bounded: once ``max_keys`` windows are
tracked, expired windows are dropped and then the oldest-started windows are
evicted to make room. Counts are per process only.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    remaining: int
    retry_after: float  # seconds until the window resets; 0 when allowed


@dataclass
class _Window:
    started: float
    count: int


class FixedWindowLimiter:
    """Fixed-window counter keyed by an arbitrary string.

    Usage:
        limiter = FixedWindowLimiter(limit=10, window_seconds=60)
        if not limiter.hit(anon_id).allowed:
            raise HTTPException(429)
    """

    def __init__(
        self,
        limit: int = 10,
        window_seconds: float = 60.0,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_keys < 1:
            raise ValueError("max_keys must be at least 1")
        self.limit = limit
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        # Insertion order == window start order; a reset window moves to the end.
        self._windows: OrderedDict[str, _Window] = OrderedDict()

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, key: object) -> bool:
        return key in self._windows

    def hit(self, key: str) -> RateDecision:
        """Record one event for *key* and decide whether it is allowed."""
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now >= window.started + self.window_seconds:
            if window is None:
                self._make_room(now)
            else:
                del self._windows[key]
            self._windows[key] = _Window(started=now, count=1)
            return RateDecision(allowed=True, remaining=self.limit - 1, retry_after=0.0)

        if window.count >= self.limit:
            retry_after = window.started + self.window_seconds - now
            return RateDecision(allowed=False, remaining=0, retry_after=retry_after)

        window.count += 1
        return RateDecision(allowed=True, remaining=self.limit - window.count, retry_after=0.0)

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)

    def _make_room(self, now: float) -> None:
        if len(self._windows) < self.max_keys:
            return
        self.prune(now)
        while len(self._windows) >= self.max_keys:
            self._windows.popitem(last=False)

    def prune(self, now: float | None = None) -> int:
        """Drop expired windows. Returns how many were removed."""
        if now is None:
            now = self._clock()
        expired = [
            key
            for key, window in self._windows.items()
            if now >= window.started + self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        return len(expired)
