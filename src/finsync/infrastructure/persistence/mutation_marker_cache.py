"""Per-tenant mutation markers for read-after-write routing."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Optional

from finsync.domain.shared.time import Clock


class MutationMarkerCache:
    """
    Bounded LRU cache of ``key -> expiry`` with time-based eviction.

    A marker is live for ``ttl_seconds`` after the last ``mark``. When the
    cache is full the least recently marked key is evicted first; losing a
    marker early only sends a read to a replica sooner, never a write.

    Safe to share between tasks and threads.

    Parameters
    ----------
    ttl_seconds
        How long a marker stays live
    max_entries
        Upper bound on tracked keys
    clock
        Time source; expiry uses its monotonic reading
    """

    def __init__(
        self,
        ttl_seconds: float = 10.0,
        max_entries: int = 10_000,
        clock: Optional[Clock] = None,
    ):
        if ttl_seconds <= 0:
            msg = "ttl_seconds must be positive"
            raise ValueError(msg)
        if max_entries < 1:
            msg = "max_entries must be at least 1"
            raise ValueError(msg)
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock or Clock()
        self._entries: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def mark(self, key: object) -> float:
        """Create or refresh the marker for ``key``; returns its expiry."""
        k = str(key)
        with self._lock:
            now = self._clock.monotonic()
            expires_at = now + self._ttl
            self._entries[k] = expires_at
            self._entries.move_to_end(k)
            self._evict(now)
            return expires_at

    def is_marked(self, key: object) -> bool:
        return self.remaining(key) is not None

    def remaining(self, key: object) -> Optional[float]:
        """Seconds until the marker expires, or None if there is none."""
        k = str(key)
        with self._lock:
            expires_at = self._entries.get(k)
            if expires_at is None:
                return None
            left = expires_at - self._clock.monotonic()
            if left <= 0:
                del self._entries[k]
                return None
            return left

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._evict(self._clock.monotonic())
            return len(self._entries)

    def _evict(self, now: float) -> None:
        # Entries are ordered by last mark, so expiries are ascending.
        while self._entries:
            oldest_key, oldest_expiry = next(iter(self._entries.items()))
            if oldest_expiry > now and len(self._entries) <= self._max_entries:
                break
            del self._entries[oldest_key]
