"""In-process expiring key/value cache with named TTL bands.

Provides:
- TTLCache.put / get / delete: band-tagged storage; expired == absent.
- TTLCache.get_or_set: memoise an expensive call (e.g. an embedding).
- TTLCache.sweep: drop expired entries; also run every ``sweep_interval`` writes.

Expiry is checked on every read, so sweeping never changes what callers see.
This is a plain expiring map, not an LRU.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from cinechat.config import DEFAULT_TTL_BANDS


@dataclass
class _Entry:
    value: Any
    expires_at: float


class TTLCache:
    """Thread-safe expiring map whose lifetimes come from a fixed set of bands.

    Args:
        bands: Band name → lifetime in seconds (e.g. ``{"5s": 5, "1d": 86400}``).
        clock: Monotonic time source in seconds; injectable for tests.
        sweep_interval: Run ``sweep()`` after this many ``put()`` calls (0 disables).
    """

    def __init__(
        self,
        bands: Mapping[str, float] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: int = 256,
    ) -> None:
        self._bands = dict(bands if bands is not None else DEFAULT_TTL_BANDS)
        for name, seconds in self._bands.items():
            if seconds <= 0:
                raise ValueError(f"TTL band '{name}' must be positive, got {seconds}")
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._writes = 0

    @property
    def bands(self) -> dict[str, float]:
        return dict(self._bands)

    def put(self, key: str, value: Any, band: str) -> None:
        """Store *value* under *key* for the lifetime of *band*.

        Raises:
            ValueError: If *band* is not a configured band name.
        """
        ttl = self._bands.get(band)
        if ttl is None:
            raise ValueError(
                f"Unknown TTL band '{band}'. Known bands: {', '.join(sorted(self._bands))}"
            )
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)
            self._writes += 1
            should_sweep = self._sweep_interval > 0 and self._writes % self._sweep_interval == 0
        if should_sweep:
            self.sweep()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def get_or_set(self, key: str, band: str, factory: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, computing and storing it on a miss.

        *factory* runs outside the lock, so concurrent misses may both call it;
        the last result stored wins. A None result is returned but not cached.
        """
        value = self.get(key)
        if value is not None:
            return value
        value = factory()
        if value is not None:
            self.put(key, value, band)
        return value

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet swept."""
        with self._lock:
            return len(self._entries)
