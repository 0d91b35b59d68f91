"""
In-memory TTL cache for provider results.

Stores the last successful result per key for a bounded lifetime so repeated
logging actions do not hit slow or rate-limited providers. Eviction is lazy:
an expired entry is purged the next time it is read.
"""

import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

ValueT = TypeVar("ValueT")


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[ValueT]):
    value: ValueT
    expires_at: float


class TTLCache:
    """
    Thread-safe key/value cache with per-entry expiry.

    Usage:
        cache = TTLCache()
        cache.set("weather_37.77_-122.41", payload, ttl_seconds=300)
        cache.get("weather_37.77_-122.41")
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry[Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        """Return the stored value while it is fresh, otherwise evict it and return None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                logger.debug("cache_entry_expired", key=key)
                return None
            return entry.value

    def set(self, key: Hashable, value: Any, ttl_seconds: float) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        # Counts entries not yet evicted, including expired ones nobody has read.
        with self._lock:
            return len(self._entries)
