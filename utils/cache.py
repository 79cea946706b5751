"""
Bounded FIFO caches with per-entry time-to-live

Entries are evicted in insertion order when the cache is full; reading an
entry never refreshes its position or its deadline. Expiry is lazy: an
expired entry reads as a miss and is swept out before the next insert.
"""
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Hashable, List

from cachetools import FIFOCache

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class CacheEntry:
    """Cached value with its insertion slot and expiry deadline"""
    value: Any
    slot: int
    expires_at: float


class BoundedCache:
    """
    Capacity-bounded cache that evicts the oldest-inserted entry.
    Safe to share between threads; the fetch on a miss runs outside the lock,
    so concurrent misses on one key each call upstream.
    """

    def __init__(self, name: str, maxsize: int, ttl: float,
                 timer: Callable[[], float] = time.monotonic):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.name = name
        self.maxsize = maxsize
        self.ttl = ttl
        self._timer = timer
        self._store = FIFOCache(maxsize=maxsize)
        self._slots = itertools.count()
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the live value for key, or default"""
        with self._lock:
            entry = self._live_entry(key, self._timer())
        return default if entry is None else entry.value

    def set(self, key: Hashable, value: Any) -> None:
        """Insert value under key, evicting the oldest entry if full"""
        with self._lock:
            now = self._timer()
            self._sweep(now)

            if key in self._store:
                del self._store[key]
            elif len(self._store) >= self.maxsize:
                evicted_key, _ = self._store.popitem()
                logger.debug(f"[{self.name}] evicted {evicted_key!r}")

            self._store[key] = CacheEntry(
                value=value,
                slot=next(self._slots),
                expires_at=now + self.ttl,
            )

    def get_or_fetch(self, key: Hashable, fetch: Callable[[], Any]) -> Any:
        """
        Return the cached value for key, calling fetch() on a miss.
        If fetch raises, the exception propagates and the cache is unchanged.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        value = fetch()
        self.set(key, value)
        return value

    def keys(self) -> List[Hashable]:
        """Live keys, oldest insertion first"""
        with self._lock:
            now = self._timer()
            live = [(entry.slot, key) for key, entry in self._store.items()
                    if entry.expires_at > now]
        return [key for _, key in sorted(live)]

    def clear(self) -> Dict[str, Any]:
        with self._lock:
            self._store.clear()
        logger.info(f"[{self.name}] cache cleared")
        return {'cleared': True, 'timestamp': datetime.now(timezone.utc).isoformat()}

    def stats(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'size': len(self.keys()),
            'max_size': self.maxsize,
            'ttl_seconds': self.ttl,
        }

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self.keys())

    def _live_entry(self, key, now):
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._store[key]
            return None
        return entry

    def _sweep(self, now):
        expired = [key for key, entry in self._store.items() if entry.expires_at <= now]
        for key in expired:
            del self._store[key]
