"""
Bounded in-memory cache with per-key TTL.

Used by the SQL lookup service to avoid re-querying month, period,
charge-type, settlement and organization names on every report.

Performance:
    - O(1) get/set via ``OrderedDict.move_to_end``
    - Expiry is lazy (checked on read)
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Any

_MISSING = object()


class TTLCache:
    """
    Thread-safe LRU cache with TTL expiration.

    Attributes:
        max_size: Maximum number of keys before LRU eviction.
        default_ttl_seconds: TTL applied when ``set`` gets none (``None`` → no expiry).

    Example:
        cache = TTLCache(max_size=500, default_ttl_seconds=1800)
        name = cache.get_or_set(("month", 275), lambda: lookup(275))
    """

    def __init__(
        self,
        *,
        max_size: int = 500,
        default_ttl_seconds: float | None = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: OrderedDict[Hashable, tuple[Any, float | None]] = OrderedDict()
        self._lock = threading.Lock()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds
        self._clock = clock

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._store.get(key, _MISSING)
            if entry is _MISSING:
                return default
            value, expires_at = entry
            if expires_at is not None and self._clock() > expires_at:
                del self._store[key]
                return default
            self._store.move_to_end(key)
            return value

    def set(self, key: Hashable, value: Any, *, ttl_seconds: float | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (self._clock() + ttl) if ttl else None
        with self._lock:
            if key in self._store:
                self._store.move_to_end(key)
            elif len(self._store) >= self._max_size:
                self._store.popitem(last=False)
            self._store[key] = (value, expires_at)

    def get_or_set(self, key: Hashable, factory: Callable[[], Any], *, ttl_seconds: float | None = None) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        ``factory`` runs outside the lock; concurrent misses may both compute.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = factory()
        self.set(key, value, ttl_seconds=ttl_seconds)
        return value

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._store)
