"""In-process TTL cache for derived, cache-safe data"""

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

_MISSING = object()


class TTLCache:
    """Key/value cache whose entries expire after a fixed time-to-live.

    Only ever used as a performance optimization: a miss must be answerable
    by recomputing the value, so an empty cache behaves exactly like a warm one.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key, _MISSING)
        if entry is _MISSING:
            self.misses += 1
            return default

        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return default

        self.hits += 1
        return value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        lifetime = self._ttl if ttl is None else float(ttl)
        self._entries[key] = (self._clock() + lifetime, value)

    def get_or_set(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = factory()
            self.set(key, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when no key is given"""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every string key (or tuple key whose first item) starts with prefix"""
        doomed = []
        for key in self._entries:
            head = key[0] if isinstance(key, tuple) and key else key
            if isinstance(head, str) and head.startswith(prefix):
                doomed.append(key)

        for key in doomed:
            del self._entries[key]

        if doomed:
            logger.debug("Cache entries invalidated", prefix=prefix, count=len(doomed))
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)
