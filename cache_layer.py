from __future__ import annotations

import os
import threading
from typing import Any, Callable

from cachetools import TTLCache


def make_cache_key(namespace: str, *parts: Any) -> str:
    ns = str(namespace or "").strip().upper()
    tail = [str(p or "").strip() for p in parts if str(p or "").strip()]
    return ":".join([ns] + tail)


class _InMemoryTTLCache:
    def __init__(self):
        ttl = int(os.getenv("CACHE_TTL_SECONDS", "60") or "60")
        max_items = int(os.getenv("CACHE_MAX_ITEMS", "5000") or "5000")
        self._cache = TTLCache(maxsize=max(100, max_items), ttl=max(1, min(3600, ttl)))
        self._lock = threading.RLock()

    def get_or_set(self, key: str, factory: Callable[[], Any]) -> Any:
        """Returns the cached value, computing it on a miss. None results are not cached."""
        with self._lock:
            val = self._cache.get(key)
            if val is not None:
                return val
        computed = factory()
        if computed is None:
            return None
        with self._lock:
            self._cache[key] = computed
        return computed

    def invalidate_prefix(self, prefix: str) -> int:
        pfx = str(prefix or "")
        if not pfx:
            return 0
        with self._lock:
            keys = [k for k in self._cache.keys() if str(k).startswith(pfx)]
            for k in keys:
                self._cache.pop(k, None)
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


_cache = _InMemoryTTLCache()


def cache_get_or_set(key: str, factory: Callable[[], Any]) -> Any:
    return _cache.get_or_set(key, factory)


def cache_invalidate_prefix(prefix: str) -> int:
    return _cache.invalidate_prefix(prefix)


def cache_clear() -> None:
    _cache.clear()
