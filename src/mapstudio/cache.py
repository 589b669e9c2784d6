"""Explicitly scoped TTL cache with LRU eviction."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable


_LOGGER = logging.getLogger("mapstudio.cache")


class TTLCache:
    """Bounded key/value cache owned by whoever constructs it.

    Entries expire `ttl_s` seconds after they were stored and are dropped on the
    next read. When `max_entries` is reached the least recently used entry is
    evicted. `clock` defaults to `time.monotonic` and is injectable for tests.
    """

    def __init__(
        self,
        max_entries: int = 64,
        ttl_s: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        self.max_entries = max_entries
        self.ttl_s = float(ttl_s)
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self._lookup(key) is not _MISSING

    def get(self, key: Hashable, default: Any = None) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, key: Hashable, value: Any) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            _LOGGER.debug("Evicted cache entry %r", evicted)
        self._entries[key] = (self._clock() + self.ttl_s, value)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        value = self._lookup(key)
        if value is not _MISSING:
            self.hits += 1
            return value
        self.misses += 1
        value = compute()
        self.set(key, value)
        return value

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def _lookup(self, key: Hashable) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return _MISSING
        self._entries.move_to_end(key)
        return value


_MISSING = object()
