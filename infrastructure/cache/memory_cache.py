"""In-process TTL cache.

Used when Redis is not configured. Entries expire lazily on access; when the
cache is full the oldest insertion is evicted. The clock is injectable so
tests can move time forward without sleeping.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable, Optional


class MemoryTTLCache:
    def __init__(
        self,
        default_ttl_seconds: float = 60.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: "OrderedDict[str, tuple[float, Any]]" = OrderedDict()
        self._default_ttl = default_ttl_seconds
        self._max_entries = max_entries
        self._clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def _live_entry(self, key: str) -> Optional[tuple[float, Any]]:
        item = self._store.get(key)
        if item is None:
            return None
        if item[0] <= self._clock():
            self._store.pop(key, None)
            return None
        return item

    async def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def get(self, key: str) -> Optional[Any]:
        item = self._live_entry(key)
        return None if item is None else item[1]

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        self._store.pop(key, None)
        self._store[key] = (self._clock() + ttl, value)
        while len(self._store) > self._max_entries:
            self._store.popitem(last=False)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def clear(self) -> None:
        self._store.clear()
