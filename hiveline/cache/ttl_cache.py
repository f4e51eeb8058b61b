"""In-memory cache with per-entry TTL and a size limit."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


@dataclass
class _Slot(Generic[V]):
    value: V
    created_at: float
    expires_at: float
    hits: int = 0


@dataclass
class CacheStats:
    size: int
    max_size: int
    total_hits: int
    expired: int


class TTLCache(Generic[V]):
    """Insertion-ordered cache. Expired entries are dropped lazily on lookup;
    when full, the oldest-inserted entry is evicted first."""

    def __init__(
        self,
        ttl: float = 3600.0,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            msg = f"max_size must be >= 1, got {max_size}"
            raise ValueError(msg)
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._store: OrderedDict[str, _Slot[V]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> V | None:
        with self._lock:
            slot = self._store.get(key)
            if slot is None:
                return None
            if self._clock() >= slot.expires_at:
                del self._store[key]
                return None
            slot.hits += 1
            return slot.value

    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        now = self._clock()
        with self._lock:
            # Overwriting counts as a fresh insertion
            self._store.pop(key, None)
            while len(self._store) >= self.max_size:
                self._store.popitem(last=False)
            self._store[key] = _Slot(
                value=value,
                created_at=now,
                expires_at=now + (self.ttl if ttl is None else ttl),
            )

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    async def get_or_set(
        self, key: str, factory: Callable[[], Awaitable[V]], ttl: float | None = None
    ) -> V:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await factory()
        self.set(key, value, ttl)
        return value

    def __len__(self) -> int:
        return len(self._store)

    def stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            slots = list(self._store.values())
        return CacheStats(
            size=len(slots),
            max_size=self.max_size,
            total_hits=sum(s.hits for s in slots),
            expired=sum(1 for s in slots if now >= s.expires_at),
        )
