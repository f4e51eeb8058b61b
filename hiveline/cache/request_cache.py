"""Fingerprinted cache of deterministic provider completions."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from hiveline.cache.ttl_cache import TTLCache
from hiveline.cost.types import TokenUsage

logger = logging.getLogger(__name__)

Message = Mapping[str, Any]


@dataclass(frozen=True)
class CachedResponse:
    """A stored completion."""

    content: str
    usage: TokenUsage
    model: str
    cached_at: float = 0.0
    ttl: float = 0.0


def fingerprint(model: str, messages: Sequence[Message], temperature: float | None) -> str:
    """Stable SHA-256 over the canonical JSON form of the request."""
    data = json.dumps(
        {
            "model": model,
            "messages": [dict(m) for m in messages],
            "temperature": None if temperature is None else float(temperature),
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def is_deterministic(temperature: float | None) -> bool:
    """Only temperature 0 is deterministic; an unset temperature is not."""
    return temperature is not None and temperature == 0


class RequestCache:
    """Skip provider calls for repeated deterministic requests.

    Requests with a non-zero or unset temperature are never cached: serving
    them from cache would make stochastic calls silently deterministic.
    Lookup problems are logged and reported as misses.
    """

    def __init__(
        self,
        enabled: bool = True,
        ttl: float = 86400.0,
        max_size: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._enabled = enabled
        self._clock = clock
        self._cache: TTLCache[CachedResponse] = TTLCache(ttl=ttl, max_size=max_size, clock=clock)
        self._hits = 0
        self._misses = 0

    def get(
        self,
        model: str,
        messages: Sequence[Message],
        temperature: float | None,
    ) -> CachedResponse | None:
        if not self._enabled or not is_deterministic(temperature):
            return None
        try:
            hit = self._cache.get(fingerprint(model, messages, temperature))
        except Exception as e:
            logger.warning("Cache lookup failed, treating as miss: %s", e)
            hit = None
        if hit is None:
            self._misses += 1
        else:
            self._hits += 1
        return hit

    def set(
        self,
        model: str,
        messages: Sequence[Message],
        response: CachedResponse,
        temperature: float | None,
    ) -> bool:
        """Store *response*. Returns False when the request is not cacheable."""
        if not self._enabled or not is_deterministic(temperature):
            return False
        try:
            key = fingerprint(model, messages, temperature)
            self._cache.set(
                key, replace(response, cached_at=self._clock(), ttl=self._cache.ttl)
            )
        except Exception as e:
            logger.warning("Cache store failed, skipping: %s", e)
            return False
        return True

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled

    def clear(self) -> None:
        self._cache.clear()
        self._hits = 0
        self._misses = 0

    def get_stats(self) -> dict[str, Any]:
        stats = self._cache.stats()
        return {
            "enabled": self._enabled,
            "size": stats.size,
            "max_size": stats.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "expired": stats.expired,
        }
