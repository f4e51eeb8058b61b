"""Request caching."""

from __future__ import annotations

from hiveline.cache.request_cache import CachedResponse, RequestCache, fingerprint
from hiveline.cache.ttl_cache import TTLCache

__all__ = ["CachedResponse", "RequestCache", "TTLCache", "fingerprint"]
