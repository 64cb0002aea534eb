"""
Shared JSON-blob caches for search lanes and place details.

Both caches sit on the Redis store. A missing store, a store failure or an
undecodable blob is always a miss; writes are best-effort.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable
from typing import Any

from .errors import CacheUnavailable
from .metrics import cache_hits_total, cache_misses_total, cache_write_failures_total
from .redis_store import RedisStore, get_store
from .settings import settings

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], RedisStore | None]


def stable_hash(payload: str, length: int = 32) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:length]


def make_cache_key(prefix: str, **parts: Any) -> str:
    """Hash ordered ``key=value`` parts into ``<prefix>:<digest>``."""
    base = "&".join(f"{key}={'' if value is None else value}" for key, value in parts.items())
    return f"{prefix}:{stable_hash(base)}"


def search_cache_key(lane: str, lat: float, lng: float, radius_m: int, query: str) -> str:
    max_len = 80 if lane == "nearby" else 90
    return make_cache_key(
        "pp:search",
        lane=lane,
        lat=f"{lat:.4f}",
        lng=f"{lng:.4f}",
        radius=radius_m,
        q=query.lower()[:max_len],
    )


def details_cache_key(place_id: str, tz_offset_sec: int) -> str:
    # remaining-open time depends on the local clock, so the offset is part of the key
    return f"pp:details:{place_id}:{tz_offset_sec}"


class TTLCache:
    """Named key -> JSON cache with a default expiry."""

    def __init__(
        self,
        name: str,
        default_ttl: float,
        store_factory: StoreFactory = get_store,
    ) -> None:
        self.name = name
        self.default_ttl = default_ttl
        self._store_factory = store_factory

    @property
    def enabled(self) -> bool:
        return self._store_factory() is not None

    async def get(self, key: str) -> Any | None:
        store = self._store_factory()
        if store is None:
            return None
        try:
            raw = await store.get(key)
        except CacheUnavailable as exc:
            logger.warning("cache %s read failed for %s: %s", self.name, key, exc)
            cache_misses_total.labels(cache_name=self.name).inc()
            return None
        if raw is None:
            cache_misses_total.labels(cache_name=self.name).inc()
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            cache_misses_total.labels(cache_name=self.name).inc()
            return None
        cache_hits_total.labels(cache_name=self.name).inc()
        return value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        store = self._store_factory()
        if store is None:
            return
        ttl_seconds = self.default_ttl if ttl is None else ttl
        try:
            await store.set(key, json.dumps(value), int(ttl_seconds * 1000))
        except (CacheUnavailable, TypeError, ValueError) as exc:
            cache_write_failures_total.labels(cache_name=self.name).inc()
            logger.warning("cache %s write failed for %s: %s", self.name, key, exc)


search_cache = TTLCache("search", default_ttl=settings.SEARCH_CACHE_TTL_SECONDS)
details_cache = TTLCache("details", default_ttl=settings.DETAILS_CACHE_TTL_SECONDS)


__all__ = [
    "TTLCache",
    "details_cache",
    "details_cache_key",
    "make_cache_key",
    "search_cache",
    "search_cache_key",
    "stable_hash",
]
