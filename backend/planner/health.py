"""Health check module with dependency verification."""

from __future__ import annotations

import time
from typing import Any

from .redis_store import get_store
from .settings import settings


def _is_configured(value: str | None) -> bool:
    """Return True when a config string is non-empty after trimming."""
    return bool(value and value.strip())


class HealthChecker:
    """Health checker for the counter store and upstream credentials."""

    def __init__(self) -> None:
        self._check_cache: dict[str, tuple[dict[str, Any], float]] = {}
        self._cache_ttl = 30.0

    async def check_all(self) -> dict[str, Any]:
        """
        Check health of all dependencies.

        Returns:
            Dict with overall status and individual component checks
        """
        checks = {
            "store": await self._check_store(),
            "credentials": self._check_credentials(),
            "sentry": {"status": "ok"} if _is_configured(settings.SENTRY_DSN) else {"status": "disabled"},
        }
        all_ok = all(check.get("status") in {"ok", "disabled"} for check in checks.values())
        return {
            "status": "healthy" if all_ok else "degraded",
            "timestamp": time.time(),
            "checks": checks,
        }

    async def _check_store(self) -> dict[str, Any]:
        cached = self._get_cached_check("store")
        if cached is not None:
            return cached

        store = get_store()
        if store is None:
            # development runs without Redis; production cannot rate limit
            result = {"status": "error" if settings.is_production else "disabled"}
        elif await store.ping():
            result = {"status": "ok"}
        else:
            result = {"status": "error", "error": "ping failed"}
        self._cache_check("store", result)
        return result

    def _check_credentials(self) -> dict[str, Any]:
        present = {
            "places": _is_configured(settings.GOOGLE_PLACES_API_KEY),
            "weather": _is_configured(settings.OPENWEATHER_KEY),
            "copy": _is_configured(settings.OPENAI_API_KEY),
        }
        # only the places key is required to plan
        return {"status": "ok" if present["places"] else "error", **present}

    def _get_cached_check(self, key: str) -> dict[str, Any] | None:
        if key not in self._check_cache:
            return None
        result, timestamp = self._check_cache[key]
        if time.time() - timestamp > self._cache_ttl:
            return None
        return result

    def _cache_check(self, key: str, result: dict[str, Any]) -> None:
        self._check_cache[key] = (result, time.time())


health_checker = HealthChecker()


__all__ = ["HealthChecker", "health_checker"]
