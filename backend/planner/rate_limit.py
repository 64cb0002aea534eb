"""Per-identity admission control over minute and UTC-day windows."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal

from .errors import CacheUnavailable
from .metrics import rate_limit_hits_total, rate_limit_requests_total
from .redis_store import RedisStore, get_store
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

IdentityMode = Literal["guest", "authenticated"]

MINUTE_MS = 60_000


@dataclass(slots=True)
class RateLimitDecision:
    allowed: bool
    status: int = 200
    retry_after: int = 0
    message: str | None = None


def ms_until_utc_midnight(now: datetime | None = None) -> int:
    """Milliseconds until the next UTC midnight, never less than one minute."""
    current = now or datetime.now(UTC)
    tomorrow = (current + timedelta(days=1)).date()
    midnight = datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=UTC)
    return max(MINUTE_MS, int((midnight - current).total_seconds() * 1000))


class RateLimiter:
    """Sliding minute + UTC-day counters kept in the shared store.

    Both counters are bumped in a single pipeline of atomic
    increment-with-expiry scripts; expiry is only ever set by the request
    that created the window.
    """

    def __init__(
        self,
        store_factory: Callable[[], RedisStore | None] = get_store,
        config: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store_factory = store_factory
        self._settings = config or default_settings
        self._clock = clock or (lambda: datetime.now(UTC))

    async def admit(self, identity_key: str, mode: IdentityMode) -> RateLimitDecision:
        if not self._settings.RATE_LIMIT_ENABLED:
            return RateLimitDecision(allowed=True)

        store = self._store_factory()
        if store is None:
            return self._backend_missing("rate limiter store not configured")

        now = self._clock()
        per_minute, per_day = self._settings.rate_caps(mode)
        minute_key = f"rl:min:{identity_key}"
        day_key = f"rl:day:{identity_key}:{now.date().isoformat()}"

        try:
            minute_count, day_count = await store.pipeline(
                [
                    ("INCR_TTL", minute_key, (MINUTE_MS,)),
                    ("INCR_TTL", day_key, (ms_until_utc_midnight(now),)),
                ]
            )
        except CacheUnavailable as exc:
            return self._backend_missing(str(exc))

        if int(minute_count) > per_minute:
            return self._deny(60, "Too many requests. Please slow down.")
        if int(day_count) > per_day:
            retry_after = math.ceil(ms_until_utc_midnight(now) / 1000)
            return self._deny(retry_after, "Daily limit reached. Try again later.")

        rate_limit_requests_total.labels(result="allow").inc()
        return RateLimitDecision(allowed=True)

    def _deny(self, retry_after: int, message: str) -> RateLimitDecision:
        rate_limit_hits_total.inc()
        rate_limit_requests_total.labels(result="throttle").inc()
        return RateLimitDecision(
            allowed=False, status=429, retry_after=max(1, retry_after), message=message
        )

    def _backend_missing(self, detail: str) -> RateLimitDecision:
        if not self._settings.is_production:
            rate_limit_requests_total.labels(result="bypass").inc()
            return RateLimitDecision(allowed=True)
        logger.error("rate limiter unavailable in production: %s", detail)
        rate_limit_requests_total.labels(result="misconfigured").inc()
        return RateLimitDecision(
            allowed=False,
            status=500,
            message="Server not configured (rate limiter missing).",
        )


rate_limiter = RateLimiter()


__all__ = ["IdentityMode", "RateLimitDecision", "RateLimiter", "ms_until_utc_midnight", "rate_limiter"]
