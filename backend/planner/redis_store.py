"""Async key-value store backing the shared caches and rate-limit counters."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .errors import CacheUnavailable
from .settings import settings

logger = logging.getLogger(__name__)

# INCR and the first-hit PEXPIRE run server-side as one unit, so a concurrent
# writer can never observe a fresh counter whose expiry was never set.
INCR_WITH_TTL_SCRIPT = """
local c = redis.call('INCR', KEYS[1])
if c == 1 then
  redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
return c
""".strip()

Command = tuple[str, str, Sequence[Any]]


class RedisStore:
    """Pipeline-oriented wrapper over ``redis.asyncio``.

    Commands are ``(command, key, args)`` triples. Supported commands are
    ``GET``, ``SET`` (args: value, ttl_ms), ``INCR`` and ``INCR_TTL``
    (args: ttl_ms), the latter being the atomic increment-with-expiry script.
    """

    def __init__(self, client: Redis, *, timeout: float | None = None) -> None:
        self._client = client
        self._timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    async def pipeline(self, commands: Sequence[Command]) -> list[Any]:
        pipe = self._client.pipeline(transaction=False)
        for command, key, args in commands:
            name = command.upper()
            if name == "GET":
                pipe.get(key)
            elif name == "SET":
                value, ttl_ms = args
                pipe.set(key, value, px=int(ttl_ms))
            elif name == "INCR":
                pipe.incr(key)
            elif name == "INCR_TTL":
                (ttl_ms,) = args
                pipe.eval(INCR_WITH_TTL_SCRIPT, 1, key, int(ttl_ms))
            else:
                raise ValueError(f"Unsupported store command: {command}")
        try:
            return await asyncio.wait_for(pipe.execute(), timeout=self._timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise CacheUnavailable(f"store pipeline failed: {exc}") from exc

    async def get(self, key: str) -> str | None:
        (value,) = await self.pipeline([("GET", key, ())])
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: str, ttl_ms: int) -> None:
        await self.pipeline([("SET", key, (value, ttl_ms))])

    async def ping(self) -> bool:
        try:
            return bool(await asyncio.wait_for(self._client.ping(), timeout=self._timeout))
        except (RedisError, OSError, asyncio.TimeoutError):
            return False

    async def close(self) -> None:
        await self._client.aclose()


_store: RedisStore | None = None


def get_store() -> RedisStore | None:
    """Return the shared store, or ``None`` when Redis is not configured."""
    global _store
    if not settings.REDIS_ENABLED or not settings.REDIS_URL:
        return None
    if _store is None:
        client = Redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=settings.STORE_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.STORE_TIMEOUT_SECONDS,
        )
        _store = RedisStore(client)
        logger.info("Redis store initialised")
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None


__all__ = ["INCR_WITH_TTL_SCRIPT", "RedisStore", "close_store", "get_store"]
