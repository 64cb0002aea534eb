"""Budgeted detail resolution and option assembly."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from .categories import allowed_categories, map_category
from .hours import open_status_text
from .models import Candidate, DetailRecord, Option
from .settings import Settings, settings as default_settings
from .utils import haversine_km
from .vibes import GeoPoint, Vibe

logger = logging.getLogger(__name__)

DEFAULT_OPTION_RATING = 4.4
MIN_OPTION_RATING = 4.1
MAX_OPTION_RATING = 5.0
DEFAULT_WATCHOUTS = ("Can be busy at peak hours", "Check live hours on Maps")


class DetailsProvider(Protocol):
    async def place_details(
        self, place_id: str, tz_offset_sec: int, at_ms: int | None = None
    ) -> DetailRecord | None: ...


def sort_by_distance(candidates: Sequence[Candidate], center: GeoPoint) -> list[Candidate]:
    return sorted(candidates, key=lambda c: haversine_km(center.lat, center.lng, c.lat, c.lng))


def is_usable(record: DetailRecord | None) -> bool:
    """Drop permanently closed venues and ones the provider reports closed now."""
    if record is None or record.permanently_closed:
        return False
    return record.open_now is not False


def build_option(record: DetailRecord, vibe: Vibe, center: GeoPoint) -> Option | None:
    category = map_category(record.types, vibe)
    if category not in allowed_categories(vibe):
        return None
    rating = record.rating if record.rating is not None else DEFAULT_OPTION_RATING
    return Option(
        id=record.place_id or record.name,
        name=record.name,
        category=category,
        rating=min(MAX_OPTION_RATING, max(MIN_OPTION_RATING, rating)),
        open_status=open_status_text(record.open_now, record.closing_time),
        lat=record.lat if record.lat is not None else center.lat,
        lng=record.lng if record.lng is not None else center.lng,
        address=record.formatted_address or "",
        watchouts=list(DEFAULT_WATCHOUTS),
        open_now=record.open_now,
        closing_time=record.closing_time,
        close_ts=record.close_ts,
        place_id=record.place_id,
        price_level=record.price_level,
        user_ratings_total=record.user_ratings_total,
        photo_urls=list(record.photo_urls),
    )


class DetailsResolver:
    def __init__(
        self,
        provider: DetailsProvider,
        *,
        config: Settings | None = None,
        cap: int | None = None,
        concurrency: int | None = None,
        timeout: float | None = None,
    ) -> None:
        cfg = config or default_settings
        self._provider = provider
        self._cap = cap if cap is not None else cfg.DETAILS_CAP_TOTAL
        self._concurrency = concurrency or cfg.DETAILS_CONCURRENCY
        self._timeout = timeout if timeout is not None else cfg.DETAILS_TIMEOUT_SECONDS

    async def _fetch(
        self,
        semaphore: asyncio.Semaphore,
        candidate: Candidate,
        tz_offset_sec: int,
        at_ms: int | None,
    ) -> DetailRecord | None:
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    self._provider.place_details(candidate.place_id, tz_offset_sec, at_ms),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("details for %s timed out", candidate.place_id)
                return None
            except Exception as exc:
                logger.warning("details for %s failed: %s", candidate.place_id, exc)
                return None

    async def resolve(
        self,
        candidates: Sequence[Candidate],
        center: GeoPoint,
        tz_offset_sec: int,
        at_ms: int | None = None,
        *,
        presorted: bool = False,
    ) -> list[DetailRecord]:
        """Fetch details for the first ``cap`` candidates by distance; unusable records are dropped.

        With ``presorted`` the caller's order is kept, so it can rank other
        concerns (unseen venues) ahead of distance.
        """
        ordered = list(candidates) if presorted else sort_by_distance(candidates, center)
        budgeted = ordered[: self._cap]
        semaphore = asyncio.Semaphore(self._concurrency)
        records = await asyncio.gather(
            *(self._fetch(semaphore, c, tz_offset_sec, at_ms) for c in budgeted)
        )
        usable = [r for r in records if is_usable(r)]
        logger.debug("details resolved %d/%d usable", len(usable), len(budgeted))
        return usable

    async def build_options(
        self,
        candidates: Sequence[Candidate],
        vibe: Vibe,
        center: GeoPoint,
        tz_offset_sec: int,
        at_ms: int | None = None,
        *,
        presorted: bool = False,
    ) -> list[Option]:
        records = await self.resolve(candidates, center, tz_offset_sec, at_ms, presorted=presorted)
        options = (build_option(r, vibe, center) for r in records)
        return [o for o in options if o is not None]


__all__ = [
    "DEFAULT_WATCHOUTS",
    "DetailsProvider",
    "DetailsResolver",
    "build_option",
    "is_usable",
    "sort_by_distance",
]
