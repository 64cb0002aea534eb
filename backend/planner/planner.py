"""Request orchestration: weather, lanes, details, scoring, filtering, selection."""

from __future__ import annotations

import math
import random
import time
from collections import Counter
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from .categories import allowed_categories
from .copywriter import CopyBrief, VenueCopy, apply_copy, copy_targets, weather_summary, write_copy
from .details import DetailsResolver
from .errors import ConfigurationMissing
from .feasibility import RELAXED, STRICT, FeasibilityContext, apply_profile
from .hours import now_ms
from .lanes import LaneRetriever
from .logging_config import get_logger
from .metrics import candidates_rejected_total, plan_duration_seconds, shortlist_size
from .models import Candidate, DetailRecord, FreshnessSets, Option
from .places import PlacesClient
from .schemas import PlanMeta, PlanRequest, PlanResponse
from .scoring import ScoringContext, rank_options
from .selection import SHORTLIST_SIZE, diversify_pool, select_shortlist
from .settings import Settings, settings as default_settings
from .utils import haversine_km
from .vibes import CITY_CENTERS, GeoPoint, is_outdoor_category
from .weather import WeatherReport, fetch_weather, weather_flags

logger = get_logger(__name__)

SMALL_POOL = 10
NOT_SEEN_SHARE = 0.7

REASON_WEATHER = "Weather limits outdoor options right now."
REASON_CLOSING_SOON = "Many places close soon right now."
REASON_UNKNOWN_HOURS = "Many places don’t have reliable hours right now."
REASON_LIMITED = "Limited matches — try adjusting filters."
REASON_SMALL_POOL = "Swaps are limited right now — try again shortly."


class PlacesProvider(Protocol):
    async def nearby_search(
        self, center: GeoPoint, radius_m: int, keyword: str
    ) -> list[Candidate]: ...

    async def text_search(
        self, center: GeoPoint, radius_m: int, query: str
    ) -> list[Candidate]: ...

    async def place_details(
        self, place_id: str, tz_offset_sec: int, at_ms: int | None = None
    ) -> DetailRecord | None: ...


WeatherFetcher = Callable[[str], Awaitable[WeatherReport | None]]
CopyWriter = Callable[[CopyBrief, Sequence[Option]], Awaitable[dict[str, VenueCopy]]]


@dataclass(slots=True)
class PlanResult:
    options: list[Option]
    pool: list[Option]
    weather: WeatherReport | None
    limited_availability: bool
    reason: str | None
    rejections: Counter[str] = field(default_factory=Counter)

    def to_response(self) -> PlanResponse:
        return PlanResponse(
            options=[o.to_public() for o in self.options],
            weather=self.weather.to_public() if self.weather else None,
            meta=PlanMeta(
                limited_availability=self.limited_availability,
                reason=self.reason,
                pool=[o.to_public() for o in self.pool],
            ),
        )


def order_candidates(
    candidates: Sequence[Candidate], center: GeoPoint, freshness: FreshnessSets
) -> list[Candidate]:
    """Not-seen first, then nearest; swapped ids removed outright."""
    kept = [c for c in candidates if c.place_id not in freshness.swapped]
    return sorted(
        kept,
        key=lambda c: (
            c.place_id in freshness.seen,
            haversine_km(center.lat, center.lng, c.lat, c.lng),
        ),
    )


def limited_reason(rejections: Counter[str], vibe_has_outdoor: bool) -> str:
    """Pick the most frequent explainable rejection; weather only counts for outdoor vibes."""
    weather = rejections["weather_block"] if vibe_has_outdoor else 0
    closing = rejections["closing_soon"]
    unknown = rejections["unknown_hours"]
    if weather > 0 and weather >= max(closing, unknown):
        return REASON_WEATHER
    if closing > 0 and closing >= max(weather, unknown):
        return REASON_CLOSING_SOON
    if unknown > 0:
        return REASON_UNKNOWN_HOURS
    return REASON_LIMITED


def choose_pool_source(
    relaxed: list[Option], seen: frozenset[str], target: int
) -> list[Option]:
    """Prefer not-seen options when there are enough of them to feel fresh."""
    not_seen = [o for o in relaxed if (o.place_id or "").strip() not in seen]
    if len(not_seen) >= math.floor(target * NOT_SEEN_SHARE):
        return not_seen
    return relaxed


class Planner:
    def __init__(
        self,
        places: PlacesProvider,
        *,
        config: Settings | None = None,
        weather: WeatherFetcher = fetch_weather,
        copywriter: CopyWriter = write_copy,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
        jitter: bool = True,
    ) -> None:
        self._settings = config or default_settings
        self._places = places
        self._weather = weather
        self._copywriter = copywriter
        self._rng = rng
        self._clock = clock
        self._jitter = jitter
        self._lanes = LaneRetriever(places, config=self._settings)
        self._details = DetailsResolver(places, config=self._settings)

    async def plan(self, request: PlanRequest) -> PlanResult:
        if not self._settings.GOOGLE_PLACES_API_KEY:
            raise ConfigurationMissing("Missing GOOGLE_PLACES_API_KEY.")

        started = time.perf_counter()
        vibe = request.vibe
        center = CITY_CENTERS[request.city]
        allowed = allowed_categories(vibe)
        freshness = FreshnessSets(
            seen=frozenset(request.seen_place_ids),
            swapped=frozenset(request.swapped_place_ids),
        )

        # weather first: its UTC offset drives every local-time computation
        report = await self._weather(request.city)
        flags = weather_flags(report)
        city_hour = report.city_local_hour if report else datetime.now().hour
        tz_offset_sec = report.tz_offset_sec if report else 0
        at_ms = self._clock()

        candidates = await self._lanes.retrieve(vibe, center, request.veg_friendly)
        ordered = order_candidates(candidates, center, freshness)
        built = await self._details.build_options(
            ordered, vibe, center, tz_offset_sec, at_ms, presorted=True
        )

        ranked = rank_options(
            built,
            ScoringContext(
                vibe=vibe,
                city_hour=city_hour,
                flags=flags,
                veg_friendly=request.veg_friendly,
                freshness=freshness,
                rng=self._rng,
                jitter=self._jitter,
            ),
        )

        ctx = FeasibilityContext(
            allowed=frozenset(allowed),
            center=center,
            flags=flags,
            city_hour=city_hour,
            tz_offset_sec=tz_offset_sec,
            now_ms=at_ms,
        )
        rejections: Counter[str] = Counter()

        relaxed = apply_profile(ranked, RELAXED, ctx, rejections)
        pool_source = choose_pool_source(relaxed, freshness.seen, self._settings.TARGET_SWAP_POOL)
        pool = diversify_pool(
            pool_source, self._settings.POOL_MAX_PER_CATEGORY, self._settings.MAX_POOL_RETURN
        )

        strict = apply_profile(ranked, STRICT, ctx, rejections)
        picked = select_shortlist(strict, self._rng)

        brief = CopyBrief(
            city=request.city,
            vibe=vibe,
            with_who=request.with_who,
            veg_friendly=request.veg_friendly,
            allowed_categories=allowed,
            weather_summary=weather_summary(report),
        )
        copy = await self._copywriter(brief, copy_targets(picked, pool))
        for option in (*picked, *pool):
            apply_copy(option, copy, vibe, request.with_who, request.veg_friendly)

        shortlist = [o.with_id(str(i)) for i, o in enumerate(picked, start=1)]
        thin = len(shortlist) < SHORTLIST_SIZE
        small_pool = len(pool) < SMALL_POOL
        has_outdoor = any(is_outdoor_category(c) for c in allowed)
        reason = limited_reason(rejections, has_outdoor) if thin else None
        if small_pool and not thin:
            reason = REASON_SMALL_POOL

        elapsed = time.perf_counter() - started
        plan_duration_seconds.observe(elapsed)
        shortlist_size.observe(len(shortlist))
        for name, count in rejections.items():
            candidates_rejected_total.labels(reason=name).inc(count)
        logger.info(
            "plan_built",
            city=request.city,
            vibe=vibe.value,
            candidates=len(candidates),
            options=len(built),
            shortlist=len(shortlist),
            pool=len(pool),
            rejections=dict(rejections),
            elapsed_ms=round(elapsed * 1000, 1),
        )

        return PlanResult(
            options=shortlist,
            pool=pool,
            weather=report,
            limited_availability=thin or small_pool,
            reason=reason,
            rejections=rejections,
        )


def build_planner(**overrides: Any) -> Planner:
    """Planner wired to the live Places client."""
    return Planner(PlacesClient(), **overrides)


__all__ = [
    "PlanResult",
    "Planner",
    "PlacesProvider",
    "build_planner",
    "choose_pool_source",
    "limited_reason",
    "order_candidates",
]
