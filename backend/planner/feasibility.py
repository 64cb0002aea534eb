"""Hard feasibility rules for shortlist and swap-pool candidates."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .hours import minutes_until_close
from .models import Option, WeatherFlags
from .utils import haversine_km
from .vibes import EVENING_HOUR, GeoPoint, is_outdoor_category


class RejectReason(str, Enum):
    VIBE_MISMATCH = "vibe_mismatch"
    TOO_FAR = "too_far"
    CLOSED = "closed"
    CLOSING_SOON = "closing_soon"
    UNKNOWN_HOURS = "unknown_hours"
    WEATHER_BLOCK = "weather_block"


@dataclass(frozen=True, slots=True)
class FeasibilityProfile:
    name: str
    max_distance_km: float
    min_remaining_min: int
    allow_unknown_hours: bool
    # shortlist-only: open-now must be explicit and a closing instant known
    require_open_with_close: bool = False


STRICT = FeasibilityProfile(
    name="strict",
    max_distance_km=10,
    min_remaining_min=75,
    allow_unknown_hours=False,
    require_open_with_close=True,
)
RELAXED = FeasibilityProfile(
    name="relaxed",
    max_distance_km=14,
    min_remaining_min=45,
    allow_unknown_hours=True,
)


@dataclass(frozen=True, slots=True)
class FeasibilityContext:
    """Request-wide inputs shared by every check."""

    allowed: frozenset[str]
    center: GeoPoint
    flags: WeatherFlags
    city_hour: int
    tz_offset_sec: int = 0
    now_ms: int | None = None


def weather_blocks(category: str, flags: WeatherFlags, city_hour: int) -> bool:
    if not is_outdoor_category(category):
        return False
    if flags.bad:
        return True
    return flags.cold and city_hour >= EVENING_HOUR


def reject_reason(
    option: Option, profile: FeasibilityProfile, ctx: FeasibilityContext
) -> RejectReason | None:
    """First failing rule for ``option`` under ``profile``, or ``None`` if feasible."""
    if option.category not in ctx.allowed:
        return RejectReason.VIBE_MISMATCH

    distance = haversine_km(ctx.center.lat, ctx.center.lng, option.lat, option.lng)
    if distance > profile.max_distance_km:
        return RejectReason.TOO_FAR

    if option.open_now is False or "closed" in option.open_status.lower():
        return RejectReason.CLOSED

    minutes_left = minutes_until_close(
        option.closing_time, option.close_ts, ctx.tz_offset_sec, ctx.now_ms
    )
    if minutes_left is not None and minutes_left < profile.min_remaining_min:
        return RejectReason.CLOSING_SOON
    if minutes_left is None and not profile.allow_unknown_hours:
        return RejectReason.UNKNOWN_HOURS

    if weather_blocks(option.category, ctx.flags, ctx.city_hour):
        return RejectReason.WEATHER_BLOCK
    return None


def is_strict_eligible(option: Option) -> bool:
    """Precondition for the shortlist, checked before the profile rules."""
    return option.open_now is True and (option.close_ts is not None or bool(option.closing_time))


def apply_profile(
    options: Iterable[Option],
    profile: FeasibilityProfile,
    ctx: FeasibilityContext,
    tally: Counter[str] | None = None,
) -> list[Option]:
    """Keep feasible options in input order, counting rejections into ``tally``."""
    kept: list[Option] = []
    for option in options:
        if profile.require_open_with_close and not is_strict_eligible(option):
            if tally is not None:
                missing = RejectReason.CLOSED if option.open_now is False else RejectReason.UNKNOWN_HOURS
                tally[missing.value] += 1
            continue
        reason = reject_reason(option, profile, ctx)
        if reason is None:
            kept.append(option)
        elif tally is not None:
            tally[reason.value] += 1
    return kept


__all__ = [
    "FeasibilityContext",
    "FeasibilityProfile",
    "RELAXED",
    "RejectReason",
    "STRICT",
    "apply_profile",
    "is_strict_eligible",
    "reject_reason",
    "weather_blocks",
]
