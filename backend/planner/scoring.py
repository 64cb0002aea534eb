from __future__ import annotations

import math
import random
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import FreshnessSets, Option, WeatherFlags
from .vibes import (
    TIME_OF_DAY_AFFINITY,
    VEG_SCORE_MARKERS,
    VIBE_AFFINITY,
    VIBE_AFFINITY_DEFAULT,
    TimeBucket,
    Vibe,
    has_marker,
    is_outdoor_category,
)

DEFAULT_RATING = 4.2
SWAPPED_PENALTY = 80.0
SEEN_PENALTY = 35.0
UNKNOWN_HOURS_PENALTY = 4.0
VEG_FOOD_BONUS = 6.0
JITTER_SPAN = 2.6


@dataclass(slots=True)
class ScoringContext:
    vibe: Vibe
    city_hour: int
    flags: WeatherFlags = field(default_factory=WeatherFlags)
    veg_friendly: bool = False
    freshness: FreshnessSets = field(default_factory=FreshnessSets)
    rng: random.Random | None = None
    jitter: bool = True


def score_rating(rating: float | None, rating_count: int | None) -> float:
    total = (DEFAULT_RATING if rating is None else rating) * 10
    if rating_count:
        total += math.log10(rating_count + 1) * 6
    return total


def score_vibe(vibe: Vibe, category: str) -> float:
    lowered = (category or "").lower()
    for marker, boost in VIBE_AFFINITY.get(vibe, ()):
        if marker in lowered:
            return float(boost)
    return float(VIBE_AFFINITY_DEFAULT)


def score_time_of_day(city_hour: int, category: str) -> float:
    lowered = (category or "").lower()
    total = 0.0
    for markers, boost in TIME_OF_DAY_AFFINITY[TimeBucket.for_hour(city_hour)]:
        if any(marker in lowered for marker in markers):
            total += boost
    return total


def score_weather(flags: WeatherFlags, category: str) -> float:
    outdoor = is_outdoor_category(category)
    if not flags.bad:
        return 4.0 if outdoor else 0.0
    return -6.0 if outdoor else 6.0


def score_novelty(place_id: str | None, freshness: FreshnessSets) -> float:
    pid = (place_id or "").strip()
    if not pid:
        return 0.0
    if pid in freshness.swapped:
        return -SWAPPED_PENALTY
    if pid in freshness.seen:
        return -SEEN_PENALTY
    return 0.0


def score_hours_confidence(open_status: str) -> float:
    return -UNKNOWN_HOURS_PENALTY if "hours unknown" in open_status.lower() else 0.0


def score_veg(veg_friendly: bool, category: str) -> float:
    if veg_friendly and has_marker(category, VEG_SCORE_MARKERS):
        return VEG_FOOD_BONUS
    return 0.0


def jitter(rng: random.Random | None) -> float:
    source = rng or random
    return (source.random() - 0.5) * JITTER_SPAN


def score_option(option: Option, ctx: ScoringContext) -> float:
    total = score_rating(option.rating, option.user_ratings_total)
    total += score_vibe(ctx.vibe, option.category)
    total += score_time_of_day(ctx.city_hour, option.category)
    total += score_weather(ctx.flags, option.category)
    total += score_novelty(option.place_id, ctx.freshness)
    total += score_hours_confidence(option.open_status)
    total += score_veg(ctx.veg_friendly, option.category)
    if ctx.jitter:
        total += jitter(ctx.rng)
    return total


def rank_options(options: Iterable[Option], ctx: ScoringContext) -> list[Option]:
    """Score each option once, sort best first and drop duplicate keys."""
    scored = list(options)
    for option in scored:
        option.score = score_option(option, ctx)
    scored.sort(key=lambda o: o.score, reverse=True)

    seen_keys: set[str] = set()
    ranked: list[Option] = []
    for option in scored:
        if option.key in seen_keys:
            continue
        seen_keys.add(option.key)
        ranked.append(option)
    return ranked


__all__ = [
    "ScoringContext",
    "rank_options",
    "score_hours_confidence",
    "score_novelty",
    "score_option",
    "score_rating",
    "score_time_of_day",
    "score_veg",
    "score_vibe",
    "score_weather",
]
