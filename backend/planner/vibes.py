"""Fixed lookup tables: cities, vibes, categories, lane keywords and affinities.

Everything here is built once at import and exposed read-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True, slots=True)
class GeoPoint:
    lat: float
    lng: float


class Vibe(str, Enum):
    COZY = "Cozy"
    OUTDOORS = "Outdoors"
    PRODUCTIVE = "Productive"
    SOCIAL = "Social"
    LUXURY = "Luxury"

    @classmethod
    def parse(cls, raw: object) -> Vibe:
        """Return the matching vibe, or the default for anything unrecognised."""
        if isinstance(raw, str):
            value = raw.strip()
            for vibe in cls:
                if vibe.value == value:
                    return vibe
        return DEFAULT_VIBE


DEFAULT_CITY = "Boston"
DEFAULT_VIBE = Vibe.SOCIAL

CITY_CENTERS: Mapping[str, GeoPoint] = MappingProxyType(
    {
        "Boston": GeoPoint(42.3601, -71.0589),
        "New York": GeoPoint(40.7128, -74.006),
        "San Francisco": GeoPoint(37.7749, -122.4194),
        "Chicago": GeoPoint(41.8781, -87.6298),
        "Seattle": GeoPoint(47.6062, -122.3321),
        "Austin": GeoPoint(30.2672, -97.7431),
        "Los Angeles": GeoPoint(34.0522, -118.2437),
        "Washington DC": GeoPoint(38.9072, -77.0369),
        "Miami": GeoPoint(25.7617, -80.1918),
        "Atlanta": GeoPoint(33.749, -84.388),
    }
)


def pick_city(raw: object) -> str:
    if isinstance(raw, str) and raw.strip() in CITY_CENTERS:
        return raw.strip()
    return DEFAULT_CITY


ALLOWED_BY_VIBE: Mapping[Vibe, tuple[str, ...]] = MappingProxyType(
    {
        Vibe.COZY: ("Cafe", "Dessert", "Bookstore", "Wine Bar", "Tea House"),
        Vibe.OUTDOORS: ("Park", "Scenic Walk", "Waterfront", "Outdoor Market", "Activity"),
        Vibe.PRODUCTIVE: ("Library", "Work Cafe", "Quiet Workspace", "Study Spot"),
        Vibe.SOCIAL: ("Bar", "Group Dining", "Activity Venue", "Event Space"),
        Vibe.LUXURY: ("Fine Dining", "Rooftop Bar", "Specialty Dessert", "Premium Spot"),
    }
)

KEYWORD_BY_CATEGORY: Mapping[str, str] = MappingProxyType(
    {
        "Cafe": "cafe",
        "Work Cafe": "cafe laptop friendly",
        "Dessert": "dessert",
        "Bookstore": "bookstore",
        "Wine Bar": "wine bar",
        "Tea House": "tea house",
        "Library": "library",
        "Quiet Workspace": "coworking space",
        "Study Spot": "study cafe",
        "Bar": "bar",
        "Group Dining": "restaurant",
        "Fine Dining": "fine dining",
        "Rooftop Bar": "rooftop bar",
        "Activity Venue": "arcade bowling",
        "Event Space": "museum",
        "Park": "park",
        "Scenic Walk": "scenic walk",
        "Waterfront": "waterfront",
        "Outdoor Market": "outdoor market",
        "Activity": "things to do",
        "Specialty Dessert": "dessert",
        "Premium Spot": "premium lounge",
    }
)

# Free-text lanes; category keywords alone under-recall for some vibes.
TEXT_QUERIES_BY_VIBE: Mapping[Vibe, tuple[str, ...]] = MappingProxyType(
    {
        Vibe.PRODUCTIVE: (
            "coworking",
            "study cafe",
            "quiet cafe",
            "work cafe",
            "library",
            "coffee shop laptop",
            "wifi cafe",
        ),
        Vibe.COZY: ("cozy cafe", "tea house", "dessert cafe", "bookstore cafe", "quiet cafe"),
        Vibe.SOCIAL: ("cocktail bar", "bar", "fun activity", "arcade", "group dining"),
        Vibe.OUTDOORS: ("park", "waterfront", "scenic walk", "outdoor market"),
        Vibe.LUXURY: ("fine dining", "rooftop bar", "tasting menu", "premium lounge"),
    }
)

VEG_TEXT_QUERIES: tuple[str, ...] = (
    "vegetarian restaurant",
    "vegan restaurant",
    "vegetarian cafe",
    "vegan cafe",
    "plant based restaurant",
)

# Keyword lanes whose text contains one of these get a "vegetarian" variant.
VEG_KEYWORD_MARKERS: frozenset[str] = frozenset(
    {"restaurant", "fine dining", "cafe", "dessert", "rooftop", "wine bar", "bar"}
)

# Only used to widen the swap pool; the shortlist stays on the primary vibe.
FALLBACK_VIBES: Mapping[Vibe, tuple[Vibe, ...]] = MappingProxyType(
    {
        Vibe.PRODUCTIVE: (Vibe.COZY, Vibe.SOCIAL),
        Vibe.COZY: (Vibe.PRODUCTIVE, Vibe.SOCIAL),
        Vibe.SOCIAL: (Vibe.COZY, Vibe.LUXURY),
        Vibe.OUTDOORS: (Vibe.SOCIAL, Vibe.COZY),
        Vibe.LUXURY: (Vibe.SOCIAL, Vibe.COZY),
    }
)


def lane_vibes(primary: Vibe) -> tuple[Vibe, ...]:
    """Primary vibe followed by its fallback ladder."""
    return (primary, *FALLBACK_VIBES.get(primary, (Vibe.COZY, Vibe.SOCIAL)))


# Substring markers (lowercase) for outdoor-leaning categories.
OUTDOOR_MARKERS: tuple[str, ...] = (
    "park",
    "walk",
    "water",
    "outdoor",
    "scenic",
    "market",
    "activity",
)


def is_outdoor_category(category: str) -> bool:
    lowered = (category or "").lower()
    return any(marker in lowered for marker in OUTDOOR_MARKERS)


# Substring markers (lowercase) for food-leaning categories.
VEG_SCORE_MARKERS: tuple[str, ...] = ("dining", "cafe", "dessert", "rooftop", "wine", "bar")
VEG_COPY_MARKERS: tuple[str, ...] = ("dining", "cafe", "dessert", "rooftop", "wine")


def has_marker(category: str, markers: tuple[str, ...]) -> bool:
    lowered = (category or "").lower()
    return any(marker in lowered for marker in markers)


# (vibe, category substring) -> boost; first match wins, otherwise the default.
VIBE_AFFINITY_DEFAULT = 6
VIBE_AFFINITY: Mapping[Vibe, tuple[tuple[str, int], ...]] = MappingProxyType(
    {
        Vibe.PRODUCTIVE: (
            ("library", 18),
            ("quiet workspace", 14),
            ("work cafe", 12),
            ("study", 10),
        ),
        Vibe.SOCIAL: (
            ("bar", 16),
            ("activity venue", 16),
            ("group dining", 12),
            ("event space", 10),
        ),
        Vibe.COZY: (
            ("tea", 14),
            ("dessert", 12),
            ("cafe", 10),
            ("book", 10),
            ("wine", 10),
        ),
        Vibe.OUTDOORS: (
            ("waterfront", 14),
            ("park", 12),
            ("scenic", 12),
            ("outdoor market", 10),
            ("activity", 10),
        ),
        Vibe.LUXURY: (
            ("fine dining", 16),
            ("rooftop", 14),
            ("premium", 12),
            ("specialty dessert", 10),
        ),
    }
)


class TimeBucket(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    LATE = "late"
    NIGHT = "night"

    @classmethod
    def for_hour(cls, hour: int) -> TimeBucket:
        if 6 <= hour <= 11:
            return cls.MORNING
        if 12 <= hour <= 16:
            return cls.AFTERNOON
        if 17 <= hour <= 21:
            return cls.EVENING
        if hour >= 22 or hour <= 2:
            return cls.LATE
        return cls.NIGHT


# Each rule adds its boost once when any of its substrings matches; rules stack.
TIME_OF_DAY_AFFINITY: Mapping[TimeBucket, tuple[tuple[tuple[str, ...], int], ...]] = MappingProxyType(
    {
        TimeBucket.MORNING: (
            (("cafe", "tea", "dessert"), 10),
            (("library", "study", "quiet workspace"), 8),
        ),
        TimeBucket.AFTERNOON: (
            (("cafe", "dessert"), 6),
            (("activity",), 6),
            (("park", "scenic", "waterfront", "outdoor"), 4),
        ),
        TimeBucket.EVENING: (
            (("bar", "group dining", "fine dining", "rooftop"), 10),
            (("event space", "activity venue"), 6),
        ),
        TimeBucket.LATE: (
            (("bar", "rooftop", "group dining"), 8),
            (("cafe", "library", "book"), -6),
            (("park", "scenic", "waterfront"), -10),
        ),
        TimeBucket.NIGHT: (),
    }
)

EVENING_HOUR = 18


__all__ = [
    "ALLOWED_BY_VIBE",
    "CITY_CENTERS",
    "DEFAULT_CITY",
    "DEFAULT_VIBE",
    "EVENING_HOUR",
    "FALLBACK_VIBES",
    "GeoPoint",
    "KEYWORD_BY_CATEGORY",
    "OUTDOOR_MARKERS",
    "TEXT_QUERIES_BY_VIBE",
    "TIME_OF_DAY_AFFINITY",
    "TimeBucket",
    "VEG_COPY_MARKERS",
    "VEG_KEYWORD_MARKERS",
    "VEG_SCORE_MARKERS",
    "VEG_TEXT_QUERIES",
    "VIBE_AFFINITY",
    "VIBE_AFFINITY_DEFAULT",
    "Vibe",
    "has_marker",
    "is_outdoor_category",
    "lane_vibes",
    "pick_city",
]
