from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .vibes import ALLOWED_BY_VIBE, Vibe


@dataclass(frozen=True, slots=True)
class CategoryRule:
    tags: frozenset[str]
    prefer: tuple[str, ...]
    # when none of ``prefer`` is allowed, keep scanning later rules instead of
    # settling on the vibe's first category
    fall_through: bool = False


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(frozenset({"bar", "night_club"}), ("Bar",)),
    CategoryRule(
        frozenset({"bowling_alley", "movie_theater", "amusement_park", "casino"}),
        ("Activity Venue",),
    ),
    CategoryRule(
        frozenset({"restaurant"}),
        ("Group Dining", "Fine Dining", "Work Cafe", "Study Spot", "Cafe"),
    ),
    CategoryRule(frozenset({"cafe"}), ("Work Cafe", "Cafe")),
    CategoryRule(frozenset({"bakery"}), ("Dessert",)),
    CategoryRule(frozenset({"library"}), ("Library",)),
    CategoryRule(frozenset({"book_store"}), ("Bookstore",)),
    CategoryRule(frozenset({"park"}), ("Park",)),
    CategoryRule(
        frozenset({"tourist_attraction", "point_of_interest"}),
        ("Scenic Walk", "Waterfront", "Activity"),
        fall_through=True,
    ),
    CategoryRule(
        frozenset({"museum", "art_gallery", "stadium", "theater"}),
        ("Event Space", "Activity Venue", "Activity"),
        fall_through=True,
    ),
)


def allowed_categories(vibe: Vibe) -> tuple[str, ...]:
    return ALLOWED_BY_VIBE.get(vibe) or ALLOWED_BY_VIBE[Vibe.SOCIAL]


def map_category(types: Iterable[str], vibe: Vibe) -> str:
    """Map provider type tags to one category allowed for ``vibe``.

    The result is always a member of ``allowed_categories(vibe)``.
    """
    allowed = allowed_categories(vibe)
    tags = {str(tag) for tag in types or ()}
    for rule in CATEGORY_RULES:
        if not rule.tags & tags:
            continue
        for category in rule.prefer:
            if category in allowed:
                return category
        if not rule.fall_through:
            return allowed[0]
    return allowed[0]


__all__ = ["CATEGORY_RULES", "CategoryRule", "allowed_categories", "map_category"]
