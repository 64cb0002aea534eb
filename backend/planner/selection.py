"""Shortlist sampling, swap-pool diversification and single-option substitution."""

from __future__ import annotations

import math
import random
from collections import Counter
from collections.abc import Collection, Sequence

from .errors import InvalidInput, NoSubstituteAvailable
from .models import Option

SHORTLIST_SIZE = 5
SELECTION_WINDOW = 30
PER_CATEGORY_CAP = 2
PICK_TEMPERATURE = 18.0
POOL_PER_CATEGORY = 6
POOL_LIMIT = 60
# per-category caps tried in order when substituting; None means uncapped
SUBSTITUTION_PASSES: tuple[int | None, ...] = (2, 3, None)


def _category(option: Option) -> str:
    return option.category or "Other"


def weighted_pick(
    items: Sequence[Option],
    rng: random.Random | None = None,
    temperature: float = PICK_TEMPERATURE,
) -> Option | None:
    """Sample one option with probability proportional to ``exp(score / temperature)``.

    A non-positive temperature degenerates to the highest-scoring item.
    """
    if not items:
        return None
    if temperature <= 0:
        return max(items, key=lambda o: o.score)
    top = max(o.score for o in items)
    # shifting by the max keeps exp() finite without changing proportions
    weights = [math.exp((o.score - top) / temperature) for o in items]
    total = sum(weights)
    if not math.isfinite(total) or total <= 0:
        return items[0]
    threshold = (rng or random).random() * total
    for item, weight in zip(items, weights):
        threshold -= weight
        if threshold <= 0:
            return item
    return items[-1]


def select_shortlist(
    ranked: Sequence[Option],
    rng: random.Random | None = None,
    *,
    temperature: float = PICK_TEMPERATURE,
    limit: int = SHORTLIST_SIZE,
    per_category: int = PER_CATEGORY_CAP,
    window: int = SELECTION_WINDOW,
) -> list[Option]:
    """Pick up to ``limit`` options from the best ``window`` of a score-sorted list.

    Sampling prefers options whose category is still under ``per_category``;
    when none are, it falls back to everything left. Fewer picks than
    ``limit`` is a normal outcome.
    """
    top = list(ranked[:window])
    remaining = list(top)
    picked: list[Option] = []
    counts: Counter[str] = Counter()

    while len(picked) < limit and remaining:
        under_cap = [o for o in remaining if counts[_category(o)] < per_category]
        chosen = weighted_pick(under_cap or remaining, rng, temperature)
        if chosen is None:
            break
        picked.append(chosen)
        counts[_category(chosen)] += 1
        remaining = [o for o in remaining if o.key != chosen.key]

    if len(picked) == limit and len({_category(o) for o in picked}) == 1:
        first_category = _category(picked[0])
        alternative = next((o for o in top if _category(o) != first_category), None)
        if alternative is not None:
            picked[-1] = alternative
    return picked


def diversify_pool(
    ranked: Sequence[Option],
    max_per_category: int = POOL_PER_CATEGORY,
    limit: int = POOL_LIMIT,
) -> list[Option]:
    counts: Counter[str] = Counter()
    pool: list[Option] = []
    for option in ranked:
        category = _category(option)
        if counts[category] >= max_per_category:
            continue
        counts[category] += 1
        pool.append(option)
    return pool[:limit]


def _is_closed(option: Option) -> bool:
    return "closed" in option.open_status.lower()


def substitute(
    shortlist: Sequence[Option],
    removed_id: str,
    pool: Sequence[Option],
    banned: Collection[str] = (),
) -> tuple[list[Option], Option]:
    """Replace the shortlist option ``removed_id`` with the best pool fit.

    Returns the new shortlist and the replacement, which takes over the removed
    option's display id.

    Raises:
        InvalidInput: ``removed_id`` is not on the shortlist.
        NoSubstituteAvailable: no pool option satisfies even the uncapped pass.
    """
    index = next((i for i, o in enumerate(shortlist) if o.id == removed_id), None)
    if index is None:
        raise InvalidInput("Swap failed — option not found.")

    removed = shortlist[index]
    others = [o for o in shortlist if o.key != removed.key]
    used = {o.key for o in others}
    counts = Counter(_category(o) for o in others)
    banned_keys = set(banned)

    def base_ok(candidate: Option) -> bool:
        key = candidate.key
        return (
            bool(key)
            and key != removed.key
            and key not in used
            and key not in banned_keys
            and not _is_closed(candidate)
        )

    for cap in SUBSTITUTION_PASSES:
        replacement = next(
            (
                c
                for c in pool
                if base_ok(c) and (cap is None or counts[_category(c)] < cap)
            ),
            None,
        )
        if replacement is not None:
            swapped_in = replacement.with_id(removed.id)
            updated = list(shortlist)
            updated[index] = swapped_in
            return updated, swapped_in

    raise NoSubstituteAvailable("No more swap options right now.")


__all__ = [
    "POOL_LIMIT",
    "POOL_PER_CATEGORY",
    "SUBSTITUTION_PASSES",
    "diversify_pool",
    "select_shortlist",
    "substitute",
    "weighted_pick",
]
