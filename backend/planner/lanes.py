"""Multi-lane candidate retrieval.

A lane is one search call (keyword or free text) against the place provider.
All lanes of a retrieval share one concurrency cap; each lane has its own
timeout and yields nothing when it fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from .categories import allowed_categories
from .models import Candidate
from .settings import Settings, settings as default_settings
from .vibes import (
    KEYWORD_BY_CATEGORY,
    TEXT_QUERIES_BY_VIBE,
    VEG_KEYWORD_MARKERS,
    VEG_TEXT_QUERIES,
    GeoPoint,
    Vibe,
    lane_vibes,
)

logger = logging.getLogger(__name__)

MAX_NEARBY_LANES = 8
MAX_TEXT_LANES = 10


class SearchProvider(Protocol):
    async def nearby_search(
        self, center: GeoPoint, radius_m: int, keyword: str
    ) -> list[Candidate]: ...

    async def text_search(
        self, center: GeoPoint, radius_m: int, query: str
    ) -> list[Candidate]: ...


@dataclass(frozen=True, slots=True)
class LaneQueries:
    nearby: tuple[str, ...]
    text: tuple[str, ...]


def _vegetarian_variant(keyword: str) -> str:
    lowered = keyword.lower()
    if any(marker in lowered for marker in VEG_KEYWORD_MARKERS):
        return f"{keyword} vegetarian"
    return keyword


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


def build_lane_queries(vibe: Vibe, veg_friendly: bool = False) -> LaneQueries:
    """Keyword lanes (one per allowed category plus a vibe hint) and free-text lanes."""
    category_keywords = [KEYWORD_BY_CATEGORY.get(c, c) for c in allowed_categories(vibe)]

    if veg_friendly:
        nearby = [_vegetarian_variant(k) for k in category_keywords]
    else:
        nearby = list(category_keywords)
    nearby.append(f"{vibe.value.lower()} spots")

    text = _unique(
        [
            *(VEG_TEXT_QUERIES if veg_friendly else ()),
            *TEXT_QUERIES_BY_VIBE.get(vibe, ()),
            *category_keywords,
        ]
    )
    return LaneQueries(
        nearby=tuple(nearby[:MAX_NEARBY_LANES]),
        text=tuple(text[:MAX_TEXT_LANES]),
    )


def dedupe_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    """First occurrence of each place id wins."""
    seen: set[str] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        if not candidate.place_id or candidate.place_id in seen:
            continue
        seen.add(candidate.place_id)
        unique.append(candidate)
    return unique


class LaneRetriever:
    def __init__(
        self,
        provider: SearchProvider,
        *,
        config: Settings | None = None,
        concurrency: int | None = None,
        lane_timeout: float | None = None,
    ) -> None:
        cfg = config or default_settings
        self._provider = provider
        self._concurrency = concurrency or cfg.LANE_CONCURRENCY
        self._lane_timeout = lane_timeout if lane_timeout is not None else cfg.LANE_TIMEOUT_SECONDS
        self._radius_m = cfg.SEARCH_RADIUS_M
        self._target = cfg.CANDIDATE_TARGET

    async def _run_lane(
        self, semaphore: asyncio.Semaphore, kind: str, center: GeoPoint, query: str
    ) -> list[Candidate]:
        async with semaphore:
            search = self._provider.nearby_search if kind == "nearby" else self._provider.text_search
            try:
                return await asyncio.wait_for(
                    search(center, self._radius_m, query), timeout=self._lane_timeout
                )
            except asyncio.TimeoutError:
                logger.warning("%s lane %r timed out after %.1fs", kind, query, self._lane_timeout)
                return []
            except Exception as exc:
                logger.warning("%s lane %r failed: %s", kind, query, exc)
                return []

    async def retrieve_for_vibe(
        self,
        vibe: Vibe,
        center: GeoPoint,
        veg_friendly: bool = False,
        semaphore: asyncio.Semaphore | None = None,
    ) -> list[Candidate]:
        queries = build_lane_queries(vibe, veg_friendly)
        gate = semaphore or asyncio.Semaphore(self._concurrency)
        jobs = [self._run_lane(gate, "nearby", center, q) for q in queries.nearby]
        jobs += [self._run_lane(gate, "text", center, q) for q in queries.text]
        results = await asyncio.gather(*jobs)
        return dedupe_candidates(c for lane in results for c in lane)

    async def retrieve(
        self, primary: Vibe, center: GeoPoint, veg_friendly: bool = False
    ) -> list[Candidate]:
        """Run the primary vibe's lanes, then its fallback vibes until enough supply.

        Fallback vibes only widen supply; they stop as soon as the merged set
        reaches the candidate target.
        """
        semaphore = asyncio.Semaphore(self._concurrency)
        merged: list[Candidate] = []
        for vibe in lane_vibes(primary):
            found = await self.retrieve_for_vibe(vibe, center, veg_friendly, semaphore)
            merged = dedupe_candidates([*merged, *found])
            logger.debug("lanes for %s yielded %d, merged %d", vibe.value, len(found), len(merged))
            if len(merged) >= self._target:
                break
        return merged


__all__ = [
    "LaneQueries",
    "LaneRetriever",
    "SearchProvider",
    "build_lane_queries",
    "dedupe_candidates",
]
