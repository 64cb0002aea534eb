"""Test doubles for the counter store and the place provider."""

from __future__ import annotations

from datetime import UTC, datetime

from backend.planner.errors import CacheUnavailable
from backend.planner.models import Candidate, DetailRecord, Option
from backend.planner.vibes import CITY_CENTERS

BOSTON = CITY_CENTERS["Boston"]
# Sunday 2026-01-04 20:00 UTC
FIXED_NOW = datetime(2026, 1, 4, 20, 0, tzinfo=UTC)
FIXED_NOW_MS = int(FIXED_NOW.timestamp() * 1000)


class FakeStore:
    """In-memory stand-in for the Redis store with millisecond expiry."""

    def __init__(self, now_ms: int = FIXED_NOW_MS) -> None:
        self.now_ms = now_ms
        self.values: dict[str, tuple[object, int | None]] = {}
        self.fail = False
        self.commands: list[tuple[str, str]] = []

    def _live(self, key: str):
        entry = self.values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self.now_ms:
            del self.values[key]
            return None
        return value

    async def pipeline(self, commands):
        if self.fail:
            raise CacheUnavailable("store offline")
        results = []
        for command, key, args in commands:
            self.commands.append((command, key))
            if command == "GET":
                results.append(self._live(key))
            elif command == "SET":
                value, ttl_ms = args
                self.values[key] = (value, self.now_ms + int(ttl_ms))
                results.append(True)
            elif command in ("INCR", "INCR_TTL"):
                current = self._live(key)
                count = int(current or 0) + 1
                expires_at = None
                if key in self.values:
                    expires_at = self.values[key][1]
                elif command == "INCR_TTL":
                    expires_at = self.now_ms + int(args[0])
                self.values[key] = (count, expires_at)
                results.append(count)
            else:
                raise ValueError(command)
        return results

    async def get(self, key):
        (value,) = await self.pipeline([("GET", key, ())])
        return value

    async def set(self, key, value, ttl_ms):
        await self.pipeline([("SET", key, (value, ttl_ms))])

    async def ping(self):
        return not self.fail


class FakePlaces:
    """Place provider double: every search returns the same candidates."""

    def __init__(self, records: list[DetailRecord] | None = None) -> None:
        self.records = {r.place_id: r for r in records or []}
        self.searches: list[tuple[str, str]] = []
        self.detail_calls: list[str] = []

    def _candidates(self) -> list[Candidate]:
        return [
            Candidate(place_id=r.place_id, name=r.name, lat=r.lat, lng=r.lng)
            for r in self.records.values()
        ]

    async def nearby_search(self, center, radius_m, keyword):
        self.searches.append(("nearby", keyword))
        return self._candidates()

    async def text_search(self, center, radius_m, query):
        self.searches.append(("text", query))
        return self._candidates()

    async def place_details(self, place_id, tz_offset_sec, at_ms=None):
        self.detail_calls.append(place_id)
        return self.records.get(place_id)


def make_record(
    place_id: str,
    types: list[str],
    *,
    minutes_open: int | None = 180,
    open_now: bool | None = True,
    rating: float = 4.5,
    lat_offset: float = 0.0,
) -> DetailRecord:
    close_ts = FIXED_NOW_MS + minutes_open * 60_000 if minutes_open is not None else None
    return DetailRecord(
        place_id=place_id,
        name=f"Venue {place_id}",
        rating=rating,
        user_ratings_total=120,
        types=types,
        open_now=open_now,
        formatted_address=f"{place_id} Main St",
        lat=BOSTON.lat + lat_offset,
        lng=BOSTON.lng,
        closing_time="11:00 PM" if close_ts else None,
        close_ts=close_ts,
    )


def make_option(
    place_id: str,
    category: str,
    *,
    score: float = 50.0,
    minutes_open: int | None = 180,
    open_now: bool | None = True,
    lat: float = BOSTON.lat,
    lng: float = BOSTON.lng,
) -> Option:
    close_ts = FIXED_NOW_MS + minutes_open * 60_000 if minutes_open is not None else None
    if open_now is True:
        status = "Open now • Closes at 11:00 PM" if close_ts else "Open now"
    elif open_now is False:
        status = "Closed now"
    else:
        status = "Hours unknown • Check on Maps"
    return Option(
        id=place_id,
        name=f"Venue {place_id}",
        category=category,
        rating=4.5,
        open_status=status,
        lat=lat,
        lng=lng,
        address=f"{place_id} Main St",
        open_now=open_now,
        closing_time="11:00 PM" if close_ts else None,
        close_ts=close_ts,
        place_id=place_id,
        score=score,
    )

