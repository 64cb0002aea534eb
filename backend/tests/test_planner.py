"""End-to-end planning over fake providers."""

from __future__ import annotations

import asyncio
import random
from collections import Counter

import pytest

from backend.planner.categories import allowed_categories
from backend.planner.errors import ConfigurationMissing, UpstreamDegraded
from backend.planner.models import Candidate, FreshnessSets
from backend.planner.planner import (
    REASON_CLOSING_SOON,
    REASON_LIMITED,
    REASON_UNKNOWN_HOURS,
    REASON_WEATHER,
    Planner,
    choose_pool_source,
    limited_reason,
    order_candidates,
)
from backend.planner.schemas import PlanRequest
from backend.planner.settings import Settings
from backend.planner.vibes import Vibe
from backend.planner.weather import ForecastSlot, WeatherReport
from backend.tests.fakes import BOSTON, FIXED_NOW_MS, FakePlaces, make_option, make_record


def _report(description: str = "clear sky") -> WeatherReport:
    slot = ForecastSlot(temp=12, description=description, wind=2.0, time_label="3PM")
    return WeatherReport(now=slot, next_hours=[slot, slot], city_local_hour=15, tz_offset_sec=0)


def _weather(description: str = "clear sky"):
    async def fetch(city: str) -> WeatherReport:
        return _report(description)

    return fetch


async def _no_copy(brief, venues):
    return {}


class FlakyPlaces(FakePlaces):
    """Every text lane and one detail call fail."""

    async def text_search(self, center, radius_m, query):
        raise UpstreamDegraded("lane failed")

    async def place_details(self, place_id, tz_offset_sec, at_ms=None):
        if place_id == "bar0":
            raise UpstreamDegraded("details failed")
        return await super().place_details(place_id, tz_offset_sec, at_ms)


def _social_records():
    records = []
    for i in range(3):
        records.append(make_record(f"bar{i}", ["bar"], lat_offset=0.001 * i))
        records.append(make_record(f"dine{i}", ["restaurant"], lat_offset=0.002 * i))
    for i in range(2):
        records.append(make_record(f"bowl{i}", ["bowling_alley"], lat_offset=0.003 * i))
        records.append(make_record(f"museum{i}", ["museum"], lat_offset=0.004 * i))
    return records


def _planner(records, weather=None, config=None) -> tuple[Planner, FakePlaces]:
    places = FakePlaces(records)
    planner = Planner(
        places,
        config=config or Settings(),
        weather=weather or _weather(),
        copywriter=_no_copy,
        rng=random.Random(7),
        clock=lambda: FIXED_NOW_MS,
    )
    return planner, places


def _plan(planner: Planner, **body):
    return asyncio.run(planner.plan(PlanRequest.model_validate(body)))


class TestPlan:
    """Shortlist and pool guarantees."""

    def test_full_shortlist(self):
        planner, _ = _planner(_social_records())
        result = _plan(planner, city="Boston", vibe="Social", withWho="Friends")

        assert [o.id for o in result.options] == ["1", "2", "3", "4", "5"]
        allowed = set(allowed_categories(Vibe.SOCIAL))
        assert all(o.category in allowed for o in result.options + result.pool)
        assert max(Counter(o.category for o in result.options).values()) <= 2
        for option in result.options:
            assert option.open_now is True
            assert (option.close_ts - FIXED_NOW_MS) // 60_000 >= 75
        assert len(result.pool) == 10
        assert result.limited_availability is False
        assert result.reason is None

    def test_response_shape(self):
        planner, _ = _planner(_social_records())
        response = _plan(planner, vibe="Social", withWho="Friends").to_response()
        payload = response.model_dump(by_alias=True)

        assert payload["ok"] is True
        assert payload["meta"]["limitedAvailability"] is False
        assert payload["weather"]["cityLocalHour"] == 15
        first = payload["options"][0]
        assert "score" not in first
        assert first["why"] == "Fits a Social vibe with friends."

    def test_swapped_ids_never_return(self):
        planner, places = _planner(_social_records())
        result = _plan(planner, vibe="Social", swappedPlaceIds=["bar0", "dine1"])

        returned = {o.place_id for o in result.options + result.pool}
        assert not returned & {"bar0", "dine1"}
        assert "bar0" not in places.detail_calls

    def test_empty_supply_is_limited(self):
        planner, _ = _planner([])
        result = _plan(planner, vibe="Cozy")

        assert result.options == []
        assert result.pool == []
        assert result.limited_availability is True
        assert result.reason == REASON_LIMITED

    def test_rain_blocks_parks(self):
        records = [make_record(f"park{i}", ["park"]) for i in range(4)]
        planner, _ = _planner(records, weather=_weather("moderate rain"))
        result = _plan(planner, vibe="Outdoors")

        assert result.options == []
        assert result.pool == []
        assert result.rejections["weather_block"] == 8
        assert result.reason == REASON_WEATHER

    def test_closing_soon_fills_pool_only(self):
        records = [make_record(f"cafe{i}", ["cafe"], minutes_open=60) for i in range(3)]
        planner, _ = _planner(records)
        result = _plan(planner, vibe="Cozy")

        assert result.options == []
        assert {o.place_id for o in result.pool} == {"cafe0", "cafe1", "cafe2"}
        assert result.reason == REASON_CLOSING_SOON

    def test_unknown_hours_reason(self):
        records = [make_record(f"bar{i}", ["bar"], open_now=None, minutes_open=None) for i in range(8)]
        planner, _ = _planner(records)
        result = _plan(planner, vibe="Social")

        assert result.options == []
        assert result.rejections["unknown_hours"] == 8
        assert result.reason == REASON_UNKNOWN_HOURS
        assert len(result.pool) == 6

    def test_failing_upstream_calls_are_absorbed(self):
        planner = Planner(
            FlakyPlaces(_social_records()),
            config=Settings(),
            weather=_weather(),
            copywriter=_no_copy,
            rng=random.Random(7),
            clock=lambda: FIXED_NOW_MS,
        )
        result = _plan(planner, vibe="Social", withWho="Friends")

        assert len(result.options) == 5
        assert "bar0" not in {o.place_id for o in result.options + result.pool}

    def test_missing_places_key(self):
        planner, _ = _planner([], config=Settings(GOOGLE_PLACES_API_KEY=None))
        with pytest.raises(ConfigurationMissing):
            _plan(planner, vibe="Cozy")


class TestHelpers:
    def test_order_candidates(self):
        near_seen = Candidate("seen", "Seen", BOSTON.lat, BOSTON.lng)
        far_fresh = Candidate("far", "Far", BOSTON.lat + 0.05, BOSTON.lng)
        near_fresh = Candidate("near", "Near", BOSTON.lat + 0.001, BOSTON.lng)
        swapped = Candidate("gone", "Gone", BOSTON.lat, BOSTON.lng)
        freshness = FreshnessSets(seen=frozenset({"seen"}), swapped=frozenset({"gone"}))

        ordered = order_candidates([near_seen, far_fresh, swapped, near_fresh], BOSTON, freshness)
        assert [c.place_id for c in ordered] == ["near", "far", "seen"]

    def test_limited_reason_ignores_weather_for_indoor_vibes(self):
        tally = Counter({"weather_block": 5, "unknown_hours": 1})
        assert limited_reason(tally, vibe_has_outdoor=True) == REASON_WEATHER
        assert limited_reason(tally, vibe_has_outdoor=False) != REASON_WEATHER

    def test_pool_source_prefers_unseen_when_plentiful(self):
        relaxed = [make_option(f"o{i}", "Cafe") for i in range(30)]
        seen = frozenset({"o0", "o1"})
        assert len(choose_pool_source(relaxed, seen, 26)) == 28
        assert len(choose_pool_source(relaxed[:10], seen, 26)) == 10
