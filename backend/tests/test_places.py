"""Tests for the Places client against a mocked transport."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import httpx

from backend.planner.cache import TTLCache
from backend.planner.places import PlacesClient, build_photo_urls, parse_candidates, parse_details
from backend.planner.settings import Settings
from backend.tests.fakes import BOSTON, FakeStore

# Sunday 2026-01-04 15:00 at UTC-5
AT_MS = int(datetime(2026, 1, 4, 20, 0, tzinfo=UTC).timestamp() * 1000)
TZ = -18000

SEARCH_PAYLOAD = {
    "status": "OK",
    "results": [
        {"place_id": "p1", "name": "Corner Cafe", "geometry": {"location": {"lat": 42.36, "lng": -71.05}}},
        {"place_id": "p2", "name": "No Coords", "geometry": {}},
        {"name": "No Id", "geometry": {"location": {"lat": 42.0, "lng": -71.0}}},
    ],
}

DETAILS_PAYLOAD = {
    "status": "OK",
    "result": {
        "place_id": "p1",
        "name": "Corner Cafe",
        "rating": 4.6,
        "user_ratings_total": 310,
        "price_level": 2,
        "types": ["cafe", "food"],
        "business_status": "OPERATIONAL",
        "formatted_address": "1 Main St",
        "geometry": {"location": {"lat": 42.36, "lng": -71.05}},
        "opening_hours": {
            "open_now": True,
            "periods": [{"open": {"day": 0, "time": "0800"}, "close": {"day": 0, "time": "2130"}}],
        },
        "photos": [{"photo_reference": "ref/1"}, {"photo_reference": "ref2"}],
    },
}


def _client(handler, store=None, api_key="places-key"):
    store = store or FakeStore()
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    places = PlacesClient(
        api_key,
        config=Settings(),
        http_client=http,
        searches=TTLCache("search", 180, store_factory=lambda: store),
        details=TTLCache("details", 1800, store_factory=lambda: store),
    )
    return places, http


class TestParsing:
    def test_candidates_drop_incomplete_rows(self):
        candidates = parse_candidates(SEARCH_PAYLOAD)
        assert [c.place_id for c in candidates] == ["p1"]
        assert parse_candidates({"results": "nope"}) == []

    def test_details_with_closing_time(self):
        record = parse_details(DETAILS_PAYLOAD, TZ, AT_MS)
        assert record.place_id == "p1"
        assert record.open_now is True
        assert record.closing_time == "9:30 PM"
        assert record.close_ts == AT_MS + 390 * 60_000
        assert record.photo_urls == ["/api/photo?mw=1200&ref=ref%2F1", "/api/photo?mw=1200&ref=ref2"]

    def test_closing_time_needs_open_now(self):
        payload = {"result": {**DETAILS_PAYLOAD["result"], "opening_hours": {"periods": []}}}
        record = parse_details(payload, TZ, AT_MS)
        assert record.open_now is None
        assert record.closing_time is None
        assert record.close_ts is None

    def test_malformed_nested_fields(self):
        assert parse_candidates({"results": [{"place_id": "x", "name": "X", "geometry": "here"}]}) == []

        result = {
            **DETAILS_PAYLOAD["result"],
            "types": "cafe",
            "geometry": "nowhere",
            "opening_hours": {"open_now": True, "periods": [{"open": "0900", "close": "2100"}]},
        }
        record = parse_details({"result": result}, TZ, AT_MS)
        assert record.open_now is True
        assert record.closing_time is None
        assert record.close_ts is None
        assert record.lat is None
        assert record.types == []

    def test_photo_cap(self):
        photos = [{"photo_reference": f"r{i}"} for i in range(12)]
        assert len(build_photo_urls(photos)) == 8


class TestPlacesClient:
    """Caching and degradation."""

    def test_nearby_search_is_cached(self):
        calls = []

        def handler(request):
            calls.append(dict(request.url.params))
            return httpx.Response(200, json=SEARCH_PAYLOAD)

        async def run():
            places, http = _client(handler)
            async with http:
                first = await places.nearby_search(BOSTON, 16000, "cafe")
                second = await places.nearby_search(BOSTON, 16000, "cafe")
            return first, second

        first, second = asyncio.run(run())
        assert [c.place_id for c in first] == [c.place_id for c in second] == ["p1"]
        assert len(calls) == 1
        assert calls[0]["keyword"] == "cafe"
        assert calls[0]["key"] == "places-key"

    def test_text_search_uses_query(self):
        paths = []

        def handler(request):
            paths.append((request.url.path, request.url.params.get("query")))
            return httpx.Response(200, json=SEARCH_PAYLOAD)

        async def run():
            places, http = _client(handler)
            async with http:
                return await places.text_search(BOSTON, 16000, "quiet cafe")

        asyncio.run(run())
        assert paths == [("/maps/api/place/textsearch/json", "quiet cafe")]

    def test_failures_degrade_to_empty(self):
        async def run():
            places, http = _client(lambda request: httpx.Response(500))
            async with http:
                return (
                    await places.nearby_search(BOSTON, 16000, "cafe"),
                    await places.place_details("p1", TZ, AT_MS),
                )

        assert asyncio.run(run()) == ([], None)

    def test_provider_error_status_degrades(self):
        async def run():
            places, http = _client(
                lambda request: httpx.Response(200, json={"status": "REQUEST_DENIED", "results": []})
            )
            async with http:
                return await places.nearby_search(BOSTON, 16000, "cafe")

        assert asyncio.run(run()) == []

    def test_details_cached_per_offset(self):
        calls = []

        def handler(request):
            calls.append(request.url.params.get("place_id"))
            return httpx.Response(200, json=DETAILS_PAYLOAD)

        async def run():
            places, http = _client(handler)
            async with http:
                first = await places.place_details("p1", TZ, AT_MS)
                cached = await places.place_details("p1", TZ, AT_MS)
                other = await places.place_details("p1", 0, AT_MS)
            return first, cached, other

        first, cached, other = asyncio.run(run())
        assert first.closing_time == cached.closing_time == "9:30 PM"
        assert calls == ["p1", "p1"]
        assert other.close_ts == AT_MS + 90 * 60_000

    def test_without_key_nothing_is_called(self):
        def handler(request):
            raise AssertionError("no request expected")

        async def run():
            places, http = _client(handler, api_key="")
            async with http:
                return await places.nearby_search(BOSTON, 16000, "cafe")

        assert asyncio.run(run()) == []
