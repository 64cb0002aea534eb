"""HTTP contract tests for the plan endpoints."""

from __future__ import annotations

import random

import pytest
from fastapi.testclient import TestClient

from backend.planner.api.routes.plan import get_planner, get_rate_limiter
from backend.planner.main import app
from backend.planner.planner import Planner
from backend.planner.rate_limit import RateLimiter
from backend.planner.settings import Settings
from backend.planner.weather import ForecastSlot, WeatherReport
from backend.tests.fakes import FIXED_NOW, FIXED_NOW_MS, FakePlaces, FakeStore, make_option, make_record


async def _clear_weather(city):
    slot = ForecastSlot(temp=14, description="clear sky", wind=2.0, time_label="3PM")
    return WeatherReport(now=slot, next_hours=[slot], city_local_hour=15)


async def _no_copy(brief, venues):
    return {}


def _records():
    return [make_record(f"bar{i}", ["bar"], lat_offset=0.001 * i) for i in range(3)] + [
        make_record(f"dine{i}", ["restaurant"], lat_offset=0.002 * i) for i in range(3)
    ]


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def client(store):
    planner = Planner(
        FakePlaces(_records()),
        config=Settings(),
        weather=_clear_weather,
        copywriter=_no_copy,
        rng=random.Random(3),
        clock=lambda: FIXED_NOW_MS,
    )
    limiter = RateLimiter(
        store_factory=lambda: store,
        config=Settings(GUEST_PER_MINUTE=3, GUEST_PER_DAY=15),
        clock=lambda: FIXED_NOW,
    )
    app.dependency_overrides[get_planner] = lambda: planner
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestPlanEndpoint:
    def test_get_explains_usage(self, client):
        response = client.get("/plan")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": "Use POST to generate a plan."}

    def test_invalid_json(self, client):
        response = client.post("/plan", content="{nope", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Invalid JSON body."}

    def test_non_object_body(self, client):
        response = client.post("/plan", json=["Boston"])
        assert response.status_code == 400
        assert response.json()["ok"] is False

    def test_plan_payload(self, client):
        response = client.post(
            "/plan",
            json={"city": "Nowhere", "vibe": "Social", "withWho": "  ", "seenPlaceIds": [1, "bar0"]},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert 1 <= len(body["options"]) <= 5
        assert [o["id"] for o in body["options"]] == [str(i) for i in range(1, len(body["options"]) + 1)]
        assert body["meta"]["limitedAvailability"] is True
        assert body["meta"]["reason"] is not None
        assert body["weather"]["now"]["description"] == "clear sky"
        assert body["options"][0]["why"] == "Fits a Social vibe with solo."
        assert "score" not in body["options"][0]

    def test_fourth_guest_request_is_throttled(self, client):
        """Three a minute for guests; the fourth gets 429 and Retry-After."""
        headers = {"User-Agent": "pytest", "X-Forwarded-For": "203.0.113.9"}
        statuses = [client.post("/plan", json={}, headers=headers).status_code for _ in range(3)]
        assert statuses == [200, 200, 200]

        response = client.post("/plan", json={}, headers=headers)
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json() == {"ok": False, "error": "Too many requests. Please slow down."}

    def test_guests_are_keyed_by_forwarded_ip(self, client):
        for _ in range(3):
            client.post("/plan", json={}, headers={"X-Forwarded-For": "198.51.100.1"})
        response = client.post("/plan", json={}, headers={"X-Forwarded-For": "198.51.100.2"})
        assert response.status_code == 200

    def test_production_without_store(self, client):
        app.dependency_overrides[get_rate_limiter] = lambda: RateLimiter(
            store_factory=lambda: None, config=Settings(ENVIRONMENT="production")
        )
        response = client.post("/plan", json={})
        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "Server not configured (rate limiter missing)."}


class TestSwapEndpoint:
    """Stateless substitution from a client-held pool."""

    def _body(self, removed_id="2", pool=None):
        options = [make_option("s1", "Bar").with_id("1"), make_option("s2", "Bar").with_id("2")]
        pool = pool if pool is not None else [make_option("s1", "Bar"), make_option("p1", "Group Dining")]
        return {
            "options": [o.to_public() for o in options],
            "pool": [o.to_public() for o in pool],
            "removedId": removed_id,
            "bannedKeys": [],
        }

    def test_swap_replaces_option(self, client):
        response = client.post("/plan/swap", json=self._body())
        assert response.status_code == 200
        body = response.json()
        assert body["replacement"]["placeId"] == "p1"
        assert body["replacement"]["id"] == "2"
        assert [o["placeId"] for o in body["options"]] == ["s1", "p1"]

    def test_no_substitute(self, client):
        response = client.post("/plan/swap", json=self._body(pool=[]))
        assert response.status_code == 404
        assert response.json() == {"ok": False, "error": "No more swap options right now."}

    def test_unknown_option(self, client):
        response = client.post("/plan/swap", json=self._body(removed_id="9"))
        assert response.status_code == 400

    def test_invalid_body(self, client):
        response = client.post("/plan/swap", json={"options": [], "removedId": "1"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid swap request."


class TestServiceEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["credentials"]["places"] is True

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_request_id_is_echoed(self, client):
        response = client.get("/plan", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
