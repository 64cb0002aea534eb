"""Tests for forecast parsing, alerts and weather flags."""

from __future__ import annotations

import asyncio

import httpx

from backend.planner.settings import Settings
from backend.planner.weather import (
    ForecastSlot,
    WeatherReport,
    build_alerts,
    fetch_weather,
    parse_forecast,
    weather_flags,
)
from backend.tests.fakes import FIXED_NOW_MS

NOW_SEC = FIXED_NOW_MS // 1000


def _entry(offset_hours: int, temp: float, description: str, wind: float = 3.0):
    return {
        "dt": NOW_SEC + offset_hours * 3600,
        "main": {"temp": temp},
        "weather": [{"description": description}],
        "wind": {"speed": wind},
    }


FORECAST = {
    "city": {"timezone": -18000},
    "list": [
        _entry(-3, 5.0, "clear sky"),
        _entry(1, 4.4, "light rain"),
        _entry(4, 1.6, "overcast clouds", wind=9.5),
        _entry(7, 0.2, "mist"),
        _entry(10, -1.0, "clear sky"),
        _entry(13, -2.0, "clear sky"),
    ],
}


class TestParseForecast:
    def test_report_shape(self):
        report = parse_forecast(FORECAST, FIXED_NOW_MS)

        assert report.tz_offset_sec == -18000
        # 20:00 UTC is 15:00 at UTC-5
        assert report.city_local_hour == 15
        assert report.now.description == "light rain"
        assert report.now.temp == 4
        assert len(report.next_hours) == 4
        assert report.next_hours[0].time_label == "4PM"

    def test_public_payload_is_camel_case(self):
        payload = parse_forecast(FORECAST, FIXED_NOW_MS).to_public()
        assert set(payload) == {"now", "nextHours", "cityLocalHour", "alerts", "tzOffsetSec"}
        assert "timeLabel" not in payload["now"]
        assert payload["nextHours"][0]["timeLabel"] == "4PM"

    def test_junk_payloads(self):
        assert parse_forecast(None) is None
        assert parse_forecast({"list": []}) is None
        assert parse_forecast({"list": [{"dt": "soon"}]}) is None
        assert parse_forecast({"city": "Boston"}) is None

    def test_malformed_nested_fields(self):
        entry = {"dt": NOW_SEC + 3600, "main": "warm", "weather": "rain", "wind": None}
        report = parse_forecast({"city": "Boston", "list": [entry]}, FIXED_NOW_MS)
        assert report.tz_offset_sec == 0
        assert report.now.description == "unknown"
        assert report.now.temp == 0


class TestAlerts:
    def test_rain_fog_and_wind_capped_at_two(self):
        report = parse_forecast(FORECAST, FIXED_NOW_MS)
        assert report.alerts == ["Rain likely soon", "Low visibility (fog/mist)"]

    def test_snow_wins_over_rain(self):
        slots = [ForecastSlot(0, "light snow", 2), ForecastSlot(0, "rain", 2)]
        assert build_alerts(slots) == ["Snow expected soon"]

    def test_temperature_swing(self):
        slots = [ForecastSlot(3, "clear", 14), ForecastSlot(10, "clear", 2)]
        assert build_alerts(slots) == ["Very windy later", "Big temp swing (≈7°C)"]

    def test_no_slots(self):
        assert build_alerts([]) == []


class TestWeatherFlags:
    """Flags come from the next two slots only."""

    def test_flags_from_next_two_slots(self):
        flags = weather_flags(parse_forecast(FORECAST, FIXED_NOW_MS))
        assert flags.precip is True
        assert flags.cold is True
        assert flags.very_cold is False
        assert flags.windy is True
        assert flags.very_windy is False
        assert flags.min_temp == 2.0
        assert flags.bad is True

    def test_unknown_weather_is_all_clear(self):
        flags = weather_flags(None)
        assert flags.bad is False
        assert flags.min_temp == 999.0

    def test_report_without_slots(self):
        report = WeatherReport(now=ForecastSlot(10, "clear", 1))
        assert weather_flags(report).precip is False


class TestFetchWeather:
    def test_missing_key_skips_the_call(self):
        assert asyncio.run(fetch_weather("Boston", config=Settings(OPENWEATHER_KEY=None))) is None

    def test_fetches_metric_forecast(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            seen["path"] = request.url.path
            return httpx.Response(200, json=FORECAST)

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await fetch_weather(
                    "Boston",
                    config=Settings(OPENWEATHER_KEY="ow-key"),
                    http_client=client,
                    at_ms=FIXED_NOW_MS,
                )

        report = asyncio.run(run())
        assert report is not None
        assert seen["path"].endswith("/forecast")
        assert seen["params"] == {"q": "Boston,US", "units": "metric", "appid": "ow-key"}

    def test_upstream_failure_degrades_to_none(self):
        async def run():
            transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
            async with httpx.AsyncClient(transport=transport) as client:
                return await fetch_weather(
                    "Boston", config=Settings(OPENWEATHER_KEY="ow-key"), http_client=client
                )

        assert asyncio.run(run()) is None

    def test_unparseable_forecast_degrades_to_none(self):
        body = {"list": [{"dt": NOW_SEC + 3600, "main": {"temp": "hot"}}]}

        async def run():
            transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
            async with httpx.AsyncClient(transport=transport) as client:
                return await fetch_weather(
                    "Boston",
                    config=Settings(OPENWEATHER_KEY="ow-key"),
                    http_client=client,
                    at_ms=FIXED_NOW_MS,
                )

        assert asyncio.run(run()) is None
