"""Short-range forecast for the planning city and the flags derived from it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from .errors import UpstreamDegraded
from .hours import city_local_hour, now_ms
from .http_client import get_json
from .metrics import weather_fetches_total
from .models import WeatherFlags
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

PRECIP_MARKERS = ("snow", "rain", "drizzle", "shower", "thunder")
COLD_C = 2
VERY_COLD_C = -5
WINDY_MS = 9
VERY_WINDY_MS = 13
TEMP_SWING_C = 6
MAX_ALERTS = 2


@dataclass(slots=True)
class ForecastSlot:
    temp: int
    description: str
    wind: float
    time_label: str | None = None

    def to_public(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "temp": self.temp,
            "description": self.description,
            "wind": self.wind,
        }
        if self.time_label is not None:
            payload["timeLabel"] = self.time_label
        return payload


@dataclass(slots=True)
class WeatherReport:
    now: ForecastSlot
    next_hours: list[ForecastSlot] = field(default_factory=list)
    city_local_hour: int = 0
    alerts: list[str] = field(default_factory=list)
    tz_offset_sec: int = 0

    def to_public(self) -> dict[str, Any]:
        return {
            "now": self.now.to_public(),
            "nextHours": [slot.to_public() for slot in self.next_hours],
            "cityLocalHour": self.city_local_hour,
            "alerts": list(self.alerts),
            "tzOffsetSec": self.tz_offset_sec,
        }


def hour_label(dt_sec: int, tz_offset_sec: int) -> str:
    hour = datetime.fromtimestamp(dt_sec + tz_offset_sec, UTC).hour
    suffix = "PM" if hour >= 12 else "AM"
    h12 = 12 if hour % 12 == 0 else hour % 12
    return f"{h12}{suffix}"


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _slot(entry: dict[str, Any], tz_offset_sec: int | None = None) -> ForecastSlot:
    main = _mapping(entry.get("main"))
    wind = _mapping(entry.get("wind"))
    conditions = entry.get("weather")
    first = _mapping(conditions[0]) if isinstance(conditions, list) and conditions else {}
    description = first.get("description") or "unknown"
    label = hour_label(entry["dt"], tz_offset_sec) if tz_offset_sec is not None else None
    return ForecastSlot(
        temp=round(float(main.get("temp") or 0)),
        description=str(description),
        wind=round(float(wind.get("speed") or 0), 1),
        time_label=label,
    )


def build_alerts(slots: list[ForecastSlot]) -> list[str]:
    """Human-readable heads-ups over the next few forecast slots (at most two)."""
    if not slots:
        return []
    descriptions = [slot.description.lower() for slot in slots]
    has_snow = any("snow" in d for d in descriptions)
    has_rain = any(m in d for d in descriptions for m in ("rain", "drizzle", "shower"))
    has_thunder = any("thunder" in d for d in descriptions)
    has_fog = any("fog" in d or "mist" in d for d in descriptions)
    max_wind = max(slot.wind for slot in slots)
    temps = [slot.temp for slot in slots]
    swing = max(temps) - min(temps)

    alerts: list[str] = []
    if has_snow:
        alerts.append("Snow expected soon")
    elif has_rain:
        alerts.append("Rain likely soon")
    if has_thunder:
        alerts.append("Thunderstorms possible")
    if has_fog:
        alerts.append("Low visibility (fog/mist)")
    if max_wind >= VERY_WINDY_MS:
        alerts.append("Very windy later")
    elif max_wind >= WINDY_MS:
        alerts.append("Windy later")
    if swing >= TEMP_SWING_C:
        alerts.append(f"Big temp swing (≈{round(swing)}°C)")
    return alerts[:MAX_ALERTS]


def parse_forecast(data: Any, at_ms: int | None = None) -> WeatherReport | None:
    if not isinstance(data, dict):
        return None
    timezone = _mapping(data.get("city")).get("timezone")
    tz_offset_sec = timezone if isinstance(timezone, int) else 0
    now_sec = (now_ms() if at_ms is None else at_ms) // 1000
    rows = data.get("list")
    entries = [
        e
        for e in (rows if isinstance(rows, list) else [])
        if isinstance(e, dict) and isinstance(e.get("dt"), int)
    ]
    upcoming = [e for e in entries if e["dt"] >= now_sec]
    first = upcoming[0] if upcoming else (entries[0] if entries else None)
    if first is None:
        return None

    next_hours = [_slot(e, tz_offset_sec) for e in upcoming[:4]]
    return WeatherReport(
        now=_slot(first),
        next_hours=next_hours,
        city_local_hour=city_local_hour(tz_offset_sec, at_ms),
        alerts=build_alerts(next_hours),
        tz_offset_sec=tz_offset_sec,
    )


def weather_flags(report: WeatherReport | None) -> WeatherFlags:
    """Condition flags from the next two forecast slots; all clear when unknown."""
    slots = report.next_hours[:2] if report else []
    if not slots:
        return WeatherFlags()
    descriptions = [slot.description.lower() for slot in slots]
    min_temp = min(slot.temp for slot in slots)
    max_wind = max(slot.wind for slot in slots)
    return WeatherFlags(
        precip=any(m in d for d in descriptions for m in PRECIP_MARKERS),
        cold=min_temp <= COLD_C,
        very_cold=min_temp <= VERY_COLD_C,
        windy=max_wind >= WINDY_MS,
        very_windy=max_wind >= VERY_WINDY_MS,
        min_temp=float(min_temp),
    )


async def fetch_weather(
    city: str,
    *,
    config: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    at_ms: int | None = None,
) -> WeatherReport | None:
    cfg = config or default_settings
    if not cfg.OPENWEATHER_KEY:
        return None
    params = {"q": f"{city},US", "units": "metric", "appid": cfg.OPENWEATHER_KEY}
    try:
        data = await get_json(
            f"{cfg.OPENWEATHER_API_BASE.rstrip('/')}/forecast",
            params,
            timeout=cfg.WEATHER_TIMEOUT_SECONDS,
            label="forecast",
            client=http_client,
        )
        report = parse_forecast(data, at_ms)
    except (UpstreamDegraded, TypeError, ValueError) as exc:
        weather_fetches_total.labels(result="error").inc()
        logger.warning("forecast for %s unavailable: %s", city, exc)
        return None

    weather_fetches_total.labels(result="ok" if report else "empty").inc()
    return report


__all__ = [
    "ForecastSlot",
    "WeatherReport",
    "build_alerts",
    "fetch_weather",
    "hour_label",
    "parse_forecast",
    "weather_flags",
]
