"""Local-time arithmetic for opening periods and closing times.

Provider periods use ``{"open": {"day": 0-6, "time": "HHMM"}, "close": {...}}``
with day 0 = Sunday, expressed in the venue's local wall clock. All instants
here are epoch milliseconds; the city's UTC offset converts between the two.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

MINUTES_PER_DAY = 24 * 60
MINUTES_PER_WEEK = 7 * MINUTES_PER_DAY
MS_PER_MINUTE = 60_000

_LABEL_RE = re.compile(r"^(\d{1,2}):(\d{2})\s(AM|PM)$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ClosingTime:
    label: str
    close_ts: int


def now_ms() -> int:
    return int(time.time() * 1000)


def city_local_now(tz_offset_sec: int, at_ms: int | None = None) -> datetime:
    """Wall-clock time in the city, as a UTC-tagged datetime shifted by the offset."""
    instant = now_ms() if at_ms is None else at_ms
    return datetime.fromtimestamp(instant / 1000 + tz_offset_sec, UTC)


def city_local_hour(tz_offset_sec: int, at_ms: int | None = None) -> int:
    return city_local_now(tz_offset_sec, at_ms).hour


def minutes_since_midnight(local: datetime) -> int:
    return local.hour * 60 + local.minute


def week_minute(local: datetime) -> int:
    sunday_based_day = (local.weekday() + 1) % 7
    return sunday_based_day * MINUTES_PER_DAY + minutes_since_midnight(local)


def parse_hhmm(raw: str) -> int | None:
    if not isinstance(raw, str) or len(raw) != 4 or not raw.isdigit():
        return None
    hours, minutes = int(raw[:2]), int(raw[2:])
    if hours > 24 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_minutes_label(minutes: int) -> str:
    """``1290`` -> ``"9:30 PM"``."""
    h24 = (minutes // 60) % 24
    mins = minutes % 60
    suffix = "PM" if h24 >= 12 else "AM"
    h12 = 12 if h24 % 12 == 0 else h24 % 12
    return f"{h12}:{mins:02d} {suffix}"


def parse_closing_label(label: str | None) -> int | None:
    """``"9:30 PM"`` -> minutes since midnight."""
    if not label:
        return None
    match = _LABEL_RE.match(label.strip())
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2))
    meridiem = match.group(3).upper()
    if meridiem == "PM" and hour != 12:
        hour += 12
    if meridiem == "AM" and hour == 12:
        hour = 0
    return hour * 60 + minute


def _period_bounds(period: Any) -> tuple[int, int] | None:
    if not isinstance(period, dict):
        return None
    opening = period.get("open")
    closing = period.get("close")
    if not isinstance(opening, dict) or not isinstance(closing, dict):
        return None
    open_day = opening.get("day")
    close_day = closing.get("day")
    if not isinstance(open_day, int) or not isinstance(close_day, int):
        return None
    open_min = parse_hhmm(opening.get("time"))
    close_min = parse_hhmm(closing.get("time"))
    if open_min is None or close_min is None:
        return None
    open_w = open_day * MINUTES_PER_DAY + open_min
    close_w = close_day * MINUTES_PER_DAY + close_min
    if close_w <= open_w:
        close_w += MINUTES_PER_WEEK
    return open_w, close_w


def minutes_left_in_periods(periods: list[Any], now_w: int) -> int | None:
    """Minutes until the relevant period closes, measured from week-minute ``now_w``.

    A period containing ``now_w`` wins (smallest remaining time if several
    overlap). Otherwise the period opening soonest within the next week is used.
    """
    containing: int | None = None
    upcoming: tuple[int, int] | None = None  # (minutes until open, minutes until close)
    for period in periods:
        bounds = _period_bounds(period)
        if bounds is None:
            continue
        open_w, close_w = bounds
        for shift in (0, MINUTES_PER_WEEK):
            effective_now = now_w + shift
            if open_w <= effective_now < close_w:
                left = close_w - effective_now
                if left > 0 and (containing is None or left < containing):
                    containing = left
        until_open = (open_w - now_w) % MINUTES_PER_WEEK
        if until_open == 0:
            continue
        until_close = until_open + (close_w - open_w)
        if upcoming is None or until_open < upcoming[0]:
            upcoming = (until_open, until_close)
    if containing is not None:
        return containing
    if upcoming is not None:
        return upcoming[1]
    return None


def active_period_close(
    periods: list[Any] | None, tz_offset_sec: int, at_ms: int | None = None
) -> ClosingTime | None:
    """Closing label and instant for the current (or next) opening period.

    Returns ``None`` when no period parses; callers treat that as unknown hours.
    """
    if not isinstance(periods, list) or not periods:
        return None
    instant = now_ms() if at_ms is None else at_ms
    local = city_local_now(tz_offset_sec, instant)
    left = minutes_left_in_periods(periods, week_minute(local))
    if left is None:
        return None
    close_ts = instant + left * MS_PER_MINUTE
    label = format_minutes_label((minutes_since_midnight(local) + left) % MINUTES_PER_DAY)
    return ClosingTime(label=label, close_ts=close_ts)


def minutes_until_close(
    closing_time: str | None,
    close_ts: int | None,
    tz_offset_sec: int,
    at_ms: int | None = None,
) -> int | None:
    """Whole minutes until closing; the absolute instant wins over the label."""
    instant = now_ms() if at_ms is None else at_ms
    if close_ts is not None:
        diff = close_ts - instant
        return diff // MS_PER_MINUTE if diff > 0 else 0
    close_min = parse_closing_label(closing_time)
    if close_min is None:
        return None
    now_min = minutes_since_midnight(city_local_now(tz_offset_sec, instant))
    if close_min >= now_min:
        return close_min - now_min
    return MINUTES_PER_DAY - now_min + close_min


def open_status_text(open_now: bool | None, closing_time: str | None) -> str:
    if open_now is True:
        return f"Open now • Closes at {closing_time}" if closing_time else "Open now"
    if open_now is False:
        return "Closed now"
    return "Hours unknown • Check on Maps"


__all__ = [
    "ClosingTime",
    "active_period_close",
    "city_local_hour",
    "city_local_now",
    "format_minutes_label",
    "minutes_left_in_periods",
    "minutes_until_close",
    "now_ms",
    "open_status_text",
    "parse_closing_label",
    "parse_hhmm",
    "week_minute",
]
