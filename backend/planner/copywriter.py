"""Optional "why" and "watchouts" copy for returned venues.

The copy is cosmetic: any failure leaves every option on deterministic
fallback text.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import UpstreamDegraded
from .http_client import post_json
from .metrics import copy_requests_total
from .models import Option
from .settings import Settings, settings as default_settings
from .vibes import VEG_COPY_MARKERS, Vibe, has_marker
from .weather import WeatherReport

logger = logging.getLogger(__name__)

MAX_COPY_TARGETS = 28
COPY_TEMPERATURE = 0.5
COPY_MAX_TOKENS = 650
FALLBACK_WATCHOUTS = ("Can be busy at peak hours", "Check live hours on Maps")
VEG_WATCHOUT = "Veg options not confirmed — check menu."


@dataclass(frozen=True, slots=True)
class VenueCopy:
    why: str
    watchouts: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class CopyBrief:
    city: str
    vibe: Vibe
    with_who: str
    veg_friendly: bool
    allowed_categories: tuple[str, ...]
    weather_summary: str


def weather_summary(report: WeatherReport | None) -> str:
    if report is None:
        return "unknown"
    now = report.now
    return f"{now.temp}°C, {now.description}, wind {now.wind} m/s"


def copy_targets(shortlist: Iterable[Option], pool: Iterable[Option]) -> list[Option]:
    """Shortlist first, then pool; one entry per place id, capped."""
    targets: dict[str, Option] = {}
    for option in (*shortlist, *pool):
        if option.place_id and option.place_id not in targets:
            targets[option.place_id] = option
    return list(targets.values())[:MAX_COPY_TARGETS]


def build_prompt(brief: CopyBrief, venues: Sequence[Option]) -> str:
    venue_lines = "\n".join(f"- {v.place_id} | {v.name} | {v.category}" for v in venues)
    return f"""
You write short copy for a local planner app.

STRICT RULES:
- Use only the venues provided (placeId + name + category).
- Do NOT invent venues, do NOT rename venues, do NOT change categories.
- Output ONLY valid JSON array. No markdown, no commentary.

Context:
CITY: {brief.city}
VIBE: {brief.vibe.value}
WITH: {brief.with_who}
VEG-FRIENDLY (food only): {str(brief.veg_friendly).lower()}
Allowed categories: {", ".join(brief.allowed_categories)}
Weather: {brief.weather_summary}

Task:
For each venue, write:
- why: 1 sentence (<= 18 words) tying vibe + withWho (and veg if relevant)
- watchouts: 2 short warnings (<= 8 words each), realistic, no repeats

Schema:
[
  {{"placeId":"...","why":"...","watchouts":["...","..."]}}
]

Venues:
{venue_lines}
""".strip()


def parse_copy(content: str | None) -> dict[str, VenueCopy]:
    """Extract the JSON array from a model reply; malformed rows are skipped."""
    text = (content or "").strip()
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return {}
    try:
        rows = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return {}
    if not isinstance(rows, list):
        return {}

    by_id: dict[str, VenueCopy] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        place_id, why, watchouts = row.get("placeId"), row.get("why"), row.get("watchouts")
        if not isinstance(place_id, str) or not isinstance(why, str) or not isinstance(watchouts, list):
            continue
        by_id[place_id] = VenueCopy(
            why=why.strip(),
            watchouts=tuple(w for w in watchouts if isinstance(w, str))[:2],
        )
    return by_id


async def write_copy(
    brief: CopyBrief,
    venues: Sequence[Option],
    *,
    config: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, VenueCopy]:
    cfg = config or default_settings
    if not cfg.OPENAI_API_KEY or not venues:
        return {}

    payload: dict[str, Any] = {
        "model": cfg.OPENAI_COPY_MODEL,
        "messages": [{"role": "user", "content": build_prompt(brief, venues)}],
        "temperature": COPY_TEMPERATURE,
        "max_tokens": COPY_MAX_TOKENS,
    }
    try:
        response = await post_json(
            f"{cfg.OPENAI_API_BASE.rstrip('/')}/chat/completions",
            payload,
            headers={"Authorization": f"Bearer {cfg.OPENAI_API_KEY}"},
            timeout=httpx.Timeout(
                cfg.OPENAI_TIMEOUT_SECONDS, connect=cfg.OPENAI_CONNECT_TIMEOUT_SECONDS
            ),
            label="chat/completions",
            client=http_client,
        )
    except UpstreamDegraded as exc:
        copy_requests_total.labels(result="error").inc()
        logger.warning("copy generation failed: %s", exc)
        return {}

    choices = response.get("choices") or []
    content = (choices[0].get("message") or {}).get("content") if choices else None
    copy = parse_copy(content)
    copy_requests_total.labels(result="ok" if copy else "empty").inc()
    return copy


def apply_copy(
    option: Option,
    copy_by_id: dict[str, VenueCopy],
    vibe: Vibe,
    with_who: str,
    veg_friendly: bool,
) -> Option:
    """Fill ``why``/``watchouts`` in place from generated copy or fallback text."""
    copy = copy_by_id.get((option.place_id or "").strip())
    option.why = (copy.why if copy else "") or f"Fits a {vibe.value} vibe with {with_who.lower()}."
    watchouts = list(copy.watchouts) if copy and copy.watchouts else list(FALLBACK_WATCHOUTS)
    option.watchouts = watchouts[:2]

    if veg_friendly and has_marker(option.category, VEG_COPY_MARKERS):
        if "veget" not in option.why.lower():
            first = option.watchouts[0] if option.watchouts else FALLBACK_WATCHOUTS[0]
            option.watchouts = [first, VEG_WATCHOUT]
    return option


__all__ = [
    "CopyBrief",
    "VEG_WATCHOUT",
    "VenueCopy",
    "apply_copy",
    "build_prompt",
    "copy_targets",
    "parse_copy",
    "weather_summary",
    "write_copy",
]
