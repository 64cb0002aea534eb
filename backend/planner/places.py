"""Place search and details against the Google Places web service.

Every call is bounded by a per-call timeout and degrades to "no data" on any
failure; nothing here raises into the planner.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from .cache import TTLCache, details_cache, details_cache_key, search_cache, search_cache_key
from .errors import UpstreamDegraded
from .hours import active_period_close
from .http_client import get_json
from .metrics import detail_fetches_total, lane_calls_total
from .models import Candidate, DetailRecord
from .settings import Settings, settings as default_settings
from .vibes import GeoPoint

logger = logging.getLogger(__name__)

DETAIL_FIELDS = (
    "place_id,name,rating,user_ratings_total,price_level,types,opening_hours,"
    "business_status,formatted_address,geometry,photos"
)
MAX_PHOTOS = 8
# provider statuses that mean "answered, possibly with nothing"
_OK_STATUSES = {"OK", "ZERO_RESULTS"}


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def build_photo_urls(photos: Any, limit: int = MAX_PHOTOS) -> list[str]:
    if not isinstance(photos, list):
        return []
    refs = [p.get("photo_reference") for p in photos if isinstance(p, dict)]
    refs = [ref for ref in refs if isinstance(ref, str)][:limit]
    return [f"/api/photo?mw=1200&ref={quote(ref, safe='')}" for ref in refs]


def parse_candidates(payload: Any) -> list[Candidate]:
    results = payload.get("results") if isinstance(payload, dict) else None
    if not isinstance(results, list):
        return []
    out: list[Candidate] = []
    for row in results:
        if not isinstance(row, dict):
            continue
        location = _mapping(_mapping(row.get("geometry")).get("location"))
        candidate = Candidate.from_cache(
            {
                "placeId": row.get("place_id"),
                "name": row.get("name"),
                "lat": location.get("lat"),
                "lng": location.get("lng"),
            }
        )
        if candidate is not None:
            out.append(candidate)
    return out


def parse_details(payload: Any, tz_offset_sec: int, at_ms: int | None = None) -> DetailRecord | None:
    result = payload.get("result") if isinstance(payload, dict) else None
    if not isinstance(result, dict) or not result.get("place_id") or not result.get("name"):
        return None

    hours = _mapping(result.get("opening_hours"))
    open_now = hours.get("open_now")
    periods = hours.get("periods")
    closing = None
    # a closing time is only meaningful for a venue the provider says is open
    if open_now is True and isinstance(periods, list) and periods:
        closing = active_period_close(periods, tz_offset_sec, at_ms)

    location = _mapping(_mapping(result.get("geometry")).get("location"))
    return DetailRecord.from_cache(
        {
            "placeId": str(result["place_id"]),
            "name": str(result["name"]),
            "rating": result.get("rating"),
            "userRatingsTotal": result.get("user_ratings_total"),
            "priceLevel": result.get("price_level"),
            "types": result.get("types") if isinstance(result.get("types"), list) else [],
            "openNow": open_now,
            "businessStatus": result.get("business_status"),
            "formattedAddress": result.get("formatted_address"),
            "lat": location.get("lat"),
            "lng": location.get("lng"),
            "closingTime": closing.label if closing else None,
            "closeTs": closing.close_ts if closing else None,
            "photoUrls": build_photo_urls(result.get("photos")),
        }
    )


class PlacesClient:
    """Cached, timeout-bounded access to nearby search, text search and details."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        config: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        searches: TTLCache = search_cache,
        details: TTLCache = details_cache,
    ) -> None:
        self._settings = config or default_settings
        self._api_key = api_key if api_key is not None else self._settings.GOOGLE_PLACES_API_KEY
        self._http_client = http_client
        self._searches = searches
        self._details = details
        self._base = self._settings.PLACES_API_BASE.rstrip("/")

    async def _get_json(self, path: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
        data = await get_json(
            f"{self._base}/{path}",
            {**params, "key": self._api_key},
            timeout=timeout,
            label=path,
            client=self._http_client,
        )
        status = data.get("status")
        if status is not None and status not in _OK_STATUSES:
            raise UpstreamDegraded(f"{path} status {status}")
        return data

    async def _search(
        self,
        lane: str,
        path: str,
        center: GeoPoint,
        radius_m: int,
        query: str,
        params: dict[str, Any],
    ) -> list[Candidate]:
        if not self._api_key:
            return []
        key = search_cache_key(lane, center.lat, center.lng, radius_m, query)
        cached = await self._searches.get(key)
        if isinstance(cached, list):
            lane_calls_total.labels(lane=lane, result="cache").inc()
            return [c for c in (Candidate.from_cache(row) for row in cached) if c is not None]

        try:
            data = await self._get_json(path, params, self._settings.LANE_TIMEOUT_SECONDS)
            candidates = parse_candidates(data)
        except (UpstreamDegraded, TypeError, ValueError) as exc:
            lane_calls_total.labels(lane=lane, result="error").inc()
            logger.warning("%s lane %r degraded: %s", lane, query, exc)
            return []

        lane_calls_total.labels(lane=lane, result="ok").inc()
        await self._searches.set(key, [c.to_cache() for c in candidates])
        return candidates

    async def nearby_search(self, center: GeoPoint, radius_m: int, keyword: str) -> list[Candidate]:
        params = {
            "location": f"{center.lat},{center.lng}",
            "radius": radius_m,
            "keyword": keyword,
        }
        return await self._search("nearby", "nearbysearch/json", center, radius_m, keyword, params)

    async def text_search(self, center: GeoPoint, radius_m: int, query: str) -> list[Candidate]:
        params = {
            "query": query,
            "location": f"{center.lat},{center.lng}",
            "radius": radius_m,
        }
        return await self._search("text", "textsearch/json", center, radius_m, query, params)

    async def place_details(
        self, place_id: str, tz_offset_sec: int, at_ms: int | None = None
    ) -> DetailRecord | None:
        if not self._api_key:
            return None
        key = details_cache_key(place_id, tz_offset_sec)
        cached = DetailRecord.from_cache(await self._details.get(key))
        if cached is not None:
            detail_fetches_total.labels(result="cache").inc()
            return cached

        params = {"place_id": place_id, "fields": DETAIL_FIELDS}
        try:
            data = await self._get_json("details/json", params, self._settings.DETAILS_TIMEOUT_SECONDS)
            record = parse_details(data, tz_offset_sec, at_ms)
        except (UpstreamDegraded, TypeError, ValueError) as exc:
            detail_fetches_total.labels(result="error").inc()
            logger.warning("details for %s degraded: %s", place_id, exc)
            return None

        if record is None:
            detail_fetches_total.labels(result="empty").inc()
            return None
        detail_fetches_total.labels(result="ok").inc()
        await self._details.set(key, record.to_cache())
        return record


__all__ = [
    "DETAIL_FIELDS",
    "PlacesClient",
    "build_photo_urls",
    "parse_candidates",
    "parse_details",
]
