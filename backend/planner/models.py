"""Request-scoped records passed between retrieval, filtering and selection."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class Candidate:
    place_id: str
    name: str
    lat: float
    lng: float

    def to_cache(self) -> dict[str, Any]:
        return {"placeId": self.place_id, "name": self.name, "lat": self.lat, "lng": self.lng}

    @classmethod
    def from_cache(cls, payload: Any) -> Candidate | None:
        if not isinstance(payload, dict):
            return None
        place_id = payload.get("placeId")
        name = payload.get("name")
        lat = payload.get("lat")
        lng = payload.get("lng")
        if not isinstance(place_id, str) or not place_id or not isinstance(name, str):
            return None
        if not _is_number(lat) or not _is_number(lng):
            return None
        return cls(place_id=place_id, name=name, lat=float(lat), lng=float(lng))


@dataclass(slots=True)
class DetailRecord:
    place_id: str
    name: str
    rating: float | None = None
    user_ratings_total: int | None = None
    price_level: int | None = None
    types: list[str] = field(default_factory=list)
    open_now: bool | None = None  # None => provider did not say
    business_status: str | None = None
    formatted_address: str | None = None
    lat: float | None = None
    lng: float | None = None
    closing_time: str | None = None
    close_ts: int | None = None  # epoch milliseconds
    photo_urls: list[str] = field(default_factory=list)

    @property
    def permanently_closed(self) -> bool:
        return self.business_status == "CLOSED_PERMANENTLY"

    def to_cache(self) -> dict[str, Any]:
        return {
            "placeId": self.place_id,
            "name": self.name,
            "rating": self.rating,
            "userRatingsTotal": self.user_ratings_total,
            "priceLevel": self.price_level,
            "types": list(self.types),
            "openNow": self.open_now,
            "businessStatus": self.business_status,
            "closingTime": self.closing_time,
            "closeTs": self.close_ts,
            "formattedAddress": self.formatted_address,
            "lat": self.lat,
            "lng": self.lng,
            "photoUrls": list(self.photo_urls),
        }

    @classmethod
    def from_cache(cls, payload: Any) -> DetailRecord | None:
        if not isinstance(payload, dict):
            return None
        place_id = payload.get("placeId")
        name = payload.get("name")
        if not isinstance(place_id, str) or not place_id or not isinstance(name, str):
            return None
        open_now = payload.get("openNow")
        close_ts = payload.get("closeTs")
        return cls(
            place_id=place_id,
            name=name,
            rating=_optional_float(payload.get("rating")),
            user_ratings_total=_optional_int(payload.get("userRatingsTotal")),
            price_level=_optional_int(payload.get("priceLevel")),
            types=[str(t) for t in payload.get("types") or [] if isinstance(t, str)],
            open_now=open_now if isinstance(open_now, bool) else None,
            business_status=payload.get("businessStatus") or None,
            formatted_address=payload.get("formattedAddress") or None,
            lat=_optional_float(payload.get("lat")),
            lng=_optional_float(payload.get("lng")),
            closing_time=payload.get("closingTime") or None,
            close_ts=int(close_ts) if _is_number(close_ts) else None,
            photo_urls=[str(u) for u in payload.get("photoUrls") or [] if isinstance(u, str)],
        )


@dataclass(slots=True)
class Option:
    id: str
    name: str
    category: str
    rating: float
    open_status: str
    lat: float
    lng: float
    address: str = ""
    eta_min: int = 20
    why: str = "—"
    watchouts: list[str] = field(default_factory=list)
    open_now: bool | None = None
    closing_time: str | None = None
    close_ts: int | None = None
    place_id: str | None = None
    price_level: int | None = None
    user_ratings_total: int | None = None
    photo_urls: list[str] = field(default_factory=list)
    score: float = 0.0  # request-local, never serialised

    @property
    def key(self) -> str:
        pid = (self.place_id or "").strip()
        return pid or f"{self.name.lower()}|{self.address.lower()}"

    def with_id(self, new_id: str) -> Option:
        return replace(self, id=new_id)

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "rating": self.rating,
            "etaMin": self.eta_min,
            "openStatus": self.open_status,
            "why": self.why,
            "watchouts": list(self.watchouts),
            "lat": self.lat,
            "lng": self.lng,
            "address": self.address,
            "closingTime": self.closing_time,
            "placeId": self.place_id,
            "priceLevel": self.price_level,
            "userRatingsTotal": self.user_ratings_total,
            "closeTs": self.close_ts,
            "photoUrls": list(self.photo_urls),
        }

    @classmethod
    def from_public(cls, payload: dict[str, Any]) -> Option:
        """Rebuild an option sent back by a client (swap requests)."""
        status = str(payload.get("openStatus") or "")
        return cls(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or ""),
            category=str(payload.get("category") or "Other"),
            rating=_optional_float(payload.get("rating")) or 0.0,
            open_status=status,
            lat=_optional_float(payload.get("lat")) or 0.0,
            lng=_optional_float(payload.get("lng")) or 0.0,
            address=str(payload.get("address") or ""),
            eta_min=_optional_int(payload.get("etaMin")) or 20,
            why=str(payload.get("why") or "—"),
            watchouts=[str(w) for w in payload.get("watchouts") or [] if isinstance(w, str)],
            open_now=True if status.lower().startswith("open now") else None,
            closing_time=payload.get("closingTime") or None,
            close_ts=_optional_int(payload.get("closeTs")),
            place_id=payload.get("placeId") or None,
            price_level=_optional_int(payload.get("priceLevel")),
            user_ratings_total=_optional_int(payload.get("userRatingsTotal")),
            photo_urls=[str(u) for u in payload.get("photoUrls") or [] if isinstance(u, str)],
        )


@dataclass(frozen=True, slots=True)
class WeatherFlags:
    precip: bool = False
    cold: bool = False
    very_cold: bool = False
    windy: bool = False
    very_windy: bool = False
    min_temp: float = 999.0

    @property
    def bad(self) -> bool:
        return self.precip or self.very_cold or self.very_windy


@dataclass(frozen=True, slots=True)
class FreshnessSets:
    seen: frozenset[str] = frozenset()
    swapped: frozenset[str] = frozenset()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_float(value: Any) -> float | None:
    return float(value) if _is_number(value) else None


def _optional_int(value: Any) -> int | None:
    return int(value) if _is_number(value) else None


__all__ = ["Candidate", "DetailRecord", "FreshnessSets", "Option", "WeatherFlags"]
