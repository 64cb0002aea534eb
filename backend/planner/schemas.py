from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .settings import settings
from .vibes import DEFAULT_CITY, Vibe, pick_city

DEFAULT_WITH_WHO = "Solo"


def sanitize_id_list(value: Any, cap: int) -> list[str]:
    """Trimmed non-empty strings, in order, at most ``cap``; anything else is dropped."""
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            continue
        out.append(item.strip())
        if len(out) >= cap:
            break
    return out


class PlanRequest(BaseModel):
    """Planning intent. Junk fields are normalised to defaults instead of rejected."""

    model_config = ConfigDict(populate_by_name=True)

    city: str = DEFAULT_CITY
    vibe: Vibe = Vibe.SOCIAL
    with_who: str = Field(default=DEFAULT_WITH_WHO, alias="withWho")
    veg_friendly: bool = Field(default=False, alias="vegFriendly")
    seen_place_ids: list[str] = Field(default_factory=list, alias="seenPlaceIds")
    swapped_place_ids: list[str] = Field(default_factory=list, alias="swappedPlaceIds")

    @field_validator("city", mode="before")
    @classmethod
    def _city(cls, value):  # type: ignore[override]
        return pick_city(value)

    @field_validator("vibe", mode="before")
    @classmethod
    def _vibe(cls, value):  # type: ignore[override]
        return Vibe.parse(value)

    @field_validator("with_who", mode="before")
    @classmethod
    def _with_who(cls, value):  # type: ignore[override]
        if isinstance(value, str) and value.strip():
            return value.strip()
        return DEFAULT_WITH_WHO

    @field_validator("veg_friendly", mode="before")
    @classmethod
    def _veg_friendly(cls, value):  # type: ignore[override]
        return value is True

    @field_validator("seen_place_ids", mode="before")
    @classmethod
    def _seen(cls, value):  # type: ignore[override]
        return sanitize_id_list(value, settings.MAX_SEEN_IDS)

    @field_validator("swapped_place_ids", mode="before")
    @classmethod
    def _swapped(cls, value):  # type: ignore[override]
        return sanitize_id_list(value, settings.MAX_SWAPPED_IDS)


class PlanMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    limited_availability: bool = Field(alias="limitedAvailability")
    reason: str | None = None
    pool: list[dict[str, Any]] = Field(default_factory=list)


class PlanResponse(BaseModel):
    ok: bool = True
    options: list[dict[str, Any]] = Field(default_factory=list)
    weather: dict[str, Any] | None = None
    meta: PlanMeta


class SwapRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    options: list[dict[str, Any]] = Field(min_length=1, max_length=10)
    pool: list[dict[str, Any]] = Field(default_factory=list, max_length=100)
    removed_id: str = Field(alias="removedId", min_length=1, max_length=200)
    banned_keys: list[str] = Field(default_factory=list, alias="bannedKeys")

    @field_validator("banned_keys", mode="before")
    @classmethod
    def _banned(cls, value):  # type: ignore[override]
        return sanitize_id_list(value, settings.MAX_SWAPPED_IDS)


class SwapResponse(BaseModel):
    ok: bool = True
    options: list[dict[str, Any]]
    replacement: dict[str, Any]


class PlanInfo(BaseModel):
    ok: bool = True
    message: str


__all__ = [
    "PlanInfo",
    "PlanMeta",
    "PlanRequest",
    "PlanResponse",
    "SwapRequest",
    "SwapResponse",
    "sanitize_id_list",
]
