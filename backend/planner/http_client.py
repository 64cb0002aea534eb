"""Shared async HTTP client for every upstream provider."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from .errors import UpstreamDegraded
from .settings import settings

_client: httpx.AsyncClient | None = None
_client_lock = asyncio.Lock()


async def get_http_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        async with _client_lock:
            if _client is None:
                timeout = httpx.Timeout(settings.LANE_TIMEOUT_SECONDS, connect=3.0)
                _client = httpx.AsyncClient(timeout=timeout)
    return _client


async def close_http_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _decode(response: httpx.Response, label: str) -> dict[str, Any]:
    if response.status_code >= 400:
        raise UpstreamDegraded(f"{label} returned HTTP {response.status_code}: {response.text[:200]}")
    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamDegraded(f"{label} returned invalid JSON") from exc
    if not isinstance(data, dict):
        raise UpstreamDegraded(f"{label} returned a non-object body")
    return data


async def get_json(
    url: str,
    params: dict[str, Any],
    *,
    timeout: float,
    label: str,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """GET and decode a JSON object; any failure becomes ``UpstreamDegraded``."""
    http = client or await get_http_client()
    try:
        response = await http.get(url, params=params, timeout=timeout)
    except httpx.HTTPError as exc:
        raise UpstreamDegraded(f"{label} request failed: {exc!r}") from exc
    return _decode(response, label)


async def post_json(
    url: str,
    payload: dict[str, Any],
    *,
    headers: dict[str, str],
    timeout: float | httpx.Timeout,
    label: str,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    http = client or await get_http_client()
    try:
        response = await http.post(url, json=payload, headers=headers, timeout=timeout)
    except httpx.HTTPError as exc:
        raise UpstreamDegraded(f"{label} request failed: {exc!r}") from exc
    return _decode(response, label)


__all__ = ["close_http_client", "get_http_client", "get_json", "post_json"]
