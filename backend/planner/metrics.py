"""Prometheus metrics for monitoring and observability."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from functools import lru_cache

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# ==============================================================================
# APPLICATION INFO
# ==============================================================================

app_info = Info("nowwhat_planner", "Now What planner API information")
app_info.info({"version": "0.1.0", "service": "nowwhat-planner-api"})

# ==============================================================================
# HTTP METRICS
# ==============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"],
)

# ==============================================================================
# UPSTREAM METRICS
# ==============================================================================

lane_calls_total = Counter(
    "planner_lane_calls_total",
    "Search lane calls against the place provider",
    ["lane", "result"],
)

detail_fetches_total = Counter(
    "planner_detail_fetches_total",
    "Place detail fetches",
    ["result"],
)

weather_fetches_total = Counter(
    "planner_weather_fetches_total",
    "Forecast fetches",
    ["result"],
)

copy_requests_total = Counter(
    "planner_copy_requests_total",
    "Copy generation requests",
    ["result"],
)

# ==============================================================================
# CACHE METRICS
# ==============================================================================

cache_hits_total = Counter(
    "cache_hits_total",
    "Total cache hits",
    ["cache_name"],
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total cache misses",
    ["cache_name"],
)

cache_write_failures_total = Counter(
    "cache_write_failures_total",
    "Cache writes dropped because the store was unavailable",
    ["cache_name"],
)

# ==============================================================================
# RATE LIMITER METRICS
# ==============================================================================

rate_limit_hits_total = Counter(
    "rate_limit_hits_total",
    "Total rate limit hits (requests blocked)",
)

rate_limit_requests_total = Counter(
    "rate_limit_requests_total",
    "Total requests checked by rate limiter",
    ["result"],
)

# ==============================================================================
# PLAN METRICS
# ==============================================================================

plan_duration_seconds = Histogram(
    "planner_plan_duration_seconds",
    "End-to-end plan generation time",
    buckets=(0.25, 0.5, 1.0, 2.0, 4.0, 8.0, 15.0),
)

shortlist_size = Histogram(
    "planner_shortlist_size",
    "Number of options returned in the shortlist",
    buckets=(0, 1, 2, 3, 4, 5),
)

candidates_rejected_total = Counter(
    "planner_candidates_rejected_total",
    "Candidates dropped by the feasibility filter",
    ["reason"],
)


@lru_cache(maxsize=2048)
def normalize_endpoint(path: str) -> str:
    """Collapse numeric and long opaque path segments to ``{id}``."""
    path = re.sub(r"/\d+", "/{id}", path)
    return re.sub(r"/[a-zA-Z0-9_-]{20,}", "/{id}", path)


# ==============================================================================
# PROMETHEUS MIDDLEWARE
# ==============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = normalize_endpoint(request.url.path)
        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            http_requests_total.labels(method=method, endpoint=endpoint, status="500").inc()
            raise
        finally:
            duration = time.time() - start_time
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

        http_requests_total.labels(
            method=method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        return response


def get_metrics() -> Response:
    """Generate Prometheus metrics response."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "PrometheusMiddleware",
    "cache_hits_total",
    "cache_misses_total",
    "cache_write_failures_total",
    "candidates_rejected_total",
    "copy_requests_total",
    "detail_fetches_total",
    "get_metrics",
    "lane_calls_total",
    "normalize_endpoint",
    "plan_duration_seconds",
    "rate_limit_hits_total",
    "rate_limit_requests_total",
    "shortlist_size",
    "weather_fetches_total",
]
