"""Request-level error taxonomy for the planner."""

from __future__ import annotations


class PlannerError(Exception):
    """Base for failures that reach the caller as an explicit error."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationMissing(PlannerError):
    """A required credential or backend is not configured."""

    status_code = 500


class InvalidInput(PlannerError):
    """The request body could not be interpreted."""

    status_code = 400


class RateLimited(PlannerError):
    """The caller exhausted its per-minute or per-day quota."""

    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = max(1, int(retry_after))


class NoSubstituteAvailable(PlannerError):
    status_code = 404


class UpstreamDegraded(RuntimeError):
    """An external call failed or timed out.

    Never surfaced to the caller: the failing lane or place simply yields no data.
    """


class CacheUnavailable(UpstreamDegraded):
    pass


__all__ = [
    "CacheUnavailable",
    "ConfigurationMissing",
    "InvalidInput",
    "NoSubstituteAvailable",
    "PlannerError",
    "RateLimited",
    "UpstreamDegraded",
]
