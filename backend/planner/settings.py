from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore"
    )

    DEBUG: bool = False
    # production requires the counter store; development lets requests through
    ENVIRONMENT: Literal["development", "production"] = "development"

    # CORS allow origins (comma-separated). Default empty (no cross-origin).
    CORS_ALLOW_ORIGINS: str = ""

    # Upstream credentials
    GOOGLE_PLACES_API_KEY: str | None = None
    OPENWEATHER_KEY: str | None = None
    OPENAI_API_KEY: str | None = None

    PLACES_API_BASE: str = "https://maps.googleapis.com/maps/api/place"
    OPENWEATHER_API_BASE: str = "https://api.openweathermap.org/data/2.5"
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_COPY_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_SECONDS: float = 15.0
    OPENAI_CONNECT_TIMEOUT_SECONDS: float = 5.0

    # Per-call timeouts (all shorter than the overall request budget)
    LANE_TIMEOUT_SECONDS: float = 6.5
    DETAILS_TIMEOUT_SECONDS: float = 6.5
    WEATHER_TIMEOUT_SECONDS: float = 7.0
    STORE_TIMEOUT_SECONDS: float = 4.0

    # Fan-out budgets
    LANE_CONCURRENCY: int = 6
    DETAILS_CONCURRENCY: int = 10
    DETAILS_CAP_TOTAL: int = 55
    SEARCH_RADIUS_M: int = 16000
    CANDIDATE_TARGET: int = 140

    # Cache TTLs
    SEARCH_CACHE_TTL_SECONDS: int = 3 * 60
    DETAILS_CACHE_TTL_SECONDS: int = 30 * 60

    # Request caps
    MAX_SEEN_IDS: int = 220
    MAX_SWAPPED_IDS: int = 220
    MAX_POOL_RETURN: int = 60
    TARGET_SWAP_POOL: int = 26
    POOL_MAX_PER_CATEGORY: int = 6

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    GUEST_PER_MINUTE: int = 3
    GUEST_PER_DAY: int = 15
    AUTH_PER_MINUTE: int = 12
    AUTH_PER_DAY: int = 200

    # Auth0 integration (optional; guests are allowed)
    AUTH0_DOMAIN: str | None = None
    AUTH0_AUDIENCE: str | None = None

    # Observability
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    # Redis (counters + shared cache)
    REDIS_URL: str | None = None  # e.g., "redis://localhost:6379/0"
    REDIS_ENABLED: bool = False

    @property
    def allow_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if s == "*":
            return ["*"]
        if s == "":
            return []
        return [part.strip() for part in s.split(",") if part.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def auth0_issuer(self) -> str | None:
        if not self.AUTH0_DOMAIN:
            return None
        domain = self.AUTH0_DOMAIN.removeprefix("https://").removeprefix("http://")
        return f"https://{domain}/"

    def rate_caps(self, mode: str) -> tuple[int, int]:
        """Return (per_minute, per_day) caps for an identity mode."""
        if mode == "authenticated":
            return self.AUTH_PER_MINUTE, self.AUTH_PER_DAY
        return self.GUEST_PER_MINUTE, self.GUEST_PER_DAY


settings = Settings()
