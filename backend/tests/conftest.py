import os
import sys
from pathlib import Path

import pytest
import sentry_sdk

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Disable outbound Sentry calls during tests
sentry_sdk.init = lambda *args, **kwargs: None  # type: ignore[assignment]
os.environ["SENTRY_DSN"] = ""
os.environ["ENVIRONMENT"] = "development"
os.environ["REDIS_ENABLED"] = "false"
os.environ["GOOGLE_PLACES_API_KEY"] = "test-places-key"
os.environ["OPENWEATHER_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["AUTH0_DOMAIN"] = ""
os.environ["AUTH0_AUDIENCE"] = ""
os.environ["CORS_ALLOW_ORIGINS"] = ""

from backend.tests.fakes import FakeStore, make_option, make_record  # noqa: E402


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def option_factory():
    return make_option
