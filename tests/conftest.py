import os
from datetime import datetime, timezone

# Must be set before the application modules read their settings
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ["TIMEZONE"] = "UTC"
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient

from soil_analytics.models import ClientInfo, EventCreate
from soil_analytics.store import MemoryStore


def epoch_ms(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


NOW = epoch_ms(2026, 3, 10, 14, 30)
MINUTE = 60 * 1000

VISITOR_A = ClientInfo(ip="203.0.113.7", userAgent="Mozilla/5.0 (A)")
VISITOR_B = ClientInfo(ip="198.51.100.2", userAgent="Mozilla/5.0 (B)")
VISITOR_C = ClientInfo(ip="192.0.2.44", userAgent="Mozilla/5.0 (C)")


def make_event(event: str, **fields) -> EventCreate:
    return EventCreate(event=event, **fields)


@pytest.fixture
def store():
    store = MemoryStore()
    yield store
    store.reset()


@pytest.fixture
def client(store):
    from soil_analytics.main import app
    from soil_analytics.store import get_store

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
