"""Shared fixtures: a throwaway SQLite database and a client per test."""

import pytest
from fastapi.testclient import TestClient

from social_events_api.app.core.config import settings
from social_events_api.app.core.db import init_db
from social_events_api.app.main import app


API_KEY = "test-key"


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the app at a fresh database and api_key identity mode."""
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "test.db"))
    monkeypatch.setattr(settings, "identity_mode", "api_key")
    monkeypatch.setattr(settings, "api_key", API_KEY)
    monkeypatch.setattr(settings, "secret_key", "test-secret")
    monkeypatch.setattr(settings, "identity_webhook_secret", "hook-secret")
    init_db()
    yield settings


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        test_client.headers.update({"x-api-key": API_KEY})
        yield test_client


@pytest.fixture
def anon_client():
    with TestClient(app) as test_client:
        yield test_client


def location(**overrides):
    data = {
        "lat": 52.52,
        "lng": 13.405,
        "countryCode": "de",
        "city": "Berlin",
        "admin1": "Berlin",
        "formattedAddress": "Alexanderplatz, Berlin",
    }
    data.update(overrides)
    return data


def event_payload(creator="user_host", **overrides):
    data = {
        "creatorClerkId": creator,
        "title": "Sunday board games",
        "kind": "free",
        "startsAt": "2099-06-01T18:00:00Z",
        "location": location(),
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_event(client):
    """Create an event through the API and return its JSON."""

    def _make(creator="user_host", **overrides):
        response = client.post("/api/v1/events/", json=event_payload(creator, **overrides))
        assert response.status_code == 201, response.text
        return response.json()["event"]

    return _make
