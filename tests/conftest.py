"""Test configuration and fixtures."""

from datetime import timezone

import httpx
import pytest

from weatherboard.core.config import settings
from weatherboard.services.display import display_session
from weatherboard.services.weather import WeatherClient


@pytest.fixture
def mock_weather_response():
    """Current weather payload for Beijing, without sunrise/sunset."""
    return {
        "coord": {"lon": 116.4074, "lat": 39.9042},
        "weather": [{"id": 800, "main": "Clear", "description": "晴", "icon": "01d"}],
        "main": {"temp": 21.3, "feels_like": 20.1, "humidity": 40, "pressure": 1012},
        "visibility": 10000,
        "wind": {"speed": 3.2, "deg": 180},
        "name": "Beijing",
        "cod": 200,
    }


@pytest.fixture
def mock_weather_response_with_sun(mock_weather_response):
    """Same payload with a ``sys`` block."""
    return {
        **mock_weather_response,
        "sys": {"country": "CN", "sunrise": 1700000000, "sunset": 1700036000},
    }


@pytest.fixture
async def make_weather_client():
    """Build a WeatherClient whose upstream is an ``httpx.MockTransport``.

    The factory takes a handler ``request -> httpx.Response`` and returns the
    client plus the list of requests it received.
    """
    clients = []

    def factory(handler, **kwargs):
        requests = []

        def recording_handler(request: httpx.Request):
            requests.append(request)
            return handler(request)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        kwargs.setdefault("display_tz", timezone.utc)
        client = WeatherClient(http_client, api_url="https://owm.test/data/2.5/weather", **kwargs)
        clients.append(client)
        return client, requests

    yield factory

    for client in clients:
        await client.close()


@pytest.fixture
def configured_key(monkeypatch):
    """Configure a server-side API key for the app and the display session."""
    monkeypatch.setattr(settings, "openweather_api_key", "server-key")
    monkeypatch.setattr(display_session, "api_key", "server-key")
    return "server-key"


@pytest.fixture
async def fresh_display(monkeypatch):
    """Reset the global display session and cancel its timer afterwards."""
    monkeypatch.setattr(display_session, "_city_index", 0)
    monkeypatch.setattr(display_session, "_generation", 0)
    monkeypatch.setattr(display_session, "reading", None)
    monkeypatch.setattr(display_session, "error", None)
    monkeypatch.setattr(display_session, "loading", False)
    monkeypatch.setattr(display_session, "updated_at", None)
    monkeypatch.setattr(display_session, "auto_refresh", False)
    yield display_session
    await display_session.stop()
