"""Tests for the display session: refresh, stale results and the timer."""

import asyncio
import random
from unittest.mock import AsyncMock

import pytest

from weatherboard.models.weather import WeatherReading
from weatherboard.services.display import DisplaySession
from weatherboard.services.locations import POPULAR_CITIES
from weatherboard.services.weather import RateLimitedError


def make_reading(name: str, temperature: float = 20.0) -> WeatherReading:
    return WeatherReading(
        location_name=name,
        country_label="中国",
        temperature_c=temperature,
        feels_like_c=temperature,
        humidity_pct=50,
        wind_speed_mps=1.0,
        pressure_hpa=1010,
        visibility_km=10.0,
        condition_text="晴",
        condition_icon_code="01d",
        condition_symbol="☀️",
    )


class GatedClient:
    """Fake client that can hold a lookup open until released."""

    def __init__(self):
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    async def fetch_reading(self, coordinate, credential, *, location_name, country_label):
        self.calls.append(location_name)
        gate = self.gates.get(location_name)
        if gate is not None:
            await gate.wait()
        return make_reading(location_name)


def fake_client(*results):
    client = AsyncMock()
    client.fetch_reading.side_effect = list(results)
    return client


@pytest.mark.asyncio
async def test_refresh_applies_reading():
    """Test a successful refresh."""
    client = fake_client(make_reading("北京", 21.3))
    session = DisplaySession(client, api_key="k", auto_refresh=False)

    await session.refresh()

    state = session.snapshot()
    assert state.reading.temperature_c == 21.3
    assert state.error is None
    assert state.loading is False
    assert state.updated_at is not None
    client.fetch_reading.assert_awaited_once_with(
        POPULAR_CITIES[0].coordinate, "k", location_name="北京", country_label="中国"
    )


@pytest.mark.asyncio
async def test_failure_keeps_previous_reading():
    """Test that an error is shown next to the last good reading."""
    client = fake_client(make_reading("北京", 21.3), RateLimitedError())
    session = DisplaySession(client, api_key="k", auto_refresh=False)

    await session.refresh()
    await session.refresh()

    state = session.snapshot()
    assert state.reading.temperature_c == 21.3
    assert state.error_code == "rate_limited"
    assert state.error == "API 请求次数超限，请稍后再试"
    assert state.loading is False


@pytest.mark.asyncio
async def test_missing_key_is_visible_error():
    """Test that a missing server key is reported without calling upstream."""
    client = fake_client()
    session = DisplaySession(client, api_key=None, auto_refresh=False)

    await session.refresh()

    state = session.snapshot()
    assert state.error_code == "missing_credential"
    assert "OPENWEATHER_API_KEY" in state.error
    client.fetch_reading.assert_not_called()


@pytest.mark.asyncio
async def test_stale_result_is_discarded():
    """Test that a slow lookup cannot overwrite a newer selection."""
    client = GatedClient()
    client.gates["北京"] = asyncio.Event()
    session = DisplaySession(client, api_key="k", auto_refresh=False)

    slow = asyncio.create_task(session.refresh())
    await asyncio.sleep(0)

    await session.select(1)
    assert session.reading.location_name == "上海"

    client.gates["北京"].set()
    await slow

    assert client.calls == ["北京", "上海"]
    assert session.reading.location_name == "上海"
    assert session.generation == 2


@pytest.mark.asyncio
async def test_select_unknown_index():
    """Test that selecting a missing city changes nothing."""
    client = fake_client()
    session = DisplaySession(client, api_key="k", auto_refresh=False)

    with pytest.raises(IndexError):
        await session.select(99)

    assert session.city == POPULAR_CITIES[0]
    client.fetch_reading.assert_not_called()


@pytest.mark.asyncio
async def test_select_random_uses_rng():
    """Test random selection with a seeded generator."""
    expected = random.Random(7).randrange(len(POPULAR_CITIES))
    client = GatedClient()
    session = DisplaySession(client, api_key="k", auto_refresh=False, rng=random.Random(7))

    await session.select_random()

    assert session.city == POPULAR_CITIES[expected]
    assert client.calls == [POPULAR_CITIES[expected].name]


@pytest.mark.asyncio
async def test_timer_refreshes_periodically_until_stopped():
    """Test the refresh loop and its cancellation on teardown."""
    client = GatedClient()
    session = DisplaySession(client, api_key="k", refresh_interval=0.01, auto_refresh=True)

    initial = session.start()
    await initial
    await asyncio.sleep(0.06)
    await session.stop()

    calls = len(client.calls)
    assert calls >= 3
    assert session.timer_running is False

    await asyncio.sleep(0.03)
    assert len(client.calls) == calls


@pytest.mark.asyncio
async def test_selection_rearms_timer():
    """Test that changing city cancels the timer bound to the old one."""
    client = GatedClient()
    session = DisplaySession(client, api_key="k", refresh_interval=300, auto_refresh=True)

    await session.select(2)
    old_timer = session._timer
    await session.select(3)
    await asyncio.sleep(0.01)

    assert old_timer.cancelled()
    assert session.timer_running is True

    await session.stop()


@pytest.mark.asyncio
async def test_toggle_auto_refresh():
    """Test that disabling stops the timer and enabling refreshes at once."""
    client = GatedClient()
    session = DisplaySession(client, api_key="k", refresh_interval=300, auto_refresh=False)

    await session.set_auto_refresh(True)
    assert session.timer_running is True
    assert client.calls == ["北京"]

    await session.set_auto_refresh(False)
    await asyncio.sleep(0.01)
    assert session.timer_running is False
    assert session.snapshot().auto_refresh is False


@pytest.mark.asyncio
async def test_start_without_auto_refresh_only_loads_once():
    """Test that start() still performs the initial lookup."""
    client = GatedClient()
    session = DisplaySession(client, api_key="k", auto_refresh=False)

    await session.start()

    assert client.calls == ["北京"]
    assert session.timer_running is False


@pytest.mark.asyncio
async def test_disabling_auto_refresh_mid_lookup_clears_loading():
    """Test that cancelling an in-flight timer refresh does not leave loading set."""
    client = GatedClient()
    session = DisplaySession(client, api_key="k", refresh_interval=0.01, auto_refresh=False)

    await session.set_auto_refresh(True)
    client.gates["北京"] = asyncio.Event()
    await asyncio.sleep(0.05)
    assert session.loading is True

    await session.set_auto_refresh(False)
    await asyncio.sleep(0.01)

    assert session.loading is False
    assert session.snapshot().loading is False


@pytest.mark.asyncio
async def test_stop_cancels_initial_lookup():
    """Test that stop() cancels and awaits a still running initial lookup."""
    client = GatedClient()
    client.gates["北京"] = asyncio.Event()
    session = DisplaySession(client, api_key="k", auto_refresh=True)

    initial = session.start()
    await asyncio.sleep(0)
    assert session.loading is True

    await session.stop()

    assert initial.cancelled()
    assert session.loading is False
    assert session.timer_running is False
