"""Server-side state of the auto-refreshing weather page."""

import asyncio
import random
from datetime import datetime, timezone

from weatherboard.core.config import settings
from weatherboard.core.logging import get_logger
from weatherboard.models.weather import City, DisplayState, WeatherReading
from weatherboard.services.locations import POPULAR_CITIES, get_city, random_city_index
from weatherboard.services.weather import (
    WeatherClient,
    WeatherError,
    require_configured_key,
    weather_client,
)

logger = get_logger(__name__)


class DisplaySession:
    """Selected city, last reading and the periodic refresh timer.

    Each lookup takes a generation number. A result is applied only if no
    newer lookup was started meanwhile, so a slow response cannot overwrite
    the reading of a city selected after it. Failures keep the last reading
    and record the error next to it.
    """

    def __init__(
        self,
        client: WeatherClient,
        *,
        api_key: str | None,
        refresh_interval: float = settings.refresh_interval,
        auto_refresh: bool = settings.auto_refresh_enabled,
        rng: random.Random | None = None,
    ):
        self.client = client
        self.api_key = api_key
        self.refresh_interval = refresh_interval
        self.auto_refresh = auto_refresh
        self._rng = rng
        self._city_index = 0
        self._generation = 0
        self._timer: asyncio.Task | None = None
        self._initial_load: asyncio.Task | None = None
        self.reading: WeatherReading | None = None
        self.error: WeatherError | None = None
        self.loading = False
        self.updated_at: datetime | None = None

    @property
    def city(self) -> City:
        return POPULAR_CITIES[self._city_index]

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def snapshot(self) -> DisplayState:
        return DisplayState(
            city_index=self._city_index,
            city=self.city,
            reading=self.reading,
            error=self.error.message if self.error else None,
            error_code=self.error.code if self.error else None,
            loading=self.loading,
            auto_refresh=self.auto_refresh,
            updated_at=self.updated_at,
        )

    async def refresh(self) -> None:
        """Look up the selected city once and apply the result if still current."""
        self._generation += 1
        generation = self._generation
        city = self.city
        self.loading = True

        try:
            reading = await self.client.fetch_reading(
                city.coordinate,
                require_configured_key(self.api_key),
                location_name=city.name,
                country_label=city.country_label,
            )
        except WeatherError as e:
            if self._is_stale(generation):
                return
            self.error = e
            logger.warning("display_refresh_failed", city=city.name, error_code=e.code)
            return
        finally:
            # also runs when the lookup is cancelled mid-flight
            if generation == self._generation:
                self.loading = False

        if self._is_stale(generation):
            return
        self.reading = reading
        self.error = None
        self.updated_at = datetime.now(tz=timezone.utc)
        logger.info("display_refreshed", city=city.name, generation=generation)

    async def select(self, index: int) -> None:
        """Switch to the city at ``index`` and refresh it right away.

        Raises:
            IndexError: If there is no city at ``index``
        """
        get_city(index)
        self._city_index = index
        logger.info("display_city_selected", city=self.city.name)
        if self.auto_refresh:
            self._arm_timer()
        await self.refresh()

    async def select_random(self) -> None:
        await self.select(random_city_index(self._rng))

    async def set_auto_refresh(self, enabled: bool) -> None:
        self.auto_refresh = enabled
        logger.info("display_auto_refresh_toggled", enabled=enabled)
        if enabled:
            self._arm_timer()
            await self.refresh()
        else:
            self._cancel_timer()

    def start(self) -> asyncio.Task:
        """Schedule the initial lookup and, if enabled, the refresh timer."""
        if self.auto_refresh:
            self._arm_timer()
        self._initial_load = asyncio.create_task(self.refresh())
        return self._initial_load

    async def stop(self) -> None:
        """Cancel the timer and a still running initial lookup, and wait for both."""
        tasks = [task for task in (self._timer, self._initial_load) if task is not None]
        self._cancel_timer()
        self._initial_load = None
        for task in tasks:
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.info("display_stale_result_discarded", generation=generation, latest=self._generation)
            return True
        return False

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._refresh_loop())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error("display_refresh_loop_error", error=str(e), exc_info=True)
                self.error = WeatherError()
                self.loading = False


# Global display session
display_session = DisplaySession(weather_client, api_key=settings.openweather_api_key)
