"""OpenWeatherMap client: request building, outcome classification, normalization."""

from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from prometheus_client import Counter
from pydantic import ValidationError

from weatherboard.core.config import settings
from weatherboard.core.logging import get_logger
from weatherboard.models.openweather import CurrentWeatherPayload
from weatherboard.models.weather import Coordinate, WeatherReading
from weatherboard.services.icons import icon_symbol

logger = get_logger(__name__)

LOOKUP_OUTCOMES = Counter(
    "weatherboard_lookups_total",
    "Number of upstream weather lookups by outcome",
    ["outcome"],
)


class WeatherError(Exception):
    """Base class of lookup failures.

    Every failure carries a stable ``code`` for clients, the HTTP status the
    API answers with and a message that can be shown to the user as is.
    """

    code = "weather_error"
    status_code = 500
    default_message = "获取天气数据失败"

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class MissingCredentialError(WeatherError):
    code = "missing_credential"
    status_code = 400
    default_message = "请输入 API Key"


class InvalidCredentialError(WeatherError):
    code = "invalid_credential"
    status_code = 401
    default_message = "API Key 无效，请检查您的 API Key"


class RateLimitedError(WeatherError):
    code = "rate_limited"
    status_code = 429
    default_message = "API 请求次数超限，请稍后再试"


class UpstreamError(WeatherError):
    code = "upstream_error"
    status_code = 502

    def __init__(self, upstream_status: int):
        self.upstream_status = upstream_status
        super().__init__(f"请求失败: {upstream_status}")


class TransportFailureError(WeatherError):
    code = "transport_failure"
    status_code = 503

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"网络请求失败: {cause}")


class MalformedResponseError(WeatherError):
    code = "malformed_response"
    status_code = 502
    default_message = "天气数据格式异常"


class InvalidInputError(WeatherError):
    code = "invalid_input"
    status_code = 400
    default_message = "请输入有效的经纬度坐标"


CONFIGURED_KEY_MISSING = "API Key 未配置，请在环境变量中设置 OPENWEATHER_API_KEY"


def require_configured_key(api_key: str | None) -> str:
    """Return the server-side key or fail as a configuration error.

    Raises:
        MissingCredentialError: With status 503 when no key is configured
    """
    if not api_key:
        raise MissingCredentialError(CONFIGURED_KEY_MISSING, status_code=503)
    return api_key


def format_local_time(epoch_seconds: int, tz: tzinfo) -> str:
    """Format epoch seconds as a 24h ``HH:MM`` time of day in ``tz``."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).astimezone(tz).strftime("%H:%M")


class WeatherClient:
    """Single-shot client for the current weather endpoint.

    Holds no per-lookup state: the credential and the location are arguments
    of every call. One call makes at most one HTTP request and never retries.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        api_url: str = settings.openweather_api_url,
        units: str = settings.openweather_units,
        lang: str = settings.openweather_lang,
        display_tz: tzinfo | None = None,
    ):
        self.client = client or httpx.AsyncClient(timeout=settings.request_timeout)
        self.api_url = api_url
        self.units = units
        self.lang = lang
        self._display_tz = display_tz

    @property
    def display_tz(self) -> tzinfo:
        if self._display_tz is None:
            self._display_tz = ZoneInfo(settings.display_timezone)
        return self._display_tz

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()

    def build_params(self, coordinate: Coordinate, credential: str) -> dict[str, Any]:
        """Query parameters of the upstream request."""
        return {
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "appid": credential,
            "units": self.units,
            "lang": self.lang,
        }

    async def fetch_reading(
        self,
        coordinate: Coordinate,
        credential: str | None,
        *,
        location_name: str,
        country_label: str,
    ) -> WeatherReading:
        """Look up current weather for a coordinate.

        Args:
            coordinate: Location, sent without range checks
            credential: OpenWeatherMap API key
            location_name: Name to put on the reading
            country_label: Country code or label to put on the reading

        Returns:
            Normalized weather reading

        Raises:
            WeatherError: One of its subclasses, depending on what failed
        """
        if not credential:
            LOOKUP_OUTCOMES.labels(outcome=MissingCredentialError.code).inc()
            raise MissingCredentialError()

        logger.info(
            "weather_lookup",
            location=location_name,
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
        )

        try:
            try:
                response = await self.client.get(
                    self.api_url, params=self.build_params(coordinate, credential)
                )
            except httpx.RequestError as e:
                raise TransportFailureError(e) from e

            self._raise_for_status(response.status_code)
            reading = self._to_reading(response, location_name, country_label)

        except WeatherError as e:
            LOOKUP_OUTCOMES.labels(outcome=e.code).inc()
            logger.warning(
                "weather_lookup_failed",
                location=location_name,
                error_code=e.code,
                error=e.message,
            )
            raise

        LOOKUP_OUTCOMES.labels(outcome="success").inc()
        logger.info("weather_lookup_succeeded", location=location_name, temperature=reading.temperature_c)
        return reading

    @staticmethod
    def _raise_for_status(status: int) -> None:
        if status == 401:
            raise InvalidCredentialError()
        if status == 429:
            raise RateLimitedError()
        if not 200 <= status < 300:
            raise UpstreamError(status)

    def _to_reading(self, response: httpx.Response, location_name: str, country_label: str) -> WeatherReading:
        try:
            payload = CurrentWeatherPayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MalformedResponseError() from e

        condition = payload.weather[0]
        sunrise = sunset = None
        if payload.sys is not None:
            try:
                if payload.sys.sunrise is not None:
                    sunrise = format_local_time(payload.sys.sunrise, self.display_tz)
                if payload.sys.sunset is not None:
                    sunset = format_local_time(payload.sys.sunset, self.display_tz)
            except (OverflowError, OSError, ValueError) as e:
                raise MalformedResponseError() from e

        return WeatherReading(
            location_name=location_name,
            country_label=country_label,
            temperature_c=payload.main.temp,
            feels_like_c=payload.main.feels_like,
            humidity_pct=payload.main.humidity,
            wind_speed_mps=payload.wind.speed,
            pressure_hpa=payload.main.pressure,
            visibility_km=payload.visibility / 1000,
            condition_text=condition.description,
            condition_icon_code=condition.icon,
            condition_symbol=icon_symbol(condition.icon),
            sunrise_local=sunrise,
            sunset_local=sunset,
        )


# Global weather client instance
weather_client = WeatherClient()
