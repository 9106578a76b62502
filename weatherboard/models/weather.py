"""Pydantic models for API requests and responses."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """Latitude/longitude pair sent verbatim to the provider."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    latitude: float = Field(..., description="Latitude in degrees")
    longitude: float = Field(..., description="Longitude in degrees")


class City(BaseModel):
    """Entry of the popular cities table."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name")
    country_code: str = Field(..., description="ISO 3166 country code")
    country_label: str = Field(..., description="Localized country name")
    coordinate: Coordinate


class WeatherReading(BaseModel):
    """Normalized current weather for one location."""

    location_name: str = Field(..., description="Location name shown to the user")
    country_label: str = Field(..., description="Country code or localized country name")
    temperature_c: float = Field(..., description="Temperature in Celsius")
    feels_like_c: float = Field(..., description="Apparent temperature in Celsius")
    humidity_pct: int = Field(..., description="Relative humidity in percent")
    wind_speed_mps: float = Field(..., description="Wind speed in m/s")
    pressure_hpa: int = Field(..., description="Pressure in hPa")
    visibility_km: float = Field(..., description="Visibility in kilometres")
    condition_text: str = Field(..., description="Provider condition description")
    condition_icon_code: str = Field(..., description="Provider icon code, e.g. 01d")
    condition_symbol: str = Field(..., description="Display glyph for the icon code")
    sunrise_local: str | None = Field(None, description="Sunrise as HH:MM")
    sunset_local: str | None = Field(None, description="Sunset as HH:MM")


class UserKeyRequest(BaseModel):
    """Body of lookups that carry their own API key."""

    api_key: str = Field("", description="OpenWeatherMap API key, never stored")


class CoordinateLookupRequest(UserKeyRequest):
    """Free-form coordinate lookup with a user-supplied key."""

    latitude: str | float | None = Field(None, description="Latitude as typed by the user")
    longitude: str | float | None = Field(None, description="Longitude as typed by the user")
    name: str = Field("", description="Optional location name")


class AutoRefreshRequest(BaseModel):
    """Auto-refresh toggle."""

    enabled: bool


class DisplayState(BaseModel):
    """What the auto-refreshing page currently shows."""

    city_index: int
    city: City
    reading: WeatherReading | None = None
    error: str | None = Field(None, description="Last error message, if the last lookup failed")
    error_code: str | None = None
    loading: bool = False
    auto_refresh: bool = True
    updated_at: datetime | None = Field(None, description="Time of the last applied reading")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    credential_configured: bool = Field(..., description="Whether a server-side API key is configured")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error code")
    detail: str | None = Field(None, description="Human-readable error message")
