"""Shape of the OpenWeatherMap current weather payload.

Only the fields the reading is built from are declared; everything else in
the response is ignored. ``sys`` is optional because the provider omits it
for some locations.
"""

from pydantic import BaseModel, Field


class MainBlock(BaseModel):
    temp: float
    feels_like: float
    humidity: int
    pressure: int


class WindBlock(BaseModel):
    speed: float


class ConditionBlock(BaseModel):
    description: str
    icon: str


class SysBlock(BaseModel):
    sunrise: int | None = None  # epoch seconds
    sunset: int | None = None


class CurrentWeatherPayload(BaseModel):
    """Successful response body of ``/data/2.5/weather``."""

    main: MainBlock
    wind: WindBlock
    weather: list[ConditionBlock] = Field(..., min_length=1)
    visibility: float  # metres
    sys: SysBlock | None = None
