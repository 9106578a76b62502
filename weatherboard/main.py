"""FastAPI application exposing weather lookups and the display session."""

import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import Counter, Histogram, generate_latest

from weatherboard.core.config import settings
from weatherboard.core.logging import configure_logging, get_logger
from weatherboard.models.weather import (
    AutoRefreshRequest,
    City,
    CoordinateLookupRequest,
    DisplayState,
    ErrorResponse,
    HealthResponse,
    UserKeyRequest,
    WeatherReading,
)
from weatherboard.services.display import display_session
from weatherboard.services.locations import (
    CUSTOM_LOCATION_COUNTRY,
    POPULAR_CITIES,
    custom_location_name,
    get_city,
    parse_coordinate,
)
from weatherboard.services.weather import WeatherError, require_configured_key, weather_client

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "weatherboard_requests_total",
    "Total number of requests",
    ["method", "endpoint", "status"],
)
REQUEST_DURATION = Histogram(
    "weatherboard_request_duration_seconds",
    "Request duration in seconds",
    ["method", "endpoint"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing API key or invalid coordinates"},
    401: {"model": ErrorResponse, "description": "API key rejected by OpenWeatherMap"},
    429: {"model": ErrorResponse, "description": "OpenWeatherMap request quota exceeded"},
    502: {"model": ErrorResponse, "description": "Unexpected upstream status or payload"},
    503: {"model": ErrorResponse, "description": "Upstream unreachable or API key not configured"},
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown."""
    # Startup
    logger.info(
        "application_starting",
        version=settings.app_version,
        credential_configured=bool(settings.openweather_api_key),
    )
    if not settings.openweather_api_key:
        logger.warning("openweather_api_key_not_configured")

    display_session.start()
    logger.info("application_started", auto_refresh=display_session.auto_refresh)

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await display_session.stop()
    await weather_client.close()
    logger.info("application_stopped")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Current weather from OpenWeatherMap for popular cities and arbitrary coordinates",
    lifespan=lifespan,
)


@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    """Add correlation ID to each request for tracing."""
    correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id

    return response


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Track request metrics."""
    method = request.method
    path = request.url.path

    with REQUEST_DURATION.labels(method=method, endpoint=path).time():
        response = await call_next(request)

    REQUEST_COUNT.labels(method=method, endpoint=path, status=response.status_code).inc()

    return response


@app.exception_handler(WeatherError)
async def weather_error_handler(request: Request, exc: WeatherError):
    """Render lookup failures as error bodies with their own status."""
    logger.error("weather_request_failed", path=request.url.path, error_code=exc.code, error=exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.code, detail=exc.message).model_dump(),
    )


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns service health and whether a server-side API key is configured",
    tags=["Health"],
)
async def health_check():
    """Health check endpoint.

    The service is ``degraded`` without a configured key: user-key lookups
    still work, configured-key lookups and the display session do not.
    """
    configured = bool(settings.openweather_api_key)

    return HealthResponse(
        status="healthy" if configured else "degraded",
        version=settings.app_version,
        credential_configured=configured,
    )


@app.get(
    "/health/live",
    summary="Liveness probe",
    tags=["Health"],
    status_code=200,
)
async def liveness():
    """Liveness probe."""
    return {"status": "alive"}


@app.get(
    "/cities",
    response_model=list[City],
    summary="Popular cities",
    tags=["Cities"],
)
async def list_cities():
    """Return the popular cities table; indexes are the positions in this list."""
    return list(POPULAR_CITIES)


def _city_or_404(index: int) -> City:
    try:
        return get_city(index)
    except IndexError:
        raise HTTPException(status_code=404, detail=f"City {index} not found")


@app.get(
    "/weather",
    response_model=WeatherReading,
    summary="Weather for coordinates (server key)",
    description="""Look up current weather for a latitude/longitude pair using
    the API key configured on the server.

    Coordinates are sent to OpenWeatherMap as given; out-of-range values are
    rejected by the provider, not here.
    """,
    tags=["Weather"],
    responses=ERROR_RESPONSES,
)
async def get_weather(latitude: str = "", longitude: str = "", name: str = "", country: str = ""):
    """Get weather data for free-form coordinates.

    Raises:
        WeatherError: Rendered by ``weather_error_handler``
    """
    coordinate = parse_coordinate(latitude, longitude)
    return await weather_client.fetch_reading(
        coordinate,
        require_configured_key(settings.openweather_api_key),
        location_name=custom_location_name(name),
        country_label=country.strip() or CUSTOM_LOCATION_COUNTRY,
    )


@app.get(
    "/weather/cities/{index}",
    response_model=WeatherReading,
    summary="Weather for a popular city (server key)",
    tags=["Weather"],
    responses={404: {"description": "No city at this index"}, **ERROR_RESPONSES},
)
async def get_city_weather(index: int):
    """Get weather data for a popular city."""
    city = _city_or_404(index)
    return await weather_client.fetch_reading(
        city.coordinate,
        require_configured_key(settings.openweather_api_key),
        location_name=city.name,
        country_label=city.country_label,
    )


@app.post(
    "/openweather/lookup",
    response_model=WeatherReading,
    summary="Weather for coordinates (caller's key)",
    description="The API key is used for this request only and is never stored or logged.",
    tags=["OpenWeather"],
    responses=ERROR_RESPONSES,
)
async def lookup_with_user_key(body: CoordinateLookupRequest):
    """Get weather data for free-form coordinates with the caller's key."""
    coordinate = parse_coordinate(body.latitude, body.longitude)
    return await weather_client.fetch_reading(
        coordinate,
        body.api_key,
        location_name=custom_location_name(body.name),
        country_label=CUSTOM_LOCATION_COUNTRY,
    )


@app.post(
    "/openweather/cities/{index}",
    response_model=WeatherReading,
    summary="Weather for a popular city (caller's key)",
    tags=["OpenWeather"],
    responses={404: {"description": "No city at this index"}, **ERROR_RESPONSES},
)
async def city_with_user_key(index: int, body: UserKeyRequest):
    """Get weather data for a popular city with the caller's key."""
    city = _city_or_404(index)
    return await weather_client.fetch_reading(
        city.coordinate,
        body.api_key,
        location_name=city.name,
        country_label=city.country_code,
    )


@app.get(
    "/display",
    response_model=DisplayState,
    summary="Current display state",
    tags=["Display"],
)
async def get_display():
    """Selected city, last reading, last error and auto-refresh flag."""
    return display_session.snapshot()


@app.post(
    "/display/select/{index}",
    response_model=DisplayState,
    summary="Select a popular city",
    tags=["Display"],
    responses={404: {"description": "No city at this index"}},
)
async def select_city(index: int):
    """Select a city, refresh it and restart the refresh timer.

    Lookup failures are part of the returned state, not an error response.
    """
    _city_or_404(index)
    await display_session.select(index)
    return display_session.snapshot()


@app.post(
    "/display/random",
    response_model=DisplayState,
    summary="Select a random popular city",
    tags=["Display"],
)
async def select_random_city():
    """Select a random city and refresh it."""
    await display_session.select_random()
    return display_session.snapshot()


@app.put(
    "/display/auto-refresh",
    response_model=DisplayState,
    summary="Toggle auto-refresh",
    tags=["Display"],
)
async def toggle_auto_refresh(body: AutoRefreshRequest):
    """Turn the periodic refresh on or off."""
    await display_session.set_auto_refresh(body.enabled)
    return display_session.snapshot()


@app.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Prometheus metrics",
    description="Exposes application metrics in Prometheus format",
    tags=["Monitoring"],
)
async def metrics():
    """Prometheus metrics endpoint.

    Includes request counts and durations per endpoint and upstream lookup
    outcomes.
    """
    return generate_latest()


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error("unhandled_exception", error=str(exc), path=request.url.path)

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "weatherboard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
