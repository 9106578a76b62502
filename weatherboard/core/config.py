"""Application configuration using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Weatherboard"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # OpenWeatherMap
    openweather_api_key: str | None = None
    openweather_api_url: str = "https://api.openweathermap.org/data/2.5/weather"
    openweather_units: str = "metric"
    openweather_lang: str = "zh_cn"
    request_timeout: int = 10

    # Display
    display_timezone: str = "Asia/Shanghai"
    refresh_interval: int = 300  # 5 minutes
    auto_refresh_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = True


settings = Settings()
