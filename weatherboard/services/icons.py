"""OpenWeatherMap icon codes to display glyphs."""

FALLBACK_SYMBOL = "🌤️"

ICON_SYMBOLS: dict[str, str] = {
    "01d": "☀️",
    "01n": "🌙",
    "02d": "⛅",
    "02n": "☁️",
    "03d": "☁️",
    "03n": "☁️",
    "04d": "☁️",
    "04n": "☁️",
    "09d": "🌧️",
    "09n": "🌧️",
    "10d": "🌦️",
    "10n": "🌧️",
    "11d": "⛈️",
    "11n": "⛈️",
    "13d": "❄️",
    "13n": "❄️",
    "50d": "🌫️",
    "50n": "🌫️",
}


def icon_symbol(icon_code: str) -> str:
    """Return the glyph for a provider icon code, or the fallback glyph."""
    return ICON_SYMBOLS.get(icon_code, FALLBACK_SYMBOL)
