"""Popular cities table and parsing of user-entered coordinates."""

import math
import random

from weatherboard.models.weather import City, Coordinate
from weatherboard.services.weather import InvalidInputError

CUSTOM_LOCATION_NAME = "自定义位置"
CUSTOM_LOCATION_COUNTRY = "Unknown"


def _city(name: str, country_code: str, country_label: str, latitude: float, longitude: float) -> City:
    return City(
        name=name,
        country_code=country_code,
        country_label=country_label,
        coordinate=Coordinate(latitude=latitude, longitude=longitude),
    )


POPULAR_CITIES: tuple[City, ...] = (
    _city("北京", "CN", "中国", 39.9042, 116.4074),
    _city("上海", "CN", "中国", 31.2304, 121.4737),
    _city("广州", "CN", "中国", 23.1291, 113.2644),
    _city("深圳", "CN", "中国", 22.3193, 114.1694),
    _city("杭州", "CN", "中国", 30.2741, 120.1551),
    _city("成都", "CN", "中国", 30.5728, 104.0668),
    _city("西安", "CN", "中国", 34.3416, 108.9398),
    _city("南京", "CN", "中国", 32.0603, 118.7969),
    _city("武汉", "CN", "中国", 30.5928, 114.3055),
    _city("重庆", "CN", "中国", 29.4316, 106.9123),
    _city("东京", "JP", "日本", 35.6762, 139.6503),
    _city("首尔", "KR", "韩国", 37.5665, 126.9780),
    _city("纽约", "US", "美国", 40.7128, -74.0060),
    _city("伦敦", "GB", "英国", 51.5074, -0.1278),
    _city("巴黎", "FR", "法国", 48.8566, 2.3522),
    _city("柏林", "DE", "德国", 52.5200, 13.4050),
    _city("罗马", "IT", "意大利", 41.9028, 12.4964),
    _city("马德里", "ES", "西班牙", 40.4168, -3.7038),
    _city("莫斯科", "RU", "俄罗斯", 55.7558, 37.6176),
    _city("悉尼", "AU", "澳大利亚", -33.8688, 151.2093),
)


def get_city(index: int) -> City:
    """Return the popular city at ``index``.

    Raises:
        IndexError: If the index is outside the table (negative included)
    """
    if not 0 <= index < len(POPULAR_CITIES):
        raise IndexError(f"No city at index {index}")
    return POPULAR_CITIES[index]


def random_city_index(rng: random.Random | None = None) -> int:
    """Pick a random index into the popular cities table."""
    return (rng or random).randrange(len(POPULAR_CITIES))


def parse_coordinate(latitude: str | float | None, longitude: str | float | None) -> Coordinate:
    """Build a coordinate from user input.

    Range is not checked here; the provider rejects out-of-range values.

    Args:
        latitude: Latitude as typed by the user
        longitude: Longitude as typed by the user

    Returns:
        Coordinate with finite values

    Raises:
        InvalidInputError: If either value is missing, non-numeric or not finite
    """
    if _is_blank(latitude) or _is_blank(longitude):
        raise InvalidInputError("请输入经纬度坐标")

    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        raise InvalidInputError("请输入有效的经纬度坐标")

    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidInputError("请输入有效的经纬度坐标")

    return Coordinate(latitude=lat, longitude=lon)


def custom_location_name(name: str | None) -> str:
    """Name shown for a free-form coordinate lookup."""
    return (name or "").strip() or CUSTOM_LOCATION_NAME


def _is_blank(value: str | float | None) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
