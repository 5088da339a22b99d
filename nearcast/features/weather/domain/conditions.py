"""WMO天気コード・UV指数・風向の変換"""

from typing import NamedTuple, Optional

from ....shared.utils.geo import compass_direction


class WeatherCondition(NamedTuple):
    """天気の表示ラベルとアイコン参照"""

    condition: str
    icon: str


CLEAR_SKY = WeatherCondition("Clear Sky", "partly_cloudy")

# WMO Weather interpretation codes
WMO_CODES: dict[int, WeatherCondition] = {
    0: CLEAR_SKY,
    1: WeatherCondition("Partly Cloudy", "partly_cloudy"),
    2: WeatherCondition("Partly Cloudy", "partly_cloudy"),
    3: WeatherCondition("Cloudy", "partly_cloudy"),
    45: WeatherCondition("Fog", "fog"),
    48: WeatherCondition("Fog", "fog"),
    51: WeatherCondition("Light Rain", "heavy_rain"),
    53: WeatherCondition("Rain", "heavy_rain"),
    55: WeatherCondition("Heavy Rain", "heavy_rain"),
    61: WeatherCondition("Light Rain", "heavy_rain"),
    63: WeatherCondition("Rain", "heavy_rain"),
    65: WeatherCondition("Heavy Rain", "heavy_rain"),
    80: WeatherCondition("Light Rain", "heavy_rain"),
    81: WeatherCondition("Rain", "heavy_rain"),
    82: WeatherCondition("Heavy Rain", "heavy_rain"),
    95: WeatherCondition("Thunderstorm", "heavy_rain"),
    96: WeatherCondition("Thunderstorm", "heavy_rain"),
    99: WeatherCondition("Thunderstorm", "heavy_rain"),
}


def weather_condition(code: Optional[float]) -> WeatherCondition:
    """
    WMOコードを天気ラベルに変換（不明なコードは "Clear Sky"）
    """
    if code is None:
        return CLEAR_SKY
    try:
        return WMO_CODES.get(int(code), CLEAR_SKY)
    except (TypeError, ValueError):
        return CLEAR_SKY


def uv_category(value: Optional[float]) -> str:
    """UV指数のカテゴリ"""
    if value is None or value <= 2:
        return "Low"
    if value <= 5:
        return "Moderate"
    if value <= 7:
        return "High"
    if value <= 10:
        return "Very High"
    return "Extreme"


def wind_direction(degrees: Optional[float], points: int = 8) -> str:
    """風向（度）を方角ラベルに変換"""
    if degrees is None:
        return ""
    return compass_direction(degrees, points)
