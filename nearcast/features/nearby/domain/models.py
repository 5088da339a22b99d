"""周辺天気のドメインモデル"""
from dataclasses import dataclass
from typing import Any

from ...weather.domain.models import CurrentWeather

INNER_RING = "inner"
OUTER_RING = "outer"


@dataclass(frozen=True)
class SampledPoint:
    """サンプリングされた周辺地点"""

    latitude: float
    longitude: float
    ring: str = INNER_RING


@dataclass(frozen=True)
class NearbyLocation:
    """周辺地点の天気（地点・表示名・現在の天気）"""

    latitude: float
    longitude: float
    city: str
    country: str
    weather_data: CurrentWeather

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "city": self.city,
            "country": self.country,
            "weather_data": {"current_weather": self.weather_data.to_dict()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NearbyLocation":
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            city=data["city"],
            country=data.get("country", ""),
            weather_data=CurrentWeather.from_dict(data["weather_data"]["current_weather"]),
        )
