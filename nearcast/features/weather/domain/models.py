"""天気予報のドメインモデル"""
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class WindInfo:
    """風速・風向"""

    speed: Optional[float]
    direction: str

    def to_dict(self) -> dict[str, Any]:
        return {"speed": self.speed, "direction": self.direction}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WindInfo":
        return cls(speed=data.get("speed"), direction=data.get("direction", ""))


@dataclass(frozen=True)
class UVIndex:
    """UV指数とカテゴリ"""

    value: Optional[float]
    category: str

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "category": self.category}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UVIndex":
        return cls(value=data.get("value"), category=data.get("category", "Low"))


@dataclass(frozen=True)
class CurrentWeather:
    """現在の天気（現在時刻の時間別データから算出）"""

    time: str
    temperature: Optional[float]
    condition: str
    icon: str
    wind: WindInfo
    precipitation: Optional[float]  # 降水確率（%）
    uv_index: UVIndex
    humidity: Optional[float]
    pressure: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "temperature": self.temperature,
            "condition": self.condition,
            "icon": self.icon,
            "wind": self.wind.to_dict(),
            "precipitation": self.precipitation,
            "uv_index": self.uv_index.to_dict(),
            "humidity": self.humidity,
            "pressure": self.pressure,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CurrentWeather":
        return cls(
            time=data["time"],
            temperature=data.get("temperature"),
            condition=data["condition"],
            icon=data["icon"],
            wind=WindInfo.from_dict(data.get("wind") or {}),
            precipitation=data.get("precipitation"),
            uv_index=UVIndex.from_dict(data.get("uv_index") or {}),
            humidity=data.get("humidity"),
            pressure=data.get("pressure"),
        )


@dataclass(frozen=True)
class HourlyForecast:
    """時間別予報"""

    time: str  # 地点のローカル時刻（例: "2025-02-13T15:00"）
    temperature: Optional[float]
    condition: str
    icon: str
    precipitation: Optional[float]
    uv_index: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "temperature": self.temperature,
            "condition": self.condition,
            "icon": self.icon,
            "precipitation": self.precipitation,
            "uv_index": self.uv_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HourlyForecast":
        return cls(
            time=data["time"],
            temperature=data.get("temperature"),
            condition=data["condition"],
            icon=data["icon"],
            precipitation=data.get("precipitation"),
            uv_index=data.get("uv_index"),
        )


@dataclass(frozen=True)
class DailyForecast:
    """日別予報（その日の時間別内訳を含む）"""

    date: str  # "YYYY-MM-DD"
    condition: str
    icon: str
    temp_min: Optional[float]
    temp_max: Optional[float]
    precipitation: Optional[float]  # 最大降水確率（%）
    uv_index_max: Optional[float]
    hourly: tuple[HourlyForecast, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "condition": self.condition,
            "icon": self.icon,
            "temp": {"min": self.temp_min, "max": self.temp_max},
            "precipitation": self.precipitation,
            "uv_index_max": self.uv_index_max,
            "hourly": [h.to_dict() for h in self.hourly],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailyForecast":
        temp = data.get("temp") or {}
        return cls(
            date=data["date"],
            condition=data["condition"],
            icon=data["icon"],
            temp_min=temp.get("min"),
            temp_max=temp.get("max"),
            precipitation=data.get("precipitation"),
            uv_index_max=data.get("uv_index_max"),
            hourly=tuple(HourlyForecast.from_dict(h) for h in data.get("hourly") or []),
        )


@dataclass(frozen=True)
class WeatherForecast:
    """1地点分の予報（現在・時間別・日別）"""

    latitude: float
    longitude: float
    timezone: str
    current: CurrentWeather
    hourly: tuple[HourlyForecast, ...] = ()
    daily: tuple[DailyForecast, ...] = ()  # 今日を含まない
    today_hourly: tuple[HourlyForecast, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timezone": self.timezone,
            "current": self.current.to_dict(),
            "hourly": [h.to_dict() for h in self.hourly],
            "daily": [d.to_dict() for d in self.daily],
            "today_hourly": [h.to_dict() for h in self.today_hourly],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WeatherForecast":
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            timezone=data.get("timezone", "UTC"),
            current=CurrentWeather.from_dict(data["current"]),
            hourly=tuple(HourlyForecast.from_dict(h) for h in data.get("hourly") or []),
            daily=tuple(DailyForecast.from_dict(d) for d in data.get("daily") or []),
            today_hourly=tuple(HourlyForecast.from_dict(h) for h in data.get("today_hourly") or []),
        )
