"""位置・設定のドメインモデル"""
from dataclasses import dataclass
from typing import Any, Optional

from ....shared.utils.geo import Coordinate, is_valid_coordinate

TEMPERATURE_UNITS = ("C", "F")


@dataclass(frozen=True)
class GeolocationResult:
    """現在地の取得結果"""

    success: bool
    coordinates: Coordinate
    error: Optional[str] = None
    is_fallback: bool = False


@dataclass(frozen=True)
class SavedLocation:
    """保存された地点"""

    city: str
    country: str
    coordinates: Coordinate

    def __post_init__(self) -> None:
        if not is_valid_coordinate(self.coordinates.latitude, self.coordinates.longitude):
            raise ValueError(f"Invalid saved location coordinates: {self.coordinates.to_tuple()}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "city": self.city,
            "country": self.country,
            "coordinates": self.coordinates.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SavedLocation":
        return cls(
            city=str(data["city"]),
            country=str(data.get("country", "")),
            coordinates=Coordinate.from_dict(data["coordinates"]),
        )


@dataclass(frozen=True)
class UserPreferences:
    """ユーザー設定（温度単位・最後に選択した地点）"""

    temp_unit: str = "C"
    location: Optional[SavedLocation] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "temp_unit": self.temp_unit,
            "location": self.location.to_dict() if self.location else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserPreferences":
        unit = data.get("temp_unit", "C")
        if unit not in TEMPERATURE_UNITS:
            raise ValueError(f"Unknown temperature unit: {unit!r}")
        location = data.get("location")
        return cls(
            temp_unit=unit,
            location=SavedLocation.from_dict(location) if location else None,
        )
