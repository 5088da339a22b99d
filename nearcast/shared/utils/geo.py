"""地理計算ユーティリティ"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from ..logging.config import get_logger

logger = get_logger(__name__)

EARTH_RADIUS_KM = 6371.0

# 1度あたりの概算距離（km）
KM_PER_DEGREE = 111.0

COMPASS_8 = (
    "North",
    "Northeast",
    "East",
    "Southeast",
    "South",
    "Southwest",
    "West",
    "Northwest",
)

COMPASS_16 = (
    "N", "NNE", "NE", "ENE",
    "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW",
    "W", "WNW", "NW", "NNW",
)


@dataclass(frozen=True)
class Coordinate:
    """緯度経度（不変）"""

    latitude: float
    longitude: float

    def to_tuple(self) -> tuple[float, float]:
        """(緯度, 経度)のタプルとして返す"""
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Coordinate":
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


# デフォルト位置（ジャカルタ）
DEFAULT_COORDINATE = Coordinate(latitude=-6.2088, longitude=106.8456)


def is_valid_coordinate(latitude: Any, longitude: Any) -> bool:
    """
    座標が有効か判定

    数値でない値、NaN、無限大、範囲外（|lat| > 90, |lon| > 180）は無効
    """
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        return False
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False

    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False

    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def sanitize_coordinate(
    latitude: Any,
    longitude: Any,
    fallback: Optional[Coordinate] = None,
) -> Coordinate:
    """
    座標を検証し、無効な場合はフォールバック座標に置き換える

    Args:
        latitude: 緯度
        longitude: 経度
        fallback: 無効時に使用する座標（デフォルト: ジャカルタ）

    Returns:
        Coordinate: 検証済みの座標（例外は送出しない）
    """
    if is_valid_coordinate(latitude, longitude):
        return Coordinate(latitude=float(latitude), longitude=float(longitude))

    replacement = fallback or DEFAULT_COORDINATE
    logger.warning(
        f"Invalid coordinate ({latitude}, {longitude}), using fallback "
        f"({replacement.latitude}, {replacement.longitude})"
    )
    return replacement


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    2点間の大円距離（km）をHaversine公式で計算
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    地点1から地点2への初期方位角（度、北=0、時計回り、0以上360未満）
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lon = math.radians(lon2 - lon1)

    x = math.sin(d_lon) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lon)
    return (math.degrees(math.atan2(x, y)) + 360.0) % 360.0


def compass_direction(degrees: float, points: int = 8) -> str:
    """
    方位角を方角ラベルに変換

    Args:
        degrees: 方位角（度）
        points: 8方位または16方位

    Returns:
        str: 方角ラベル（8方位は "North" 形式、16方位は "NNE" 形式）
    """
    if points == 16:
        labels = COMPASS_16
    elif points == 8:
        labels = COMPASS_8
    else:
        raise ValueError(f"Unsupported compass resolution: {points}")

    sector = 360.0 / len(labels)
    index = int(math.floor((degrees % 360.0) / sector + 0.5)) % len(labels)
    return labels[index]
