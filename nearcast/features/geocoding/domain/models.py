"""ジオコーディング機能のドメインモデル"""
from dataclasses import dataclass, field
from typing import Any, Optional

from ....shared.utils.geo import Coordinate

BoundingBox = tuple[float, float, float, float]  # (min_lat, max_lat, min_lon, max_lon)


@dataclass(frozen=True)
class CountryRecord:
    """国名レコード（country_name）"""

    country_code: str
    name: str
    default_language_code: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CountryRecord":
        return cls(
            country_code=str(row["country_code"]),
            name=str(row["name"]),
            default_language_code=row.get("default_language_code"),
        )


@dataclass(frozen=True)
class CountryGrid:
    """国ジオメトリレコード（country_osm_grid）"""

    country_code: str
    geometry: Any = None  # GeoJSON辞書またはWKT文字列
    area: Optional[float] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CountryGrid":
        return cls(
            country_code=str(row["country_code"]),
            geometry=row.get("geometry"),
            area=row.get("area"),
        )


@dataclass(frozen=True)
class SubRegionRecord:
    """準行政区域レコード（country_sub_region_name、ISO 3166-2）"""

    sub_region_code: str
    name: str
    division_type: str
    country_code: str
    latitude: float
    longitude: float

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SubRegionRecord":
        return cls(
            sub_region_code=str(row["sub_region_code"]),
            name=str(row["name"]),
            division_type=str(row.get("division_type") or "region"),
            country_code=str(row["country_code"]),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
        )


@dataclass(frozen=True)
class LocalRegionRecord:
    """ローカル地域・都市レコード（local_regions）"""

    id: str
    name: str
    display_name: str
    type: str
    country_code: str
    country_name: str
    latitude: float
    longitude: float
    importance: float = 0.5
    place_rank: Optional[int] = None
    language_code: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "LocalRegionRecord":
        importance = row.get("importance")
        return cls(
            id=str(row.get("id") or row["name"]),
            name=str(row["name"]),
            display_name=str(row.get("display_name") or row["name"]),
            type=str(row.get("type") or "city"),
            country_code=str(row.get("country_code") or ""),
            country_name=str(row.get("country_name") or ""),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            importance=float(importance) if importance is not None else 0.5,
            place_rank=row.get("place_rank"),
            language_code=row.get("language_code"),
        )


@dataclass(frozen=True)
class GeocodingResult:
    """
    ジオコーディング結果（Nominatim互換の構造）

    place_rankとimportanceは行政区分の細かさに対応する
    （国が最も粗く、州・県、地区・都市の順に細かくなる）
    """

    place_id: str
    name: str
    display_name: str
    country_code: str
    country_name: str
    coordinates: Coordinate
    place_rank: int
    importance: float
    boundingbox: BoundingBox
    type: str = "country"
    division_type: Optional[str] = None
    sub_region_code: Optional[str] = None
    default_language: str = "en"
    osm_id: Optional[str] = None
    address: dict[str, str] = field(default_factory=dict)

    @property
    def lat(self) -> float:
        return self.coordinates.latitude

    @property
    def lon(self) -> float:
        return self.coordinates.longitude

    def to_dict(self) -> dict[str, Any]:
        """JSON互換の辞書に変換"""
        return {
            "place_id": self.place_id,
            "name": self.name,
            "display_name": self.display_name,
            "country_code": self.country_code,
            "country_name": self.country_name,
            "coordinates": self.coordinates.to_dict(),
            "lat": self.lat,
            "lon": self.lon,
            "place_rank": self.place_rank,
            "importance": self.importance,
            "boundingbox": [str(v) for v in self.boundingbox],
            "type": self.type,
            "addresstype": self.type,
            "division_type": self.division_type,
            "sub_region_code": self.sub_region_code,
            "default_language": self.default_language,
            "osm_id": self.osm_id,
            "address": dict(self.address),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeocodingResult":
        bbox = data["boundingbox"]
        return cls(
            place_id=data["place_id"],
            name=data["name"],
            display_name=data["display_name"],
            country_code=data["country_code"],
            country_name=data["country_name"],
            coordinates=Coordinate.from_dict(data["coordinates"]),
            place_rank=int(data["place_rank"]),
            importance=float(data["importance"]),
            boundingbox=(float(bbox[0]), float(bbox[1]), float(bbox[2]), float(bbox[3])),
            type=data.get("type", "country"),
            division_type=data.get("division_type"),
            sub_region_code=data.get("sub_region_code"),
            default_language=data.get("default_language", "en"),
            osm_id=data.get("osm_id"),
            address=dict(data.get("address") or {}),
        )


def bounding_box(latitude: float, longitude: float, delta: float) -> BoundingBox:
    """座標を中心とした概算のバウンディングボックス"""
    return (latitude - delta, latitude + delta, longitude - delta, longitude + delta)
