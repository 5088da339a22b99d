"""国ジオメトリの解析（GeoJSON / WKT）

PostGIS由来のジオメトリはGeoJSONの辞書またはWKT文字列で格納されている。
どちらも型付きのジオメトリに変換し、代表座標（Pointはその点、
Polygonは最初のリングの頂点平均）を取り出す。
"""

import re
from dataclasses import dataclass
from typing import Any, Union

from ....shared.exceptions.errors import GeometryParseError
from ....shared.utils.geo import Coordinate

# MultiPolygonの重心計算に使う頂点数の上限
MULTIPOLYGON_VERTEX_LIMIT = 20

Position = tuple[float, float]  # (経度, 緯度)


@dataclass(frozen=True)
class PointGeometry:
    position: Position
    source: str = "geojson"

    def representative(self) -> Coordinate:
        lon, lat = self.position
        return Coordinate(latitude=lat, longitude=lon)


@dataclass(frozen=True)
class PolygonGeometry:
    ring: tuple[Position, ...]  # 外周リング
    source: str = "geojson"

    def representative(self) -> Coordinate:
        return _centroid(self.ring)


@dataclass(frozen=True)
class MultiPolygonGeometry:
    first_ring: tuple[Position, ...]  # 最初のポリゴンの外周リング
    source: str = "geojson"

    def representative(self) -> Coordinate:
        return _centroid(self.first_ring[:MULTIPOLYGON_VERTEX_LIMIT])


Geometry = Union[PointGeometry, PolygonGeometry, MultiPolygonGeometry]

_WKT_POINT = re.compile(r"^\s*POINT\s*\(\s*([-+\d.eE]+)\s+([-+\d.eE]+)\s*\)", re.IGNORECASE)
_WKT_POLYGON = re.compile(r"^\s*POLYGON\s*\(\s*\(([^)]+)\)", re.IGNORECASE)
_WKT_MULTIPOLYGON = re.compile(r"^\s*MULTIPOLYGON\s*\(\s*\(\s*\(([^)]+)\)", re.IGNORECASE)


def parse_geometry(geometry: Any) -> Geometry:
    """
    ジオメトリを型付きの値に変換

    Args:
        geometry: GeoJSON辞書またはWKT文字列

    Returns:
        Geometry: Point / Polygon / MultiPolygon

    Raises:
        GeometryParseError: 未対応・不正な形式の場合（reasonに理由を保持）
    """
    if geometry is None:
        raise GeometryParseError("missing geometry", geometry)

    if isinstance(geometry, dict):
        return _parse_geojson(geometry)

    if isinstance(geometry, str):
        return _parse_wkt(geometry)

    raise GeometryParseError(f"unsupported geometry container: {type(geometry).__name__}", geometry)


def representative_coordinate(geometry: Any) -> Coordinate:
    """
    ジオメトリの代表座標を取得

    Raises:
        GeometryParseError: 解析できない場合
    """
    return parse_geometry(geometry).representative()


def _parse_geojson(geometry: dict[str, Any]) -> Geometry:
    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")

    if not isinstance(coordinates, (list, tuple)) or not coordinates:
        raise GeometryParseError(f"{geometry_type}: missing coordinates", geometry)

    try:
        if geometry_type == "Point":
            return PointGeometry(position=_position(coordinates))
        if geometry_type == "Polygon":
            return PolygonGeometry(ring=_ring(coordinates[0]))
        if geometry_type == "MultiPolygon":
            return MultiPolygonGeometry(first_ring=_ring(coordinates[0][0]))
    except (TypeError, ValueError, IndexError) as e:
        raise GeometryParseError(f"{geometry_type}: malformed coordinates ({e})", geometry) from e

    raise GeometryParseError(f"unsupported GeoJSON type: {geometry_type}", geometry)


def _parse_wkt(text: str) -> Geometry:
    # MULTIPOLYGONはPOLYGONより先に判定する
    match = _WKT_MULTIPOLYGON.match(text)
    if match:
        return MultiPolygonGeometry(first_ring=_wkt_ring(match.group(1), text), source="wkt")

    match = _WKT_POLYGON.match(text)
    if match:
        return PolygonGeometry(ring=_wkt_ring(match.group(1), text), source="wkt")

    match = _WKT_POINT.match(text)
    if match:
        try:
            return PointGeometry(position=(float(match.group(1)), float(match.group(2))), source="wkt")
        except ValueError as e:
            raise GeometryParseError(f"WKT POINT: invalid number ({e})", text) from e

    raise GeometryParseError("unrecognized WKT geometry", text)


def _position(values: Any) -> Position:
    if len(values) < 2:
        raise ValueError("position needs longitude and latitude")
    return (float(values[0]), float(values[1]))


def _ring(values: Any) -> tuple[Position, ...]:
    ring = tuple(_position(v) for v in values)
    if not ring:
        raise ValueError("empty ring")
    return ring


def _wkt_ring(coords_text: str, source_text: str) -> tuple[Position, ...]:
    positions = []
    for pair in coords_text.split(","):
        parts = pair.split()
        if len(parts) < 2:
            continue
        try:
            positions.append((float(parts[0]), float(parts[1])))
        except ValueError:
            continue

    if not positions:
        raise GeometryParseError("WKT ring has no valid coordinates", source_text)
    return tuple(positions)


def _centroid(ring: tuple[Position, ...]) -> Coordinate:
    lon = sum(p[0] for p in ring) / len(ring)
    lat = sum(p[1] for p in ring) / len(ring)
    return Coordinate(latitude=lat, longitude=lon)
