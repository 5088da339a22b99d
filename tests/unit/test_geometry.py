"""国ジオメトリ解析のテスト"""

import pytest

from nearcast.features.geocoding.domain.geometry import (
    MultiPolygonGeometry,
    PointGeometry,
    PolygonGeometry,
    parse_geometry,
    representative_coordinate,
)
from nearcast.shared.exceptions.errors import GeometryParseError


def test_geojson_point() -> None:
    """GeoJSONのPointは[経度, 緯度]の順"""
    geometry = parse_geometry({"type": "Point", "coordinates": [106.8, -6.2]})
    assert isinstance(geometry, PointGeometry)
    coordinate = geometry.representative()
    assert (coordinate.latitude, coordinate.longitude) == (-6.2, 106.8)


def test_geojson_polygon_uses_ring_average() -> None:
    """Polygonは最初のリングの頂点平均"""
    coordinate = representative_coordinate(
        {"type": "Polygon", "coordinates": [[[0.0, 0.0], [2.0, 0.0], [2.0, 4.0], [0.0, 4.0]]]}
    )
    assert coordinate.latitude == pytest.approx(2.0)
    assert coordinate.longitude == pytest.approx(1.0)


def test_geojson_multipolygon_uses_first_polygon() -> None:
    """MultiPolygonは最初のポリゴンの外周リングのみを使う"""
    geometry = parse_geometry(
        {
            "type": "MultiPolygon",
            "coordinates": [
                [[[10.0, 10.0], [12.0, 10.0], [12.0, 12.0], [10.0, 12.0]]],
                [[[50.0, 50.0], [51.0, 50.0], [51.0, 51.0]]],
            ],
        }
    )
    assert isinstance(geometry, MultiPolygonGeometry)
    coordinate = geometry.representative()
    assert coordinate.latitude == pytest.approx(11.0)
    assert coordinate.longitude == pytest.approx(11.0)


@pytest.mark.parametrize(
    "text,expected_type,lat,lon",
    [
        ("POINT(101.7 3.1)", PointGeometry, 3.1, 101.7),
        ("point (101.7 3.1)", PointGeometry, 3.1, 101.7),
        ("POLYGON((0 0, 4 0, 4 2, 0 2))", PolygonGeometry, 1.0, 2.0),
        ("MULTIPOLYGON(((0 0, 2 0, 2 2, 0 2)),((40 40, 41 41, 40 41)))", MultiPolygonGeometry, 1.0, 1.0),
    ],
)
def test_wkt_variants(text: str, expected_type: type, lat: float, lon: float) -> None:
    """WKT文字列の解析（大文字小文字を区別しない）"""
    geometry = parse_geometry(text)
    assert isinstance(geometry, expected_type)
    assert geometry.source == "wkt"
    coordinate = geometry.representative()
    assert coordinate.latitude == pytest.approx(lat)
    assert coordinate.longitude == pytest.approx(lon)


@pytest.mark.parametrize(
    "geometry,reason_fragment",
    [
        (None, "missing geometry"),
        (42, "unsupported geometry container"),
        ({"type": "LineString", "coordinates": [[0, 0], [1, 1]]}, "unsupported GeoJSON type"),
        ({"type": "Point"}, "missing coordinates"),
        ({"type": "Point", "coordinates": [1.0]}, "malformed coordinates"),
        ("LINESTRING(0 0, 1 1)", "unrecognized WKT"),
        ("POLYGON((a b, c d))", "no valid coordinates"),
    ],
)
def test_unparseable_geometry_reports_reason(geometry: object, reason_fragment: str) -> None:
    """解析できないジオメトリは理由付きのGeometryParseError"""
    with pytest.raises(GeometryParseError) as exc_info:
        parse_geometry(geometry)
    assert reason_fragment in exc_info.value.reason
