"""周辺地点サンプリングのテスト"""

import random

import pytest

from nearcast.features.nearby.domain.models import INNER_RING, OUTER_RING
from nearcast.features.nearby.services.point_sampler import (
    PointSampler,
    point_count,
    sampling_radius_km,
)
from nearcast.shared.utils.geo import haversine_km

JAKARTA = (-6.2088, 106.8456)


@pytest.mark.parametrize(
    "zoom,radius,count",
    [
        (13, 50.0, 8),
        (15, 32.0, 6),
        (20, 10.485760000000003, 6),
        (22, 10.0, 6),
        (10, 97.65625, 12),
        (8, 152.587890625, 12),
        (12, 62.5, 8),
    ],
)
def test_radius_and_count_by_zoom(zoom: int, radius: float, count: int) -> None:
    """ズームに応じた半径と地点数"""
    assert sampling_radius_km(zoom) == pytest.approx(radius)
    assert point_count(zoom) == count


@pytest.mark.parametrize("zoom,inner,outer", [(13, 4, 4), (15, 3, 3), (8, 6, 6)])
def test_ring_split(zoom: int, inner: int, outer: int) -> None:
    """内側リングはfloor(n/2)点、外側リングは残り（内側が先）"""
    points = PointSampler(random.Random(1)).sample_points(*JAKARTA, zoom)

    rings = [p.ring for p in points]
    assert rings == [INNER_RING] * inner + [OUTER_RING] * outer


def test_default_zoom_is_13() -> None:
    """ズーム未指定時は13として扱う"""
    assert len(PointSampler(random.Random(1)).sample_points(*JAKARTA)) == 8


@pytest.mark.parametrize("zoom", [8, 10, 13, 15, 18])
@pytest.mark.parametrize("seed", range(5))
def test_points_stay_within_radius(zoom: int, seed: int) -> None:
    """全地点が半径の1.15倍以内、各リングの距離帯に収まる"""
    radius = sampling_radius_km(zoom)
    points = PointSampler(random.Random(seed)).sample_points(*JAKARTA, zoom)

    for point in points:
        distance = haversine_km(JAKARTA[0], JAKARTA[1], point.latitude, point.longitude)
        assert distance <= radius * 1.15
        if point.ring == INNER_RING:
            assert radius * 0.3 <= distance <= radius * 0.7
        else:
            assert radius * 0.7 <= distance <= radius * 1.1


def test_points_are_valid_near_pole_and_antimeridian() -> None:
    """極付近・日付変更線付近でも座標は有効範囲に収まる"""
    sampler = PointSampler(random.Random(7))

    for lat, lon in ((89.9, 0.0), (-89.9, 179.9), (0.0, -179.99)):
        for point in sampler.sample_points(lat, lon, 8):
            assert -90.0 <= point.latitude <= 90.0
            assert -180.0 <= point.longitude <= 180.0


def test_sampling_is_random_without_seed() -> None:
    """乱数を使うため呼び出しごとに結果が異なる"""
    sampler = PointSampler()
    assert sampler.sample_points(*JAKARTA) != sampler.sample_points(*JAKARTA)
