"""周辺地点のサンプリング（ズームに応じた二重リング配置）"""

import math
import random
from typing import Optional

from ....shared.logging.config import get_logger
from ....shared.utils.geo import KM_PER_DEGREE
from ..domain.models import INNER_RING, OUTER_RING, SampledPoint

logger = get_logger(__name__)

DEFAULT_ZOOM = 13
BASE_RADIUS_KM = 50.0
MIN_RADIUS_KM = 10.0
ZOOM_DECAY = 0.8

INNER_RADIUS_RANGE = (0.4, 0.6)
OUTER_RADIUS_RANGE = (0.8, 1.0)
JITTER_SCALE = 0.1

# 極付近で経度の差分が発散しないための下限
_MIN_COS_LAT = 0.01


def zoom_factor(zoom_level: float) -> float:
    """既定ズーム（13）を基準とした指数スケール"""
    return ZOOM_DECAY ** (zoom_level - DEFAULT_ZOOM)


def sampling_radius_km(zoom_level: float) -> float:
    """サンプリング半径（km）: max(10, 50 * 0.8^(zoom - 13))"""
    return max(MIN_RADIUS_KM, BASE_RADIUS_KM * zoom_factor(zoom_level))


def point_count(zoom_level: float) -> int:
    """地点数: ズームイン（15以上）で6、ズームアウト（10以下）で12、それ以外は8"""
    if zoom_level >= 15:
        return 6
    if zoom_level <= 10:
        return 12
    return 8


class PointSampler:
    """
    中心の周囲に二重リングで地点を配置する

    - 内側リング: floor(n/2)点、半径の40〜60%
    - 外側リング: 残りの点、半径の80〜100%、内側から半セクターずらす
    - 各点にズームに応じた小さなジッターを加える

    乱数を使うため結果は非決定的（テストでは rng にシード付きの Random を渡す）
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    def sample_points(
        self,
        center_lat: float,
        center_lon: float,
        zoom_level: Optional[float] = None,
    ) -> list[SampledPoint]:
        """
        周辺地点を生成

        Args:
            center_lat: 中心の緯度
            center_lon: 中心の経度
            zoom_level: 地図のズームレベル（未指定時は13）

        Returns:
            list[SampledPoint]: 内側リング、外側リングの順
        """
        zoom = DEFAULT_ZOOM if zoom_level is None else zoom_level
        radius_km = sampling_radius_km(zoom)
        count = point_count(zoom)

        cos_lat = max(math.cos(math.radians(center_lat)), _MIN_COS_LAT)
        lat_delta = radius_km / KM_PER_DEGREE
        lon_delta = radius_km / (KM_PER_DEGREE * cos_lat)

        # ジッターの倍率は1倍が上限
        jitter = JITTER_SCALE * min(zoom_factor(zoom), 1.0)

        inner_count = count // 2
        outer_count = count - inner_count

        points: list[SampledPoint] = []
        for ring, ring_count, radius_range, offset in (
            (INNER_RING, inner_count, INNER_RADIUS_RANGE, 0.0),
            (OUTER_RING, outer_count, OUTER_RADIUS_RANGE, math.pi / outer_count),
        ):
            for i in range(ring_count):
                angle = offset + (2 * math.pi * i) / ring_count
                scale = self.rng.uniform(*radius_range)

                lat = center_lat + lat_delta * scale * math.sin(angle)
                lon = center_lon + lon_delta * scale * math.cos(angle)

                lat += (self.rng.random() - 0.5) * lat_delta * jitter
                lon += (self.rng.random() - 0.5) * lon_delta * jitter

                points.append(SampledPoint(latitude=_clamp_lat(lat), longitude=_wrap_lon(lon), ring=ring))

        logger.debug(
            f"Sampled {len(points)} points around ({center_lat}, {center_lon}): "
            f"zoom={zoom}, radius={radius_km:.1f}km"
        )
        return points


def _clamp_lat(lat: float) -> float:
    return max(-90.0, min(90.0, lat))


def _wrap_lon(lon: float) -> float:
    if -180.0 <= lon <= 180.0:
        return lon
    return ((lon + 180.0) % 360.0) - 180.0
