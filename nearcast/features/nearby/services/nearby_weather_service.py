"""周辺天気サービス（サンプリング + 一括予報 + 距離による命名 + キャッシュ）"""

import math
import random
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Optional, Sequence

from ....shared.logging.config import get_logger
from ....shared.utils.geo import (
    Coordinate,
    compass_direction,
    haversine_km,
    initial_bearing,
    sanitize_coordinate,
)
from ...cache.domain.models import CacheKind
from ...cache.services.cache_service import CacheService
from ...geocoding.services.geocoding_service import GeocodingService
from ...weather.domain.models import WeatherForecast
from ...weather.providers.open_meteo import OpenMeteoClient
from ..domain.models import NearbyLocation, SampledPoint
from .point_sampler import DEFAULT_ZOOM, PointSampler

logger = get_logger(__name__)


@dataclass(frozen=True)
class CenterLabel:
    """中心地点の表示名"""

    name: str
    country: str = ""


class NearbyWeatherService:
    """
    周辺天気の集約

    1. キャッシュ（短期）を確認
    2. 周辺地点をサンプリングし、一括予報をすぐに開始
    3. 並行して中心地点を逆ジオコーディング（締め切り付き、失敗時は汎用名）
    4. 距離に応じて各地点の表示名を決定
    5. 表示密度を間引いてキャッシュに保存

    どの段階で失敗しても例外は送出せず、空リストを返す
    """

    NEAR_KM = 5.0
    MID_KM = 20.0
    GENERIC_NAME = "this location"

    def __init__(
        self,
        sampler: PointSampler,
        weather_client: OpenMeteoClient,
        geocoding_service: Optional[GeocodingService],
        cache: Optional[CacheService] = None,
        executor: Optional[Executor] = None,
        geocode_timeout: float = 2.0,
        display_probability: float = 0.8,
        min_locations: int = 4,
        rng: Optional[random.Random] = None,
        fallback: Optional[Coordinate] = None,
        max_workers: int = 4,
    ) -> None:
        """
        Args:
            sampler: 周辺地点のサンプラー
            weather_client: 予報APIクライアント
            geocoding_service: 中心地点の逆ジオコーディングに使うサービス（Noneの場合は汎用名）
            cache: キャッシュ（Noneの場合はキャッシュしない）
            executor: 並行実行に使うExecutor（Noneの場合は内部で生成）
            geocode_timeout: 逆ジオコーディングの締め切り（秒）
            display_probability: 各地点を表示する確率
            min_locations: 確率によらず必ず残す先頭の地点数
            rng: 乱数生成器
            fallback: 不正な座標の置き換え先
            max_workers: 内部で生成するExecutorのスレッド数
        """
        self.sampler = sampler
        self.weather_client = weather_client
        self.geocoding_service = geocoding_service
        self.cache = cache
        self.geocode_timeout = geocode_timeout
        self.display_probability = display_probability
        self.min_locations = min_locations
        self.rng = rng or random.Random()
        self.fallback = fallback

        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="nearby")

    @staticmethod
    def cache_key(center: Coordinate, zoom_level: float) -> str:
        return f"nearby_weather_{center.latitude:.2f}_{center.longitude:.2f}_{_format_zoom(zoom_level)}"

    def get_nearby_weather(
        self,
        center_lat: float,
        center_lon: float,
        zoom_level: Optional[float] = None,
    ) -> list[NearbyLocation]:
        """
        周辺地点の天気を取得

        Args:
            center_lat: 中心の緯度
            center_lon: 中心の経度
            zoom_level: 地図のズームレベル（未指定時は13）

        Returns:
            list[NearbyLocation]: 周辺地点の天気（失敗時は空リスト）
        """
        zoom = DEFAULT_ZOOM if zoom_level is None else zoom_level
        center = sanitize_coordinate(center_lat, center_lon, self.fallback)
        key = self.cache_key(center, zoom)

        try:
            cached = self._get_cached(key)
            if cached is not None:
                logger.debug(f"Nearby weather cache hit: {key}")
                return cached

            points = self.sampler.sample_points(center.latitude, center.longitude, zoom)

            weather_future = self.executor.submit(
                self.weather_client.fetch_forecast_batch,
                [p.latitude for p in points],
                [p.longitude for p in points],
            )
            label = self.resolve_center_label(center)
            forecasts = weather_future.result()

            locations = self.build_locations(center, label, points, forecasts)

            if self.cache is not None:
                self.cache.set(key, [location.to_dict() for location in locations])

            logger.info(
                f"Nearby weather for ({center.latitude}, {center.longitude}) zoom={zoom}: "
                f"{len(locations)}/{len(points)} locations"
            )
            return locations

        except Exception as e:
            logger.error(f"Failed to get nearby weather for ({center.latitude}, {center.longitude}): {e}")
            return []

    def resolve_center_label(self, center: Coordinate) -> Optional[CenterLabel]:
        """
        中心地点を締め切り付きで逆ジオコーディング

        締め切りを過ぎた場合はキャンセルを通知し、結果を破棄してNoneを返す
        """
        if self.geocoding_service is None:
            return None

        cancel_event = threading.Event()
        future = self.executor.submit(
            self.geocoding_service.resolve_by_coordinates,
            center.latitude,
            center.longitude,
            cancel_event,
        )

        try:
            result = future.result(timeout=self.geocode_timeout)
        except FuturesTimeoutError:
            cancel_event.set()
            future.cancel()
            logger.warning(f"Center geocoding timed out after {self.geocode_timeout}s, using generic names")
            return None
        except Exception as e:
            logger.warning(f"Center geocoding failed, using generic names: {e}")
            return None

        return CenterLabel(name=result.name, country=result.country_name)

    def build_locations(
        self,
        center: Coordinate,
        label: Optional[CenterLabel],
        points: Sequence[SampledPoint],
        forecasts: Sequence[WeatherForecast],
    ) -> list[NearbyLocation]:
        """各地点に表示名と現在の天気を付与し、表示密度を間引く"""
        country = label.country if label else ""
        locations: list[NearbyLocation] = []

        for point, forecast in zip(points, forecasts):
            if len(locations) >= self.min_locations and self.rng.random() >= self.display_probability:
                continue
            locations.append(
                NearbyLocation(
                    latitude=point.latitude,
                    longitude=point.longitude,
                    city=self.name_for(center, label, point),
                    country=country,
                    weather_data=forecast.current,
                )
            )

        return locations

    def name_for(self, center: Coordinate, label: Optional[CenterLabel], point: SampledPoint) -> str:
        """
        中心からの距離で表示名を決める

        - 5km未満: 中心の名前
        - 5〜20km: "<方角> of <中心の名前>"
        - 20km超: "<距離>km from <中心の名前>"
        """
        center_name = label.name if label else self.GENERIC_NAME
        distance = haversine_km(center.latitude, center.longitude, point.latitude, point.longitude)

        if distance < self.NEAR_KM:
            return center_name
        if distance <= self.MID_KM:
            bearing = initial_bearing(center.latitude, center.longitude, point.latitude, point.longitude)
            return f"{compass_direction(bearing, 8)} of {center_name}"
        return f"{int(math.floor(distance + 0.5))}km from {center_name}"

    def _get_cached(self, key: str) -> Optional[list[NearbyLocation]]:
        if self.cache is None:
            return None

        cached = self.cache.get(key, CacheKind.SHORT)
        if cached is None:
            return None

        try:
            return [NearbyLocation.from_dict(item) for item in cached]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed cached nearby weather {key}: {e}")
            self.cache.remove(key)
            return None

    def close(self) -> None:
        """内部で生成したExecutorを停止"""
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)


def _format_zoom(zoom_level: float) -> str:
    if isinstance(zoom_level, float) and zoom_level.is_integer():
        return str(int(zoom_level))
    return str(zoom_level)
