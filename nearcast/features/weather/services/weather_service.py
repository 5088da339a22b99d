"""天気予報サービス"""

from typing import Optional

from ....shared.logging.config import get_logger
from ....shared.utils.geo import Coordinate, sanitize_coordinate
from ...cache.domain.models import CacheKind
from ...cache.services.cache_service import CacheService
from ..domain.models import WeatherForecast
from ..providers.open_meteo import OpenMeteoClient

logger = get_logger(__name__)


class WeatherService:
    """
    メイン地点の予報取得（短期キャッシュ付き）

    キャッシュキー: weather_<緯度(小数2桁)>_<経度(小数2桁)>
    """

    def __init__(
        self,
        client: OpenMeteoClient,
        cache: Optional[CacheService] = None,
        fallback: Optional[Coordinate] = None,
        wind_points: int = 8,
    ) -> None:
        self.client = client
        self.cache = cache
        self.fallback = fallback
        self.wind_points = wind_points

    @staticmethod
    def cache_key(coordinate: Coordinate) -> str:
        return f"weather_{coordinate.latitude:.2f}_{coordinate.longitude:.2f}"

    def get_forecast(self, latitude: float, longitude: float) -> WeatherForecast:
        """
        予報を取得（キャッシュ優先）

        Raises:
            WeatherAPIError: 予報APIが失敗した場合
        """
        point = sanitize_coordinate(latitude, longitude, self.fallback)
        key = self.cache_key(point)

        if self.cache is not None:
            cached = self.cache.get(key, CacheKind.SHORT)
            if cached is not None:
                try:
                    return WeatherForecast.from_dict(cached)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Discarding malformed cached forecast {key}: {e}")
                    self.cache.remove(key)

        forecast = self.client.fetch_forecast(point.latitude, point.longitude, wind_points=self.wind_points)
        logger.info(
            f"Fetched forecast for ({point.latitude}, {point.longitude}): "
            f"{forecast.current.condition}, {forecast.current.temperature}"
        )

        if self.cache is not None:
            self.cache.set(key, forecast.to_dict())

        return forecast
