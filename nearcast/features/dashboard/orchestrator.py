"""ダッシュボードオーケストレーター"""

import os
from typing import Optional

from ...infrastructure.config.settings import Settings
from ...infrastructure.gcp.secret_manager import SecretManagerClient
from ...shared.exceptions.errors import ConfigurationError, PersistentStoreUnavailable
from ...shared.http.client import HTTPClient
from ...shared.logging.config import get_logger
from ...shared.utils.datetime_utils import hours, minutes
from ...shared.utils.geo import Coordinate
from ..cache.services.cache_service import CacheService
from ..cache.stores.base import PersistentStore
from ..cache.stores.json_file_store import JsonFileStore
from ..geocoding.providers.base import RegionDataset
from ..geocoding.providers.firestore_region_dataset import FirestoreRegionDataset
from ..geocoding.services.geocoding_service import GeocodingService
from ..location.services.geolocation_service import GeolocationService, ip_locator
from ..location.services.preferences_service import PreferencesService
from ..nearby.services.nearby_weather_service import NearbyWeatherService
from ..nearby.services.point_sampler import PointSampler
from ..storage.clients.firestore_client import FirestoreClient
from ..weather.providers.open_meteo import OpenMeteoClient
from ..weather.services.weather_service import WeatherService

logger = get_logger(__name__)


class DashboardOrchestrator:
    """
    ダッシュボードオーケストレーター

    各Featureを統合し、依存性注入を行う
    """

    def __init__(
        self,
        settings: Settings,
        region_dataset: Optional[RegionDataset] = None,
        persistent_store: Optional[PersistentStore] = None,
        http_client: Optional[HTTPClient] = None,
    ) -> None:
        """
        Args:
            settings: アプリケーション設定
            region_dataset: 地域データセット（Noneの場合はFirestoreから作成）
            persistent_store: 永続ストア（Noneの場合は設定のパスから作成）
            http_client: HTTPクライアント（Noneの場合は設定から作成）
        """
        self.settings = settings
        self.fallback = Coordinate(latitude=settings.default_latitude, longitude=settings.default_longitude)

        # Secret Managerクライアントを初期化
        self.secret_manager: Optional[SecretManagerClient] = None
        if not settings.is_development and settings.gcp_project_id:
            self.secret_manager = SecretManagerClient(settings.gcp_project_id)

        # HTTPクライアントを初期化
        self.http_client = http_client or HTTPClient(
            timeout=settings.http_timeout,
            max_retries=settings.http_retry,
        )

        # キャッシュを初期化
        self.persistent_store = persistent_store or self._create_persistent_store()
        self.cache = CacheService(
            persistent_store=self.persistent_store,
            short_expiry_ms=minutes(settings.cache_short_expiry_minutes),
            long_expiry_ms=hours(settings.cache_long_expiry_hours),
            size_threshold_bytes=settings.cache_size_threshold_bytes,
            stale_age_ms=minutes(settings.cache_stale_age_minutes),
        )

        # 天気予報
        self.weather_client = OpenMeteoClient(
            http_client=self.http_client,
            base_url=settings.open_meteo_base_url,
            api_key=self._resolve_open_meteo_api_key(),
            forecast_days=settings.forecast_days,
        )
        self.weather_service = WeatherService(self.weather_client, cache=self.cache, fallback=self.fallback)

        # ジオコーディング（地域データセットがない場合は無効）
        self.region_dataset = region_dataset or self._create_region_dataset()
        self.geocoding_service: Optional[GeocodingService] = None
        if self.region_dataset is not None:
            self.geocoding_service = GeocodingService(
                dataset=self.region_dataset,
                cache=self.cache,
                max_distance_km=settings.geocoding_max_distance_km,
                page_size=settings.geocoding_page_size,
                max_pages=settings.geocoding_max_pages,
                fallback=self.fallback,
            )

        # 周辺天気
        self.nearby_weather_service = NearbyWeatherService(
            sampler=PointSampler(),
            weather_client=self.weather_client,
            geocoding_service=self.geocoding_service,
            cache=self.cache,
            geocode_timeout=settings.geocode_timeout,
            fallback=self.fallback,
        )

        # 位置・設定
        locator = ip_locator(self.http_client, settings.geolocation_url) if settings.geolocation_url else None
        self.geolocation_service = GeolocationService(
            locator=locator,
            fallback=self.fallback,
            timeout=settings.geolocation_timeout,
        )
        self.preferences_service = PreferencesService(self.persistent_store)

        logger.info("DashboardOrchestrator initialized")

    def require_geocoding(self) -> GeocodingService:
        """
        ジオコーディングサービスを取得

        Raises:
            ConfigurationError: 地域データセットが設定されていない場合
        """
        if self.geocoding_service is None:
            raise ConfigurationError("Region dataset is not configured (set GCP_PROJECT_ID)")
        return self.geocoding_service

    def close(self) -> None:
        """リソースを解放"""
        self.nearby_weather_service.close()
        self.http_client.close()
        logger.info("DashboardOrchestrator closed")

    def _create_persistent_store(self) -> Optional[PersistentStore]:
        """
        永続ストアを作成

        Returns:
            Optional[PersistentStore]: 永続ストア（利用できない場合はNone、メモリのみで動作）
        """
        if not self.settings.cache_store_path:
            logger.info("Persistent cache store is disabled; using memory only")
            return None

        try:
            return JsonFileStore(
                self.settings.cache_store_path,
                quota_bytes=self.settings.cache_store_quota_bytes,
            )
        except PersistentStoreUnavailable as e:
            logger.warning(f"Persistent store unavailable, using memory only: {e}")
            return None

    def _create_region_dataset(self) -> Optional[RegionDataset]:
        """
        Firestoreの地域データセットを作成

        Returns:
            Optional[RegionDataset]: 地域データセット（プロジェクトID未設定の場合はNone）
        """
        if not self.settings.gcp_project_id:
            logger.warning("GCP project id is not set; geocoding is disabled")
            return None

        if self.settings.firestore_emulator_host:
            os.environ.setdefault("FIRESTORE_EMULATOR_HOST", self.settings.firestore_emulator_host)

        firestore_client = FirestoreClient(
            project_id=self.settings.gcp_project_id,
            database_id=self.settings.firestore_database_id,
        )
        return FirestoreRegionDataset(
            firestore_client,
            country_collection=self.settings.country_collection,
            country_grid_collection=self.settings.country_grid_collection,
            sub_region_collection=self.settings.sub_region_collection,
            local_region_collection=self.settings.local_region_collection,
            scan_page_size=self.settings.geocoding_page_size,
            scan_max_pages=self.settings.geocoding_max_pages,
        )

    def _resolve_open_meteo_api_key(self) -> Optional[str]:
        """
        Open-Meteo API Keyを取得

        Raises:
            ConfigurationError: 商用APIの設定でAPI Keyが取得できない場合
        """
        api_key = self.settings.open_meteo_api_key

        if not api_key and self.settings.requires_open_meteo_api_key and self.secret_manager:
            # Secret Managerから取得
            try:
                api_key = self.secret_manager.get_secret(self.settings.open_meteo_api_key_secret_name)
            except ConfigurationError as e:
                logger.error(f"Failed to get Open-Meteo API key from Secret Manager: {e}")
                raise

        if not api_key and self.settings.requires_open_meteo_api_key:
            raise ConfigurationError("Open-Meteo API key is required for the customer API")

        return api_key
