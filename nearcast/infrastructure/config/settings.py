"""アプリケーション設定（Pydantic Settings）"""
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """アプリケーション設定"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = Field(
        default="nearcast",
        description="プロジェクト名",
    )
    environment: str = Field(
        default="development",
        description="環境 (development, staging, production)",
    )

    # GCP
    gcp_project_id: Optional[str] = Field(
        default=None,
        description="GCPプロジェクトID（地域データセットとSecret Managerに必要）",
    )

    # Firestore（地域データセット）
    firestore_database_id: str = Field(
        default="(default)",
        description="FirestoreデータベースID",
    )
    firestore_emulator_host: Optional[str] = Field(
        default=None,
        description="Firestoreエミュレータのホスト（例: localhost:8080）",
    )
    country_collection: str = Field(
        default="country_name",
        description="国名コレクション",
    )
    country_grid_collection: str = Field(
        default="country_osm_grid",
        description="国ジオメトリ（OSMグリッド）コレクション",
    )
    sub_region_collection: str = Field(
        default="country_sub_region_name",
        description="準行政区域（ISO 3166-2）コレクション",
    )
    local_region_collection: str = Field(
        default="local_regions",
        description="ローカル地域・都市コレクション",
    )

    # Open-Meteo
    open_meteo_base_url: str = Field(
        default="https://api.open-meteo.com/v1",
        description="Open-Meteo APIのベースURL",
    )
    open_meteo_api_key: Optional[str] = Field(
        default=None,
        description="Open-Meteo API Key（customer-api利用時は必須、ローカル開発用）",
    )
    open_meteo_api_key_secret_name: str = Field(
        default="open-meteo-api-key",
        description="Open-Meteo API KeyのSecret Manager名",
    )
    forecast_days: int = Field(
        default=14,
        description="予報取得日数",
    )

    # HTTP
    http_timeout: float = Field(
        default=10.0,
        description="HTTPタイムアウト（秒）",
    )
    http_retry: int = Field(
        default=2,
        description="HTTPリトライ回数",
    )

    # Cache
    cache_short_expiry_minutes: float = Field(
        default=10,
        description="短期キャッシュ（天気）の有効期限（分）",
    )
    cache_long_expiry_hours: float = Field(
        default=24,
        description="長期キャッシュ（位置・ジオコーディング）の有効期限（時間）",
    )
    cache_size_threshold_bytes: int = Field(
        default=4 * 1024 * 1024,
        description="永続キャッシュの事前削除を開始するサイズ（バイト）",
    )
    cache_stale_age_minutes: float = Field(
        default=60,
        description="事前削除の対象とするエントリの経過時間（分）",
    )
    cache_store_path: Optional[str] = Field(
        default=".nearcast/storage.json",
        description="永続キーバリューストアのファイルパス（空の場合はメモリのみ）",
    )
    cache_store_quota_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="永続キーバリューストアの容量上限（バイト）",
    )

    # Location
    default_latitude: float = Field(
        default=-6.2088,
        description="フォールバック位置の緯度（ジャカルタ）",
    )
    default_longitude: float = Field(
        default=106.8456,
        description="フォールバック位置の経度（ジャカルタ）",
    )
    geolocation_timeout: float = Field(
        default=5.0,
        description="現在地取得のタイムアウト（秒）",
    )
    geolocation_url: Optional[str] = Field(
        default=None,
        description="IPアドレスによる位置推定APIのURL（未設定の場合は常にフォールバック位置）",
    )

    # Geocoding
    geocode_timeout: float = Field(
        default=2.0,
        description="周辺天気の中心点ジオコーディングのタイムアウト（秒）",
    )
    geocoding_max_distance_km: float = Field(
        default=1000.0,
        description="逆ジオコーディングの最大探索半径（km）",
    )
    geocoding_page_size: int = Field(
        default=1000,
        description="準行政区域のページサイズ",
    )
    geocoding_max_pages: int = Field(
        default=10,
        description="準行政区域のページ取得上限",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="コンソールログの形式（text または json）",
    )
    gcp_logging_enabled: bool = Field(
        default=False,
        description="Cloud Loggingを有効にするか",
    )

    # Server
    port: int = Field(
        default=8080,
        description="HTTPサーバーのポート番号",
    )

    @property
    def is_production(self) -> bool:
        """本番環境かどうか"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """開発環境かどうか"""
        return self.environment.lower() == "development"

    @property
    def requires_open_meteo_api_key(self) -> bool:
        """商用（customer）APIを利用する設定かどうか"""
        return "customer-" in self.open_meteo_base_url
