"""カスタム例外定義"""
from typing import Optional


class NearcastError(Exception):
    """nearcast基底例外"""

    pass


class HTTPError(NearcastError):
    """HTTP関連のエラー"""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class WeatherAPIError(HTTPError):
    """天気予報APIのエラー（非2xxレスポンス、不正なレスポンス形式）"""

    pass


class GeocodingError(NearcastError):
    """ジオコーディングエラー"""

    pass


class GeocodingCancelled(GeocodingError):
    """ジオコーディングが締め切りにより中断された"""

    pass


class GeometryParseError(NearcastError):
    """ジオメトリ解析エラー"""

    def __init__(self, reason: str, geometry: object = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.geometry = geometry


class StorageError(NearcastError):
    """ストレージ関連のエラー"""

    pass


class PersistentStoreUnavailable(StorageError):
    """永続ストアが利用できない（ヘッドレス環境など）"""

    pass


class QuotaExceededError(StorageError):
    """永続ストアの容量上限超過"""

    pass


class ConfigurationError(NearcastError):
    """設定エラー"""

    pass


class ValidationError(NearcastError):
    """バリデーションエラー"""

    pass
