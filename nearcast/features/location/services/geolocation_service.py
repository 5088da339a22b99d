"""現在地の取得（タイムアウト時はフォールバック位置）"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Optional

from ....shared.exceptions.errors import HTTPError, ValidationError
from ....shared.http.client import HTTPClient
from ....shared.logging.config import get_logger
from ....shared.utils.geo import DEFAULT_COORDINATE, Coordinate, is_valid_coordinate
from ..domain.models import GeolocationResult

logger = get_logger(__name__)

Locator = Callable[[], tuple[float, float]]


class GeolocationService:
    """
    一度きりの現在地取得

    locator が失敗した場合、または timeout 秒以内に応答しない場合は
    フォールバック位置を返す（例外は送出しない）
    """

    def __init__(
        self,
        locator: Optional[Locator] = None,
        fallback: Optional[Coordinate] = None,
        timeout: float = 5.0,
    ) -> None:
        """
        Args:
            locator: (緯度, 経度) を返す関数（Noneの場合は常にフォールバック）
            fallback: フォールバック位置（デフォルト: ジャカルタ）
            timeout: タイムアウト（秒）
        """
        self.locator = locator
        self.fallback = fallback or DEFAULT_COORDINATE
        self.timeout = timeout

    def get_current_position(self) -> GeolocationResult:
        """現在地を取得"""
        if self.locator is None:
            return self._fallback("Geolocation is not supported in this environment")

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="geolocation")
        try:
            future = executor.submit(self.locator)
            latitude, longitude = future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            return self._fallback(f"Geolocation timed out after {self.timeout}s")
        except Exception as e:
            return self._fallback(f"Geolocation failed: {e}")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if not is_valid_coordinate(latitude, longitude):
            return self._fallback(f"Geolocation returned invalid coordinates ({latitude}, {longitude})")

        logger.info(f"Current position: ({latitude}, {longitude})")
        return GeolocationResult(
            success=True,
            coordinates=Coordinate(latitude=float(latitude), longitude=float(longitude)),
        )

    def _fallback(self, error: str) -> GeolocationResult:
        logger.warning(f"{error}, using default location ({self.fallback.latitude}, {self.fallback.longitude})")
        return GeolocationResult(
            success=False,
            coordinates=self.fallback,
            error=error,
            is_fallback=True,
        )


def ip_locator(http_client: HTTPClient, url: str) -> Locator:
    """
    IPアドレスから現在地を推定するlocatorを生成

    レスポンスは latitude/longitude（または lat/lon）を含むJSONを想定

    Args:
        http_client: HTTPクライアント
        url: 位置推定APIのURL（例: https://ipapi.co/json/）
    """

    def locate() -> tuple[float, float]:
        try:
            data: Any = http_client.get_json(url)
        except HTTPError as e:
            raise ValidationError(f"Geolocation lookup failed: {e}") from e

        if not isinstance(data, dict):
            raise ValidationError("Geolocation response is not an object")

        latitude = data.get("latitude", data.get("lat"))
        longitude = data.get("longitude", data.get("lon"))
        if latitude is None or longitude is None:
            raise ValidationError("Geolocation response has no coordinates")

        return float(latitude), float(longitude)

    return locate
