"""Open-Meteo 予報APIクライアント"""

import threading
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from ....shared.exceptions.errors import ConfigurationError, HTTPError, WeatherAPIError
from ....shared.http.client import HTTPClient
from ....shared.logging.config import get_logger
from ....shared.utils.datetime_utils import hour_key, local_now, now_utc
from ..domain.conditions import uv_category, weather_condition, wind_direction
from ..domain.models import (
    CurrentWeather,
    DailyForecast,
    HourlyForecast,
    UVIndex,
    WeatherForecast,
    WindInfo,
)

logger = get_logger(__name__)

HOURLY_FIELDS = (
    "temperature_2m",
    "weathercode",
    "windspeed_10m",
    "winddirection_10m",
    "precipitation_probability",
    "uv_index",
    "relative_humidity_2m",
    "surface_pressure",
)

DAILY_FIELDS = (
    "temperature_2m_max",
    "temperature_2m_min",
    "weathercode",
    "precipitation_probability_max",
    "uv_index_max",
)

# 時間別予報として返す時間数
HOURLY_WINDOW = 24


class OpenMeteoClient:
    """
    Open-Meteo 予報APIクライアント

    - 1地点の予報取得（同一URLの同時リクエストは1本にまとめる）
    - 複数地点の一括取得（座標をカンマ区切りで1リクエスト）
    - レスポンスを現在・時間別・日別の予報に変換
    """

    def __init__(
        self,
        http_client: HTTPClient,
        base_url: str = "https://api.open-meteo.com/v1",
        api_key: Optional[str] = None,
        forecast_days: int = 14,
        now_func: Callable[[], datetime] = now_utc,
    ) -> None:
        """
        Args:
            http_client: HTTPクライアント
            base_url: APIのベースURL
            api_key: APIキー（商用エンドポイントの場合は必須）
            forecast_days: 予報日数
            now_func: 現在時刻（UTC）を返す関数

        Raises:
            ConfigurationError: 商用エンドポイントでAPIキーが未設定の場合
        """
        if "customer-" in base_url and not api_key:
            raise ConfigurationError(f"API key is required for {base_url}")

        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.forecast_days = forecast_days
        self._now_func = now_func

        self._in_flight: dict[str, Future] = {}
        self._in_flight_lock = threading.Lock()

        logger.info(f"OpenMeteoClient initialized: base_url={self.base_url}, forecast_days={forecast_days}")

    @property
    def forecast_url(self) -> str:
        return f"{self.base_url}/forecast"

    def build_params(self, latitude: Any, longitude: Any) -> dict[str, Any]:
        """予報リクエストのクエリパラメータ"""
        params: dict[str, Any] = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": ",".join(HOURLY_FIELDS),
            "daily": ",".join(DAILY_FIELDS),
            "timezone": "auto",
            "forecast_days": self.forecast_days,
        }
        if self.api_key:
            params["apikey"] = self.api_key
        return params

    def fetch_forecast(self, latitude: float, longitude: float, wind_points: int = 8) -> WeatherForecast:
        """
        1地点の予報を取得

        Args:
            latitude: 緯度
            longitude: 経度
            wind_points: 風向の分解能（8または16方位）

        Returns:
            WeatherForecast: 予報

        Raises:
            WeatherAPIError: 非2xxレスポンス、または不正なレスポンス形式の場合
        """
        url = self.http_client.build_url(self.forecast_url, self.build_params(latitude, longitude))
        payload = self._request_shared(url)
        return self.parse_forecast(payload, wind_points=wind_points)

    def fetch_forecast_batch(
        self,
        latitudes: Sequence[float],
        longitudes: Sequence[float],
        wind_points: int = 8,
    ) -> list[WeatherForecast]:
        """
        複数地点の予報を1リクエストで取得

        Args:
            latitudes: 緯度のリスト
            longitudes: 経度のリスト（latitudesと同じ長さ）
            wind_points: 風向の分解能

        Returns:
            list[WeatherForecast]: 入力と同じ順序の予報

        Raises:
            ValueError: 緯度と経度の件数が一致しない場合
            WeatherAPIError: 非2xxレスポンス、または件数が一致しない場合
        """
        if len(latitudes) != len(longitudes):
            raise ValueError("latitudes and longitudes must have the same length")
        if not latitudes:
            return []

        params = self.build_params(
            ",".join(str(v) for v in latitudes),
            ",".join(str(v) for v in longitudes),
        )
        url = self.http_client.build_url(self.forecast_url, params)

        payload = self._request(url)
        # 1地点の場合はオブジェクト、複数地点の場合は配列が返る
        entries = payload if isinstance(payload, list) else [payload]
        if len(entries) != len(latitudes):
            raise WeatherAPIError(
                f"Batch forecast returned {len(entries)} entries for {len(latitudes)} locations"
            )

        logger.debug(f"Fetched batch forecast for {len(entries)} locations")
        return [self.parse_forecast(entry, wind_points=wind_points) for entry in entries]

    def _request_shared(self, url: str) -> Any:
        """
        同一URLへの同時リクエストを1本にまとめる

        最初の呼び出し元が実際にリクエストし、後続はそのFutureの結果を待つ。
        完了（成功・失敗とも）した時点でエントリを削除する
        """
        with self._in_flight_lock:
            future = self._in_flight.get(url)
            is_owner = future is None
            if is_owner:
                future = Future()
                self._in_flight[url] = future

        if not is_owner:
            logger.debug(f"Joining in-flight request: {url}")
            return future.result()

        try:
            payload = self._request(url)
        except BaseException as e:
            self._release(url)
            future.set_exception(e)
            raise

        self._release(url)
        future.set_result(payload)
        return payload

    def _release(self, url: str) -> None:
        with self._in_flight_lock:
            self._in_flight.pop(url, None)

    def in_flight_count(self) -> int:
        with self._in_flight_lock:
            return len(self._in_flight)

    def _request(self, url: str) -> Any:
        try:
            return self.http_client.get_json(url)
        except HTTPError as e:
            raise WeatherAPIError(f"Open-Meteo request failed: {e}", status_code=e.status_code) from e

    # レスポンス変換 -------------------------------------------------------

    def parse_forecast(self, payload: Any, wind_points: int = 8) -> WeatherForecast:
        """
        APIレスポンスを予報に変換

        Raises:
            WeatherAPIError: hourly/dailyが欠けている場合
        """
        if not isinstance(payload, dict):
            raise WeatherAPIError("Invalid response from Open-Meteo API")

        hourly = payload.get("hourly")
        daily = payload.get("daily")
        if not isinstance(hourly, dict) or not isinstance(daily, dict) or not hourly.get("time"):
            raise WeatherAPIError("Invalid response from Open-Meteo API")

        timezone_name = payload.get("timezone") or "UTC"
        now = local_now(timezone_name, payload.get("utc_offset_seconds"), self._now_func())
        times: list[str] = hourly["time"]
        current_index = self.current_hour_index(times, now)

        current = self._current_weather(hourly, current_index, wind_points)

        hourly_forecast = tuple(
            self._hourly_entry(hourly, i)
            for i in range(current_index, min(current_index + HOURLY_WINDOW, len(times)))
        )

        today = now.date().isoformat()
        today_hourly = tuple(self._hourly_entry(hourly, i) for i, t in enumerate(times) if t.startswith(today))

        daily_forecast = []
        for i, date in enumerate(daily.get("time") or []):
            # 今日以前の日付は除外（ISO形式の日付は文字列比較で順序が一致する）
            if date <= today:
                continue
            daily_forecast.append(self._daily_entry(daily, hourly, i, date))

        return WeatherForecast(
            latitude=float(payload.get("latitude", 0.0)),
            longitude=float(payload.get("longitude", 0.0)),
            timezone=timezone_name,
            current=current,
            hourly=hourly_forecast,
            daily=tuple(daily_forecast),
            today_hourly=today_hourly,
        )

    @staticmethod
    def current_hour_index(times: Sequence[str], now: datetime) -> int:
        """
        現在のローカル時刻に対応する時間別データのインデックス

        一致する時刻がない場合は時（0-23）をインデックスとして使う
        """
        key = hour_key(now)
        for i, t in enumerate(times):
            if t.startswith(key):
                return i

        logger.debug(f"No hourly entry for {key}, using hour-of-day index")
        return now.hour if now.hour < len(times) else 0

    def _current_weather(self, hourly: dict[str, Any], i: int, wind_points: int) -> CurrentWeather:
        code = _at(hourly.get("weathercode"), i)
        uv = _at(hourly.get("uv_index"), i)
        condition = weather_condition(code)
        return CurrentWeather(
            time=hourly["time"][i],
            temperature=_at(hourly.get("temperature_2m"), i),
            condition=condition.condition,
            icon=condition.icon,
            wind=WindInfo(
                speed=_at(hourly.get("windspeed_10m"), i),
                direction=wind_direction(_at(hourly.get("winddirection_10m"), i), wind_points),
            ),
            precipitation=_at(hourly.get("precipitation_probability"), i),
            uv_index=UVIndex(value=uv, category=uv_category(uv)),
            humidity=_at(hourly.get("relative_humidity_2m"), i),
            pressure=_at(hourly.get("surface_pressure"), i),
        )

    def _hourly_entry(self, hourly: dict[str, Any], i: int) -> HourlyForecast:
        condition = weather_condition(_at(hourly.get("weathercode"), i))
        return HourlyForecast(
            time=hourly["time"][i],
            temperature=_at(hourly.get("temperature_2m"), i),
            condition=condition.condition,
            icon=condition.icon,
            precipitation=_at(hourly.get("precipitation_probability"), i),
            uv_index=_at(hourly.get("uv_index"), i),
        )

    def _daily_entry(self, daily: dict[str, Any], hourly: dict[str, Any], i: int, date: str) -> DailyForecast:
        condition = weather_condition(_at(daily.get("weathercode"), i))
        breakdown = tuple(
            self._hourly_entry(hourly, j) for j, t in enumerate(hourly["time"]) if t.startswith(date)
        )
        return DailyForecast(
            date=date,
            condition=condition.condition,
            icon=condition.icon,
            temp_min=_at(daily.get("temperature_2m_min"), i),
            temp_max=_at(daily.get("temperature_2m_max"), i),
            precipitation=_at(daily.get("precipitation_probability_max"), i),
            uv_index_max=_at(daily.get("uv_index_max"), i),
            hourly=breakdown,
        )


def _at(series: Optional[Sequence[Any]], index: int) -> Optional[float]:
    """系列のindex番目の値（欠損はNone）"""
    if not series or index >= len(series):
        return None
    value = series[index]
    if value is None:
        return None
    return float(value)
