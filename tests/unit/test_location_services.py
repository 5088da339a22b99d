"""現在地・ユーザー設定のテスト"""

import threading

import pytest

from nearcast.features.cache.stores.memory_store import MemoryStore
from nearcast.features.location.domain.models import SavedLocation, UserPreferences
from nearcast.features.location.services.geolocation_service import GeolocationService, ip_locator
from nearcast.features.location.services.preferences_service import PreferencesService, convert_temperature
from nearcast.shared.exceptions.errors import StorageError, ValidationError
from nearcast.shared.http.client import HTTPClient
from nearcast.shared.utils.geo import DEFAULT_COORDINATE, Coordinate

GEO_URL = "https://geo.example.test/json"


class TestGeolocation:
    """一度きりの現在地取得"""

    def test_success(self) -> None:
        """locatorの結果を返す"""
        result = GeolocationService(locator=lambda: (35.68, 139.76)).get_current_position()

        assert result.success
        assert not result.is_fallback
        assert result.coordinates == Coordinate(latitude=35.68, longitude=139.76)

    def test_timeout_falls_back(self) -> None:
        """応答がなければタイムアウト後にフォールバック"""
        release = threading.Event()

        def slow_locator():
            release.wait(timeout=2)
            return (35.68, 139.76)

        try:
            result = GeolocationService(locator=slow_locator, timeout=0.05).get_current_position()
        finally:
            release.set()

        assert not result.success
        assert result.is_fallback
        assert result.coordinates == DEFAULT_COORDINATE
        assert "timed out" in result.error

    def test_locator_error_falls_back(self) -> None:
        """locatorの例外はフォールバック"""

        def denied():
            raise PermissionError("User denied Geolocation")

        result = GeolocationService(locator=denied).get_current_position()

        assert result.is_fallback
        assert "User denied Geolocation" in result.error

    def test_invalid_coordinates_fall_back(self) -> None:
        """範囲外の座標はフォールバック"""
        fallback = Coordinate(latitude=1.0, longitude=2.0)
        result = GeolocationService(locator=lambda: (120.0, 0.0), fallback=fallback).get_current_position()

        assert result.is_fallback
        assert result.coordinates == fallback

    def test_no_locator(self) -> None:
        """locatorがなければ常にフォールバック"""
        result = GeolocationService().get_current_position()

        assert result.is_fallback
        assert "not supported" in result.error

    def test_ip_locator(self, requests_mock) -> None:
        """IP位置推定のレスポンス（latitude/longitude または lat/lon）"""
        requests_mock.get(GEO_URL, [{"json": {"latitude": -6.9, "longitude": 107.6}}, {"json": {"lat": 1, "lon": 2}}])
        locate = ip_locator(HTTPClient(max_retries=0), GEO_URL)

        assert locate() == (-6.9, 107.6)
        assert locate() == (1.0, 2.0)

    @pytest.mark.parametrize("response", [{"json": {"city": "x"}}, {"json": [1, 2]}, {"status_code": 429}])
    def test_ip_locator_errors(self, requests_mock, response: dict) -> None:
        """座標がない・形式不正・HTTPエラーはValidationError"""
        requests_mock.get(GEO_URL, **response)
        locate = ip_locator(HTTPClient(max_retries=0), GEO_URL)

        with pytest.raises(ValidationError):
            locate()

    def test_ip_locator_failure_becomes_fallback(self, requests_mock) -> None:
        """IP位置推定の失敗はフォールバック結果になる"""
        requests_mock.get(GEO_URL, status_code=500)
        service = GeolocationService(locator=ip_locator(HTTPClient(max_retries=0), GEO_URL))

        assert service.get_current_position().is_fallback


class TestPreferences:
    """ユーザー設定"""

    def test_defaults(self) -> None:
        """保存がなければデフォルト（摂氏、地点なし）"""
        assert PreferencesService(MemoryStore()).load() == UserPreferences(temp_unit="C", location=None)
        assert PreferencesService(None).load() == UserPreferences()

    def test_save_and_load(self) -> None:
        """部分更新して保存し、次回読み込める"""
        store = MemoryStore()
        service = PreferencesService(store)
        location = SavedLocation(city="Bandung", country="Indonesia", coordinates=Coordinate(-6.9175, 107.6191))

        service.save(location=location)
        service.save(temp_unit="F")

        loaded = PreferencesService(store).load()
        assert loaded.temp_unit == "F"
        assert loaded.location == location

        cleared = service.save(clear_location=True)
        assert cleared.location is None
        assert cleared.temp_unit == "F"

    def test_invalid_location_is_rejected(self) -> None:
        """範囲外の座標の地点は作成できない"""
        with pytest.raises(ValueError):
            SavedLocation(city="x", country="", coordinates=Coordinate(999.0, -500.0))

    def test_invalid_unit_is_rejected(self) -> None:
        """不正な温度単位はValueError"""
        with pytest.raises(ValueError):
            PreferencesService(MemoryStore()).save(temp_unit="K")

    @pytest.mark.parametrize(
        "stored",
        [
            "{broken",
            '{"temp_unit": "K"}',
            '{"location": {"city": "x"}}',
            "[]",
            '{"location": {"city": "x", "coordinates": {"latitude": NaN, "longitude": 0}}}',
            '{"location": {"city": "x", "coordinates": {"latitude": 999, "longitude": -500}}}',
        ],
    )
    def test_corrupt_preferences_fall_back_to_defaults(self, stored: str) -> None:
        """壊れた設定はデフォルトとして扱う"""
        store = MemoryStore()
        store.set_item(PreferencesService.STORAGE_KEY, stored)

        assert PreferencesService(store).load() == UserPreferences()

    def test_clear(self) -> None:
        """設定を削除する"""
        store = MemoryStore()
        service = PreferencesService(store)
        service.save(temp_unit="F")

        service.clear()

        assert store.get_item(PreferencesService.STORAGE_KEY) is None
        assert service.load().temp_unit == "C"

    def test_storage_failure_is_not_raised(self) -> None:
        """ストアへの書き込み失敗は例外にしない"""

        class FullStore(MemoryStore):
            def set_item(self, key: str, value: str) -> None:
                raise StorageError("quota")

        assert PreferencesService(FullStore()).save(temp_unit="F").temp_unit == "F"


@pytest.mark.parametrize(
    "value,unit,expected",
    [(0, "F", 32.0), (100, "F", 212.0), (27.56, "F", 81.6), (27.56, "C", 27.6), (-40, "F", -40.0), (None, "F", None)],
)
def test_convert_temperature(value, unit: str, expected) -> None:
    """摂氏から表示単位への変換"""
    assert convert_temperature(value, unit) == expected


def test_convert_temperature_rejects_unknown_unit() -> None:
    """不明な単位はValueError"""
    with pytest.raises(ValueError):
        convert_temperature(10, "K")
