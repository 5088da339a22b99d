"""周辺天気サービスのテスト"""

import math
import random

import pytest

from nearcast.features.geocoding.services.geocoding_service import GeocodingService
from nearcast.features.nearby.domain.models import SampledPoint
from nearcast.features.nearby.services.nearby_weather_service import CenterLabel, NearbyWeatherService
from nearcast.features.nearby.services.point_sampler import PointSampler
from nearcast.features.weather.providers.open_meteo import OpenMeteoClient
from nearcast.shared.http.client import HTTPClient
from nearcast.shared.utils.geo import Coordinate

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
KM_PER_DEGREE_LAT = 6371.0 * math.pi / 180.0

JAKARTA = Coordinate(latitude=-6.2088, longitude=106.8456)


@pytest.fixture()
def weather_client(fixed_now) -> OpenMeteoClient:
    return OpenMeteoClient(HTTPClient(max_retries=0), now_func=lambda: fixed_now)


@pytest.fixture()
def make_service(weather_client, cache, region_dataset):
    services = []

    def build(geocoding=True, dataset=None, **kwargs) -> NearbyWeatherService:
        geocoder = GeocodingService(dataset=dataset or region_dataset) if geocoding else None
        options = {"cache": cache, "rng": random.Random(3)}
        options.update(kwargs)
        service = NearbyWeatherService(
            sampler=PointSampler(random.Random(5)),
            weather_client=weather_client,
            geocoding_service=geocoder,
            **options,
        )
        services.append(service)
        return service

    yield build

    for service in services:
        service.close()


@pytest.fixture()
def batch_response(forecast_payload, requests_mock):
    """指定件数の一括予報レスポンスを登録する"""

    def register(count: int = 8):
        return requests_mock.get(FORECAST_URL, json=[forecast_payload() for _ in range(count)])

    return register


def _north_of(center: Coordinate, km: float) -> SampledPoint:
    return SampledPoint(latitude=center.latitude + km / KM_PER_DEGREE_LAT, longitude=center.longitude)


def _east_of(center: Coordinate, km: float) -> SampledPoint:
    delta = km / (KM_PER_DEGREE_LAT * math.cos(math.radians(center.latitude)))
    return SampledPoint(latitude=center.latitude, longitude=center.longitude + delta)


class TestNaming:
    """距離による表示名"""

    @pytest.mark.parametrize(
        "point_factory,km,expected",
        [
            (_north_of, 3, "Jakarta"),
            (_east_of, 12, "East of Jakarta"),
            (_north_of, 12, "North of Jakarta"),
            (_north_of, 19.9, "North of Jakarta"),
            (_north_of, 35, "35km from Jakarta"),
            (_north_of, 35.6, "36km from Jakarta"),
        ],
    )
    def test_distance_buckets(self, make_service, point_factory, km: float, expected: str) -> None:
        """5km未満は中心名、20km以下は方角、それ以上は距離"""
        service = make_service(geocoding=False)
        label = CenterLabel(name="Jakarta", country="Indonesia")

        assert service.name_for(JAKARTA, label, point_factory(JAKARTA, km)) == expected

    def test_generic_name_without_label(self, make_service) -> None:
        """中心名がない場合は汎用名"""
        service = make_service(geocoding=False)

        assert service.name_for(JAKARTA, None, _north_of(JAKARTA, 35)) == "35km from this location"
        assert service.name_for(JAKARTA, None, _north_of(JAKARTA, 1)) == "this location"


class TestNearbyWeather:
    """周辺天気の取得"""

    def test_returns_named_locations(self, make_service, batch_response) -> None:
        """中心の逆ジオコーディング結果を使って名前を付ける"""
        mock = batch_response(8)
        service = make_service()

        locations = service.get_nearby_weather(JAKARTA.latitude, JAKARTA.longitude, 13)

        assert 4 <= len(locations) <= 8
        assert all(location.country == "Indonesia" for location in locations)
        assert all("Jakarta" in location.city for location in locations)
        assert all(location.weather_data.condition == "Cloudy" for location in locations)
        assert mock.call_count == 1
        assert len(mock.last_request.qs["latitude"][0].split(",")) == 8

    def test_second_call_is_cached(self, make_service, batch_response, cache) -> None:
        """同じ中心・ズームの2回目はリクエストせずキャッシュから返す"""
        mock = batch_response(8)
        service = make_service()

        first = service.get_nearby_weather(JAKARTA.latitude, JAKARTA.longitude, 13)
        second = service.get_nearby_weather(JAKARTA.latitude, JAKARTA.longitude, 13)

        assert second == first
        assert mock.call_count == 1
        assert cache.get("nearby_weather_-6.21_106.85_13") is not None

    def test_cache_key_format(self) -> None:
        """キャッシュキーは小数2桁、整数のズームは整数表記"""
        assert NearbyWeatherService.cache_key(JAKARTA, 13) == "nearby_weather_-6.21_106.85_13"
        assert NearbyWeatherService.cache_key(JAKARTA, 13.0) == "nearby_weather_-6.21_106.85_13"
        assert NearbyWeatherService.cache_key(JAKARTA, 13.5) == "nearby_weather_-6.21_106.85_13.5"

    def test_density_filter_keeps_minimum(self, make_service, batch_response) -> None:
        """表示確率0でも先頭の4地点は残る"""
        batch_response(8)
        service = make_service(geocoding=False, display_probability=0.0)

        assert len(service.get_nearby_weather(JAKARTA.latitude, JAKARTA.longitude, 13)) == 4

    def test_density_filter_keeps_all(self, make_service, batch_response) -> None:
        """表示確率1なら全地点を返す"""
        batch_response(6)
        service = make_service(geocoding=False, display_probability=1.0)

        assert len(service.get_nearby_weather(JAKARTA.latitude, JAKARTA.longitude, 16)) == 6

    def test_weather_failure_returns_empty(self, make_service, requests_mock, cache) -> None:
        """予報APIの失敗時は空リストを返し、キャッシュしない"""
        requests_mock.get(FORECAST_URL, status_code=500)
        service = make_service()

        assert service.get_nearby_weather(JAKARTA.latitude, JAKARTA.longitude, 13) == []
        assert cache.get("nearby_weather_-6.21_106.85_13") is None

    def test_geocoding_timeout_uses_generic_name(
        self, make_service, batch_response, dataset_factory, region_dataset
    ) -> None:
        """逆ジオコーディングが締め切りに間に合わなければ汎用名を使う"""
        batch_response(8)
        slow = dataset_factory(
            countries=region_dataset.countries,
            sub_regions=region_dataset.sub_regions,
            page_delay=0.5,
        )
        service = make_service(dataset=slow, geocode_timeout=0.05)

        locations = service.get_nearby_weather(JAKARTA.latitude, JAKARTA.longitude, 13)

        assert len(locations) >= 4
        assert all("this location" in location.city for location in locations)
        assert all(location.country == "" for location in locations)

    def test_geocoding_failure_uses_generic_name(self, make_service, batch_response, dataset_factory) -> None:
        """逆ジオコーディングが失敗しても天気は返す"""
        batch_response(8)
        service = make_service(dataset=dataset_factory(failing=("fetch_sub_regions_page",)))

        locations = service.get_nearby_weather(JAKARTA.latitude, JAKARTA.longitude, 13)

        assert locations
        assert all("this location" in location.city for location in locations)

    def test_invalid_center_uses_fallback(self, make_service, batch_response, cache) -> None:
        """不正な中心座標はジャカルタとして扱う"""
        batch_response(8)
        service = make_service(geocoding=False)

        assert service.get_nearby_weather(float("nan"), 400, 13)
        assert cache.get("nearby_weather_-6.21_106.85_13") is not None
