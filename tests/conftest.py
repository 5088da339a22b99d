"""テスト共通のフィクスチャ"""

import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest

from nearcast.features.cache.services.cache_service import CacheService
from nearcast.features.cache.stores.memory_store import MemoryStore
from nearcast.features.geocoding.domain.models import (
    CountryGrid,
    CountryRecord,
    LocalRegionRecord,
)
from nearcast.features.geocoding.providers.base import RegionDataset
from nearcast.shared.exceptions.errors import StorageError

# 2025-02-13 15:30 (Asia/Jakarta, UTC+7)
FIXED_NOW = datetime(2025, 2, 13, 8, 30, tzinfo=timezone.utc)


class FakeClock:
    """エポックミリ秒を返す手動時計"""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeRegionDataset(RegionDataset):
    """メモリ上の地域データセット"""

    def __init__(
        self,
        countries: Optional[list[dict[str, Any]]] = None,
        grids: Optional[list[dict[str, Any]]] = None,
        sub_regions: Optional[list[dict[str, Any]]] = None,
        local_regions: Optional[list[dict[str, Any]]] = None,
        failing: tuple[str, ...] = (),
        page_delay: float = 0.0,
    ) -> None:
        self.countries = countries or []
        self.grids = grids or []
        self.sub_regions = sub_regions or []
        self.local_regions = local_regions or []
        self.failing = failing
        self.page_delay = page_delay
        self.pages_requested: list[int] = []

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise StorageError(f"{operation} unavailable")

    def fetch_sub_regions_page(self, page: int, page_size: int) -> list[dict[str, Any]]:
        self._check("fetch_sub_regions_page")
        self.pages_requested.append(page)
        if self.page_delay:
            time.sleep(self.page_delay)
        start = page * page_size
        return self.sub_regions[start : start + page_size]

    def fetch_country_grids(self) -> list[dict[str, Any]]:
        self._check("fetch_country_grids")
        return list(self.grids)

    def fetch_first_country(self) -> Optional[CountryRecord]:
        self._check("fetch_first_country")
        if not self.countries:
            return None
        first = sorted(self.countries, key=lambda c: c["country_code"])[0]
        return CountryRecord.from_row(first)

    def get_country(self, country_code: str) -> Optional[CountryRecord]:
        self._check("get_country")
        for row in self.countries:
            if row["country_code"] == country_code.lower():
                return CountryRecord.from_row(row)
        return None

    def get_country_grid(self, country_code: str) -> Optional[CountryGrid]:
        self._check("get_country_grid")
        for row in self.grids:
            if row["country_code"] == country_code.lower():
                return CountryGrid.from_row(row)
        return None

    def search_countries(self, query: str, limit: int) -> list[CountryRecord]:
        self._check("search_countries")
        needle = query.casefold()
        matches = [CountryRecord.from_row(r) for r in self.countries if needle in r["name"].casefold()]
        return sorted(matches, key=lambda c: c.name)[:limit]

    def search_local_regions(self, query: str, limit: int) -> list[LocalRegionRecord]:
        self._check("search_local_regions")
        needle = query.casefold()
        matches = [
            LocalRegionRecord.from_row(r)
            for r in self.local_regions
            if needle in r["name"].casefold() or needle in r.get("display_name", "").casefold()
        ]
        return sorted(matches, key=lambda r: r.importance, reverse=True)[:limit]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def cache(clock: FakeClock, memory_store: MemoryStore) -> CacheService:
    return CacheService(persistent_store=memory_store, time_func=clock)


@pytest.fixture()
def region_dataset() -> FakeRegionDataset:
    """インドネシアとマレーシアの最小データセット"""
    return FakeRegionDataset(
        countries=[
            {"country_code": "id", "name": "Indonesia", "default_language_code": "id"},
            {"country_code": "my", "name": "Malaysia", "default_language_code": "ms"},
        ],
        grids=[
            {
                "country_code": "id",
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[106.0, -7.0], [108.0, -7.0], [108.0, -5.0], [106.0, -5.0]]],
                },
            },
            {"country_code": "my", "geometry": "POINT(101.7 3.1)"},
        ],
        sub_regions=[
            {
                "sub_region_code": "ID-JK",
                "name": "Jakarta",
                "division_type": "province",
                "country_code": "id",
                "latitude": -6.2,
                "longitude": 106.85,
            },
            {
                "sub_region_code": "ID-JB",
                "name": "West Java",
                "division_type": "province",
                "country_code": "id",
                "latitude": -6.9,
                "longitude": 107.6,
            },
            {
                "sub_region_code": "MY-14",
                "name": "Kuala Lumpur",
                "division_type": "federal_territory",
                "country_code": "my",
                "latitude": 3.14,
                "longitude": 101.69,
            },
        ],
        local_regions=[
            {
                "id": "bogor",
                "name": "Bogor",
                "display_name": "Bogor, West Java, Indonesia",
                "type": "city",
                "country_code": "id",
                "country_name": "Indonesia",
                "latitude": -6.595,
                "longitude": 106.816,
                "importance": 0.6,
            },
        ],
    )


@pytest.fixture()
def forecast_payload() -> Callable[..., dict[str, Any]]:
    """Open-Meteo のレスポンスを生成する関数"""

    def build(
        latitude: float = -6.2,
        longitude: float = 106.85,
        start: date = date(2025, 2, 13),
        days: int = 3,
        timezone_name: str = "Asia/Jakarta",
        weathercode: int = 3,
    ) -> dict[str, Any]:
        hours = days * 24
        first = datetime(start.year, start.month, start.day)
        times = [(first + timedelta(hours=h)).strftime("%Y-%m-%dT%H:%M") for h in range(hours)]
        dates = [(start + timedelta(days=d)).isoformat() for d in range(days)]
        return {
            "latitude": latitude,
            "longitude": longitude,
            "timezone": timezone_name,
            "utc_offset_seconds": 25200,
            "hourly": {
                "time": times,
                "temperature_2m": [20.0 + (h % 24) * 0.5 for h in range(hours)],
                "weathercode": [weathercode] * hours,
                "windspeed_10m": [10.0] * hours,
                "winddirection_10m": [90.0] * hours,
                "precipitation_probability": [40] * hours,
                "uv_index": [6.5] * hours,
                "relative_humidity_2m": [80] * hours,
                "surface_pressure": [1008.5] * hours,
            },
            "daily": {
                "time": dates,
                "temperature_2m_max": [31.0 + d for d in range(days)],
                "temperature_2m_min": [24.0 + d for d in range(days)],
                "weathercode": [61] * days,
                "precipitation_probability_max": [70] * days,
                "uv_index_max": [11.0] * days,
            },
        }

    return build


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def dataset_factory() -> type[FakeRegionDataset]:
    return FakeRegionDataset
