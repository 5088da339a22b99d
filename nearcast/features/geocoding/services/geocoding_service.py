"""ジオコーディングサービス（地域データセットによる逆ジオコーディングと名前検索）"""

import math
import threading
from concurrent.futures import Future
from dataclasses import dataclass, replace
from typing import Optional

from ....shared.exceptions.errors import (
    GeocodingCancelled,
    GeocodingError,
    GeometryParseError,
    StorageError,
)
from ....shared.logging.config import get_logger
from ....shared.utils.geo import Coordinate, haversine_km, sanitize_coordinate
from ...cache.domain.models import CacheKind
from ...cache.services.cache_service import CacheService
from ..domain.divisions import importance_for, place_rank_for
from ..domain.geometry import representative_coordinate
from ..domain.models import (
    CountryRecord,
    GeocodingResult,
    LocalRegionRecord,
    SubRegionRecord,
    bounding_box,
)
from ..providers.base import RegionDataset
from ..providers.fallback_regions import search_fallback_regions

logger = get_logger(__name__)


@dataclass(frozen=True)
class NearestMatch:
    """逆ジオコーディングの各段階で見つかった最寄りの候補"""

    country_code: str
    distance_km: float
    sub_region: Optional[SubRegionRecord] = None
    country: Optional[CountryRecord] = None
    stage: str = "sub_region"


class GeocodingService:
    """
    ジオコーディングサービス

    逆ジオコーディングは以下の順に候補を探す:
    1. 準行政区域（ページング、Haversine距離の線形探索）
    2. 国ジオメトリの代表座標
    3. 先頭の国（最終手段）
    """

    # 準行政区域を主表示名にする距離（km）
    SUB_REGION_PRIMARY_KM = 100.0
    RESULT_BBOX_DELTA = 0.1
    SEARCH_BBOX_DELTA = 0.5
    # 近傍キャッシュのグリッド幅（度、赤道で約10km）と再利用を許す範囲（度）
    AREA_GRID_SIZE = 0.09
    AREA_BUFFER = 0.05

    def __init__(
        self,
        dataset: RegionDataset,
        cache: Optional[CacheService] = None,
        max_distance_km: float = 1000.0,
        page_size: int = 1000,
        max_pages: int = 10,
        fallback: Optional[Coordinate] = None,
        language: str = "en",
    ) -> None:
        """
        Args:
            dataset: 地域データセット
            cache: キャッシュ（Noneの場合はキャッシュしない）
            max_distance_km: 最大探索半径（km）
            page_size: 準行政区域のページサイズ
            max_pages: 準行政区域のページ取得上限
            fallback: 不正な座標の置き換え先
            language: 既定の言語コード
        """
        self.dataset = dataset
        self.cache = cache
        self.max_distance_km = max_distance_km
        self.page_size = page_size
        self.max_pages = max_pages
        self.fallback = fallback
        self.language = language

        self._pending: dict[str, Future] = {}
        self._pending_lock = threading.Lock()

        logger.info(
            f"GeocodingService initialized: max_distance={max_distance_km}km, "
            f"page_size={page_size}, max_pages={max_pages}"
        )

    # 逆ジオコーディング ---------------------------------------------------

    def resolve_by_coordinates(
        self,
        latitude: float,
        longitude: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> GeocodingResult:
        """
        座標から最寄りの行政区域を取得

        完全一致のキャッシュ、近傍グリッドのキャッシュの順に参照する。
        同じグリッドへの同時リクエストは1回の探索を共有する

        Args:
            latitude: 緯度
            longitude: 経度
            cancel_event: セットされるとページ境界で探索を中断する

        Returns:
            GeocodingResult: 解決結果

        Raises:
            GeocodingCancelled: cancel_eventにより中断された場合
            GeocodingError: データセットの読み出しに失敗した場合、または国が1件もない場合
        """
        point = sanitize_coordinate(latitude, longitude, self.fallback)

        cached = self._cached_reverse(point)
        if cached is not None:
            return cached

        cell = self._area_cell(point)
        pending_key = f"{cell[0]}_{cell[1]}"
        with self._pending_lock:
            future = self._pending.get(pending_key)
            is_owner = future is None
            if is_owner:
                future = Future()
                self._pending[pending_key] = future

        if not is_owner:
            logger.debug(f"Joining in-flight reverse geocoding for cell {pending_key}")
            try:
                shared = future.result()
            except GeocodingCancelled:
                # 他の呼び出し元の中断なので、自分の探索としてやり直す
                if cancel_event is not None and cancel_event.is_set():
                    raise
                return self.resolve_by_coordinates(point.latitude, point.longitude, cancel_event)
            return self._at_point(shared, point)

        try:
            result = self._resolve_uncached(point, cancel_event)
        except BaseException as e:
            self._release_pending(pending_key)
            future.set_exception(e)
            raise

        self._release_pending(pending_key)
        future.set_result(result)
        return result

    def in_flight_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def _release_pending(self, pending_key: str) -> None:
        with self._pending_lock:
            self._pending.pop(pending_key, None)

    def _resolve_uncached(
        self,
        point: Coordinate,
        cancel_event: Optional[threading.Event],
    ) -> GeocodingResult:
        try:
            match = (
                self.find_nearest_sub_region(point, cancel_event)
                or self.find_nearest_country(point, cancel_event)
                or self.find_first_country()
            )
            if match is None:
                raise GeocodingError("Region dataset contains no countries")

            result = self._build_reverse_result(match, point)

        except StorageError as e:
            logger.error(f"Reverse geocoding failed for ({point.latitude}, {point.longitude}): {e}")
            raise GeocodingError(f"Reverse geocoding failed: {e}") from e

        logger.debug(
            f"Reverse geocoded ({point.latitude}, {point.longitude}) -> {result.display_name} "
            f"via {match.stage} ({match.distance_km:.1f}km)"
        )

        if self.cache is not None:
            self.cache.set(self._reverse_key(point), result.to_dict())
            cell = self._area_cell(point)
            self.cache.set(
                self._area_key(*cell),
                {"latitude": point.latitude, "longitude": point.longitude, "result": result.to_dict()},
            )

        return result

    # 逆ジオコーディングのキャッシュ ---------------------------------------

    @staticmethod
    def _reverse_key(point: Coordinate) -> str:
        return f"geocode_reverse_{point.latitude:.4f}_{point.longitude:.4f}"

    @staticmethod
    def _area_key(cell_lat: int, cell_lon: int) -> str:
        return f"geocode_area_{cell_lat}_{cell_lon}"

    def _area_cell(self, point: Coordinate) -> tuple[int, int]:
        return (
            math.floor(point.latitude / self.AREA_GRID_SIZE),
            math.floor(point.longitude / self.AREA_GRID_SIZE),
        )

    def _cached_reverse(self, point: Coordinate) -> Optional[GeocodingResult]:
        """
        完全一致 → 同じグリッドと周囲8グリッドの順にキャッシュを探す

        近傍のエントリは、保存時の座標から緯度経度ともAREA_BUFFER以内の場合のみ使う
        """
        if self.cache is None:
            return None

        cache_key = self._reverse_key(point)
        cached = self.cache.get(cache_key, CacheKind.LONG)
        if cached is not None:
            try:
                return GeocodingResult.from_dict(cached)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Discarding malformed cached geocoding result: {e}")
                self.cache.remove(cache_key)

        cell_lat, cell_lon = self._area_cell(point)
        for lat_offset in (0, -1, 1):
            for lon_offset in (0, -1, 1):
                area_key = self._area_key(cell_lat + lat_offset, cell_lon + lon_offset)
                entry = self.cache.get(area_key, CacheKind.LONG, record_miss=False)
                if entry is None:
                    continue
                try:
                    within = (
                        abs(point.latitude - float(entry["latitude"])) <= self.AREA_BUFFER
                        and abs(point.longitude - float(entry["longitude"])) <= self.AREA_BUFFER
                    )
                    if not within:
                        continue
                    result = GeocodingResult.from_dict(entry["result"])
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Discarding malformed area cache entry {area_key}: {e}")
                    self.cache.remove(area_key)
                    continue

                logger.debug(f"Area cache hit for ({point.latitude}, {point.longitude}) via {area_key}")
                return self._at_point(result, point)

        return None

    def _at_point(self, result: GeocodingResult, point: Coordinate) -> GeocodingResult:
        """結果の座標を問い合わせ座標に置き換える"""
        if result.coordinates == point:
            return result
        return replace(
            result,
            coordinates=point,
            boundingbox=bounding_box(point.latitude, point.longitude, self.RESULT_BBOX_DELTA),
        )

    def find_nearest_sub_region(
        self,
        point: Coordinate,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[NearestMatch]:
        """
        準行政区域を全ページ走査し、最大探索半径内の最寄りを返す

        Raises:
            StorageError: ページの取得に失敗した場合
            GeocodingCancelled: 中断された場合
        """
        best: Optional[SubRegionRecord] = None
        best_distance = math.inf
        scanned = 0

        for page in range(self.max_pages):
            self._check_cancelled(cancel_event)

            rows = self.dataset.fetch_sub_regions_page(page, self.page_size)
            for row in rows:
                if row.get("latitude") is None or row.get("longitude") is None:
                    continue
                try:
                    record = SubRegionRecord.from_row(row)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping malformed sub-region row {row.get('sub_region_code')}: {e}")
                    continue

                distance = haversine_km(point.latitude, point.longitude, record.latitude, record.longitude)
                if distance < best_distance and distance <= self.max_distance_km:
                    best = record
                    best_distance = distance

            scanned += len(rows)
            if len(rows) < self.page_size:
                break
        else:
            logger.warning(f"Reached sub-region page limit of {self.max_pages} pages")

        logger.debug(f"Scanned {scanned} sub-regions")

        if best is None:
            return None
        return NearestMatch(
            country_code=best.country_code,
            distance_km=best_distance,
            sub_region=best,
            stage="sub_region",
        )

    def find_nearest_country(
        self,
        point: Coordinate,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[NearestMatch]:
        """
        国ジオメトリの代表座標から、最大探索半径内の最寄りの国を返す

        解析できないジオメトリの行はログに記録してスキップする
        """
        self._check_cancelled(cancel_event)

        best_code: Optional[str] = None
        best_distance = math.inf

        for row in self.dataset.fetch_country_grids():
            country_code = row.get("country_code")
            if not country_code:
                continue
            try:
                center = representative_coordinate(row.get("geometry"))
            except GeometryParseError as e:
                logger.warning(f"Skipping country grid {country_code}: {e.reason}")
                continue

            distance = haversine_km(point.latitude, point.longitude, center.latitude, center.longitude)
            if distance < best_distance and distance <= self.max_distance_km:
                best_code = str(country_code)
                best_distance = distance

        if best_code is None:
            return None
        return NearestMatch(country_code=best_code, distance_km=best_distance, stage="country")

    def find_first_country(self) -> Optional[NearestMatch]:
        """最終手段として先頭の国を返す"""
        country = self.dataset.fetch_first_country()
        if country is None:
            return None

        logger.info(f"No region within {self.max_distance_km}km, defaulting to {country.country_code}")
        return NearestMatch(
            country_code=country.country_code,
            distance_km=math.inf,
            country=country,
            stage="default_country",
        )

    # 名前検索 -------------------------------------------------------------

    def search_by_text(self, query: str, limit: int = 10) -> list[GeocodingResult]:
        """
        国名 → ローカル地域 → 組み込みデータの順に検索し、最初に結果が得られた段階を返す

        Args:
            query: 検索文字列（大文字小文字を区別しない部分一致）
            limit: 最大件数

        Returns:
            list[GeocodingResult]: 検索結果（最大limit件）
        """
        query = (query or "").strip()
        if not query or limit <= 0:
            return []

        cache_key = f"geocode_search_{query.casefold()}_{limit}"
        if self.cache is not None:
            cached = self.cache.get(cache_key, CacheKind.LONG)
            if cached is not None:
                try:
                    return [GeocodingResult.from_dict(item) for item in cached]
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Discarding malformed cached search result: {e}")
                    self.cache.remove(cache_key)

        results = (
            self.search_countries(query, limit)
            or self.search_local_regions(query, limit)
            or self.search_fallback_regions(query, limit)
        )[:limit]

        logger.info(f"Search '{query}' returned {len(results)} results")

        if results and self.cache is not None:
            self.cache.set(cache_key, [r.to_dict() for r in results])

        return results

    def search_countries(self, query: str, limit: int) -> list[GeocodingResult]:
        """国名検索（失敗時は空リスト）"""
        try:
            countries = self.dataset.search_countries(query, limit)
        except StorageError as e:
            logger.warning(f"Country search failed for '{query}': {e}")
            return []

        return [self._country_search_result(country) for country in countries[:limit]]

    def search_local_regions(self, query: str, limit: int) -> list[GeocodingResult]:
        """ローカル地域テーブル検索（失敗時は空リスト）"""
        try:
            regions = self.dataset.search_local_regions(query, limit)
        except StorageError as e:
            logger.warning(f"Local region search failed for '{query}': {e}")
            return []

        return [self._local_region_result(region) for region in regions[:limit]]

    def search_fallback_regions(self, query: str, limit: int) -> list[GeocodingResult]:
        """組み込みデータ検索"""
        regions = search_fallback_regions(query, limit)
        if regions:
            logger.info(f"Using built-in regions for '{query}'")
        return [self._local_region_result(region) for region in regions]

    # 結果の組み立て -------------------------------------------------------

    def _build_reverse_result(self, match: NearestMatch, point: Coordinate) -> GeocodingResult:
        country = match.country or self.dataset.get_country(match.country_code)
        if country is None:
            logger.warning(f"Country {match.country_code} missing from country table")
            country = CountryRecord(country_code=match.country_code, name=match.country_code.upper())

        address = {
            "country": country.name,
            "country_code": country.country_code.lower(),
        }
        sub_region = match.sub_region

        if sub_region is not None and match.distance_km < self.SUB_REGION_PRIMARY_KM:
            address[sub_region.division_type] = sub_region.name
            address["state"] = sub_region.name
            return GeocodingResult(
                place_id=f"sub_region_{sub_region.sub_region_code}",
                name=sub_region.name,
                display_name=f"{sub_region.name}, {country.name}",
                country_code=country.country_code,
                country_name=country.name,
                coordinates=point,
                place_rank=place_rank_for(sub_region.division_type),
                importance=importance_for(sub_region.division_type),
                boundingbox=bounding_box(point.latitude, point.longitude, self.RESULT_BBOX_DELTA),
                type=sub_region.division_type,
                division_type=sub_region.division_type,
                sub_region_code=sub_region.sub_region_code,
                default_language=country.default_language_code or self.language,
                osm_id=sub_region.sub_region_code,
                address=address,
            )

        return GeocodingResult(
            place_id=f"country_{country.country_code}",
            name=country.name,
            display_name=country.name,
            country_code=country.country_code,
            country_name=country.name,
            coordinates=point,
            place_rank=place_rank_for("country"),
            importance=importance_for("country"),
            boundingbox=bounding_box(point.latitude, point.longitude, self.RESULT_BBOX_DELTA),
            type="country",
            division_type=sub_region.division_type if sub_region else None,
            sub_region_code=sub_region.sub_region_code if sub_region else None,
            default_language=country.default_language_code or self.language,
            osm_id=country.country_code,
            address=address,
        )

    def _country_search_result(self, country: CountryRecord) -> GeocodingResult:
        center = Coordinate(latitude=0.0, longitude=0.0)
        try:
            grid = self.dataset.get_country_grid(country.country_code)
        except StorageError as e:
            logger.warning(f"Grid lookup failed for {country.country_code}: {e}")
            grid = None

        if grid is None or grid.geometry is None:
            logger.warning(f"No geometry data for {country.country_code}")
        else:
            try:
                center = representative_coordinate(grid.geometry)
            except GeometryParseError as e:
                logger.warning(f"Failed to extract center for {country.country_code}: {e.reason}")

        return GeocodingResult(
            place_id=f"country_{country.country_code}",
            name=country.name,
            display_name=country.name,
            country_code=country.country_code,
            country_name=country.name,
            coordinates=center,
            place_rank=place_rank_for("country"),
            importance=importance_for("country"),
            boundingbox=bounding_box(center.latitude, center.longitude, self.RESULT_BBOX_DELTA),
            type="country",
            default_language=country.default_language_code or self.language,
            osm_id=country.country_code,
            address={"country": country.name, "country_code": country.country_code.lower()},
        )

    def _local_region_result(self, region: LocalRegionRecord) -> GeocodingResult:
        center = Coordinate(latitude=region.latitude, longitude=region.longitude)
        return GeocodingResult(
            place_id=f"local_{region.type}_{region.country_code}_{region.id}",
            name=region.name,
            display_name=region.display_name,
            country_code=region.country_code,
            country_name=region.country_name,
            coordinates=center,
            place_rank=region.place_rank or 16,
            importance=region.importance,
            boundingbox=bounding_box(center.latitude, center.longitude, self.SEARCH_BBOX_DELTA),
            type=region.type,
            division_type=region.type,
            default_language=region.language_code or self.language,
            osm_id=region.id,
            address={
                region.type: region.name,
                "country": region.country_name,
                "country_code": region.country_code,
            },
        )

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise GeocodingCancelled("Reverse geocoding cancelled")
