"""Firestore上の地域データセット"""

from typing import Any, Optional

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger
from ...storage.clients.firestore_client import FirestoreClient
from ..domain.models import CountryGrid, CountryRecord, LocalRegionRecord
from .base import RegionDataset

logger = get_logger(__name__)


class FirestoreRegionDataset(RegionDataset):
    """
    Firestoreの4コレクションを読み出す地域データセット

    - country_name: 国名
    - country_osm_grid: 国ジオメトリ（GeoJSONまたはWKT）
    - country_sub_region_name: 準行政区域（座標付き）
    - local_regions: ローカル地域・都市

    Firestoreは部分一致検索を持たないため、名前検索はページ単位で
    読み出してクライアント側で絞り込む
    """

    def __init__(
        self,
        firestore_client: FirestoreClient,
        country_collection: str = "country_name",
        country_grid_collection: str = "country_osm_grid",
        sub_region_collection: str = "country_sub_region_name",
        local_region_collection: str = "local_regions",
        scan_page_size: int = 1000,
        scan_max_pages: int = 10,
    ) -> None:
        """
        Args:
            firestore_client: Firestoreクライアント
            country_collection: 国名コレクション
            country_grid_collection: 国ジオメトリコレクション
            sub_region_collection: 準行政区域コレクション
            local_region_collection: ローカル地域コレクション
            scan_page_size: 検索時の読み出しページサイズ
            scan_max_pages: 検索時の読み出しページ上限
        """
        self.client = firestore_client
        self.country_collection = country_collection
        self.country_grid_collection = country_grid_collection
        self.sub_region_collection = sub_region_collection
        self.local_region_collection = local_region_collection
        self.scan_page_size = scan_page_size
        self.scan_max_pages = scan_max_pages

        logger.info("FirestoreRegionDataset initialized")

    def fetch_sub_regions_page(self, page: int, page_size: int) -> list[dict[str, Any]]:
        return self.client.query_documents(
            self.sub_region_collection,
            order_by="sub_region_code",
            limit=page_size,
            offset=page * page_size,
        )

    def fetch_country_grids(self) -> list[dict[str, Any]]:
        return self._scan(self.country_grid_collection, order_by="country_code")

    def fetch_first_country(self) -> Optional[CountryRecord]:
        rows = self.client.query_documents(self.country_collection, order_by="country_code", limit=1)
        return self._first_country(rows)

    def get_country(self, country_code: str) -> Optional[CountryRecord]:
        rows = self.client.query_documents(
            self.country_collection,
            filters=[("country_code", "==", country_code.lower())],
            limit=1,
        )
        return self._first_country(rows)

    def get_country_grid(self, country_code: str) -> Optional[CountryGrid]:
        rows = self.client.query_documents(
            self.country_grid_collection,
            filters=[("country_code", "==", country_code.lower())],
            limit=1,
        )
        if not rows:
            return None
        try:
            return CountryGrid.from_row(rows[0])
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Malformed country grid row for {country_code}: {e}") from e

    def search_countries(self, query: str, limit: int) -> list[CountryRecord]:
        needle = query.casefold()
        results: list[CountryRecord] = []

        for row in self._scan(self.country_collection, order_by="name"):
            if needle not in str(row.get("name", "")).casefold():
                continue
            try:
                results.append(CountryRecord.from_row(row))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed country row {row}: {e}")
                continue
            if len(results) >= limit:
                break

        return results

    def search_local_regions(self, query: str, limit: int) -> list[LocalRegionRecord]:
        needle = query.casefold()
        matches: list[LocalRegionRecord] = []

        for row in self._scan(self.local_region_collection, order_by="name"):
            name = str(row.get("name", "")).casefold()
            display_name = str(row.get("display_name", "")).casefold()
            if needle not in name and needle not in display_name:
                continue
            try:
                matches.append(LocalRegionRecord.from_row(row))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed local region row {row}: {e}")

        matches.sort(key=lambda r: r.importance, reverse=True)
        return matches[:limit]

    def _scan(self, collection: str, order_by: str) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for page in self.client.iter_pages(
            collection,
            order_by=order_by,
            page_size=self.scan_page_size,
            max_pages=self.scan_max_pages,
        ):
            rows.extend(page)
        return rows

    def _first_country(self, rows: list[dict[str, Any]]) -> Optional[CountryRecord]:
        if not rows:
            return None
        try:
            return CountryRecord.from_row(rows[0])
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Malformed country row {rows[0]}: {e}") from e
