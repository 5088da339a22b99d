"""地域データセットの基底クラス"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..domain.models import CountryGrid, CountryRecord, LocalRegionRecord


class RegionDataset(ABC):
    """
    国・準行政区域データセットの抽象基底クラス

    読み出しに失敗した場合、実装は StorageError を送出する
    """

    @abstractmethod
    def fetch_sub_regions_page(self, page: int, page_size: int) -> list[dict[str, Any]]:
        """
        座標付きの準行政区域をページ単位で取得

        Args:
            page: ページ番号（0始まり）
            page_size: ページサイズ

        Returns:
            list[dict[str, Any]]: 生の行（行単位の変換は呼び出し側で行う）
        """
        pass

    @abstractmethod
    def fetch_country_grids(self) -> list[dict[str, Any]]:
        """全ての国ジオメトリ行を取得"""
        pass

    @abstractmethod
    def fetch_first_country(self) -> Optional[CountryRecord]:
        """最後の手段として使う任意の国（先頭の1件）"""
        pass

    @abstractmethod
    def get_country(self, country_code: str) -> Optional[CountryRecord]:
        """国コードで国名レコードを取得"""
        pass

    @abstractmethod
    def get_country_grid(self, country_code: str) -> Optional[CountryGrid]:
        """国コードで国ジオメトリを取得"""
        pass

    @abstractmethod
    def search_countries(self, query: str, limit: int) -> list[CountryRecord]:
        """
        国名の部分一致検索（大文字小文字を区別しない、名前の昇順）
        """
        pass

    @abstractmethod
    def search_local_regions(self, query: str, limit: int) -> list[LocalRegionRecord]:
        """
        ローカル地域の部分一致検索（名前または表示名、importanceの降順）
        """
        pass
