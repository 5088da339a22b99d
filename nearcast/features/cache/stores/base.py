"""永続キーバリューストアの基底クラス"""

from abc import ABC, abstractmethod
from typing import Optional


class PersistentStore(ABC):
    """
    永続キーバリューストアの抽象基底クラス

    文字列キーと文字列値のみを扱い、容量上限を超えた書き込みでは
    QuotaExceededError を送出する
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        値を取得

        Returns:
            Optional[str]: 値（存在しない場合はNone）
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        値を書き込む

        Raises:
            QuotaExceededError: 容量上限を超える場合
            StorageError: 書き込みに失敗した場合
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """値を削除（存在しない場合は何もしない）"""
        pass

    @abstractmethod
    def clear(self) -> None:
        """全ての値を削除"""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """全キーのリストを取得"""
        pass

    def estimate_size(self) -> int:
        """
        使用量の概算（バイト）

        キーと値のUTF-8バイト長の合計
        """
        total = 0
        for key in self.keys():
            value = self.get_item(key) or ""
            total += _entry_size(key, value)
        return total


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))
