"""メモリ上の永続ストア（容量上限付き）"""

import threading
from typing import Optional

from ....shared.exceptions.errors import QuotaExceededError, StorageError
from ....shared.logging.config import get_logger
from .base import PersistentStore, _entry_size

logger = get_logger(__name__)


class MemoryStore(PersistentStore):
    """
    プロセス内の辞書で実装したキーバリューストア

    ヘッドレス環境やテストで、ファイルを持たない永続ストアとして使用する。
    容量上限の挙動はファイルストアと同じ。
    """

    def __init__(self, quota_bytes: Optional[int] = 5 * 1024 * 1024) -> None:
        """
        Args:
            quota_bytes: 容量上限（バイト、Noneの場合は無制限）
        """
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}
        self._size = 0
        self._lock = threading.RLock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._items.get(key)
            previous_size = _entry_size(key, previous) if previous is not None else 0
            new_size = self._size - previous_size + _entry_size(key, value)

            if self.quota_bytes is not None and new_size > self.quota_bytes:
                raise QuotaExceededError(
                    f"Quota exceeded writing '{key}': {new_size} > {self.quota_bytes} bytes"
                )

            previous_total = self._size
            self._items[key] = value
            self._size = new_size
            try:
                self._persist()
            except StorageError:
                if previous is None:
                    self._items.pop(key, None)
                else:
                    self._items[key] = previous
                self._size = previous_total
                raise

    def remove_item(self, key: str) -> None:
        with self._lock:
            value = self._items.pop(key, None)
            if value is None:
                return
            self._size -= _entry_size(key, value)
            try:
                self._persist()
            except StorageError:
                self._items[key] = value
                self._size += _entry_size(key, value)
                raise

    def clear(self) -> None:
        with self._lock:
            snapshot = (dict(self._items), self._size)
            self._items.clear()
            self._size = 0
            try:
                self._persist()
            except StorageError:
                self._items, self._size = snapshot
                raise

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items.keys())

    def estimate_size(self) -> int:
        with self._lock:
            return self._size

    def _persist(self) -> None:
        """変更を永続化（メモリストアでは何もしない）"""
        pass

    def _load_items(self, items: dict[str, str]) -> None:
        self._items = dict(items)
        self._size = sum(_entry_size(k, v) for k, v in self._items.items())
