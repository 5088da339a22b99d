"""二層キャッシュサービス（メモリ + 永続ストア）"""

import json
import threading
from typing import Any, Callable, Optional

from ....shared.exceptions.errors import QuotaExceededError, StorageError
from ....shared.logging.config import get_logger
from ....shared.utils.datetime_utils import epoch_millis, hours, minutes
from ..domain.models import CacheEntry, CacheKind
from ..stores.base import PersistentStore

logger = get_logger(__name__)


class CacheService:
    """
    二層キャッシュ

    - メモリ層を先に参照し、ミス時は永続層を参照してメモリ層へ昇格する
    - 有効期限は種別ごと（SHORT: 天気、LONG: 位置・検索結果）
    - 永続層の容量が閾値を超えたら古いエントリを事前に削除する
    - 永続層が使えない場合はメモリのみで動作し、例外は送出しない
    """

    KEY_PREFIX = "nearcast_cache:"
    WEATHER_NAMESPACES = ("weather_", "nearby_weather_")

    def __init__(
        self,
        persistent_store: Optional[PersistentStore] = None,
        time_func: Callable[[], int] = epoch_millis,
        short_expiry_ms: int = minutes(10),
        long_expiry_ms: int = hours(24),
        size_threshold_bytes: int = 4 * 1024 * 1024,
        stale_age_ms: int = hours(1),
    ) -> None:
        """
        Args:
            persistent_store: 永続ストア（Noneの場合はメモリのみ）
            time_func: 現在時刻（エポックミリ秒）を返す関数
            short_expiry_ms: 短期キャッシュの有効期限（ミリ秒）
            long_expiry_ms: 長期キャッシュの有効期限（ミリ秒）
            size_threshold_bytes: 事前削除を開始する永続層のサイズ
            stale_age_ms: 事前削除の対象とする経過時間
        """
        self.persistent_store = persistent_store
        self._time_func = time_func
        self._expiry = {
            CacheKind.SHORT: short_expiry_ms,
            CacheKind.LONG: long_expiry_ms,
        }
        self.size_threshold_bytes = size_threshold_bytes
        self.stale_age_ms = stale_age_ms

        self._memory: dict[str, CacheEntry[Any]] = {}
        self._lock = threading.RLock()
        self.hit_count = 0
        self.miss_count = 0

        logger.info(
            f"CacheService initialized: persistent={'yes' if persistent_store else 'no'}, "
            f"short={short_expiry_ms}ms, long={long_expiry_ms}ms"
        )

    def expiry_for(self, kind: CacheKind) -> int:
        """種別ごとの有効期限（ミリ秒）"""
        return self._expiry[kind]

    def get(self, key: str, kind: CacheKind = CacheKind.SHORT, record_miss: bool = True) -> Optional[Any]:
        """
        キャッシュから取得

        Args:
            key: キャッシュキー
            kind: 有効期限の種別
            record_miss: Falseの場合はミスを統計に数えない（近傍探索用）

        Returns:
            Optional[Any]: キャッシュされたデータ（存在しない・期限切れ・破損の場合はNone）
        """
        now = self._time_func()
        expiry = self.expiry_for(kind)

        with self._lock:
            entry = self._memory.get(key)
            if entry is not None:
                if not entry.is_expired(now, expiry):
                    self.hit_count += 1
                    logger.debug(f"Memory cache hit: {key}")
                    return entry.data

                logger.debug(f"Memory cache expired: {key}")
                self._remove_both(key)
                if record_miss:
                    self.miss_count += 1
                return None

            entry = self._read_persistent(key)
            if entry is None:
                if record_miss:
                    self.miss_count += 1
                return None

            if entry.is_expired(now, expiry):
                logger.debug(f"Persistent cache expired: {key}")
                self._remove_both(key)
                if record_miss:
                    self.miss_count += 1
                return None

            # メモリ層へ昇格
            self._memory[key] = entry
            self.hit_count += 1
            logger.debug(f"Persistent cache hit: {key}")
            return entry.data

    def set(self, key: str, data: Any) -> None:
        """
        両方の層に書き込む

        永続層への書き込みに失敗しても、メモリ層には値が残る
        """
        entry = CacheEntry(data=data, timestamp=self._time_func())

        with self._lock:
            self._memory[key] = entry
            self._write_persistent(key, entry)

    def remove(self, key: str) -> None:
        """両方の層から削除"""
        with self._lock:
            self._remove_both(key)

    def clear(self) -> None:
        """全キャッシュを削除（キャッシュ以外の永続データは残す）"""
        with self._lock:
            memory_count = len(self._memory)
            self._memory.clear()
            removed = 0
            for storage_key in self._persistent_cache_keys():
                self._remove_persistent(storage_key)
                removed += 1

            self.hit_count = 0
            self.miss_count = 0

        logger.info(f"Cache cleared: {memory_count} memory entries, {removed} persistent entries removed")

    def clear_weather_cache(self) -> None:
        """天気の名前空間のキーのみを両方の層から削除"""
        with self._lock:
            memory_keys = [k for k in self._memory if self._is_weather_key(k)]
            for key in memory_keys:
                self._memory.pop(key, None)

            removed = 0
            for storage_key in self._persistent_cache_keys():
                if self._is_weather_key(storage_key[len(self.KEY_PREFIX):]):
                    self._remove_persistent(storage_key)
                    removed += 1

        logger.info(
            f"Weather cache cleared: {len(memory_keys)} memory entries, {removed} persistent entries removed"
        )

    def purge_older_than(self, max_age_ms: int, persistent_only: bool = False) -> int:
        """
        種別に関係なく、指定時間より古いエントリを削除

        Args:
            max_age_ms: 削除対象とする経過時間（ミリ秒）
            persistent_only: Trueの場合は永続層のみ（書き込み時の容量確保用）

        Returns:
            int: 削除したキーの数
        """
        now = self._time_func()
        purged: set[str] = set()

        with self._lock:
            if not persistent_only:
                for key, entry in list(self._memory.items()):
                    if entry.is_expired(now, max_age_ms):
                        self._memory.pop(key, None)
                        purged.add(key)

            for storage_key in self._persistent_cache_keys():
                key = storage_key[len(self.KEY_PREFIX):]
                entry = self._read_persistent(key)
                if entry is None:
                    # 破損エントリは _read_persistent 内で削除済み
                    purged.add(key)
                    continue
                if entry.is_expired(now, max_age_ms):
                    self._remove_persistent(storage_key)
                    purged.add(key)

        if purged:
            logger.info(f"Purged {len(purged)} cache entries older than {max_age_ms}ms")
        return len(purged)

    def get_stats(self) -> dict[str, Any]:
        """
        キャッシュ統計を取得

        Returns:
            dict[str, Any]: メモリ件数、永続件数、永続層の概算サイズ、ヒット数、ミス数、ヒット率
        """
        with self._lock:
            total_requests = self.hit_count + self.miss_count
            hit_rate = (self.hit_count / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "memory_entries": len(self._memory),
                "persistent_entries": len(self._persistent_cache_keys()),
                "persistent_bytes": self._estimate_persistent_size(),
                "hit_count": self.hit_count,
                "miss_count": self.miss_count,
                "hit_rate_percent": round(hit_rate, 2),
            }

    # helpers ------------------------------------------------------------

    def _storage_key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    def _is_weather_key(self, key: str) -> bool:
        return key.startswith(self.WEATHER_NAMESPACES)

    def _read_persistent(self, key: str) -> Optional[CacheEntry[Any]]:
        if self.persistent_store is None:
            return None

        storage_key = self._storage_key(key)
        try:
            raw = self.persistent_store.get_item(storage_key)
        except StorageError as e:
            logger.warning(f"Persistent cache read failed for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return CacheEntry.from_dict(json.loads(raw))
        except ValueError as e:
            logger.warning(f"Corrupt cache entry for {key}, purging: {e}")
            self._remove_persistent(storage_key)
            return None

    def _write_persistent(self, key: str, entry: CacheEntry[Any]) -> None:
        if self.persistent_store is None:
            return

        try:
            serialized = json.dumps(entry.to_dict(), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.warning(f"Cache value for {key} is not JSON serializable, memory only: {e}")
            return

        if self._estimate_persistent_size() > self.size_threshold_bytes:
            logger.info("Persistent cache above size threshold, purging stale entries")
            self.purge_older_than(self.stale_age_ms, persistent_only=True)

        storage_key = self._storage_key(key)
        try:
            self.persistent_store.set_item(storage_key, serialized)
            return
        except QuotaExceededError:
            logger.warning(f"Persistent cache quota exceeded writing {key}, purging and retrying")
        except StorageError as e:
            logger.warning(f"Persistent cache write failed for {key}: {e}")
            return

        self.purge_older_than(self.stale_age_ms, persistent_only=True)
        try:
            self.persistent_store.set_item(storage_key, serialized)
        except StorageError as e:
            logger.warning(f"Persistent cache write dropped for {key}: {e}")

    def _remove_persistent(self, storage_key: str) -> None:
        if self.persistent_store is None:
            return
        try:
            self.persistent_store.remove_item(storage_key)
        except StorageError as e:
            logger.warning(f"Persistent cache remove failed for {storage_key}: {e}")

    def _remove_both(self, key: str) -> None:
        self._memory.pop(key, None)
        self._remove_persistent(self._storage_key(key))

    def _persistent_cache_keys(self) -> list[str]:
        if self.persistent_store is None:
            return []
        try:
            return [k for k in self.persistent_store.keys() if k.startswith(self.KEY_PREFIX)]
        except StorageError as e:
            logger.warning(f"Persistent cache key listing failed: {e}")
            return []

    def _estimate_persistent_size(self) -> int:
        if self.persistent_store is None:
            return 0
        try:
            return self.persistent_store.estimate_size()
        except StorageError as e:
            logger.warning(f"Persistent cache size estimation failed: {e}")
            return 0
