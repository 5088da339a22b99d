"""キャッシュ機能のドメインモデル"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class CacheKind(str, Enum):
    """有効期限の種別"""

    SHORT = "short"  # 天気・周辺天気（分単位）
    LONG = "long"  # 位置・ジオコーディング検索結果（時間単位）


@dataclass
class CacheEntry(Generic[T]):
    """キャッシュエントリ"""

    data: T
    timestamp: int  # 書き込み時刻（エポックミリ秒）

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.timestamp

    def is_expired(self, now_ms: int, expiry_ms: int) -> bool:
        """now - timestamp > expiry の場合に期限切れ"""
        return self.age_ms(now_ms) > expiry_ms

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, payload: Any) -> "CacheEntry[Any]":
        """
        永続ストアの値から復元

        Raises:
            ValueError: 形式が不正な場合
        """
        if not isinstance(payload, dict) or "data" not in payload or "timestamp" not in payload:
            raise ValueError("Malformed cache entry")

        timestamp = payload["timestamp"]
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ValueError(f"Invalid cache timestamp: {timestamp!r}")

        return cls(data=payload["data"], timestamp=int(timestamp))
