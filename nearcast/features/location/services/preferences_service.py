"""ユーザー設定の保存・読み込み"""

import json
from typing import Optional

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger
from ...cache.stores.base import PersistentStore
from ..domain.models import TEMPERATURE_UNITS, SavedLocation, UserPreferences

logger = get_logger(__name__)


class PreferencesService:
    """
    ユーザー設定サービス

    永続ストアの weather_preferences キーにJSONで保存する。
    ストアがない場合や値が壊れている場合はデフォルト設定を返す
    """

    STORAGE_KEY = "weather_preferences"

    def __init__(self, store: Optional[PersistentStore] = None) -> None:
        self.store = store

    def load(self) -> UserPreferences:
        """設定を読み込む"""
        if self.store is None:
            return UserPreferences()

        try:
            stored = self.store.get_item(self.STORAGE_KEY)
        except StorageError as e:
            logger.warning(f"Failed to read preferences: {e}")
            return UserPreferences()

        if not stored:
            return UserPreferences()

        try:
            return UserPreferences.from_dict(json.loads(stored))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Error parsing stored preferences: {e}")
            return UserPreferences()

    def save(
        self,
        temp_unit: Optional[str] = None,
        location: Optional[SavedLocation] = None,
        clear_location: bool = False,
    ) -> UserPreferences:
        """
        設定を部分的に更新して保存

        Args:
            temp_unit: 温度単位（"C" または "F"、省略時は変更しない）
            location: 地点（省略時は変更しない）
            clear_location: Trueの場合は保存済みの地点を削除

        Returns:
            UserPreferences: 更新後の設定

        Raises:
            ValueError: 温度単位が不正な場合
        """
        if temp_unit is not None and temp_unit not in TEMPERATURE_UNITS:
            raise ValueError(f"Unknown temperature unit: {temp_unit!r}")

        current = self.load()
        if clear_location:
            new_location = None
        else:
            new_location = location or current.location

        updated = UserPreferences(temp_unit=temp_unit or current.temp_unit, location=new_location)

        if self.store is None:
            logger.debug("No persistent store, preferences not saved")
            return updated

        try:
            self.store.set_item(self.STORAGE_KEY, json.dumps(updated.to_dict()))
        except StorageError as e:
            logger.warning(f"Failed to save preferences: {e}")

        return updated

    def clear(self) -> None:
        """設定を削除"""
        if self.store is None:
            return
        try:
            self.store.remove_item(self.STORAGE_KEY)
        except StorageError as e:
            logger.warning(f"Failed to clear preferences: {e}")


def convert_temperature(value_c: Optional[float], unit: str = "C") -> Optional[float]:
    """摂氏を指定の単位に変換（小数1桁に丸める）"""
    if value_c is None:
        return None
    if unit == "F":
        return round(value_c * 9 / 5 + 32, 1)
    if unit == "C":
        return round(value_c, 1)
    raise ValueError(f"Unknown temperature unit: {unit!r}")
