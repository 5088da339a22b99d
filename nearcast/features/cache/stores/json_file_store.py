"""JSONファイルに保存する永続ストア"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ....shared.exceptions.errors import PersistentStoreUnavailable, StorageError
from ....shared.logging.config import get_logger
from .memory_store import MemoryStore

logger = get_logger(__name__)


class JsonFileStore(MemoryStore):
    """
    JSONファイルを背後に持つキーバリューストア

    全体を1つのJSONオブジェクトとして保存し、変更のたびに
    一時ファイル経由で置き換える
    """

    def __init__(
        self,
        path: Union[str, Path],
        quota_bytes: Optional[int] = 5 * 1024 * 1024,
    ) -> None:
        """
        Args:
            path: 保存先ファイルパス
            quota_bytes: 容量上限（バイト）

        Raises:
            PersistentStoreUnavailable: 保存先ディレクトリを用意できない場合
        """
        super().__init__(quota_bytes=quota_bytes)
        self.path = Path(path)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistentStoreUnavailable(f"Cannot prepare store directory {self.path.parent}: {e}") from e

        self._load_items(self._read_file())
        logger.info(f"JsonFileStore initialized: path={self.path}, keys={len(self._items)}")

    def _read_file(self) -> dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            # 壊れたファイルは空のストアとして扱う
            logger.warning(f"Failed to read store file {self.path}, starting empty: {e}")
            return {}

        if not isinstance(payload, dict):
            logger.warning(f"Unexpected store file format in {self.path}, starting empty")
            return {}

        return {str(k): v for k, v in payload.items() if isinstance(v, str)}

    def _persist(self) -> None:
        """
        ファイルへ書き出す

        失敗した場合は一時ファイルを削除してStorageErrorを送出する
        （呼び出し元のMemoryStoreがメモリ上の変更を戻す）
        """
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".store-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._items, f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Failed to write store file {self.path}: {e}") from e
