"""Firestoreクライアント"""
import os
from typing import Any, Iterator, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ....shared.exceptions.errors import ConfigurationError, StorageError
from ....shared.logging.config import get_logger

logger = get_logger(__name__)

Filters = Optional[list[tuple[str, str, Any]]]


class FirestoreClient:
    """Firestore操作クライアント"""

    def __init__(self, project_id: Optional[str], database_id: str = "(default)") -> None:
        """
        Firestoreクライアントを初期化

        Args:
            project_id: GCPプロジェクトID
            database_id: データベースID（デフォルトは"(default)"）

        Raises:
            ConfigurationError: プロジェクトIDが未設定の場合
            StorageError: クライアントの初期化に失敗した場合
        """
        if not project_id:
            raise ConfigurationError("GCP project id is required for the Firestore region dataset")

        self.project_id = project_id
        self.database_id = database_id

        # エミュレータモードの検出
        emulator_host = os.environ.get("FIRESTORE_EMULATOR_HOST")

        try:
            self.client = firestore.Client(project=project_id, database=database_id)

            if emulator_host:
                logger.info(
                    f"Firestore client initialized (EMULATOR MODE): "
                    f"host={emulator_host}, project={project_id}, database={database_id}"
                )
            else:
                logger.info(f"Firestore client initialized: project={project_id}, database={database_id}")
        except Exception as e:
            raise StorageError(f"Failed to initialize Firestore client: {e}") from e

    def get_collection(self, collection_path: str) -> firestore.CollectionReference:
        """コレクション参照を取得"""
        return self.client.collection(collection_path)

    def batch_write(
        self,
        collection_path: str,
        documents: list[dict[str, Any]],
        batch_size: int = 500,
        id_field: str = "id",
    ) -> int:
        """
        バッチ書き込み（500件ずつ）

        Args:
            collection_path: コレクションパス
            documents: 書き込むドキュメントのリスト
            batch_size: バッチサイズ（デフォルト500、最大500）
            id_field: ドキュメントIDとして使用するフィールド名

        Returns:
            int: 書き込んだドキュメント数

        Raises:
            StorageError: 書き込みに失敗した場合
        """
        if batch_size > 500:
            raise ValueError("Batch size must be <= 500")

        if not documents:
            logger.info("No documents to write")
            return 0

        collection = self.get_collection(collection_path)
        total = len(documents)
        written = 0

        try:
            for i in range(0, total, batch_size):
                batch = self.client.batch()
                chunk = documents[i : i + batch_size]

                for doc in chunk:
                    doc_id = doc.get(id_field)
                    if not doc_id:
                        logger.warning(f"Document missing {id_field}, skipping: {doc}")
                        continue

                    batch.set(collection.document(str(doc_id)), doc, merge=True)
                    written += 1

                batch.commit()
                logger.info(f"Batch write: {written}/{total} documents written to {collection_path}")

            logger.info(f"Batch write completed: {written} documents written to {collection_path}")
            return written

        except Exception as e:
            raise StorageError(f"Failed to batch write to {collection_path}: {e}") from e

    def query_documents(
        self,
        collection_path: str,
        filters: Filters = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        条件に一致するドキュメントを取得

        Args:
            collection_path: コレクションパス
            filters: フィルタ条件のリスト [(field, operator, value), ...]
            order_by: 並び替えのフィールド名
            limit: 取得件数の上限
            offset: 読み飛ばす件数（ページング用）

        Returns:
            list[dict[str, Any]]: ドキュメントのリスト

        Example:
            >>> client.query_documents(
            ...     "country_sub_region_name",
            ...     order_by="sub_region_code",
            ...     limit=1000,
            ...     offset=2000,
            ... )
        """
        try:
            query = self.get_collection(collection_path)

            if filters:
                for field, operator, value in filters:
                    query = query.where(filter=FieldFilter(field, operator, value))

            if order_by:
                query = query.order_by(order_by)

            if offset:
                query = query.offset(offset)

            if limit:
                query = query.limit(limit)

            docs = query.stream()
            return [doc.to_dict() for doc in docs if doc.exists]

        except Exception as e:
            raise StorageError(f"Failed to query documents from {collection_path}: {e}") from e

    def iter_pages(
        self,
        collection_path: str,
        order_by: str,
        page_size: int = 1000,
        max_pages: Optional[int] = None,
    ) -> Iterator[list[dict[str, Any]]]:
        """
        コレクションをページ単位で読み出す

        取得件数がページサイズ未満になった時点、またはmax_pagesに達した時点で終了

        Raises:
            StorageError: 読み出しに失敗した場合
        """
        page = 0
        while max_pages is None or page < max_pages:
            rows = self.query_documents(
                collection_path,
                order_by=order_by,
                limit=page_size,
                offset=page * page_size,
            )
            if rows:
                yield rows
            if len(rows) < page_size:
                return
            page += 1

        logger.warning(f"Reached page limit ({max_pages}) reading {collection_path}")
