#!/usr/bin/env python3
"""地域データセットをFirestoreへ投入するスクリプト"""
import argparse
import json
import os
import sys
from pathlib import Path

# プロジェクトルートをPythonパスに追加
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from nearcast.features.storage.clients.firestore_client import FirestoreClient
from nearcast.infrastructure.config.settings import Settings
from nearcast.shared.logging.config import get_logger, setup_logging


def collection_targets(settings: Settings) -> list[tuple[str, str, str]]:
    """
    (エクスポート内のテーブル名, コレクション名, ドキュメントIDのフィールド)
    """
    return [
        ("country_name", settings.country_collection, "country_code"),
        ("country_osm_grid", settings.country_grid_collection, "country_code"),
        ("country_sub_region_name", settings.sub_region_collection, "sub_region_code"),
        ("local_regions", settings.local_region_collection, "id"),
    ]


def main():
    """メイン関数"""
    parser = argparse.ArgumentParser(description="地域データセットのFirestore投入ツール")
    parser.add_argument(
        "export_file",
        type=str,
        help='テーブル名をキーとするJSONファイル（例: {"country_name": [...], ...}）',
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="件数の確認のみ行い、書き込まない",
    )
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        help="デバッグモードで実行",
    )

    args = parser.parse_args()

    # 設定を読み込み
    settings = Settings()

    # ロギングを設定
    log_level = "DEBUG" if args.debug else settings.log_level
    setup_logging(level=log_level)
    logger = get_logger(__name__)

    logger.info("=" * 80)
    logger.info("地域データセットのFirestore投入")
    logger.info("=" * 80)
    logger.info(f"Export file: {args.export_file}")
    logger.info(f"Dry run: {args.dry_run}")
    logger.info(f"Firestore Emulator: {settings.firestore_emulator_host or 'Not set (using production)'}")
    logger.info("=" * 80)

    try:
        with open(args.export_file, encoding="utf-8") as f:
            export = json.load(f)

        if settings.firestore_emulator_host:
            os.environ.setdefault("FIRESTORE_EMULATOR_HOST", settings.firestore_emulator_host)

        client = None
        if not args.dry_run:
            client = FirestoreClient(
                project_id=settings.gcp_project_id,
                database_id=settings.firestore_database_id,
            )

        total = 0
        for table, collection, id_field in collection_targets(settings):
            rows = export.get(table) or []
            logger.info(f"{table}: {len(rows)} rows -> {collection}")

            if client is None or not rows:
                continue

            # country_codeは小文字で保存する
            for row in rows:
                if row.get("country_code"):
                    row["country_code"] = str(row["country_code"]).lower()

            total += client.batch_write(collection, rows, id_field=id_field)

        logger.info("=" * 80)
        logger.info(f"Seeding completed: {total} documents written")
        logger.info("=" * 80)

    except KeyboardInterrupt:
        logger.warning("Seeding interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Seeding failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
