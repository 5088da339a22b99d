"""CLIエントリーポイント"""
import argparse
import json
import sys
from typing import Any, Optional

from .features.dashboard.orchestrator import DashboardOrchestrator
from .features.location.domain.models import SavedLocation
from .features.location.services.preferences_service import convert_temperature
from .infrastructure.config.settings import Settings
from .shared.logging.config import get_logger, setup_logging
from .shared.utils.geo import sanitize_coordinate

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """引数パーサーを作成"""
    parser = argparse.ArgumentParser(description="周辺天気・逆ジオコーディングツール")

    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="環境変数ファイルのパス（デフォルト: .env）",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="ログレベル",
    )

    parser.add_argument(
        "--log-format",
        type=str,
        choices=["text", "json"],
        help="ログの出力形式（標準エラーに出力）",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    nearby = subparsers.add_parser("nearby", help="周辺地点の天気を取得")
    _add_coordinate_arguments(nearby, required=True)
    nearby.add_argument("--zoom", type=float, default=13, help="地図のズームレベル（デフォルト: 13）")

    forecast = subparsers.add_parser("forecast", help="指定地点（省略時は保存済みの地点または現在地）の予報を取得")
    _add_coordinate_arguments(forecast, required=False)
    forecast.add_argument("--unit", choices=["C", "F"], help="温度単位（省略時は保存済みの設定）")
    forecast.add_argument("--save", action="store_true", help="地点と温度単位を設定に保存")

    reverse = subparsers.add_parser("reverse", help="座標から地域名を取得")
    _add_coordinate_arguments(reverse, required=True)

    search = subparsers.add_parser("search", help="地域名で検索")
    search.add_argument("query", type=str, help="検索文字列")
    search.add_argument("--limit", type=int, default=10, help="最大件数（デフォルト: 10）")

    clear_cache = subparsers.add_parser("clear-cache", help="キャッシュを削除")
    clear_cache.add_argument(
        "--scope",
        choices=["all", "weather"],
        default="all",
        help="削除範囲（デフォルト: all）",
    )

    return parser


def _add_coordinate_arguments(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--lat", type=float, required=required, help="緯度")
    parser.add_argument("--lon", type=float, required=required, help="経度")


def main(argv: Optional[list[str]] = None) -> int:
    """
    メインエントリーポイント

    Returns:
        int: 終了コード（0: 成功, 1: 失敗, 130: 中断）
    """
    args = build_parser().parse_args(argv)

    orchestrator: Optional[DashboardOrchestrator] = None
    try:
        # 設定を読み込み
        settings = Settings(_env_file=args.env_file)

        # ログレベルを上書き
        if args.log_level:
            settings.log_level = args.log_level
        if args.log_format:
            settings.log_format = args.log_format

        setup_logging(
            level=settings.log_level,
            enable_cloud_logging=settings.gcp_logging_enabled,
            project_id=settings.gcp_project_id,
            stream=sys.stderr,
            log_format=settings.log_format,
        )

        logger.info(f"Running command: {args.command}")
        logger.info(f"Environment: {settings.environment}")

        # オーケストレーターを作成
        orchestrator = DashboardOrchestrator(settings)

        output = run_command(orchestrator, args)
        print(json.dumps(output, ensure_ascii=False, indent=2))

        logger.info(f"Command {args.command} completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130  # SIGINT
    except Exception as e:
        logger.error(f"Application failed: {e}", exc_info=True)
        return 1
    finally:
        if orchestrator is not None:
            orchestrator.close()


def run_command(orchestrator: DashboardOrchestrator, args: argparse.Namespace) -> Any:
    """
    サブコマンドを実行

    Returns:
        Any: JSONとして出力する値
    """
    if args.command == "nearby":
        locations = orchestrator.nearby_weather_service.get_nearby_weather(args.lat, args.lon, args.zoom)
        return [loc.to_dict() for loc in locations]

    if args.command == "forecast":
        return run_forecast(orchestrator, args)

    if args.command == "reverse":
        result = orchestrator.require_geocoding().resolve_by_coordinates(args.lat, args.lon)
        return result.to_dict()

    if args.command == "search":
        results = orchestrator.require_geocoding().search_by_text(args.query, args.limit)
        return [r.to_dict() for r in results]

    if args.command == "clear-cache":
        if args.scope == "weather":
            orchestrator.cache.clear_weather_cache()
        else:
            orchestrator.cache.clear()
        return {"status": "cleared", "scope": args.scope}

    raise ValueError(f"Unknown command: {args.command}")


def run_forecast(orchestrator: DashboardOrchestrator, args: argparse.Namespace) -> dict[str, Any]:
    """
    予報を取得

    地点の優先順位: 引数 → 保存済みの地点 → 現在地（取得できない場合はデフォルト位置）
    """
    preferences = orchestrator.preferences_service.load()
    unit = args.unit or preferences.temp_unit

    city = None
    if args.lat is not None and args.lon is not None:
        point = sanitize_coordinate(args.lat, args.lon, orchestrator.fallback)
    elif preferences.location is not None:
        point = preferences.location.coordinates
        city = preferences.location.city
        logger.info(f"Using saved location: {city}")
    else:
        point = orchestrator.geolocation_service.get_current_position().coordinates

    forecast = orchestrator.weather_service.get_forecast(point.latitude, point.longitude)

    if args.save:
        location = None
        if orchestrator.geocoding_service is not None:
            try:
                result = orchestrator.geocoding_service.resolve_by_coordinates(point.latitude, point.longitude)
                location = SavedLocation(city=result.name, country=result.country_name, coordinates=point)
            except Exception as e:
                logger.warning(f"Could not name location for preferences: {e}")
        orchestrator.preferences_service.save(
            temp_unit=unit,
            location=location or SavedLocation(city=city or "", country="", coordinates=point),
        )

    output = apply_temperature_unit(forecast.to_dict(), unit)
    output["unit"] = unit
    return output


def apply_temperature_unit(data: dict[str, Any], unit: str) -> dict[str, Any]:
    """予報の辞書の気温を指定の単位に変換"""
    data["current"]["temperature"] = convert_temperature(data["current"]["temperature"], unit)

    for entry in data["hourly"] + data["today_hourly"]:
        entry["temperature"] = convert_temperature(entry["temperature"], unit)

    for day in data["daily"]:
        day["temp"]["min"] = convert_temperature(day["temp"]["min"], unit)
        day["temp"]["max"] = convert_temperature(day["temp"]["max"], unit)
        for entry in day["hourly"]:
            entry["temperature"] = convert_temperature(entry["temperature"], unit)

    return data


if __name__ == "__main__":
    sys.exit(main())
