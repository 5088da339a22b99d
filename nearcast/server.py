"""HTTPサーバー（FastAPI）"""
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .features.dashboard.orchestrator import DashboardOrchestrator
from .infrastructure.config.settings import Settings
from .shared.exceptions.errors import (
    ConfigurationError,
    GeocodingError,
    ValidationError,
    WeatherAPIError,
)
from .shared.logging.config import get_logger, setup_logging
from .shared.utils.geo import Coordinate, is_valid_coordinate

# 設定を読み込み
settings = Settings()

# ロギングを設定
setup_logging(
    level=settings.log_level,
    enable_cloud_logging=settings.gcp_logging_enabled,
    project_id=settings.gcp_project_id,
    log_format=settings.log_format,
)
logger = get_logger(__name__)

CACHE_HEADERS = {"Cache-Control": "public, max-age=3600"}

# FastAPIアプリケーションを作成
app = FastAPI(
    title="nearcast",
    description="周辺天気・逆ジオコーディングAPI",
    version="1.0.0",
)

_orchestrator: Optional[DashboardOrchestrator] = None


def get_orchestrator() -> DashboardOrchestrator:
    """オーケストレーターを取得（初回に作成）"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = DashboardOrchestrator(settings)
    return _orchestrator


@app.on_event("startup")
async def startup_event() -> None:
    """起動時の処理"""
    logger.info("Application starting up")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Project: {settings.project_name}")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """シャットダウン時の処理"""
    global _orchestrator
    if _orchestrator is not None:
        _orchestrator.close()
        _orchestrator = None
    logger.info("Application shutting down")


@app.get("/")
async def root() -> dict[str, Any]:
    """ルートエンドポイント"""
    return {
        "service": "nearcast",
        "version": "1.0.0",
        "status": "running",
        "environment": settings.environment,
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """ヘルスチェックエンドポイント"""
    return {"status": "healthy"}


@app.get("/geocoding")
def geocoding(
    latitude: Optional[str] = None,
    longitude: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=10, ge=1, le=50),
    orchestrator: DashboardOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    逆ジオコーディング（latitude/longitude）または名前検索（search）

    Returns:
        JSONResponse: {"results": [...], "count": n}
    """
    try:
        service = orchestrator.require_geocoding()

        if search:
            results = service.search_by_text(search, limit)
        else:
            point = parse_coordinates(latitude, longitude)
            results = [service.resolve_by_coordinates(point.latitude, point.longitude)]

    except (GeocodingError, ConfigurationError) as e:
        logger.error(f"Geocoding API error: {e}")
        return _error_response(500, "Failed to fetch geocoding data", e)

    return JSONResponse(
        {"results": [r.to_dict() for r in results], "count": len(results)},
        headers=CACHE_HEADERS,
    )


@app.get("/weather")
def weather(
    latitude: Optional[str] = None,
    longitude: Optional[str] = None,
    orchestrator: DashboardOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """指定地点の予報（現在・時間別・日別）"""
    point = parse_coordinates(latitude, longitude)

    try:
        forecast = orchestrator.weather_service.get_forecast(point.latitude, point.longitude)
    except WeatherAPIError as e:
        logger.error(f"Weather API error: {e}")
        return _error_response(502, "Failed to fetch weather data", e, status_code=e.status_code)

    return JSONResponse(forecast.to_dict())


@app.get("/nearby-weather")
def nearby_weather(
    latitude: Optional[str] = None,
    longitude: Optional[str] = None,
    zoom: Optional[str] = None,
    orchestrator: DashboardOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """地図の中心周辺の天気"""
    point = parse_coordinates(latitude, longitude)
    zoom_level = parse_zoom(zoom)

    locations = orchestrator.nearby_weather_service.get_nearby_weather(
        point.latitude, point.longitude, zoom_level
    )
    return {"results": [loc.to_dict() for loc in locations], "count": len(locations)}


@app.get("/location")
def current_location(orchestrator: DashboardOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    """現在地（取得できない場合はデフォルト位置）"""
    result = orchestrator.geolocation_service.get_current_position()
    return {
        "success": result.success,
        "coordinates": result.coordinates.to_dict(),
        "error": result.error,
        "is_fallback": result.is_fallback,
    }


@app.get("/cache/stats")
def cache_stats(orchestrator: DashboardOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    """キャッシュの統計"""
    return orchestrator.cache.get_stats()


@app.post("/cache/clear")
def clear_cache(
    scope: str = "all",
    orchestrator: DashboardOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """キャッシュを削除（scope=all または weather）"""
    if scope == "all":
        orchestrator.cache.clear()
    elif scope == "weather":
        orchestrator.cache.clear_weather_cache()
    else:
        raise ValidationError(f"Unknown cache scope: {scope}")

    logger.info(f"Cache cleared: scope={scope}")
    return {"status": "cleared", "scope": scope}


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """入力エラーは400"""
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """グローバル例外ハンドラー"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error", "detail": str(exc)},
    )


def parse_coordinates(latitude: Optional[str], longitude: Optional[str]) -> Coordinate:
    """
    クエリパラメータの座標を検証

    Raises:
        ValidationError: 未指定・数値でない・範囲外の場合
    """
    if not latitude or not longitude:
        raise ValidationError("Missing latitude or longitude parameters")

    try:
        lat = float(latitude)
        lon = float(longitude)
    except ValueError as e:
        raise ValidationError("Invalid latitude or longitude format") from e

    if not is_valid_coordinate(lat, lon):
        raise ValidationError("Coordinates out of valid range")

    return Coordinate(latitude=lat, longitude=lon)


def parse_zoom(zoom: Optional[str]) -> Optional[float]:
    """
    ズームレベルを検証（未指定はNone）

    Raises:
        ValidationError: 数値でない・0〜22の範囲外の場合
    """
    if zoom is None or zoom == "":
        return None
    try:
        value = float(zoom)
    except ValueError as e:
        raise ValidationError("Invalid zoom format") from e

    if not 0 <= value <= 22:
        raise ValidationError("Zoom out of valid range")

    return int(value) if value.is_integer() else value


def _error_response(
    status: int,
    message: str,
    exc: Exception,
    status_code: Optional[int] = None,
) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if settings.is_development:
        content["details"] = str(exc)
    if status_code is not None:
        content["upstream_status"] = status_code
    return JSONResponse(status_code=status, content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
