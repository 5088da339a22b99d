"""CLIのテスト"""

import pytest

from nearcast.entrypoint import apply_temperature_unit, build_parser, main, run_command
from nearcast.features.cache.stores.memory_store import MemoryStore
from nearcast.features.dashboard.orchestrator import DashboardOrchestrator
from nearcast.infrastructure.config.settings import Settings
from nearcast.shared.http.client import HTTPClient

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"


@pytest.fixture()
def orchestrator(region_dataset):
    orchestrator = DashboardOrchestrator(
        Settings(_env_file=None, gcp_project_id=None, cache_store_path=""),
        region_dataset=region_dataset,
        persistent_store=MemoryStore(),
        http_client=HTTPClient(max_retries=0),
    )
    yield orchestrator
    orchestrator.close()


def test_subcommand_is_required() -> None:
    """サブコマンドは必須"""
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_reverse_and_search(orchestrator: DashboardOrchestrator) -> None:
    """逆ジオコーディングと名前検索"""
    parser = build_parser()

    reverse = run_command(orchestrator, parser.parse_args(["reverse", "--lat", "-6.21", "--lon", "106.85"]))
    assert reverse["display_name"] == "Jakarta, Indonesia"

    search = run_command(orchestrator, parser.parse_args(["search", "Bogor", "--limit", "3"]))
    assert [r["name"] for r in search] == ["Bogor"]


def test_forecast_saves_and_reuses_location(
    orchestrator: DashboardOrchestrator, forecast_payload, requests_mock
) -> None:
    """--saveで地点と単位を保存し、次回は引数なしで使う"""
    requests_mock.get(FORECAST_URL, json=forecast_payload())
    parser = build_parser()

    first = run_command(
        orchestrator,
        parser.parse_args(["forecast", "--lat", "-6.21", "--lon", "106.85", "--unit", "F", "--save"]),
    )
    assert first["unit"] == "F"

    preferences = orchestrator.preferences_service.load()
    assert preferences.temp_unit == "F"
    assert preferences.location.city == "Jakarta"
    assert preferences.location.country == "Indonesia"

    second = run_command(orchestrator, parser.parse_args(["forecast"]))
    assert second["unit"] == "F"
    assert requests_mock.last_request.qs["latitude"] == ["-6.21"]


def test_forecast_without_saved_location_uses_fallback(
    orchestrator: DashboardOrchestrator, forecast_payload, requests_mock
) -> None:
    """保存済みの地点も現在地もなければデフォルト位置の予報"""
    requests_mock.get(FORECAST_URL, json=forecast_payload())

    output = run_command(orchestrator, build_parser().parse_args(["forecast"]))

    assert output["unit"] == "C"
    assert requests_mock.last_request.qs["latitude"] == ["-6.2088"]


def test_clear_cache_scope(orchestrator: DashboardOrchestrator) -> None:
    """キャッシュ削除の範囲"""
    orchestrator.cache.set("weather_1_2", 1)
    orchestrator.cache.set("geocode_search_x_10", 2)

    run_command(orchestrator, build_parser().parse_args(["clear-cache", "--scope", "weather"]))

    assert orchestrator.cache.get_stats()["memory_entries"] == 1


def test_apply_temperature_unit() -> None:
    """予報の全ての気温を変換する"""
    data = {
        "current": {"temperature": 30.0},
        "hourly": [{"temperature": 0.0}],
        "today_hourly": [{"temperature": 100.0}],
        "daily": [{"temp": {"min": 20.0, "max": None}, "hourly": [{"temperature": -40.0}]}],
    }

    converted = apply_temperature_unit(data, "F")

    assert converted["current"]["temperature"] == 86.0
    assert converted["hourly"][0]["temperature"] == 32.0
    assert converted["today_hourly"][0]["temperature"] == 212.0
    assert converted["daily"][0]["temp"] == {"min": 68.0, "max": None}
    assert converted["daily"][0]["hourly"][0]["temperature"] == -40.0


def test_main_exit_codes(tmp_path, monkeypatch) -> None:
    """成功は0、失敗は1"""
    monkeypatch.setenv("CACHE_STORE_PATH", str(tmp_path / "store.json"))
    monkeypatch.delenv("GCP_PROJECT_ID", raising=False)
    env_file = str(tmp_path / "missing.env")

    assert main(["--env-file", env_file, "clear-cache"]) == 0
    # 地域データセットが未設定のため失敗する
    assert main(["--env-file", env_file, "search", "Bogor"]) == 1


def test_forecast_save_with_invalid_coordinates_stores_fallback(
    orchestrator: DashboardOrchestrator, forecast_payload, requests_mock
) -> None:
    """範囲外の座標はデフォルト位置に置き換えてから予報・保存する"""
    requests_mock.get(FORECAST_URL, json=forecast_payload())

    run_command(
        orchestrator,
        build_parser().parse_args(["forecast", "--lat", "999", "--lon", "-500", "--save"]),
    )

    location = orchestrator.preferences_service.load().location
    assert location.city == "Jakarta"
    assert location.coordinates.to_tuple() == (-6.2088, 106.8456)
    assert requests_mock.last_request.qs["latitude"] == ["-6.2088"]
