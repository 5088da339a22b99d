"""日時関連ユーティリティ"""

import time
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

import pytz

from ..logging.config import get_logger

logger = get_logger(__name__)


def now_utc() -> datetime:
    """現在のUTC時間を取得"""
    return datetime.now(timezone.utc)


def epoch_millis() -> int:
    """現在時刻をエポックミリ秒で取得"""
    return int(time.time() * 1000)


def resolve_timezone(
    timezone_name: Optional[str] = None,
    utc_offset_seconds: Optional[int] = None,
) -> tzinfo:
    """
    予報レスポンスのタイムゾーン情報からtzinfoを取得

    Args:
        timezone_name: IANAタイムゾーン名（例: "Asia/Jakarta"）
        utc_offset_seconds: UTCからのオフセット（秒）

    Returns:
        tzinfo（不明な場合はUTC）
    """
    if timezone_name:
        try:
            return pytz.timezone(timezone_name)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Unknown timezone '{timezone_name}', using UTC offset")

    if utc_offset_seconds:
        return pytz.FixedOffset(int(utc_offset_seconds) // 60)

    return pytz.utc


def local_now(
    timezone_name: Optional[str] = None,
    utc_offset_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    地点のローカル現在時刻を取得

    Args:
        timezone_name: IANAタイムゾーン名
        utc_offset_seconds: UTCからのオフセット（秒）
        now: 基準時刻（テスト用、タイムゾーン無しはUTCとして扱う）

    Returns:
        ローカル時刻のdatetime
    """
    reference = now or now_utc()
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)

    return reference.astimezone(resolve_timezone(timezone_name, utc_offset_seconds))


def hour_key(dt: datetime) -> str:
    """Open-Meteoのhourly.time形式に合わせた時間キー（例: "2025-02-13T15"）"""
    return dt.strftime("%Y-%m-%dT%H")


def minutes(value: float) -> int:
    """分をミリ秒に変換"""
    return int(timedelta(minutes=value).total_seconds() * 1000)


def hours(value: float) -> int:
    """時間をミリ秒に変換"""
    return int(timedelta(hours=value).total_seconds() * 1000)
