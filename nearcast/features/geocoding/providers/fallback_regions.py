"""組み込みの地域データ（データベースが使えない場合の最終手段）"""

from dataclasses import dataclass

from ..domain.models import LocalRegionRecord


@dataclass(frozen=True)
class _Region:
    name: str
    display_name: str
    lat: float
    lon: float
    type: str


# インドネシアの主要地域・都市
_INDONESIA = (
    # スマトラ
    _Region("Sumatra", "Sumatra, Indonesia", 0.1498584, 102.8197858, "region"),
    _Region("Sumatera", "Sumatra, Indonesia", 0.1498584, 102.8197858, "region"),
    _Region("North Sumatra", "North Sumatra, Indonesia", 3.5952, 98.6722, "province"),
    _Region("West Sumatra", "West Sumatra, Indonesia", -0.7893, 100.6512, "province"),
    _Region("South Sumatra", "South Sumatra, Indonesia", -3.3194, 104.9148, "province"),
    # ジャワ
    _Region("Java", "Java, Indonesia", -7.6145, 110.7122, "island"),
    _Region("West Java", "West Java, Indonesia", -6.9147, 107.6098, "province"),
    _Region("Central Java", "Central Java, Indonesia", -7.1500, 110.1403, "province"),
    _Region("East Java", "East Java, Indonesia", -7.5360, 112.2384, "province"),
    # その他の地域
    _Region("Bali", "Bali, Indonesia", -8.4095, 115.1889, "province"),
    _Region("Kalimantan", "Kalimantan, Indonesia", -1.6815, 113.3823, "region"),
    _Region("Borneo", "Kalimantan, Indonesia", -1.6815, 113.3823, "region"),
    _Region("Sulawesi", "Sulawesi, Indonesia", -2.1124, 120.1316, "island"),
    _Region("Papua", "Papua, Indonesia", -4.2699, 138.0804, "province"),
    # 主要都市
    _Region("Jakarta", "Jakarta, Indonesia", -6.2088, 106.8456, "city"),
    _Region("Surabaya", "Surabaya, East Java, Indonesia", -7.2575, 112.7521, "city"),
    _Region("Bandung", "Bandung, West Java, Indonesia", -6.9175, 107.6191, "city"),
    _Region("Medan", "Medan, North Sumatra, Indonesia", 3.5952, 98.6722, "city"),
    _Region("Semarang", "Semarang, Central Java, Indonesia", -6.9667, 110.4167, "city"),
    _Region("Palembang", "Palembang, South Sumatra, Indonesia", -2.9761, 104.7754, "city"),
    _Region("Makassar", "Makassar, South Sulawesi, Indonesia", -5.1477, 119.4327, "city"),
    _Region("Denpasar", "Denpasar, Bali, Indonesia", -8.6705, 115.2126, "city"),
)


def _place_rank(region_type: str) -> int:
    if region_type == "country":
        return 4
    if region_type == "province":
        return 8
    if region_type == "region":
        return 10
    return 16


def _importance(region_type: str) -> float:
    if region_type == "country":
        return 0.75
    if region_type == "province":
        return 0.65
    return 0.55


FALLBACK_REGIONS: tuple[LocalRegionRecord, ...] = tuple(
    LocalRegionRecord(
        id=region.name.replace(" ", "_").lower(),
        name=region.name,
        display_name=region.display_name,
        type=region.type,
        country_code="id",
        country_name="Indonesia",
        latitude=region.lat,
        longitude=region.lon,
        importance=_importance(region.type),
        place_rank=_place_rank(region.type),
    )
    for region in _INDONESIA
)


def search_fallback_regions(query: str, limit: int) -> list[LocalRegionRecord]:
    """
    組み込みデータを部分一致検索（名前または表示名、定義順）

    Args:
        query: 検索文字列
        limit: 最大件数

    Returns:
        list[LocalRegionRecord]: 一致した地域
    """
    needle = query.casefold()
    results: list[LocalRegionRecord] = []

    for region in FALLBACK_REGIONS:
        if needle in region.name.casefold() or needle in region.display_name.casefold():
            results.append(region)
            if len(results) >= limit:
                break

    return results
