"""行政区分ごとのplace_rank / importance"""

DEFAULT_PLACE_RANK = 12
DEFAULT_IMPORTANCE = 0.55

PLACE_RANKS: dict[str, int] = {
    "country": 4,
    "province": 8,
    "state": 8,
    "emirate": 8,
    "region": 10,
    "county": 12,
    "district": 12,
    "parish": 14,
    "city": 16,
    "town": 16,
    "village": 18,
}

IMPORTANCES: dict[str, float] = {
    "country": 0.75,
    "province": 0.65,
    "state": 0.65,
    "emirate": 0.65,
    "region": 0.60,
    "county": 0.55,
    "district": 0.55,
    "parish": 0.50,
    "city": 0.70,
    "town": 0.60,
    "village": 0.50,
}


def place_rank_for(division_type: str) -> int:
    """行政区分のplace_rank（未知の区分は12）"""
    return PLACE_RANKS.get((division_type or "").lower(), DEFAULT_PLACE_RANK)


def importance_for(division_type: str) -> float:
    """行政区分のimportance（未知の区分は0.55）"""
    return IMPORTANCES.get((division_type or "").lower(), DEFAULT_IMPORTANCE)
