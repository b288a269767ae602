from __future__ import annotations

import json
import re
from typing import Any

from pulse.constants import (
    CACHE_DEFAULT_TTL,
    CACHE_HOT_TTL,
    CACHE_SUPER_HOT_TTL,
    CACHE_WARM_TTL,
    HOTNESS_BOOKMARK_WEIGHT,
    HOTNESS_HOT_THRESHOLD,
    HOTNESS_IMPACT_WEIGHT,
    HOTNESS_SUPER_HOT_THRESHOLD,
    HOTNESS_VIEW_WEIGHT,
    HOTNESS_WARM_THRESHOLD,
)


def encode_value(value: Any) -> str:
    """Serialize a cache value to JSON text. Raises TypeError for non-JSON values."""
    return json.dumps(value, ensure_ascii=False)


def decode_value(raw: str | bytes) -> Any:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return json.loads(raw)


def hotness_score(
    view_count: float = 0, impact_score: float = 0, bookmark_count: float = 0
) -> float:
    """Weighted popularity score used to pick a cache TTL band."""
    return (
        view_count * HOTNESS_VIEW_WEIGHT
        + impact_score * HOTNESS_IMPACT_WEIGHT
        + bookmark_count * HOTNESS_BOOKMARK_WEIGHT
    )


def ttl_for_hotness(
    score: float,
    default_ttl: int = CACHE_DEFAULT_TTL,
    hot_ttl: int = CACHE_HOT_TTL,
) -> int:
    """
    Map a hotness score onto a TTL band.

    >= 200 -> 2h, >= 100 -> hot TTL (1h), >= 50 -> 45m, otherwise the default TTL.
    Configured TTLs are clamped to their neighbouring fixed bands so a hotter
    score never maps to a shorter TTL.
    """
    default_ttl = min(default_ttl, CACHE_WARM_TTL)
    hot_ttl = min(max(hot_ttl, CACHE_WARM_TTL), CACHE_SUPER_HOT_TTL)
    if score >= HOTNESS_SUPER_HOT_THRESHOLD:
        return CACHE_SUPER_HOT_TTL
    if score >= HOTNESS_HOT_THRESHOLD:
        return hot_ttl
    if score >= HOTNESS_WARM_THRESHOLD:
        return CACHE_WARM_TTL
    return default_ttl


def mask_redis_url(url: str) -> str:
    """Hide the password component of a redis:// URL for logging."""
    return re.sub(r":[^:@/]+@", ":****@", url)
