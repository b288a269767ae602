"""
Dual-tier cache: Redis first, in-process memory as the guaranteed fallback.

Writes go to both tiers independently (no transaction); reads prefer Redis and
mirror hits into memory so a later Redis outage can still serve them.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass
from typing import Any, Optional, TypedDict

from pulse.cache_utils import hotness_score, ttl_for_hotness
from pulse.config import Settings
from pulse.constants import CACHE_DEFAULT_TTL, CACHE_HOT_TTL, WARMUP_BATCH_SIZE
from pulse.logging_config import get_logger
from pulse.memory_cache import MemoryCache
from pulse.models import KeyTTL, WarmupItem
from pulse.redis_store import RedisStore

logger = get_logger(__name__)


@dataclass
class CacheConfig:
    default_ttl: int = CACHE_DEFAULT_TTL
    hot_ttl: int = CACHE_HOT_TTL
    warmup_enabled: bool = True
    degrade_enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> CacheConfig:
        return cls(
            default_ttl=settings.default_ttl,
            hot_ttl=settings.hot_ttl,
            warmup_enabled=settings.warmup_enabled,
            degrade_enabled=settings.degrade_enabled,
        )


class CacheStats(TypedDict):
    redis: dict[str, bool]
    memory: dict[str, Any]
    config: dict[str, Any]


class DualTierCache:
    def __init__(
        self,
        store: RedisStore,
        memory: Optional[MemoryCache] = None,
        config: Optional[CacheConfig] = None,
    ) -> None:
        self.store = store
        self.memory = memory if memory is not None else MemoryCache()
        self.config = config if config is not None else CacheConfig()

    async def start(self) -> None:
        if self.config.degrade_enabled:
            self.memory.start()
            logger.info("memory_fallback_enabled", sweep_interval=self.memory.sweep_interval)

    async def close(self) -> None:
        await self.memory.stop()
        self.memory.clear()

    async def get(self, key: str) -> Any | None:
        if self.store.is_available():
            try:
                value = await self.store.get(key)
            except Exception as e:
                logger.warning("redis_get_degraded", key=key, error=str(e))
                value = None
            if value is not None:
                logger.debug("cache_hit", key=key, tier="redis")
                if self.config.degrade_enabled:
                    self.memory.set(key, value, self.config.default_ttl)
                return value

        if self.config.degrade_enabled:
            value = self.memory.get(key)
            if value is not None:
                logger.debug("cache_hit", key=key, tier="memory")
                return value

        logger.debug("cache_miss", key=key)
        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Double-write ``value``. Succeeds if Redis accepted it or the memory tier holds it."""
        effective_ttl = ttl or self.config.default_ttl
        success = False

        if self.store.is_available():
            try:
                success = await self.store.set(key, value, effective_ttl)
            except TypeError:
                raise
            except Exception as e:
                logger.warning("redis_set_degraded", key=key, error=str(e))
            if success:
                logger.debug("cache_set", key=key, tier="redis", ttl=effective_ttl)

        if self.config.degrade_enabled:
            self.memory.set(key, value, effective_ttl)
            success = True

        return success

    async def set_with_dynamic_ttl(
        self,
        key: str,
        value: Any,
        view_count: float = 0,
        impact_score: float = 0,
        bookmark_count: float = 0,
    ) -> bool:
        score = hotness_score(view_count, impact_score, bookmark_count)
        ttl = ttl_for_hotness(score, self.config.default_ttl, self.config.hot_ttl)
        logger.debug(
            "dynamic_ttl",
            key=key,
            ttl=ttl,
            hot_score=score,
            views=view_count,
            impact=impact_score,
            bookmarks=bookmark_count,
        )
        return await self.set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        removed = await self.store.delete(key)
        return self.memory.delete(key) or removed

    async def warmup(self, producer: Callable[[], Awaitable[Sequence[WarmupItem]]]) -> int:
        """Pre-populate the cache from ``producer``. Returns the number of items loaded."""
        if not self.config.warmup_enabled:
            logger.info("cache_warmup_disabled")
            return 0

        logger.info("cache_warmup_started")
        started = time.perf_counter()
        try:
            items = await producer()
        except Exception:
            logger.exception("cache_warmup_failed")
            return 0

        loaded = 0
        for item in items:
            try:
                stored = await self.set(item["key"], item["value"], item.get("ttl"))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("cache_warmup_item_failed", key=item.get("key"), error=str(e))
                continue
            if stored:
                loaded += 1

        logger.info(
            "cache_warmup_completed",
            loaded=loaded,
            total=len(items),
            duration_ms=round((time.perf_counter() - started) * 1000),
        )
        return loaded

    async def batch_warmup(
        self, items: Sequence[WarmupItem], batch_size: int = WARMUP_BATCH_SIZE
    ) -> int:
        """Write ``items`` in fixed-size concurrent batches; failed writes are counted, not raised."""
        batch_size = max(1, batch_size)
        logger.info("batch_warmup_started", total=len(items), batch_size=batch_size)
        loaded = 0
        for start in range(0, len(items), batch_size):
            batch = items[start : start + batch_size]
            results = await asyncio.gather(
                *(self.set(item["key"], item["value"], item.get("ttl")) for item in batch),
                return_exceptions=True,
            )
            for item, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.warning("batch_warmup_item_failed", key=item["key"], error=str(result))
                elif result is True:
                    loaded += 1
        logger.info("batch_warmup_completed", loaded=loaded, total=len(items))
        return loaded

    async def delete_by_pattern(self, pattern: str) -> int:
        """Remove matching keys from both tiers. Returns the larger of the two counts."""
        redis_count = await self.store.delete_by_pattern(pattern)
        memory_count = self.memory.delete_by_pattern(pattern)
        return max(redis_count, memory_count)

    async def cleanup(self, pattern: str = "*") -> int:
        """Drop expired entries: Redis keys already gone, plus a memory sweep."""
        return await self.store.cleanup_expired_keys(pattern) + self.memory.sweep()

    async def flush_all(self) -> bool:
        self.memory.clear()
        return await self.store.flush_all()

    async def keys(self, pattern: str = "*", limit: int = 100) -> list[KeyTTL]:
        if self.store.is_available():
            return await self.store.keys_with_ttl(pattern, limit)
        return [{"key": k, "ttl": -1} for k in self.memory.keys(pattern)[:limit]]

    def get_stats(self) -> CacheStats:
        return {
            "redis": {"available": self.store.is_available()},
            "memory": {"size": len(self.memory), "enabled": self.config.degrade_enabled},
            "config": asdict(self.config),
        }
