"""
Redis-backed durable cache tier.

Every public operation swallows connectivity errors and reports them as an
empty result (``None``/``False``/``0``/``[]``), so callers never have to
handle Redis outages themselves.
"""

from __future__ import annotations

from typing import Any, Optional, TypedDict

from redis.asyncio import Redis
from redis.exceptions import RedisError

from pulse.cache_utils import decode_value, encode_value, mask_redis_url
from pulse.config import Settings
from pulse.constants import (
    CACHE_DEFAULT_TTL,
    KEYSPACE_PATTERNS,
    REDIS_CONNECT_TIMEOUT,
    REDIS_KEYS_LIMIT,
)
from pulse.logging_config import get_logger
from pulse.models import KeyTTL

logger = get_logger(__name__)

_REDIS_ERRORS = (RedisError, OSError)


class RedisMemoryStats(TypedDict):
    used: str
    peak: str
    fragmentation: float


class RedisCounterStats(TypedDict):
    total_keys: int
    commands_processed: int
    connections_received: int


class RedisStats(TypedDict):
    connected: bool
    memory: RedisMemoryStats
    stats: RedisCounterStats
    keyspace: dict[str, int]


def _empty_stats() -> RedisStats:
    return {
        "connected": False,
        "memory": {"used": "0", "peak": "0", "fragmentation": 0.0},
        "stats": {"total_keys": 0, "commands_processed": 0, "connections_received": 0},
        "keyspace": {},
    }


def _format_info(info: dict[str, Any]) -> str:
    return "\n".join(f"{key}:{value}" for key, value in info.items())


class RedisStore:
    """Thin JSON-over-Redis wrapper. ``client=None`` means the tier is disabled."""

    def __init__(self, client: Optional[Redis] = None) -> None:
        self._client = client
        self._connected = client is not None

    @classmethod
    def from_settings(cls, settings: Settings) -> RedisStore:
        if not settings.redis_configured:
            logger.warning("redis_not_configured", detail="durable cache tier disabled")
            return cls(None)
        if settings.redis_url:
            logger.info("redis_configured", url=mask_redis_url(settings.redis_url))
            client = Redis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=REDIS_CONNECT_TIMEOUT,
            )
            return cls(client)
        logger.info("redis_configured", host=settings.redis_host, port=settings.redis_port)
        client = Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            db=settings.redis_db,
            decode_responses=True,
            socket_connect_timeout=REDIS_CONNECT_TIMEOUT,
        )
        return cls(client)

    async def connect(self) -> bool:
        """Ping the server once; an unreachable server disables the tier."""
        if self._client is None:
            return False
        try:
            await self._client.ping()
        except _REDIS_ERRORS as e:
            logger.error("redis_connect_failed", error=str(e))
            logger.warning("redis_disabled", detail="continuing without Redis cache")
            self._connected = False
            return False
        self._connected = True
        logger.info("redis_connected")
        return True

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except _REDIS_ERRORS as e:
            logger.warning("redis_close_failed", error=str(e))
        self._connected = False
        logger.info("redis_closed")

    def is_available(self) -> bool:
        return self._client is not None and self._connected

    async def get(self, key: str) -> Any | None:
        if not self.is_available():
            return None
        try:
            raw = await self._client.get(key)
        except _REDIS_ERRORS as e:
            logger.error("redis_get_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return decode_value(raw)
        except ValueError as e:
            logger.error("redis_decode_failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: int = CACHE_DEFAULT_TTL) -> bool:
        if not self.is_available():
            return False
        payload = encode_value(value)
        try:
            await self._client.setex(key, ttl, payload)
        except _REDIS_ERRORS as e:
            logger.error("redis_set_failed", key=key, error=str(e))
            return False
        return True

    async def delete(self, key: str) -> bool:
        if not self.is_available():
            return False
        try:
            await self._client.delete(key)
        except _REDIS_ERRORS as e:
            logger.error("redis_delete_failed", key=key, error=str(e))
            return False
        return True

    async def flush_all(self) -> bool:
        if not self.is_available():
            return False
        try:
            await self._client.flushall()
        except _REDIS_ERRORS as e:
            logger.error("redis_flush_failed", error=str(e))
            return False
        logger.info("redis_flushed")
        return True

    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete every key matching ``pattern`` (e.g. ``ai-news:*``)."""
        if not self.is_available():
            return 0
        try:
            keys = await self._client.keys(pattern)
            if not keys:
                logger.info("redis_pattern_empty", pattern=pattern)
                return 0
            await self._client.delete(*keys)
        except _REDIS_ERRORS as e:
            logger.error("redis_pattern_delete_failed", pattern=pattern, error=str(e))
            return 0
        logger.info("redis_pattern_deleted", pattern=pattern, count=len(keys))
        return len(keys)

    # Set operations (dedupe)

    async def sadd(self, key: str, *members: str) -> int:
        if not self.is_available() or not members:
            return 0
        try:
            return int(await self._client.sadd(key, *members))
        except _REDIS_ERRORS as e:
            logger.error("redis_sadd_failed", key=key, error=str(e))
            return 0

    async def sismember(self, key: str, member: str) -> bool:
        if not self.is_available():
            return False
        try:
            return bool(await self._client.sismember(key, member))
        except _REDIS_ERRORS as e:
            logger.error("redis_sismember_failed", key=key, error=str(e))
            return False

    async def smembers(self, key: str) -> set[str]:
        if not self.is_available():
            return set()
        try:
            return set(await self._client.smembers(key))
        except _REDIS_ERRORS as e:
            logger.error("redis_smembers_failed", key=key, error=str(e))
            return set()

    async def expire(self, key: str, seconds: int) -> bool:
        if not self.is_available():
            return False
        try:
            return bool(await self._client.expire(key, seconds))
        except _REDIS_ERRORS as e:
            logger.error("redis_expire_failed", key=key, error=str(e))
            return False

    # Monitoring

    async def get_info(self, section: Optional[str] = None) -> str:
        if not self.is_available():
            return "Redis is not connected"
        try:
            info = await self._client.info(section) if section else await self._client.info()
        except _REDIS_ERRORS as e:
            logger.error("redis_info_failed", error=str(e))
            return ""
        return _format_info(info)

    async def get_stats(self) -> RedisStats:
        if not self.is_available():
            return _empty_stats()
        try:
            info = await self._client.info()
            db_size = await self._client.dbsize()
        except _REDIS_ERRORS as e:
            logger.error("redis_stats_failed", error=str(e))
            return _empty_stats()

        return {
            "connected": True,
            "memory": {
                "used": str(info.get("used_memory_human", "0")),
                "peak": str(info.get("used_memory_peak_human", "0")),
                "fragmentation": float(info.get("mem_fragmentation_ratio", 1) or 1),
            },
            "stats": {
                "total_keys": int(db_size),
                "commands_processed": int(info.get("total_commands_processed", 0) or 0),
                "connections_received": int(
                    info.get("total_connections_received", 0) or 0
                ),
            },
            "keyspace": await self.keyspace_stats(),
        }

    async def keyspace_stats(self) -> dict[str, int]:
        """Key counts grouped by well-known prefix."""
        if not self.is_available():
            return {}
        stats: dict[str, int] = {}
        try:
            for pattern in KEYSPACE_PATTERNS:
                keys = await self._client.keys(pattern)
                stats[pattern.replace(":*", "")] = len(keys)
        except _REDIS_ERRORS as e:
            logger.error("redis_keyspace_failed", error=str(e))
            return {}
        return stats

    async def keys_with_ttl(
        self, pattern: str = "*", limit: int = REDIS_KEYS_LIMIT
    ) -> list[KeyTTL]:
        if not self.is_available():
            return []
        results: list[KeyTTL] = []
        try:
            keys = await self._client.keys(pattern)
            for key in sorted(keys)[:limit]:
                results.append({"key": key, "ttl": int(await self._client.ttl(key))})
        except _REDIS_ERRORS as e:
            logger.error("redis_keys_failed", pattern=pattern, error=str(e))
            return []
        return results

    async def cleanup_expired_keys(self, pattern: str = "*") -> int:
        """Delete keys matching ``pattern`` whose TTL reports them as already gone."""
        if not self.is_available():
            return 0
        cleaned = 0
        try:
            for key in await self._client.keys(pattern):
                if await self._client.ttl(key) == -2:
                    await self._client.delete(key)
                    cleaned += 1
        except _REDIS_ERRORS as e:
            logger.error("redis_cleanup_failed", pattern=pattern, error=str(e))
            return cleaned
        if cleaned:
            logger.info("redis_cleanup_completed", pattern=pattern, count=cleaned)
        return cleaned
