"""
Persistent, expiring set of generated-title hashes.

The whole set shares one TTL, reset to 24h after each generation session that
recorded something new; individual members never expire on their own.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from pulse.constants import DEDUPE_SET_KEY, DEDUPE_TTL
from pulse.logging_config import get_logger
from pulse.redis_store import RedisStore

logger = get_logger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _utf16_units(text: str) -> list[int]:
    data = text.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(data[i : i + 2], "little") for i in range(0, len(data), 2)]


def title_hash(title: str) -> str:
    """
    Fast non-cryptographic hash of a title (31-multiplier, 32-bit signed).

    The title is hashed as-is over its UTF-16 code units, so digests stay
    interchangeable with other writers of the shared Redis set. Collisions
    are accepted: this is a best-effort duplicate filter.
    """
    h = 0
    for unit in _utf16_units(title):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


class TitleDedupeSet:
    """
    Redis set of title hashes with a process-local mirror.

    Redis is authoritative when available. The local mirror keeps the filter
    working during an outage and is cleared once 24h pass without a refresh.
    """

    def __init__(
        self,
        store: RedisStore,
        key: str = DEDUPE_SET_KEY,
        ttl: int = DEDUPE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.key = key
        self.ttl = ttl
        self._clock = clock
        self._local: set[str] = set()
        self._local_refreshed_at: float = clock()

    def _reap_local(self) -> None:
        if self._local and self._clock() - self._local_refreshed_at > self.ttl:
            logger.info("dedupe_local_expired", size=len(self._local))
            self._local.clear()

    async def load(self) -> set[str]:
        """All hashes currently considered seen."""
        self._reap_local()
        hashes = set(self._local)
        if self.store.is_available():
            hashes |= await self.store.smembers(self.key)
        return hashes

    async def is_member(self, digest: str) -> bool:
        self._reap_local()
        if digest in self._local:
            return True
        return await self.store.sismember(self.key, digest)

    async def record(self, digest: str) -> None:
        self._reap_local()
        self._local.add(digest)
        await self.store.sadd(self.key, digest)

    async def refresh_expiry(self) -> None:
        self._local_refreshed_at = self._clock()
        await self.store.expire(self.key, self.ttl)
        logger.debug("dedupe_expiry_refreshed", key=self.key, ttl=self.ttl)

    async def clear(self) -> None:
        self._local.clear()
        await self.store.delete(self.key)

    async def session(self) -> DedupeSession:
        """Load the existing hashes once for one generation run."""
        return DedupeSession(self, await self.load())


class DedupeSession:
    """Per-request view: existing hashes plus those accepted during this run."""

    def __init__(self, dedupe: TitleDedupeSet, existing: set[str]) -> None:
        self._dedupe = dedupe
        self._existing = existing
        self.accepted: set[str] = set()

    def is_member(self, digest: str) -> bool:
        return digest in self._existing or digest in self.accepted

    async def record(self, digest: str) -> None:
        self.accepted.add(digest)
        await self._dedupe.record(digest)
