"""In-process fallback cache tier with a periodic expiry sweep."""

from __future__ import annotations

import asyncio
import fnmatch
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from pulse.cache_utils import decode_value, encode_value
from pulse.constants import MEMORY_SWEEP_INTERVAL
from pulse.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class MemoryEntry:
    payload: str  # JSON text, decoded fresh on every read
    expire_at: float


class MemoryCache:
    """
    Process-wide ``key -> (value, expire_at)`` map.

    Reads never remove entries: an expired entry is simply not returned until
    the background sweep (or an overwrite) drops it.
    """

    def __init__(
        self,
        sweep_interval: float = MEMORY_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, MemoryEntry] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task[None]] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def set(self, key: str, value: Any, ttl: float) -> None:
        entry = MemoryEntry(payload=encode_value(value), expire_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or self._clock() > entry.expire_at:
            return None
        return decode_value(entry.payload)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_by_pattern(self, pattern: str) -> int:
        with self._lock:
            matched = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for key in matched:
                del self._entries[key]
        return len(matched)

    def keys(self, pattern: str = "*") -> list[str]:
        with self._lock:
            return sorted(k for k in self._entries if fnmatch.fnmatchcase(k, pattern))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Evict every entry whose expiry has passed. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.expire_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("memory_cache_swept", removed=len(expired))
        return len(expired)

    def start(self) -> None:
        """Start the background sweep on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()
