import fnmatch
import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Minimal async stand-in for redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.ttls: dict[str, int] = {}
        self.calls: list[str] = []
        self.closed = False

    def _all_keys(self):
        return set(self.values) | set(self.sets)

    async def ping(self):
        self.calls.append("ping")
        return True

    async def aclose(self):
        self.closed = True

    async def get(self, key):
        self.calls.append("get")
        return self.values.get(key)

    async def setex(self, key, ttl, value):
        self.calls.append("setex")
        self.values[key] = value
        self.ttls[key] = int(ttl)
        return True

    async def delete(self, *keys):
        self.calls.append("delete")
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def exists(self, *keys):
        return sum(1 for k in keys if k in self._all_keys())

    async def flushall(self):
        self.values.clear()
        self.sets.clear()
        self.ttls.clear()
        return True

    async def keys(self, pattern="*"):
        return [k for k in self._all_keys() if fnmatch.fnmatchcase(k, pattern)]

    async def ttl(self, key):
        if key not in self._all_keys():
            return -2
        return self.ttls.get(key, -1)

    async def sadd(self, key, *members):
        self.calls.append("sadd")
        existing = self.sets.setdefault(key, set())
        added = len(set(members) - existing)
        existing.update(members)
        return added

    async def sismember(self, key, member):
        return int(member in self.sets.get(key, set()))

    async def smembers(self, key):
        self.calls.append("smembers")
        return set(self.sets.get(key, set()))

    async def expire(self, key, seconds):
        self.calls.append("expire")
        if key not in self._all_keys():
            return False
        self.ttls[key] = int(seconds)
        return True

    async def info(self, section=None):
        return {
            "used_memory_human": "1.50M",
            "used_memory_peak_human": "2.00M",
            "mem_fragmentation_ratio": 1.2,
            "total_commands_processed": 42,
            "total_connections_received": 7,
        }

    async def dbsize(self):
        return len(self._all_keys())

    def stored(self, key):
        return json.loads(self.values[key])


class BrokenRedis:
    """Every command fails as if the server went away."""

    def __init__(self):
        self.attempts = 0

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            self.attempts += 1
            raise RedisConnectionError("Connection refused")

        return fail


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def broken_redis():
    return BrokenRedis()


@pytest.fixture
def clock():
    return FakeClock()
