"""Process-wide wiring: one store, cache, dedupe set and generator per process."""

from __future__ import annotations

from dataclasses import dataclass

from pulse.analyzer import NewsAnalyzer
from pulse.cache import CacheConfig, DualTierCache
from pulse.config import Settings
from pulse.dedupe import TitleDedupeSet
from pulse.generator import NewsGenerator
from pulse.llm_client import LLMClient
from pulse.logging_config import get_logger
from pulse.memory_cache import MemoryCache
from pulse.redis_store import RedisStore

logger = get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    store: RedisStore
    cache: DualTierCache
    dedupe: TitleDedupeSet
    llm: LLMClient
    generator: NewsGenerator
    analyzer: NewsAnalyzer

    @classmethod
    def from_settings(cls, settings: Settings) -> Services:
        store = RedisStore.from_settings(settings)
        cache = DualTierCache(store, MemoryCache(), CacheConfig.from_settings(settings))
        dedupe = TitleDedupeSet(store)
        llm = LLMClient.from_settings(settings)
        return cls(
            settings=settings,
            store=store,
            cache=cache,
            dedupe=dedupe,
            llm=llm,
            generator=NewsGenerator(
                cache, llm, dedupe, coalesce=settings.coalesce_generation
            ),
            analyzer=NewsAnalyzer(llm),
        )

    async def start(self) -> None:
        await self.store.connect()
        await self.cache.start()
        if not self.llm.configured:
            logger.warning("llm_not_configured", detail="generation will return empty results")

    async def close(self) -> None:
        await self.cache.close()
        await self.store.close()
