"""
Hourly AI news generation with caching and title deduplication.

All requests inside the same UTC hour with the same requested count share one
cache key, so the model is called at most once per hour per count (barring
concurrent misses). Generation never raises: an LLM outage yields whatever was
collected so far, possibly an empty list.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Optional

from pulse.cache import DualTierCache
from pulse.constants import (
    AI_NEWS_KEY_PREFIX,
    GENERATION_CACHE_TTL,
    GENERATION_DEFAULT_COUNT,
    GENERATION_MAX_REQUEST,
    GENERATION_MAX_ROUNDS,
    GENERATION_SURPLUS,
    GENERATION_TIME_BUCKET_FORMAT,
    SYNTHETIC_URL_BASE,
)
from pulse.dedupe import DedupeSession, TitleDedupeSet, title_hash
from pulse.errors import LLMClientError, ParseError
from pulse.llm_client import LLMClient
from pulse.logging_config import get_logger
from pulse.models import GeneratedNewsItem
from pulse.parsing import parse_news_batch
from pulse.prompts import build_generation_prompt

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def request_size(count: int, collected: int) -> int:
    """Items to ask for in the next round: the shortfall plus a surplus, capped."""
    return min(count - collected + GENERATION_SURPLUS, GENERATION_MAX_REQUEST)


def synthesize_source_url(now: datetime, digest: str, round_no: int, position: int) -> str:
    return (
        f"{SYNTHETIC_URL_BASE}/{now:%Y-%m-%d}/{now:%H}/{digest}-{round_no}-{position}"
    )


class NewsGenerator:
    def __init__(
        self,
        cache: DualTierCache,
        llm: LLMClient,
        dedupe: TitleDedupeSet,
        *,
        max_rounds: int = GENERATION_MAX_ROUNDS,
        cache_ttl: int = GENERATION_CACHE_TTL,
        key_prefix: str = AI_NEWS_KEY_PREFIX,
        coalesce: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.cache = cache
        self.llm = llm
        self.dedupe = dedupe
        self.max_rounds = max_rounds
        self.cache_ttl = cache_ttl
        self.key_prefix = key_prefix
        self.coalesce = coalesce
        self._clock = clock
        self._inflight: dict[str, asyncio.Future[list[GeneratedNewsItem]]] = {}

    def cache_key(self, count: int, now: Optional[datetime] = None) -> str:
        now = now or self._clock()
        return f"{self.key_prefix}:{now.strftime(GENERATION_TIME_BUCKET_FORMAT)}:count-{count}"

    async def generate_realtime_news(
        self, count: int = GENERATION_DEFAULT_COUNT
    ) -> list[GeneratedNewsItem]:
        if count <= 0:
            return []
        now = self._clock()
        key = self.cache_key(count, now)
        if not self.coalesce:
            return await self._generate(count, key, now)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._generate(count, key, now))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.debug("generation_joined_inflight", key=key)
        # one caller's cancellation must not cancel the shared run
        return list(await asyncio.shield(task))

    def _forget(self, key: str, task: asyncio.Future[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _generate(
        self, count: int, key: str, now: datetime
    ) -> list[GeneratedNewsItem]:
        cached = self._from_cache(await self.cache.get(key))
        if cached is not None:
            logger.info("generation_cache_hit", key=key, items=len(cached))
            return cached

        logger.info("generation_cache_miss", key=key, count=count)
        collected = await self._run_rounds(count, now)

        if not collected:
            logger.warning("generation_empty", key=key)
        # Short or empty results are cached too; the hour bucket bounds retries
        await self.cache.set(key, [item.to_dict() for item in collected], self.cache_ttl)
        return collected

    @staticmethod
    def _from_cache(value: Any) -> Optional[list[GeneratedNewsItem]]:
        if not isinstance(value, list):
            return None
        try:
            return [GeneratedNewsItem.from_dict(d) for d in value]
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("generation_cache_corrupt", error=str(e))
            return None

    async def _run_rounds(self, count: int, now: datetime) -> list[GeneratedNewsItem]:
        session = await self.dedupe.session()
        collected: list[GeneratedNewsItem] = []
        round_no = 0

        while len(collected) < count and round_no < self.max_rounds:
            round_no += 1
            wanted = request_size(count, len(collected))
            prompt = build_generation_prompt(wanted, now.strftime("%Y-%m-%d"))

            try:
                raw = await self.llm.generate(prompt)
            except LLMClientError as e:
                logger.error("generation_round_failed", round=round_no, error=str(e))
                break
            except Exception:
                logger.exception("generation_round_crashed", round=round_no)
                break

            try:
                batch = parse_news_batch(raw)
            except ParseError as e:
                logger.warning("generation_round_unparseable", round=round_no, error=str(e))
                continue

            accepted = await self._accept(batch, collected, count, session, now, round_no)
            logger.info(
                "generation_round_completed",
                round=round_no,
                requested=wanted,
                received=len(batch),
                accepted=accepted,
                collected=len(collected),
            )

        if session.accepted:
            await self.dedupe.refresh_expiry()
        logger.info("generation_finished", collected=len(collected), count=count, rounds=round_no)
        return collected

    async def _accept(
        self,
        batch: list[GeneratedNewsItem],
        collected: list[GeneratedNewsItem],
        count: int,
        session: DedupeSession,
        now: datetime,
        round_no: int,
    ) -> int:
        accepted = 0
        for position, item in enumerate(batch):
            if len(collected) >= count:
                break
            digest = title_hash(item.title)
            if session.is_member(digest):
                logger.debug("generation_duplicate_skipped", title=item.title[:50])
                continue
            if not item.source_url:
                item.source_url = synthesize_source_url(now, digest, round_no, position)
            collected.append(item)
            await session.record(digest)
            accepted += 1
        return accepted
