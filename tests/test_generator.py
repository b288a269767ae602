import asyncio
import json
import re
from datetime import UTC, datetime

import pytest

from pulse.cache import DualTierCache
from pulse.dedupe import TitleDedupeSet, title_hash
from pulse.errors import LLMClientError
from pulse.generator import NewsGenerator, request_size, synthesize_source_url
from pulse.memory_cache import MemoryCache
from pulse.models import GeneratedNewsItem
from pulse.redis_store import RedisStore

NOW = datetime(2025, 1, 15, 14, 30, tzinfo=UTC)
DEDUPE_KEY = "ai-news:titles:dedupe"
_WANTED = re.compile(r"List (\d+) distinct")


def _batch(titles, with_urls=True):
    items = []
    for title in titles:
        item = {"title": title, "summary": f"About {title}.", "source": "Wire"}
        if with_urls:
            item["sourceUrl"] = f"https://example.com/{title_hash(title)}"
        items.append(item)
    return json.dumps(items)


class StubLLM:
    """Answers each prompt with the next scripted reply; by default, as many fresh titles as asked."""

    def __init__(self, replies=None, delay=0.0):
        self.replies = list(replies) if replies is not None else None
        self.prompts: list[str] = []
        self.delay = delay
        self._serial = 0
        self.configured = True

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.replies is not None:
            reply = self.replies.pop(0)
            if isinstance(reply, BaseException):
                raise reply
            return reply
        wanted = int(_WANTED.search(prompt).group(1))
        titles = []
        for _ in range(wanted):
            self._serial += 1
            titles.append(f"Story number {self._serial}")
        return _batch(titles)

    @property
    def requested(self):
        return [int(_WANTED.search(p).group(1)) for p in self.prompts]


@pytest.fixture
def cache(fake_redis):
    return DualTierCache(RedisStore(fake_redis), MemoryCache())


@pytest.fixture
def dedupe(fake_redis):
    return TitleDedupeSet(RedisStore(fake_redis))


def _generator(cache, llm, dedupe, **kwargs):
    return NewsGenerator(cache, llm, dedupe, clock=lambda: NOW, **kwargs)


def test_request_size():
    assert request_size(8, 0) == 13
    assert request_size(8, 6) == 7
    assert request_size(100, 0) == 30


def test_cache_key_buckets_by_utc_hour(cache, dedupe):
    generator = _generator(cache, StubLLM(), dedupe)
    assert generator.cache_key(8) == "ai-news:2025-01-15-14:count-8"
    assert generator.cache_key(3, datetime(2025, 1, 15, 14, 59, 59, tzinfo=UTC)) == (
        "ai-news:2025-01-15-14:count-3"
    )


def test_synthesize_source_url():
    assert synthesize_source_url(NOW, "abc", 2, 4) == (
        "https://ai-pulse.generated/news/2025-01-15/14/abc-2-4"
    )


@pytest.mark.asyncio
async def test_cache_hit_skips_llm(cache, dedupe):
    cached = [GeneratedNewsItem(title="Cached story", source_url="https://example.com/c").to_dict()]
    await cache.set("ai-news:2025-01-15-14:count-8", cached, 1800)
    llm = StubLLM()

    result = await _generator(cache, llm, dedupe).generate_realtime_news(8)

    assert [item.title for item in result] == ["Cached story"]
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_cache_hit_returns_camel_case_items_unchanged(cache, dedupe):
    cached = [
        {
            "title": f"T{i}",
            "titleTranslated": f"TT{i}",
            "summary": f"S{i}",
            "summaryTranslated": f"ST{i}",
            "category": "research",
            "region": "asia",
            "impactScore": 9,
            "source": "Wire",
            "sourceUrl": f"https://x.example/{i}",
        }
        for i in range(8)
    ]
    await cache.set("ai-news:2025-01-15-14:count-8", cached, 1800)
    llm = StubLLM()

    result = await _generator(cache, llm, dedupe).generate_realtime_news(8)

    assert llm.prompts == []
    assert len(result) == 8
    for item, raw in zip(result, cached):
        assert item.title == raw["title"]
        assert item.title_translated == raw["titleTranslated"]
        assert item.summary == raw["summary"]
        assert item.summary_translated == raw["summaryTranslated"]
        assert item.category == raw["category"]
        assert item.region == raw["region"]
        assert item.impact_score == raw["impactScore"]
        assert item.source_label == raw["source"]
        assert item.source_url == raw["sourceUrl"]


@pytest.mark.asyncio
async def test_cache_hit_round_trips_snake_case_items(cache, dedupe):
    original = GeneratedNewsItem(
        title="Exact", title_translated="", summary="S", impact_score=3, source_url="https://e.example/1"
    )
    await cache.set("ai-news:2025-01-15-14:count-1", [original.to_dict()], 1800)

    (item,) = await _generator(cache, StubLLM(), dedupe).generate_realtime_news(1)

    assert item == original


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [1, 8, 25])
async def test_quota_reached_in_one_round(cache, dedupe, count):
    llm = StubLLM()

    result = await _generator(cache, llm, dedupe).generate_realtime_news(count)

    assert len(result) == count
    assert llm.requested == [min(count + 5, 30)]
    assert len({title_hash(item.title) for item in result}) == count


@pytest.mark.asyncio
async def test_result_is_cached_for_the_hour(cache, dedupe, fake_redis):
    llm = StubLLM()
    generator = _generator(cache, llm, dedupe)

    first = await generator.generate_realtime_news(4)
    second = await generator.generate_realtime_news(4)

    assert first == second
    assert len(llm.prompts) == 1
    assert fake_redis.ttls["ai-news:2025-01-15-14:count-4"] == 1800


@pytest.mark.asyncio
async def test_partial_result_when_later_round_fails(cache, dedupe):
    llm = StubLLM([_batch(["One", "Two", "Three"]), LLMClientError("down", attempts=3)])

    result = await _generator(cache, llm, dedupe).generate_realtime_news(8)

    assert [item.title for item in result] == ["One", "Two", "Three"]
    assert llm.requested == [13, 10]
    assert await cache.get("ai-news:2025-01-15-14:count-8") is not None


@pytest.mark.asyncio
async def test_duplicates_across_rounds_are_skipped(cache, dedupe):
    llm = StubLLM([_batch(["Alpha", "Beta"]), _batch(["Alpha", "Gamma", "Delta"])])

    result = await _generator(cache, llm, dedupe).generate_realtime_news(3)

    assert [item.title for item in result] == ["Alpha", "Beta", "Gamma"]
    assert llm.requested == [8, 6]


@pytest.mark.asyncio
async def test_previously_generated_titles_are_excluded(cache, dedupe, fake_redis):
    fake_redis.sets[DEDUPE_KEY] = {title_hash("Old story")}
    llm = StubLLM([_batch(["Old story", "New story"])])

    result = await _generator(cache, llm, dedupe).generate_realtime_news(1)

    assert [item.title for item in result] == ["New story"]
    assert title_hash("New story") in fake_redis.sets[DEDUPE_KEY]


@pytest.mark.asyncio
async def test_round_cap_limits_calls(cache, dedupe):
    llm = StubLLM([_batch(["A"]), _batch(["B"]), _batch(["C"]), _batch(["D"])])

    result = await _generator(cache, llm, dedupe).generate_realtime_news(8)

    assert [item.title for item in result] == ["A", "B", "C"]
    assert len(llm.prompts) == 3


@pytest.mark.asyncio
async def test_unparseable_round_is_retried_next_round(cache, dedupe):
    llm = StubLLM(["Sorry, I cannot do that.", _batch(["Recovered"])])

    result = await _generator(cache, llm, dedupe).generate_realtime_news(1)

    assert [item.title for item in result] == ["Recovered"]
    assert len(llm.prompts) == 2


@pytest.mark.asyncio
async def test_missing_source_url_is_synthesized(cache, dedupe):
    llm = StubLLM([_batch(["Robots learn to cook"], with_urls=False)])

    (item,) = await _generator(cache, llm, dedupe).generate_realtime_news(1)

    digest = title_hash("Robots learn to cook")
    assert item.source_url == f"https://ai-pulse.generated/news/2025-01-15/14/{digest}-1-0"


@pytest.mark.asyncio
async def test_total_outage_caches_empty_result(cache, dedupe, fake_redis):
    llm = StubLLM([LLMClientError("down", attempts=3)])
    generator = _generator(cache, llm, dedupe)

    assert await generator.generate_realtime_news(8) == []
    assert await cache.get("ai-news:2025-01-15-14:count-8") == []
    assert fake_redis.ttls["ai-news:2025-01-15-14:count-8"] == 1800
    assert "expire" not in fake_redis.calls

    # Served from the cache for the rest of the hour
    assert await generator.generate_realtime_news(8) == []
    assert len(llm.prompts) == 1


@pytest.mark.asyncio
async def test_unexpected_llm_error_is_contained(cache, dedupe):
    llm = StubLLM([RuntimeError("boom")])
    assert await _generator(cache, llm, dedupe).generate_realtime_news(2) == []


@pytest.mark.asyncio
async def test_dedupe_expiry_refreshed_after_accepting(cache, dedupe, fake_redis):
    await _generator(cache, StubLLM(), dedupe).generate_realtime_news(2)
    assert fake_redis.ttls[DEDUPE_KEY] == 86400


@pytest.mark.asyncio
async def test_non_positive_count(cache, dedupe):
    llm = StubLLM()
    assert await _generator(cache, llm, dedupe).generate_realtime_news(0) == []
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_works_without_redis():
    cache = DualTierCache(RedisStore(None), MemoryCache())
    dedupe = TitleDedupeSet(RedisStore(None))
    llm = StubLLM()
    generator = _generator(cache, llm, dedupe)

    first = await generator.generate_realtime_news(3)
    second = await generator.generate_realtime_news(3)

    assert len(first) == 3
    assert first == second
    assert len(llm.prompts) == 1


@pytest.mark.asyncio
async def test_concurrent_requests_coalesce(cache, dedupe):
    llm = StubLLM(delay=0.01)
    generator = _generator(cache, llm, dedupe, coalesce=True)

    a, b = await asyncio.gather(
        generator.generate_realtime_news(5), generator.generate_realtime_news(5)
    )

    assert a == b
    assert len(llm.prompts) == 1
    assert generator._inflight == {}


@pytest.mark.asyncio
async def test_concurrent_requests_without_coalescing_each_call_llm(cache, dedupe):
    llm = StubLLM(delay=0.01)
    generator = _generator(cache, llm, dedupe)

    await asyncio.gather(generator.generate_realtime_news(5), generator.generate_realtime_news(5))

    assert len(llm.prompts) == 2
