"""Typed data models for the news cache and generation core."""

from __future__ import annotations

from dataclasses import dataclass, field
from collections.abc import Mapping
from typing import Any, Optional, TypedDict

from pulse.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_IMPACT_SCORE,
    DEFAULT_REGION,
    PLACEHOLDER_SOURCE,
    PLACEHOLDER_SUMMARY,
    PLACEHOLDER_TITLE,
    PLACEHOLDER_WHY_IT_MATTERS,
)


class NewsItemDict(TypedDict):
    """Serialized GeneratedNewsItem payload for caching and API boundaries."""

    title: str
    title_translated: str
    summary: str
    summary_translated: str
    category: str
    region: str
    impact_score: int
    source_label: str
    source_url: str


class AnalysisDict(TypedDict):
    category: str
    region: str
    impact_score: int
    summary: str
    why_it_matters: str
    tags: list[str]
    title_translated: str
    summary_translated: str
    why_it_matters_translated: str


class WarmupItem(TypedDict, total=False):
    """One entry produced for cache warm-up. ``ttl`` falls back to the default TTL."""

    key: str
    value: Any
    ttl: Optional[int]


class KeyTTL(TypedDict):
    key: str
    ttl: int


def _first(d: Mapping[str, Any], *names: str, default: Any) -> Any:
    for name in names:
        value = d.get(name)
        if value is not None:
            return value
    return default


@dataclass
class GeneratedNewsItem:
    """A news item produced by one generation round."""

    title: str
    title_translated: str = ""
    summary: str = PLACEHOLDER_SUMMARY
    summary_translated: str = ""
    category: str = DEFAULT_CATEGORY
    region: str = DEFAULT_REGION
    impact_score: int = DEFAULT_IMPACT_SCORE
    source_label: str = PLACEHOLDER_SOURCE
    source_url: str = ""

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> GeneratedNewsItem:
        """Create an item from a cached dict, snake_case or camelCase."""
        title = str(_first(d, "title", default=PLACEHOLDER_TITLE))
        summary = str(_first(d, "summary", default=PLACEHOLDER_SUMMARY))
        return cls(
            title=title,
            title_translated=str(
                _first(d, "title_translated", "titleTranslated", "titleCn", default=title)
            ),
            summary=summary,
            summary_translated=str(
                _first(d, "summary_translated", "summaryTranslated", "summaryCn", default=summary)
            ),
            category=str(_first(d, "category", default=DEFAULT_CATEGORY)),
            region=str(_first(d, "region", default=DEFAULT_REGION)),
            impact_score=int(
                _first(d, "impact_score", "impactScore", default=DEFAULT_IMPACT_SCORE)
            ),
            source_label=str(
                _first(d, "source_label", "sourceLabel", "source", default=PLACEHOLDER_SOURCE)
            ),
            source_url=str(_first(d, "source_url", "sourceUrl", "url", default="")),
        )

    def to_dict(self) -> NewsItemDict:
        """Serialize to dict for caching."""
        return {
            "title": self.title,
            "title_translated": self.title_translated,
            "summary": self.summary,
            "summary_translated": self.summary_translated,
            "category": self.category,
            "region": self.region,
            "impact_score": self.impact_score,
            "source_label": self.source_label,
            "source_url": self.source_url,
        }


@dataclass
class AnalysisResult:
    """Structured analysis of a single article."""

    category: str = DEFAULT_CATEGORY
    region: str = DEFAULT_REGION
    impact_score: int = DEFAULT_IMPACT_SCORE
    summary: str = PLACEHOLDER_SUMMARY
    why_it_matters: str = PLACEHOLDER_WHY_IT_MATTERS
    tags: list[str] = field(default_factory=list)
    title_translated: str = ""
    summary_translated: str = ""
    why_it_matters_translated: str = ""

    def to_dict(self) -> AnalysisDict:
        return {
            "category": self.category,
            "region": self.region,
            "impact_score": self.impact_score,
            "summary": self.summary,
            "why_it_matters": self.why_it_matters,
            "tags": list(self.tags),
            "title_translated": self.title_translated,
            "summary_translated": self.summary_translated,
            "why_it_matters_translated": self.why_it_matters_translated,
        }
