from __future__ import annotations

import logging
from typing import Optional

from pulse.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_REGION,
    DEFAULT_IMPACT_SCORE,
    DEFAULT_SUMMARY_CHARS,
    MAX_SIMPLE_TAGS,
    PLACEHOLDER_SUMMARY,
    PLACEHOLDER_WHY_IT_MATTERS,
    SIMPLE_TAG_TERMS,
)
from pulse.errors import LLMClientError, ParseError
from pulse.llm_client import LLMClient
from pulse.models import AnalysisResult
from pulse.parsing import parse_analysis, validate_category
from pulse.prompts import build_analysis_prompt

logger = logging.getLogger(__name__)


def extract_simple_tags(title: str) -> list[str]:
    lowered = title.lower()
    return [t for t in SIMPLE_TAG_TERMS if t.lower() in lowered][:MAX_SIMPLE_TAGS]


def default_analysis(
    title: str, content: str, source_category: Optional[str] = None
) -> AnalysisResult:
    """Analysis used when the model is unavailable or its answer is unusable."""
    content = content.strip()
    summary = (
        content[:DEFAULT_SUMMARY_CHARS] + "..."
        if len(content) > DEFAULT_SUMMARY_CHARS
        else content or PLACEHOLDER_SUMMARY
    )
    return AnalysisResult(
        category=validate_category(source_category) or DEFAULT_CATEGORY,
        region=DEFAULT_REGION,
        impact_score=DEFAULT_IMPACT_SCORE,
        summary=summary,
        why_it_matters=PLACEHOLDER_WHY_IT_MATTERS,
        tags=extract_simple_tags(title),
        title_translated=title,
        summary_translated=summary,
        why_it_matters_translated=PLACEHOLDER_WHY_IT_MATTERS,
    )


class NewsAnalyzer:
    """Categorizes, scores and translates a single ingested article."""

    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    async def analyze_news(
        self, title: str, content: str, source_category: Optional[str] = None
    ) -> AnalysisResult:
        if not self.llm.configured:
            logger.warning("LLM API key not configured, using default analysis")
            return default_analysis(title, content, source_category)

        try:
            raw = await self.llm.generate(build_analysis_prompt(title, content))
            return parse_analysis(raw, fallback_category=source_category)
        except (LLMClientError, ParseError) as e:
            logger.error("Failed to analyze news %r: %s", title[:50], e)
            return default_analysis(title, content, source_category)
