"""
Lenient parsing of model responses.

Malformed optional fields are replaced with defaults instead of rejecting the
item; only a response with no JSON payload at all raises ``ParseError``.
"""

from __future__ import annotations

import ast
import json
import logging
import math
from typing import Optional

from pulse.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_IMPACT_SCORE,
    DEFAULT_REGION,
    IMPACT_SCORE_MAX,
    IMPACT_SCORE_MIN,
    MAX_TAGS,
    PLACEHOLDER_SOURCE,
    PLACEHOLDER_SUMMARY,
    PLACEHOLDER_WHY_IT_MATTERS,
    VALID_CATEGORIES,
    VALID_REGIONS,
)
from pulse.errors import ParseError
from pulse.models import AnalysisResult, GeneratedNewsItem
from pulse.url_utils import normalize_url

logger = logging.getLogger(__name__)

_CLOSERS = {"{": "}", "[": "]"}
_BATCH_KEYS = ("news", "items", "data", "results")


def strip_code_fence(src: str) -> str:
    cleaned = src.strip()
    if not cleaned.startswith("```"):
        return cleaned
    lines = cleaned.splitlines()
    if lines and lines[0].strip().startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def extract_json_span(src: str, opener: str = "{") -> str | None:
    """Return the first balanced ``{...}`` or ``[...]`` span, skipping brackets inside strings."""
    start = src.find(opener)
    if start == -1:
        return None
    closer = _CLOSERS[opener]

    depth = 0
    in_string = False
    escape = False
    for idx in range(start, len(src)):
        ch = src[idx]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return src[start : idx + 1]
    return None


def load_json_payload(text: str, prefer: str = "{") -> dict | list:
    """Parse the JSON object/array carried by a model response."""
    if not text or not text.strip():
        raise ParseError("Empty model response")

    clean_text = strip_code_fence(text)
    candidates = [clean_text]
    for opener in (prefer, "[" if prefer == "{" else "{"):
        span = extract_json_span(clean_text, opener)
        if span and span not in candidates:
            candidates.append(span)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.debug("JSON decode failed, trying fallback: %s", e)
        else:
            if isinstance(parsed, (dict, list)):
                return parsed
            continue
        try:
            parsed = ast.literal_eval(candidate)
        except (ValueError, SyntaxError, MemoryError, RecursionError):
            continue
        if isinstance(parsed, (dict, list)):
            return parsed

    logger.debug("Raw response without JSON payload: %s", text[:500])
    raise ParseError("No JSON object found in response")


def validate_category(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    category = value.strip().lower()
    return category if category in VALID_CATEGORIES else None


def validate_region(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    region = value.strip().lower()
    return region if region in VALID_REGIONS else None


def validate_impact_score(value: object) -> int:
    if isinstance(value, bool):
        return DEFAULT_IMPACT_SCORE
    try:
        score = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_IMPACT_SCORE
    if math.isnan(score) or score < IMPACT_SCORE_MIN or score > IMPACT_SCORE_MAX:
        return DEFAULT_IMPACT_SCORE
    # round half up
    return int(math.floor(score + 0.5))


def validate_tags(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    tags = [str(t).strip() for t in value if isinstance(t, (str, int, float))]
    return [t for t in tags if t][:MAX_TAGS]


def _pick(data: dict, *names: str) -> object:
    for name in names:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return None


def _text(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def parse_analysis(raw: str, fallback_category: Optional[str] = None) -> AnalysisResult:
    payload = load_json_payload(raw, prefer="{")
    if isinstance(payload, list):
        payload = next((p for p in payload if isinstance(p, dict)), None)
        if payload is None:
            raise ParseError("No JSON object found in response")

    summary = _text(payload.get("summary"), PLACEHOLDER_SUMMARY)
    why = _text(_pick(payload, "whyItMatters", "why_it_matters"), PLACEHOLDER_WHY_IT_MATTERS)
    return AnalysisResult(
        category=validate_category(payload.get("category"))
        or validate_category(fallback_category)
        or DEFAULT_CATEGORY,
        region=validate_region(payload.get("region")) or DEFAULT_REGION,
        impact_score=validate_impact_score(_pick(payload, "impactScore", "impact_score")),
        summary=summary,
        why_it_matters=why,
        tags=validate_tags(payload.get("tags")),
        title_translated=_text(
            _pick(payload, "titleTranslated", "title_translated", "titleCn"), ""
        ),
        summary_translated=_text(
            _pick(payload, "summaryTranslated", "summary_translated", "summaryCn"),
            summary,
        ),
        why_it_matters_translated=_text(
            _pick(
                payload,
                "whyItMattersTranslated",
                "why_it_matters_translated",
                "whyItMattersCn",
            ),
            why,
        ),
    )


def parse_news_item(data: dict) -> Optional[GeneratedNewsItem]:
    """Validate one generated item; items without a title are dropped."""
    title = _text(data.get("title"), "")
    if not title:
        return None
    summary = _text(data.get("summary"), PLACEHOLDER_SUMMARY)
    return GeneratedNewsItem(
        title=title,
        title_translated=_text(
            _pick(data, "titleTranslated", "title_translated", "titleCn"), title
        ),
        summary=summary,
        summary_translated=_text(
            _pick(data, "summaryTranslated", "summary_translated", "summaryCn"), summary
        ),
        category=validate_category(data.get("category")) or DEFAULT_CATEGORY,
        region=validate_region(data.get("region")) or DEFAULT_REGION,
        impact_score=validate_impact_score(_pick(data, "impactScore", "impact_score", "impact")),
        source_label=_text(_pick(data, "source", "sourceLabel", "source_label"), PLACEHOLDER_SOURCE),
        source_url=normalize_url(str(_pick(data, "sourceUrl", "source_url", "url") or "")),
    )


def parse_news_batch(raw: str) -> list[GeneratedNewsItem]:
    payload = load_json_payload(raw, prefer="[")
    entries: list[object]
    if isinstance(payload, list):
        entries = payload
    else:
        nested = next(
            (payload[k] for k in _BATCH_KEYS if isinstance(payload.get(k), list)), None
        )
        entries = nested if nested is not None else [payload]

    items: list[GeneratedNewsItem] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        item = parse_news_item(entry)
        if item is None:
            logger.debug("Dropping generated item without title: %s", entry)
            continue
        items.append(item)
    return items
