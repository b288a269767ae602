"""Prompt templates for news generation and article analysis."""

from __future__ import annotations

from pulse.constants import ANALYSIS_CONTENT_MAX_CHARS, VALID_CATEGORIES, VALID_REGIONS

_CATEGORIES = ", ".join(VALID_CATEGORIES)
_REGIONS = ", ".join(VALID_REGIONS)


def build_generation_prompt(count: int, date: str) -> str:
    return f"""Today is {date}. List {count} distinct, real and newsworthy AI industry news items from the last 24 hours.

Return ONLY a JSON array with {count} objects of this shape:
[
  {{
    "title": "<headline in English>",
    "titleTranslated": "<headline translated to Simplified Chinese>",
    "summary": "<2-3 sentence summary in English>",
    "summaryTranslated": "<summary translated to Simplified Chinese>",
    "category": "one of: {_CATEGORIES}",
    "region": "one of: {_REGIONS}",
    "impactScore": <integer 1-10>,
    "source": "<publication name>",
    "sourceUrl": "<article URL, or empty string if unknown>"
  }}
]

Rules:
- Every title must be unique; do not repeat a story under a different headline.
- ImpactScore rates significance to the AI field (10 = industry-defining).
- Return ONLY the JSON array, no additional text."""


def build_analysis_prompt(title: str, content: str) -> str:
    return f"""Analyze this AI news article and provide a structured response in JSON format.

Title: {title}
Content: {content[:ANALYSIS_CONTENT_MAX_CHARS]}

Return ONLY a valid JSON object with the following structure:
{{
  "category": "one of: {_CATEGORIES}",
  "region": "one of: {_REGIONS}",
  "impactScore": <number 1-10>,
  "summary": "<2-3 sentence summary in English>",
  "whyItMatters": "<1-2 sentences explaining significance>",
  "titleTranslated": "<title translated to Simplified Chinese>",
  "summaryTranslated": "<summary translated to Simplified Chinese>",
  "whyItMattersTranslated": "<whyItMatters translated to Simplified Chinese>",
  "tags": ["<tag1>", "<tag2>", "<tag3>"]
}}

Analysis criteria:
- Category: Choose the most appropriate category based on content
- Region: Determine the primary geographic focus
- ImpactScore: Rate 1-10 based on significance to AI field
- Tags: 3-5 relevant keywords

Return ONLY the JSON object, no additional text."""
