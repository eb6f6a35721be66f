"""Pydantic models for the TechPulse ingestion pipeline.

Article:
    Normalized news item keyed by (source, external_id).

StructuredSummary / LegacySummary:
    The two shapes a stored summary can take, discriminated by ``kind``.

SummaryPayload:
    JSON object the generative backend must return.

IngestRun / IngestStats / IngestResult:
    Run audit record, in-flight counters, and the outcome handed to callers.

Example:
    >>> from models import Article, article_id
    >>> article_id("hackernews", "41234567")
    'hn-41234567'
"""

from models.article import Article, article_id, HACKER_NEWS, MAX_TAGS
from models.summary import (
    LegacySummary,
    StructuredSummary,
    Summary,
    SummaryPayload,
    SummaryProvenance,
    format_summary,
)
from models.run import IngestResult, IngestRun, IngestStats, RunStatus

__all__ = [
    "Article",
    "article_id",
    "HACKER_NEWS",
    "MAX_TAGS",
    "LegacySummary",
    "StructuredSummary",
    "Summary",
    "SummaryPayload",
    "SummaryProvenance",
    "format_summary",
    "IngestResult",
    "IngestRun",
    "IngestStats",
    "RunStatus",
]
